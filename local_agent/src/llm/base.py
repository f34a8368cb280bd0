# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Wire models for the OpenAI-style chat completion contract."""

import json

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, field_validator

Role = Literal["system", "user", "assistant", "tool"]


class FunctionCall(BaseModel):
    """The function half of a tool call. ``arguments`` is a JSON-encoded string."""

    model_config = ConfigDict(extra="allow")

    name: str
    arguments: str = "{}"

    @field_validator("arguments", mode="before")
    @classmethod
    def encode_structured_arguments(cls, v: Any) -> Any:
        # Some servers send the arguments object rather than its encoding
        if v is None:
            return "{}"
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return v


class ToolCall(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: str = "function"
    function: FunctionCall


class Message(BaseModel):
    """One transcript turn.

    Unknown provider fields are kept so that assistant messages can be
    appended to the transcript exactly as they were received.
    """

    model_config = ConfigDict(extra="allow")

    role: Role
    content: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", tool_call_id=tool_call_id, content=content)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def __str__(self) -> str:
        parts = [f"Message from role={self.role}"]
        if self.content:
            parts.append(f"Text {'-'*10}\n{self.content}")
        for tc in self.tool_calls or []:
            parts.append(f"Tool call {tc.function.name} (id: {tc.id}): {tc.function.arguments}")
        if self.tool_call_id:
            parts.append(f"Answers tool call {self.tool_call_id}")
        return "\n".join(parts)
