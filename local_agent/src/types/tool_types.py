# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os

from abc import ABC, abstractmethod
from typing import ClassVar
from pydantic import BaseModel, ConfigDict, Field

# Upper bound on the text handed back to the model for a single tool call
MAX_TOOL_OUTPUT_CHARS = 20_000
TRUNCATION_MARKER = "\n... (truncated)"


class ToolResult(BaseModel):
    """Represents the result of a tool execution."""

    tool_name: str
    success: bool
    duration: float = 0.0  # on tool error paths, duration is often 0
    output: str | None = None
    warnings: str | None = None
    errors: str | None = None
    invocation_id: str = Field(default_factory=lambda: os.urandom(4).hex())

    def to_text(self, limit: int = MAX_TOOL_OUTPUT_CHARS) -> str:
        """Render the result as the single text payload the model sees.

        Failures are prefixed with ``Error:`` so that the model can react to
        them instead of the loop aborting.
        """
        if self.success:
            text = self.output if self.output is not None else ""
        else:
            text = f"Error: {self.errors or 'unknown error'}"
        if len(text) > limit:
            text = text[:limit] + TRUNCATION_MARKER
        return text

    def __str__(self):
        return self.to_text()


class ToolInterface(BaseModel, ABC):
    """Abstract interface for all tools"""

    # Class variables
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @abstractmethod
    async def run(self) -> ToolResult:
        """Execute the tool's functionality"""
        pass

    @classmethod
    @abstractmethod
    def to_native_tool(cls) -> dict:
        """Render the OpenAI-style function declaration for this tool."""
        pass
