# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult


class Remember(BaseTool):
    TOOL_NAME = "remember"
    TOOL_DESCRIPTION = "Store an important fact about this project; it persists across sessions and conversations"

    fact: str = Field(..., description="The fact to remember", min_length=1)

    async def run(self) -> ToolResult:
        self.context.memory.add(self.fact)
        return self.ok(f'✓ Remembered: "{self.fact}"')


class Recall(BaseTool):
    TOOL_NAME = "recall"
    TOOL_DESCRIPTION = "Retrieve all remembered facts, numbered"

    async def run(self) -> ToolResult:
        facts = self.context.memory.facts()
        if not facts:
            return self.ok("No memories stored yet.")
        return self.ok("\n".join(f"{i + 1}. {fact}" for i, fact in enumerate(facts)))


class Forget(BaseTool):
    TOOL_NAME = "forget"
    TOOL_DESCRIPTION = "Remove a remembered fact by its number as shown by recall (1-based)"

    index: int = Field(..., description="Number of the fact to forget")

    async def run(self) -> ToolResult:
        if self.context.memory.remove(self.index - 1):
            return self.ok(f"✓ Forgot item {self.index}")
        return self.fail(f"Invalid index {self.index}")
