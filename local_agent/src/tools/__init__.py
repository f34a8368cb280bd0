# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Tools the model can call.

Importing this package imports every tool module, which registers each tool
class in ``tool_registry`` under its ``TOOL_NAME``.
"""

from .base_tool import (
    BaseTool,
    ToolContext,
    execute_tool_call,
    format_tool_call,
    get_native_tools,
    tool_registry,
)
from . import file_tools, execute_command, editor_tools, memory_tools, directory_tools, git_tools  # noqa: F401

__all__ = [
    "BaseTool",
    "ToolContext",
    "execute_tool_call",
    "format_tool_call",
    "get_native_tools",
    "tool_registry",
]
