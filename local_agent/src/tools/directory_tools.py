# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult
from ..utils.file_views import build_tree


class GetProjectStructure(BaseTool):
    TOOL_NAME = "get_project_structure"
    TOOL_DESCRIPTION = "Get the project file tree (directories first, build and dependency folders omitted)"

    max_depth: int = Field(3, alias="maxDepth", description="How many directory levels to show", ge=1, le=10)

    async def run(self) -> ToolResult:
        cache = self.context.cache
        cached = cache.get_project_tree(self.max_depth)
        if cached is not None:
            return self.ok(cached or "(empty project)")

        tree = build_tree(self.context.workspace_root, self.max_depth)
        cache.set_project_tree(tree, self.max_depth)
        return self.ok(tree or "(empty project)")


class FindFile(BaseTool):
    TOOL_NAME = "find_file"
    TOOL_DESCRIPTION = "Fast search for files whose name contains the given text"

    name: str = Field(..., description="Part of the file name to look for", min_length=1)

    async def run(self) -> ToolResult:
        results = self.context.cache.find_files(self.name)
        if not results:
            return self.ok(f'No files found matching "{self.name}"')
        return self.ok(f"Found {len(results)} file(s):\n" + "\n".join(results))


class GetCacheStats(BaseTool):
    TOOL_NAME = "get_cache_stats"
    TOOL_DESCRIPTION = "Show cache statistics"

    async def run(self) -> ToolResult:
        return self.ok(str(self.context.cache.get_stats()))
