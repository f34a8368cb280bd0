# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Read-only git inspection tools.

GitPython calls block, so they run in a worker thread, and every git
subprocess is killed once the configured git timeout elapses.
"""

import git
import asyncio
import logging

from typing import Callable
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_DIFF_CHARS = 5000


class _GitTool(BaseTool):
    TOOL_NAME = "_git"
    TOOL_DESCRIPTION = ""

    def _repo(self) -> git.Repo:
        return git.Repo(self.context.workspace_root, search_parent_directories=True)

    async def _run_git(self, action: Callable[[git.Repo, float], str]) -> ToolResult:
        timeout = self.context.settings.git_timeout
        try:
            output = await asyncio.to_thread(lambda: action(self._repo(), timeout))
        except git.exc.InvalidGitRepositoryError:
            return self.ok("Git error: not a git repository")
        except git.exc.NoSuchPathError as e:
            return self.ok(f"Git error: no such path {e}")
        except git.exc.GitCommandError as e:
            logger.info(f"{self.TOOL_NAME} failed: {e}")
            return self.ok(f"Git error: {(e.stderr or str(e)).strip()}")
        return self.ok(output)


class GitStatus(_GitTool):
    TOOL_NAME = "git_status"
    TOOL_DESCRIPTION = "Get git status (short format)"

    async def run(self) -> ToolResult:
        def status(repo: git.Repo, timeout: float) -> str:
            return repo.git.status("--short", kill_after_timeout=timeout) or "(clean working tree)"

        return await self._run_git(status)


class GitDiff(_GitTool):
    TOOL_NAME = "git_diff"
    TOOL_DESCRIPTION = "Get git diff of the working tree (staged=true for staged changes)"

    staged: bool = Field(False, description="Show staged changes instead of unstaged ones")

    async def run(self) -> ToolResult:
        def diff(repo: git.Repo, timeout: float) -> str:
            args = ["--staged"] if self.staged else []
            result = repo.git.diff(*args, kill_after_timeout=timeout)
            if not result.strip():
                return "No staged changes" if self.staged else "No unstaged changes"
            if len(result) > MAX_DIFF_CHARS:
                return result[:MAX_DIFF_CHARS] + "\n... (truncated)"
            return result

        return await self._run_git(diff)


class GitLog(_GitTool):
    TOOL_NAME = "git_log"
    TOOL_DESCRIPTION = "Get recent commits, one line each"

    count: int = Field(10, description="Number of commits to show", ge=1, le=100)

    async def run(self) -> ToolResult:
        def log(repo: git.Repo, timeout: float) -> str:
            if not repo.head.is_valid():
                return "No commits yet"
            return repo.git.log("--oneline", "-n", str(self.count), kill_after_timeout=timeout) or "No commits yet"

        return await self._run_git(log)
