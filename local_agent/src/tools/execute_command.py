# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import asyncio
import logging

from pydantic import Field, PrivateAttr

from .base_tool import BaseTool
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Seconds a timed-out command gets to exit after SIGTERM before it is killed
TERMINATE_GRACE_SECONDS = 5.0


class RunCommand(BaseTool):
    """Tool for executing shell commands in the workspace root."""

    TOOL_NAME = "run_command"
    TOOL_DESCRIPTION = """Run a shell command in the workspace root and return its output.

Dangerous commands (recursive deletes of the filesystem root, disk formatting, fork bombs, shutdown, piping downloads into a shell, ...) are blocked. Commands are killed if they do not return within the configured timeout, so do not start servers or other long-running processes."""

    cmd: str = Field(..., description="The shell command to run", min_length=1)

    _process: asyncio.subprocess.Process | None = PrivateAttr(default=None)

    async def run(self) -> ToolResult:
        ctx = self.context

        check = ctx.safety.is_command_safe(self.cmd)
        if not check:
            return self.fail(check.reason)

        timeout = ctx.settings.command_timeout
        try:
            self._process = await asyncio.create_subprocess_shell(
                self.cmd,
                cwd=str(ctx.workspace_root),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )

            try:
                stdout, stderr = await asyncio.wait_for(self._process.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=TERMINATE_GRACE_SECONDS)
                except asyncio.TimeoutError:
                    self._process.kill()  # Force kill if terminate didn't work
                    await self._process.wait()

                return self.fail(f"Command timed out after {timeout:g} seconds")

        except OSError as e:
            return self.fail(f"Error executing command: {e}")

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")
        code = self._process.returncode

        if code != 0:
            logger.info(f"Command exited with {code}: {self.cmd}")
            return self.ok(f"Exit {code}: {err or out or 'command failed'}")

        output = out + (f"\n{err}" if out and err else err)
        return self.ok(output or "(no output)")
