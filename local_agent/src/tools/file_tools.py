# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os
import re
import fnmatch
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..safety.gate import read_exact, write_exact
from ..types.tool_types import ToolResult
from ..types.event_types import FileOperation
from ..utils.file_views import list_files_recursive

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SEARCH_FILE_LIMIT = 100
SEARCH_RESULT_LIMIT = 50
SEARCH_LINE_CHARS = 100


class ListFiles(BaseTool):
    TOOL_NAME = "list_files"
    TOOL_DESCRIPTION = "List files in directory"

    path: str | None = Field(None, description="Directory path, relative to the workspace root")
    recursive: bool = Field(False, description="List recursively")

    async def run(self) -> ToolResult:
        directory = self.resolve(self.path)
        if not directory.exists():
            return self.fail(f"Not found: {self.path or '.'}")
        if directory.is_file():
            return self.fail(f"'{self.path}' is a file")

        if self.recursive:
            entries = list_files_recursive(directory)
        else:
            entries = sorted(os.listdir(directory))
        return self.ok("\n".join(entries) or "(empty)")


class ReadFile(BaseTool):
    TOOL_NAME = "read_file"
    TOOL_DESCRIPTION = "Read file contents"

    path: str = Field(..., description="File path, relative to the workspace root")

    async def run(self) -> ToolResult:
        target = self.resolve(self.path)

        check = self.check_path(target)
        if not check:
            return self.fail(check.reason)
        if not target.exists():
            return self.fail(f"File not found: {self.path}")
        if target.is_dir():
            return self.fail(f"'{self.path}' is a directory")

        check = self.context.safety.check_file_size(target)
        if not check:
            return self.fail(check.reason)

        cache = self.context.cache
        cached = cache.get_file(target)
        if cached is not None:
            return self.ok(cached)

        content = target.read_bytes().decode("utf-8", errors="replace")
        cache.set_file(target, content)
        return self.ok(content)


class WriteFile(BaseTool):
    TOOL_NAME = "write_file"
    TOOL_DESCRIPTION = "Write complete content to file"

    path: str = Field(..., description="File path, relative to the workspace root")
    content: str = Field(..., description="The COMPLETE new file content")

    async def run(self) -> ToolResult:
        ctx = self.context
        target = self.resolve(self.path)

        check = self.check_path(target)
        if not check:
            return self.fail(check.reason)
        if target.is_dir():
            return self.fail(f"'{self.path}' is a directory")

        existed = target.exists()
        old_content = read_exact(target) if existed else None

        if ctx.settings.confirm_before_write:
            message = ctx.safety.describe_write(target, self.content)
            if not await ctx.editor.confirm_write(str(target), message):
                return self.ok("Write cancelled by user")

        if existed and ctx.settings.backup_before_write:
            ctx.safety.backup_file(target, ctx.settings.max_backups)

        target.parent.mkdir(parents=True, exist_ok=True)
        write_exact(target, self.content)
        ctx.safety.record_change(target, old_content, self.content)

        ctx.router.notify(FileOperation.CHANGE if existed else FileOperation.CREATE, target)
        await ctx.router.flush()

        return self.ok(f"✓ Written: {self.path}")


class DeleteFile(BaseTool):
    TOOL_NAME = "delete_file"
    TOOL_DESCRIPTION = "Delete a file"

    path: str = Field(..., description="File path, relative to the workspace root")

    async def run(self) -> ToolResult:
        ctx = self.context
        target = self.resolve(self.path)

        check = self.check_path(target)
        if not check:
            return self.fail(check.reason)
        if not target.exists():
            return self.fail(f"Not found: {self.path}")
        if target.is_dir():
            return self.fail(f"'{self.path}' is a directory")

        if ctx.settings.backup_before_write:
            ctx.safety.backup_file(target, ctx.settings.max_backups)

        old_content = read_exact(target)
        target.unlink()
        ctx.safety.record_change(target, old_content, "")

        ctx.router.notify(FileOperation.DELETE, target)
        await ctx.router.flush()

        return self.ok(f"✓ Deleted: {self.path}")


class SearchFiles(BaseTool):
    TOOL_NAME = "search_files"
    TOOL_DESCRIPTION = "Search for text pattern in files (case-insensitive regular expression)"

    query: str = Field(..., description="Regular expression or plain text to search for")
    path: str | None = Field(None, description="Directory to search in")
    file_pattern: str | None = Field(
        None, alias="filePattern", description="Glob to restrict the files searched, e.g. *.py"
    )

    def _compile(self) -> re.Pattern:
        try:
            return re.compile(self.query, re.IGNORECASE)
        except re.error:
            return re.compile(re.escape(self.query), re.IGNORECASE)

    def _matches_pattern(self, relative: str) -> bool:
        if not self.file_pattern:
            return True
        name = relative.rsplit("/", 1)[-1]
        return fnmatch.fnmatch(relative, self.file_pattern) or fnmatch.fnmatch(name, self.file_pattern)

    async def run(self) -> ToolResult:
        directory = self.resolve(self.path)
        if not directory.is_dir():
            return self.fail(f"Not found: {self.path or '.'}")

        regex = self._compile()
        max_size = self.context.safety.max_file_size
        candidates = [f for f in list_files_recursive(directory) if self._matches_pattern(f)]

        results: list[str] = []
        for relative in candidates[:SEARCH_FILE_LIMIT]:
            full_path = directory / relative
            try:
                if full_path.stat().st_size > max_size:
                    continue
                content = full_path.read_bytes().decode("utf-8")
            except (OSError, UnicodeDecodeError):
                continue

            for i, line in enumerate(content.split("\n")):
                if regex.search(line):
                    results.append(f"{relative}:{i + 1}: {line.strip()[:SEARCH_LINE_CHARS]}")
                    if len(results) >= SEARCH_RESULT_LIMIT:
                        return self.ok("\n".join(results))

        return self.ok("\n".join(results) if results else "No matches found")


class Undo(BaseTool):
    TOOL_NAME = "undo"
    TOOL_DESCRIPTION = "Undo the last file change made by write_file or delete_file"

    async def run(self) -> ToolResult:
        ctx = self.context
        last = ctx.safety.last_change()
        result = ctx.safety.undo_last_change()
        if not result.success:
            return self.fail(result.message)

        if last is not None:
            operation = FileOperation.DELETE if last.old_content is None else FileOperation.CHANGE
            if operation == FileOperation.CHANGE and last.new_content == "" and last.path.exists():
                # Undoing a delete brings the file back
                operation = FileOperation.CREATE
            ctx.router.notify(operation, last.path)
            await ctx.router.flush()

        return self.ok(f"✓ {result.message}")
