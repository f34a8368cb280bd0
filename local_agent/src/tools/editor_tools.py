# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pathlib import Path
from pydantic import Field

from .base_tool import BaseTool, ToolContext
from ..editor.base import DocumentSymbol
from ..types.tool_types import ToolResult
from ..types.event_types import FileOperation

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

NO_FILE_OPEN = "No file open"


def format_symbols(symbols: list[DocumentSymbol], indent: int = 0) -> str:
    lines = []
    for sym in symbols:
        lines.append(f"{'  ' * indent}{sym.kind} {sym.name} (line {sym.line + 1})")
        if sym.children:
            lines.append(format_symbols(sym.children, indent + 1))
    return "\n".join(lines)


class GetActiveFile(BaseTool):
    TOOL_NAME = "get_active_file"
    TOOL_DESCRIPTION = "Get the path, language and content of the file open in the editor"

    async def run(self) -> ToolResult:
        doc = await self.context.editor.active_document()
        if doc is None:
            return self.ok(NO_FILE_OPEN)
        return self.ok(f"File: {doc.path}\nLanguage: {doc.language_id}\n\n{doc.text}")


class GetSelection(BaseTool):
    TOOL_NAME = "get_selection"
    TOOL_DESCRIPTION = "Get the text selected in the editor"

    async def run(self) -> ToolResult:
        doc = await self.context.editor.active_document()
        if doc is None:
            return self.ok(NO_FILE_OPEN)
        sel = doc.selection
        if sel is None or not sel.text:
            return self.ok("No text selected")
        return self.ok(f"Selected (lines {sel.start_line + 1}-{sel.end_line + 1}):\n\n{sel.text}")


async def _notify_active_document_changed(context: ToolContext) -> None:
    doc = await context.editor.active_document()
    if doc is not None:
        context.router.notify(FileOperation.CHANGE, doc.path)
        await context.router.flush()


class ReplaceSelection(BaseTool):
    TOOL_NAME = "replace_selection"
    TOOL_DESCRIPTION = "Replace the current editor selection with new text"

    text: str = Field(..., description="Replacement text")

    async def run(self) -> ToolResult:
        if not await self.context.editor.replace_selection(self.text):
            return self.ok(NO_FILE_OPEN)
        await _notify_active_document_changed(self.context)
        return self.ok("✓ Replaced selection")


class InsertText(BaseTool):
    TOOL_NAME = "insert_text"
    TOOL_DESCRIPTION = "Insert text at the editor cursor"

    text: str = Field(..., description="Text to insert")

    async def run(self) -> ToolResult:
        if not await self.context.editor.insert_text(self.text):
            return self.ok(NO_FILE_OPEN)
        await _notify_active_document_changed(self.context)
        return self.ok("✓ Inserted text")


class GetDiagnostics(BaseTool):
    TOOL_NAME = "get_diagnostics"
    TOOL_DESCRIPTION = "Get errors and warnings reported by the editor"

    path: str | None = Field(None, description="Only report problems for this file")

    async def run(self) -> ToolResult:
        target = str(self.resolve(self.path)) if self.path else None
        diagnostics = await self.context.editor.diagnostics(target)
        lines = [
            f"{Path(d.path).name}:{d.line + 1}: [{d.severity}] {d.message}"
            for d in diagnostics
        ]
        return self.ok("\n".join(lines) if lines else "No diagnostics")


class GetOpenFiles(BaseTool):
    TOOL_NAME = "get_open_files"
    TOOL_DESCRIPTION = "Get list of all open editor tabs"

    async def run(self) -> ToolResult:
        tabs = await self.context.editor.open_files()
        if not tabs:
            return self.ok("No files open")
        relative = [self.context.safety.relative(t) for t in tabs]
        return self.ok(f"Open files ({len(tabs)}):\n" + "\n".join(relative))


class GetFileOutline(BaseTool):
    TOOL_NAME = "get_file_outline"
    TOOL_DESCRIPTION = "Get symbols/outline of a file"

    path: str = Field(..., description="File path, relative to the workspace root")

    async def run(self) -> ToolResult:
        ctx = self.context
        target = self.resolve(self.path)
        if not target.is_file():
            return self.fail(f"File not found: {self.path}")

        cached = ctx.cache.get_outline(target)
        if cached is not None:
            return self.ok(cached)

        try:
            symbols = await ctx.editor.document_symbols(str(target))
        except Exception as e:
            logger.warning(f"Symbol provider failed for {target}: {e}")
            symbols = None

        if symbols is None:
            return self.ok("Could not get symbols for this file")
        if not symbols:
            return self.ok("No symbols found")

        outline = format_symbols(symbols)
        ctx.cache.set_outline(target, outline)
        return self.ok(outline)
