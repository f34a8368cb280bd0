# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
An editor bridge that needs no editor.

Used by the command line front end and the test suite. Documents are files
on disk: there are no unsaved buffers, so selection edits are written
straight back. Python files get an ``ast`` based outline and syntax-error
diagnostics; other languages have no symbol provider.
"""

import ast
import inspect
import logging

from pathlib import Path
from typing import Awaitable, Callable

from .base import ActiveDocument, Diagnostic, DocumentSymbol, EditorBridge, Selection
from ..safety.gate import read_exact, write_exact

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ConfirmCallback = Callable[[str, str], bool | Awaitable[bool]]

LANGUAGE_IDS = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".json": "json",
    ".md": "markdown",
    ".toml": "toml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".html": "html",
    ".css": "css",
    ".sh": "shellscript",
    ".rs": "rust",
    ".go": "go",
}


def language_id_for(path: Path) -> str:
    return LANGUAGE_IDS.get(path.suffix.lower(), "plaintext")


def _assignment_targets(node: ast.stmt) -> list[str]:
    if isinstance(node, ast.Assign):
        return [t.id for t in node.targets if isinstance(t, ast.Name)]
    if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
        return [node.target.id]
    return []


def _python_symbols(body: list[ast.stmt], in_class: bool = False) -> list[DocumentSymbol]:
    symbols = []
    for node in body:
        if isinstance(node, ast.ClassDef):
            symbols.append(
                DocumentSymbol(
                    name=node.name,
                    kind="class",
                    line=node.lineno - 1,
                    children=_python_symbols(node.body, in_class=True),
                )
            )
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if in_class:
                kind = "constructor" if node.name == "__init__" else "method"
            else:
                kind = "function"
            symbols.append(DocumentSymbol(name=node.name, kind=kind, line=node.lineno - 1))
        else:
            for name in _assignment_targets(node):
                if in_class:
                    kind = "prop"
                else:
                    kind = "const" if name.isupper() else "var"
                symbols.append(DocumentSymbol(name=name, kind=kind, line=node.lineno - 1))
    return symbols


class HeadlessEditor(EditorBridge):
    def __init__(self, workspace_root: Path | str, confirm: ConfirmCallback | None = None):
        self.workspace_root = Path(workspace_root).resolve()
        self._confirm = confirm
        self._open: list[Path] = []
        self._active: Path | None = None
        # Selection as character offsets into the active document
        self._sel_start = 0
        self._sel_end = 0

    def _absolute(self, path: Path | str) -> Path:
        path = Path(path)
        return (path if path.is_absolute() else self.workspace_root / path).resolve()

    def open_file(self, path: Path | str, activate: bool = True) -> Path:
        path = self._absolute(path)
        if not path.is_file():
            raise FileNotFoundError(path)
        if path not in self._open:
            self._open.append(path)
        if activate:
            self._active = path
            self._sel_start = self._sel_end = 0
        return path

    def close_file(self, path: Path | str) -> None:
        path = self._absolute(path)
        if path in self._open:
            self._open.remove(path)
        if self._active == path:
            self._active = self._open[-1] if self._open else None
            self._sel_start = self._sel_end = 0

    def select(self, start: int, end: int) -> None:
        """Select a character range of the active document."""
        if self._active is None:
            raise RuntimeError("No active document")
        length = len(read_exact(self._active))
        self._sel_start = max(0, min(start, length))
        self._sel_end = max(self._sel_start, min(end, length))

    def select_lines(self, first: int, last: int) -> None:
        """Select whole lines, one-based and inclusive."""
        if self._active is None:
            raise RuntimeError("No active document")
        lines = read_exact(self._active).splitlines(keepends=True)
        start = sum(len(line) for line in lines[: first - 1])
        end = sum(len(line) for line in lines[:last])
        self.select(start, end)

    async def active_document(self) -> ActiveDocument | None:
        if self._active is None or not self._active.is_file():
            return None
        text = read_exact(self._active)
        start, end = min(self._sel_start, len(text)), min(self._sel_end, len(text))
        selection = Selection(
            start_line=text.count("\n", 0, start),
            end_line=text.count("\n", 0, end),
            text=text[start:end],
        )
        return ActiveDocument(
            path=str(self._active),
            language_id=language_id_for(self._active),
            text=text,
            selection=selection,
        )

    async def replace_selection(self, text: str) -> bool:
        if self._active is None:
            return False
        content = read_exact(self._active)
        content = content[: self._sel_start] + text + content[self._sel_end :]
        write_exact(self._active, content)
        self._sel_start = self._sel_end = self._sel_start + len(text)
        return True

    async def insert_text(self, text: str) -> bool:
        if self._active is None:
            return False
        content = read_exact(self._active)
        cursor = self._sel_end
        write_exact(self._active, content[:cursor] + text + content[cursor:])
        self._sel_start = self._sel_end = cursor + len(text)
        return True

    async def open_files(self) -> list[str]:
        return [str(p) for p in self._open]

    async def diagnostics(self, path: str | None = None) -> list[Diagnostic]:
        targets = [self._absolute(path)] if path else list(self._open)
        results = []
        for target in targets:
            if language_id_for(target) != "python" or not target.is_file():
                continue
            try:
                ast.parse(read_exact(target), filename=str(target))
            except SyntaxError as e:
                results.append(
                    Diagnostic(
                        path=str(target),
                        line=max((e.lineno or 1) - 1, 0),
                        severity="Error",
                        message=e.msg,
                    )
                )
            except (OSError, UnicodeDecodeError, ValueError) as e:
                logger.debug(f"Could not check {target}: {e}")
        return results

    async def document_symbols(self, path: str) -> list[DocumentSymbol] | None:
        target = self._absolute(path)
        if language_id_for(target) != "python":
            return None
        try:
            module = ast.parse(read_exact(target), filename=str(target))
        except (OSError, SyntaxError, UnicodeDecodeError, ValueError) as e:
            logger.debug(f"No outline for {target}: {e}")
            return None
        return _python_symbols(module.body)

    async def confirm_write(self, path: str, message: str) -> bool:
        if self._confirm is None:
            return True
        decision = self._confirm(path, message)
        if inspect.isawaitable(decision):
            decision = await decision
        return bool(decision)
