# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""The narrow contract the agent needs from the host editor."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

Severity = Literal["Error", "Warning", "Info", "Hint"]


@dataclass
class Selection:
    """A selection; line numbers are zero-based."""

    start_line: int
    end_line: int
    text: str


@dataclass
class ActiveDocument:
    path: str
    language_id: str
    text: str
    selection: Selection | None = None


@dataclass
class Diagnostic:
    path: str
    line: int  # zero-based
    severity: Severity
    message: str


@dataclass
class DocumentSymbol:
    name: str
    kind: str  # function, method, class, interface, var, const, prop, constructor, symbol
    line: int  # zero-based
    children: list["DocumentSymbol"] = field(default_factory=list)


class EditorBridge(ABC):
    """Editor state and actions, as seen by the editor tools."""

    @abstractmethod
    async def active_document(self) -> ActiveDocument | None:
        """The focused document, or None when no file is open."""
        pass

    @abstractmethod
    async def replace_selection(self, text: str) -> bool:
        """Replace the current selection. False when no file is open."""
        pass

    @abstractmethod
    async def insert_text(self, text: str) -> bool:
        """Insert at the cursor. False when no file is open."""
        pass

    @abstractmethod
    async def open_files(self) -> list[str]:
        """Absolute paths of every open tab."""
        pass

    @abstractmethod
    async def diagnostics(self, path: str | None = None) -> list[Diagnostic]:
        """Problems reported by the editor, optionally for a single file."""
        pass

    @abstractmethod
    async def document_symbols(self, path: str) -> list[DocumentSymbol] | None:
        """Outline of a document; None when no symbol provider can handle it."""
        pass

    @abstractmethod
    async def confirm_write(self, path: str, message: str) -> bool:
        """Ask the user to approve a write; True to proceed."""
        pass
