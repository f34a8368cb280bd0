# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The safety gate.

Every side-effecting tool goes through this module: paths are confined to the
workspace root (and kept out of the version-control metadata directory),
shell commands are screened against a blocklist of destructive idioms, reads
are bounded by a size ceiling, and writes are backed up and recorded so that
they can be undone one step at a time.

The command blocklist is advisory. It stops the obvious accidents a model can
make; it is not a sandbox.
"""

import re
import time
import shutil
import logging

from collections import deque
from dataclasses import dataclass
from pathlib import Path

from .diff import generate_diff

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

STATE_DIR_NAME = ".ai-agent"
VCS_DIR_NAME = ".git"
MAX_FILE_SIZE = 1024 * 1024
MAX_HISTORY = 50
DEFAULT_MAX_BACKUPS = 100

# Checked in order against the trimmed command; first match blocks.
DANGEROUS_COMMANDS: list[re.Pattern] = [
    re.compile(r"^rm\s+(-rf?|--recursive).*[/\\]$", re.IGNORECASE),
    re.compile(r"^rm\s+-rf?\s*[/\\]$", re.IGNORECASE),
    re.compile(r"^del\s+[/\\]\*|^del\s+\*\.\*", re.IGNORECASE),
    re.compile(r"^format\s+[a-z]:", re.IGNORECASE),
    re.compile(r"^mkfs", re.IGNORECASE),
    re.compile(r"^dd\s+.*of=", re.IGNORECASE),
    re.compile(r"^:\(\)\s*\{\s*:\|:\s*&\s*\}"),  # fork bomb
    re.compile(r"^chmod\s+(-R\s+)?777\s+[/\\]", re.IGNORECASE),
    re.compile(r"^chown\s+-R.*[/\\]$", re.IGNORECASE),
    re.compile(r">\s*/dev/sd[a-z]", re.IGNORECASE),
    re.compile(r"^shutdown", re.IGNORECASE),
    re.compile(r"^reboot", re.IGNORECASE),
    re.compile(r"^halt", re.IGNORECASE),
    re.compile(r"^init\s+[06]", re.IGNORECASE),
    re.compile(r"^pkill\s+-9\s+-1", re.IGNORECASE),
    re.compile(r"^killall\s+-9", re.IGNORECASE),
    re.compile(r"^taskkill\s+/f\s+/im\s+\*", re.IGNORECASE),
    re.compile(r"\|\s*sh\s*$", re.IGNORECASE),
    re.compile(r"\|\s*bash\s*$", re.IGNORECASE),
    re.compile(r"curl.*\|\s*(ba)?sh", re.IGNORECASE),
    re.compile(r"wget.*\|\s*(ba)?sh", re.IGNORECASE),
]


@dataclass
class SafetyCheck:
    ok: bool
    reason: str | None = None
    size: int | None = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class FileChange:
    """An undo record. ``old_content`` is None when the change created the file."""

    path: Path
    old_content: str | None
    new_content: str
    timestamp: int


@dataclass
class UndoResult:
    success: bool
    message: str


def read_exact(path: Path) -> str:
    """Read a text file without newline translation."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_exact(path: Path, content: str) -> None:
    """Write a text file without newline translation."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def count_lines(content: str) -> int:
    return content.count("\n") + 1


class SafetyGate:
    """Path, command and size policy plus backup and undo bookkeeping for one workspace."""

    def __init__(
        self,
        workspace_root: Path | str,
        max_history: int = MAX_HISTORY,
        max_file_size: int = MAX_FILE_SIZE,
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ):
        self.workspace_root = Path(workspace_root).resolve()
        self.backup_dir = self.workspace_root / STATE_DIR_NAME / "backups"
        self.max_file_size = max_file_size
        self.max_backups = max_backups
        self._history: deque[FileChange] = deque(maxlen=max_history)

    def resolve(self, path: Path | str | None) -> Path:
        """Resolve a possibly-relative path against the workspace root."""
        if not path:
            return self.workspace_root
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.workspace_root / candidate
        return candidate.resolve()

    def relative(self, path: Path | str) -> str:
        """Workspace-relative POSIX form of a path (absolute form if outside)."""
        resolved = self.resolve(path)
        try:
            return resolved.relative_to(self.workspace_root).as_posix()
        except ValueError:
            return str(resolved)

    def is_path_safe(self, path: Path | str) -> SafetyCheck:
        resolved = self.resolve(path)
        try:
            relative = resolved.relative_to(self.workspace_root)
        except ValueError:
            return SafetyCheck(ok=False, reason="Path is outside workspace")

        if VCS_DIR_NAME in relative.parts:
            return SafetyCheck(ok=False, reason="Cannot modify .git directory")

        return SafetyCheck(ok=True)

    def is_command_safe(self, command: str) -> SafetyCheck:
        trimmed = command.strip()
        for pattern in DANGEROUS_COMMANDS:
            if pattern.search(trimmed):
                logger.warning(f"Blocked command matching {pattern.pattern!r}: {trimmed}")
                return SafetyCheck(ok=False, reason="Blocked dangerous command pattern")
        return SafetyCheck(ok=True)

    def check_file_size(self, path: Path | str) -> SafetyCheck:
        try:
            size = self.resolve(path).stat().st_size
        except OSError:
            # Nothing to measure
            return SafetyCheck(ok=True)

        if size > self.max_file_size:
            limit_mb = self.max_file_size / 1024 / 1024
            return SafetyCheck(
                ok=False,
                size=size,
                reason=f"File too large ({size / 1024 / 1024:.2f}MB > {limit_mb:g}MB limit)",
            )
        return SafetyCheck(ok=True, size=size)

    def backup_file(self, path: Path | str, max_backups: int | None = None) -> Path | None:
        """Copy a file into the backup directory before it is overwritten.

        Returns the backup path, or None when the file does not exist or the
        copy failed. Only the newest ``max_backups`` backups are retained.
        """
        source = self.resolve(path)
        if not source.is_file():
            return None

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            flattened = re.sub(r"[/\\]", "_", self.relative(source))
            backup_path = self.backup_dir / f"{int(time.time() * 1000)}-{flattened}"
            shutil.copyfile(source, backup_path)
        except OSError as e:
            logger.error(f"Backup of {source} failed: {e}")
            return None

        self.prune_backups(max_backups if max_backups is not None else self.max_backups)
        return backup_path

    def list_backups(self) -> list[Path]:
        """Backups, oldest first."""
        if not self.backup_dir.is_dir():
            return []

        def stamp(p: Path) -> int:
            prefix = p.name.split("-", 1)[0]
            return int(prefix) if prefix.isdigit() else 0

        return sorted((p for p in self.backup_dir.iterdir() if p.is_file()), key=stamp)

    def prune_backups(self, keep: int) -> int:
        backups = self.list_backups()
        excess = backups[: max(0, len(backups) - keep)]
        for old in excess:
            try:
                old.unlink()
            except OSError as e:
                logger.error(f"Could not prune backup {old}: {e}")
        return len(excess)

    def record_change(self, path: Path | str, old_content: str | None, new_content: str) -> None:
        self._history.append(
            FileChange(
                path=self.resolve(path),
                old_content=old_content,
                new_content=new_content,
                timestamp=int(time.time() * 1000),
            )
        )

    def last_change(self) -> FileChange | None:
        return self._history[-1] if self._history else None

    def undo_last_change(self) -> UndoResult:
        if not self._history:
            return UndoResult(success=False, message="No changes to undo")

        last = self._history.pop()
        try:
            if last.old_content is None:
                if last.path.exists():
                    last.path.unlink()
                    return UndoResult(True, f"Deleted newly created file: {last.path}")
            else:
                last.path.parent.mkdir(parents=True, exist_ok=True)
                write_exact(last.path, last.old_content)
                return UndoResult(True, f"Restored: {last.path}")
            return UndoResult(True, "Undo complete")
        except OSError as e:
            return UndoResult(False, f"Undo failed: {e}")

    def describe_write(self, path: Path | str, new_content: str) -> str:
        """The message shown when asking the user to approve a write."""
        target = self.resolve(path)
        if not target.exists():
            return f"Create new file: {target.name}?"

        old_content = read_exact(target)
        diff = generate_diff(old_content, new_content, str(target))
        return (
            f"Modify {target.name}? ({count_lines(old_content)} → {count_lines(new_content)} lines)"
            f"\n\nPreview:\n{diff[:500]}"
        )
