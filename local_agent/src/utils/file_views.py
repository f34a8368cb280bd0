# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""File Visualization Utilities

This module provides the directory walks behind the listing, search, project
tree and file index features.
"""

import os
import logging

from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Build, dependency and VCS directories that are never indexed
INDEX_IGNORE_NAMES = frozenset(
    {".git", "node_modules", ".ai-agent", "out", "dist", "__pycache__", ".next", "vendor"}
)
TREE_IGNORE_NAMES = INDEX_IGNORE_NAMES | {".vscode"}

# Hidden files that are still worth showing
HIDDEN_ALLOWLIST = frozenset({".env.example"})

TREE_BRANCH = "├── "
TREE_LAST = "└── "
TREE_PIPE = "│   "
TREE_SPACE = "    "


def is_hidden(name: str) -> bool:
    return name.startswith(".") and name not in HIDDEN_ALLOWLIST


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def _is_directory(entry: os.DirEntry) -> bool:
    """Whether to descend into ``entry``. Symlinks are never followed, so link
    cycles and links leaving the workspace are listed rather than walked."""
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def list_files_recursive(directory: Path, base: str = "") -> list[str]:
    """List every file below ``directory`` as a POSIX path relative to it.

    Hidden directories and ``node_modules`` are not descended into; hidden
    files are listed. Unreadable directories are skipped.
    """
    results: list[str] = []
    try:
        entries = _sorted_entries(directory)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return results

    for entry in entries:
        rel_path = f"{base}/{entry.name}" if base else entry.name
        if _is_directory(entry):
            if not entry.name.startswith(".") and entry.name != "node_modules":
                results.extend(list_files_recursive(Path(entry.path), rel_path))
        else:
            results.append(rel_path)
    return results


def walk_indexable_files(directory: Path) -> Iterator[Path]:
    """Yield the files the file index tracks, depth first."""
    try:
        entries = _sorted_entries(directory)
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return

    for entry in entries:
        if is_hidden(entry.name) or entry.name in INDEX_IGNORE_NAMES:
            continue
        if _is_directory(entry):
            yield from walk_indexable_files(Path(entry.path))
        else:
            yield Path(entry.path)


def build_tree(directory: Path, max_depth: int = 3, prefix: str = "", depth: int = 0) -> str:
    """Render a directory as an indented tree, directories first.

    Example (``max_depth=2``)::

        ├── src/
        │   ├── main.py
        │   └── util.py
        └── README.md
    """
    if depth >= max_depth:
        return ""

    try:
        entries = [
            e
            for e in _sorted_entries(directory)
            if not is_hidden(e.name) and e.name not in TREE_IGNORE_NAMES
        ]
    except OSError:
        return ""

    entries.sort(key=lambda e: (not _is_directory(e), e.name.lower(), e.name))

    lines = []
    for i, entry in enumerate(entries):
        is_last = i == len(entries) - 1
        connector = TREE_LAST if is_last else TREE_BRANCH
        child_prefix = prefix + (TREE_SPACE if is_last else TREE_PIPE)

        if _is_directory(entry):
            lines.append(f"{prefix}{connector}{entry.name}/")
            lines.append(build_tree(Path(entry.path), max_depth, child_prefix, depth + 1))
        else:
            lines.append(f"{prefix}{connector}{entry.name}")

    return "\n".join(line for line in lines if line)
