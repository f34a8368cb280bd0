# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
In-memory caching with TTL support for workspace lookups.

Entries expire lazily: an expired entry is dropped when it is next read, and
there is no background sweep. File contents are additionally gated on the
file's modification time, so an edit made behind the cache's back is seen as
a miss on the next read.

All TTLs are in milliseconds.
"""

import json
import time
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .file_index import FileIndex
from ..types.event_types import FileEvent, FileOperation

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_TTL_MS = 60_000
FILE_TTL_MS = 300_000
TREE_TTL_MS = 30_000

FILE_PREFIX = "file:"
OUTLINE_PREFIX = "outline:"


@dataclass
class CacheEntry:
    """Single cache entry with value, creation time (seconds) and TTL (ms)."""

    value: Any
    created: float
    ttl_ms: int

    def is_expired(self, now: float) -> bool:
        return (now - self.created) * 1000 > self.ttl_ms


@dataclass
class CacheStats:
    files: int
    cache_entries: int
    cache_size_kb: float

    def __str__(self) -> str:
        return (
            "Cache Statistics:\n"
            f"- Indexed files: {self.files}\n"
            f"- Cache entries: {self.cache_entries}\n"
            f"- Cache size: {self.cache_size_kb:.1f} KB"
        )


class WorkspaceCache:
    """TTL entry store, project-tree slot and file index for one workspace root."""

    def __init__(
        self,
        workspace_root: Path | str,
        clock: Callable[[], float] = time.monotonic,
        build_index: bool = True,
    ):
        self.workspace_root = Path(workspace_root).resolve()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._tree: CacheEntry | None = None
        self._tree_depth: int | None = None
        self.index = FileIndex(self.workspace_root)
        if build_index:
            self.index.build()

    # Generic entries

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug(f"Cache expired: {key}")
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: int = DEFAULT_TTL_MS) -> None:
        self._entries[key] = CacheEntry(value=value, created=self._clock(), ttl_ms=ttl_ms)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate(self, pattern: str) -> int:
        """Remove every key containing ``pattern`` as a substring."""
        doomed = [k for k in self._entries if pattern in k]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug(f"Cache invalidated '{pattern}': {len(doomed)} keys")
        return len(doomed)

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.invalidate_tree()

    # File contents

    def relative_key(self, path: Path | str) -> str:
        path = Path(path)
        if not path.is_absolute():
            path = self.workspace_root / path
        try:
            return path.relative_to(self.workspace_root).as_posix()
        except ValueError:
            return str(path)

    def _absolute(self, path: Path | str) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.workspace_root / path

    def get_file(self, path: Path | str) -> str | None:
        cached = self.get(FILE_PREFIX + self.relative_key(path))
        if cached is None:
            return None
        try:
            mtime_ns = self._absolute(path).stat().st_mtime_ns
        except OSError:
            return None
        if mtime_ns != cached["mtime_ns"]:
            # Changed on disk since caching; bypass without evicting
            return None
        return cached["content"]

    def set_file(self, path: Path | str, content: str) -> None:
        try:
            mtime_ns = self._absolute(path).stat().st_mtime_ns
        except OSError:
            return
        self.set(
            FILE_PREFIX + self.relative_key(path),
            {"content": content, "mtime_ns": mtime_ns},
            FILE_TTL_MS,
        )

    # Outlines

    def get_outline(self, path: Path | str) -> str | None:
        return self.get(OUTLINE_PREFIX + self.relative_key(path))

    def set_outline(self, path: Path | str, outline: str) -> None:
        self.set(OUTLINE_PREFIX + self.relative_key(path), outline)

    # Project tree

    def get_project_tree(self, depth: int) -> str | None:
        if self._tree is None or self._tree_depth != depth:
            return None
        if self._tree.is_expired(self._clock()):
            self.invalidate_tree()
            return None
        return self._tree.value

    def set_project_tree(self, tree: str, depth: int) -> None:
        self._tree = CacheEntry(value=tree, created=self._clock(), ttl_ms=TREE_TTL_MS)
        self._tree_depth = depth

    def invalidate_tree(self) -> None:
        self._tree = None
        self._tree_depth = None

    # Change notifications

    def invalidate_path(self, path: Path | str) -> None:
        rel = self.relative_key(path)
        self.delete(FILE_PREFIX + rel)
        self.delete(OUTLINE_PREFIX + rel)
        self.invalidate_tree()

    def apply_file_event(self, event: FileEvent) -> None:
        """Bring the cache and index in line with one filesystem notification."""
        path = self._absolute(event.path)
        self.invalidate_path(path)

        if event.operation == FileOperation.CREATE:
            if self.index.is_indexable(path) and not path.is_dir():
                self.index.add(path)
        elif event.operation == FileOperation.DELETE:
            if not self.index.remove(path):
                self.index.remove_under(path)

    def find_files(self, query: str) -> list[str]:
        return self.index.find(query)

    def get_stats(self) -> CacheStats:
        size = 0
        for entry in self._entries.values():
            size += len(json.dumps(entry.value, default=str))
        return CacheStats(
            files=len(self.index),
            cache_entries=len(self._entries),
            cache_size_kb=size / 1024,
        )
