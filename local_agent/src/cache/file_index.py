# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pathlib import Path

from ..utils.file_views import INDEX_IGNORE_NAMES, is_hidden, walk_indexable_files

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_FIND_RESULTS = 50


class FileIndex:
    """Lowercase file name -> absolute paths sharing that name.

    Built from a full walk of the workspace, then maintained incrementally
    from create/delete notifications. Lookups are substring matches on the
    name, in insertion order, with no ranking.
    """

    def __init__(self, workspace_root: Path | str):
        self.workspace_root = Path(workspace_root).resolve()
        self._by_name: dict[str, list[Path]] = {}

    def build(self) -> int:
        self._by_name.clear()
        for path in walk_indexable_files(self.workspace_root):
            self.add(path)
        logger.info(f"Indexed {len(self)} files under {self.workspace_root}")
        return len(self)

    def _absolute(self, path: Path | str) -> Path:
        path = Path(path)
        if not path.is_absolute():
            path = self.workspace_root / path
        return path

    def is_indexable(self, path: Path | str) -> bool:
        """Whether a path falls outside the hidden and ignored parts of the tree."""
        try:
            relative = self._absolute(path).relative_to(self.workspace_root)
        except ValueError:
            return False
        if not relative.parts:
            return False
        return not any(is_hidden(part) or part in INDEX_IGNORE_NAMES for part in relative.parts)

    def add(self, path: Path | str) -> bool:
        path = self._absolute(path)
        existing = self._by_name.setdefault(path.name.lower(), [])
        if path in existing:
            return False
        existing.append(path)
        return True

    def remove(self, path: Path | str) -> bool:
        path = self._absolute(path)
        name = path.name.lower()
        existing = self._by_name.get(name)
        if not existing or path not in existing:
            return False
        existing.remove(path)
        if not existing:
            del self._by_name[name]
        return True

    def remove_under(self, directory: Path | str) -> int:
        """Drop every indexed path below a deleted directory."""
        directory = self._absolute(directory)
        doomed = [p for paths in self._by_name.values() for p in paths if directory in p.parents]
        for path in doomed:
            self.remove(path)
        return len(doomed)

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.workspace_root).as_posix()
        except ValueError:
            return str(path)

    def find(self, query: str, limit: int = MAX_FIND_RESULTS) -> list[str]:
        needle = query.lower()
        results: list[str] = []
        for name, paths in self._by_name.items():
            if needle in name:
                results.extend(self._relative(p) for p in paths)
                if len(results) >= limit:
                    break
        return results[:limit]

    def all_files(self) -> list[str]:
        return [self._relative(p) for paths in self._by_name.values() for p in paths]

    def __len__(self) -> int:
        return sum(len(paths) for paths in self._by_name.values())

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        path = self._absolute(path)
        return path in self._by_name.get(path.name.lower(), [])
