# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
JSON-file persistence for threads and memory.

Layout under the workspace root::

    .ai-agent/
        threads/<thread id>.json
        memory.json

Read failures (missing or corrupt files) come back as ``None`` or an empty
default. Write failures are logged and otherwise ignored: the caller keeps
working from its in-memory copy.
"""

import json
import logging

from pathlib import Path

from .models import Memory, Thread, now_ms
from ..safety.gate import STATE_DIR_NAME

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _write_json(path: Path, data: dict) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(path)
        return True
    except OSError as e:
        logger.error(f"Failed to write {path}: {e}")
        return False


def _read_json(path: Path) -> dict | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


class ThreadStore:
    def __init__(self, workspace_root: Path | str):
        self.storage_dir = Path(workspace_root) / STATE_DIR_NAME
        self.threads_dir = self.storage_dir / "threads"

    def _path(self, thread_id: str) -> Path:
        # Ids are generated locally, but loadThread requests come from outside
        if not thread_id or Path(thread_id).name != thread_id:
            raise ValueError(f"Invalid thread id: {thread_id!r}")
        return self.threads_dir / f"{thread_id}.json"

    def save(self, thread: Thread) -> bool:
        saved = _write_json(self._path(thread.id), thread.to_dict())
        if saved:
            logger.debug(f"Saved thread {thread.id}")
        return saved

    def load(self, thread_id: str) -> Thread | None:
        try:
            data = _read_json(self._path(thread_id))
        except ValueError:
            return None
        if data is None:
            return None
        try:
            return Thread.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed thread {thread_id}: {e}")
            return None

    def delete(self, thread_id: str) -> bool:
        try:
            path = self._path(thread_id)
        except ValueError:
            return False
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete thread {thread_id}: {e}")
            return False
        return True

    def list(self) -> list[Thread]:
        """All readable threads, most recently updated first."""
        if not self.threads_dir.is_dir():
            return []
        threads = []
        for path in self.threads_dir.glob("*.json"):
            thread = self.load(path.stem)
            if thread is not None:
                threads.append(thread)
        return sorted(threads, key=lambda t: t.updated, reverse=True)


class MemoryStore:
    """
    Workspace memory backed by ``memory.json``.

    If a write fails, the in-memory copy stays authoritative for the rest of
    the process so remembered facts are not silently lost.
    """

    def __init__(self, workspace_root: Path | str):
        self.memory_file = Path(workspace_root) / STATE_DIR_NAME / "memory.json"
        self._memory: Memory | None = None
        self._unsaved = False

    def load(self) -> Memory:
        if self._unsaved and self._memory is not None:
            return self._memory
        data = _read_json(self.memory_file)
        if data is not None:
            self._memory = Memory.from_dict(data)
        elif self._memory is None:
            self._memory = Memory()
        return self._memory

    def save(self, memory: Memory) -> None:
        memory.updated = now_ms()
        self._memory = memory
        self._unsaved = not _write_json(self.memory_file, memory.to_dict())

    def add(self, fact: str) -> bool:
        memory = self.load()
        if fact in memory.facts:
            return False
        memory.facts.append(fact)
        self.save(memory)
        return True

    def remove(self, index: int) -> bool:
        """Remove the fact at a zero-based index."""
        memory = self.load()
        if not 0 <= index < len(memory.facts):
            return False
        del memory.facts[index]
        self.save(memory)
        return True

    def facts(self) -> list[str]:
        return list(self.load().facts)

    def context_text(self) -> str:
        """The block appended to the system prompt, or '' when nothing is remembered."""
        facts = self.load().facts
        if not facts:
            return ""
        lines = "\n".join(f"{i + 1}. {fact}" for i, fact in enumerate(facts))
        return f"\n\nREMEMBERED CONTEXT:\n{lines}"
