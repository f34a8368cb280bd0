# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Serialised delivery of filesystem change notifications.

Notifications arrive from several places (the editor's file watcher over the
WebSocket, and the agent's own writes and deletes). They are queued here and
applied to the workspace cache by a single consumer, so cache and index
updates never interleave.
"""

import asyncio
import logging

from pathlib import Path

from .workspace_cache import WorkspaceCache
from ..types.event_types import FileEvent, FileOperation

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class FileChangeRouter:
    def __init__(self, cache: WorkspaceCache):
        self.cache = cache
        self._queue: asyncio.Queue[FileEvent] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if not self.running:
            self._consumer = asyncio.create_task(self._consume())

    async def stop(self) -> None:
        if self._consumer is None:
            return
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass
        self._consumer = None

    def submit(self, event: FileEvent) -> None:
        self._queue.put_nowait(event)

    def notify(self, operation: FileOperation, path: Path | str) -> None:
        self.submit(FileEvent.for_path(operation, str(path)))

    async def flush(self) -> None:
        """Wait until every submitted notification has been applied."""
        if self.running:
            await self._queue.join()
            return
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                self._apply(event)
            finally:
                self._queue.task_done()

    def pending(self) -> int:
        return self._queue.qsize()

    def _apply(self, event: FileEvent) -> None:
        try:
            self.cache.apply_file_event(event)
        except Exception as e:
            logger.error(f"Error applying {event.operation.value} for {event.path}: {e}", exc_info=True)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._apply(event)
            finally:
                self._queue.task_done()
