# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The tool-calling conversation loop.

One user message turns into a bounded sequence of model calls. Each call
either asks for tools, which are executed one after another in the order the
model listed them with each result appended before the next tool starts, or
produces final content, which ends the turn. The model request is the only
thing ``stop()`` can cancel; tools that have started always run to completion.
"""

import os
import asyncio
import logging

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from pydantic import ValidationError

from .prompts import build_system_prompt
from ..config import AgentSettings, SettingsProvider
from ..events import EventBus
from ..cache.router import FileChangeRouter
from ..cache.workspace_cache import WorkspaceCache
from ..editor.base import EditorBridge
from ..llm.base import Message
from ..llm.client import ChatCompletionClient, LLMError, LLMRequestCancelled
from ..safety.gate import SafetyGate
from ..storage.models import DEFAULT_THREAD_TITLE, Thread, now_ms, title_from_text
from ..storage.thread_store import MemoryStore, ThreadStore
from ..tools import ToolContext, execute_tool_call, get_native_tools
from ..types.agent_types import AgentStatus, ConnectionStatus
from ..types.event_types import Event, EventType

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class ChatAgent:
    """Owns the live transcript and the active thread for one workspace."""

    MAX_ITERATIONS = 15

    def __init__(
        self,
        workspace_root: Path | str,
        settings_provider: SettingsProvider,
        client: ChatCompletionClient,
        safety: SafetyGate,
        cache: WorkspaceCache,
        router: FileChangeRouter,
        threads: ThreadStore,
        memory: MemoryStore,
        editor: EditorBridge,
        agent_id: str | None = None,
    ):
        self.workspace_root = Path(workspace_root).resolve()
        self.settings_provider = settings_provider
        self.client = client
        self.safety = safety
        self.cache = cache
        self.router = router
        self.threads = threads
        self.memory = memory
        self.editor = editor
        self.agent_id = agent_id or f"chat_agent_{os.urandom(4).hex()}"

        self.messages: list[Message] = []
        self.current_thread: Thread | None = None

        self._lock: asyncio.Lock | None = None
        self._inflight: asyncio.Task | None = None
        self._stop_requested = False

        self._init_messages(settings_provider())

    # Transcript

    def _system_message(self, settings: AgentSettings) -> Message:
        return Message.system(
            build_system_prompt(self.memory.context_text(), settings.system_prompt_addition)
        )

    def _init_messages(self, settings: AgentSettings) -> None:
        self.messages = [self._system_message(settings)]

    def tool_context(self, settings: AgentSettings) -> ToolContext:
        return ToolContext(
            workspace_root=self.workspace_root,
            settings=settings,
            safety=self.safety,
            cache=self.cache,
            router=self.router,
            memory=self.memory,
            editor=self.editor,
        )

    @property
    def busy(self) -> bool:
        return self._lock is not None and self._lock.locked()

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @asynccontextmanager
    async def _idle(self) -> AsyncIterator[None]:
        """Exclusive access to the transcript, stopping a running turn first."""
        lock = self._get_lock()
        if lock.locked():
            self.interrupt()
        async with lock:
            yield

    async def _publish(self, event_type: EventType, content: str, **metadata) -> None:
        event_bus = await EventBus.get_instance()
        await event_bus.publish(Event(type=event_type, content=content, metadata=metadata), self.agent_id)

    async def _publish_thread(self) -> None:
        thread = self.current_thread.summary() if self.current_thread else None
        await self._publish(
            EventType.THREAD_CHANGED,
            thread["id"] if thread else "",
            thread=thread,
        )

    # The loop

    async def chat(self, user_text: str) -> AgentStatus:
        """Run one user turn to completion.

        Returns how the turn ended. Only transport failures and cancellation
        end a turn early; tool failures are fed back to the model.
        """
        async with self._get_lock():
            self._stop_requested = False
            self.messages.append(Message.user(user_text))

            settings = self.settings_provider()
            for iteration in range(self.MAX_ITERATIONS):
                settings = self.settings_provider()
                # Keep the system prompt in line with current settings and memory
                self.messages[0] = self._system_message(settings)

                try:
                    msg = await self._call_llm(settings)
                except LLMRequestCancelled as e:
                    logger.info(f"Request cancelled: {e}")
                    await self._publish(EventType.STOPPED, "Stopped")
                    await self._save(settings)
                    return AgentStatus.CANCELLED
                except LLMError as e:
                    logger.error(f"LLM call failed: {e}")
                    await self._publish(EventType.APPLICATION_ERROR, f"API Error: {e}")
                    return AgentStatus.ERROR

                if msg is None:
                    logger.debug(f"Empty response on iteration {iteration}, retrying")
                    continue

                if msg.tool_calls:
                    self.messages.append(msg)
                    context = self.tool_context(settings)
                    for tool_call in msg.tool_calls:
                        result = await execute_tool_call(
                            tool_call.function.name,
                            tool_call.function.arguments,
                            context,
                            self.agent_id,
                        )
                        self.messages.append(Message.tool_result(tool_call.id, result.to_text()))
                    continue

                if msg.content:
                    self.messages.append(msg)
                    await self._publish(EventType.ASSISTANT_MESSAGE, msg.content)
                    await self._save(settings)
                    return AgentStatus.SUCCESS

            await self._publish(EventType.APPLICATION_WARNING, "Max iterations reached.")
            await self._save(settings)
            return AgentStatus.INCOMPLETE

    async def _call_llm(self, settings: AgentSettings) -> Message | None:
        await self._publish(EventType.STATUS, f"[Connecting to {settings.api_url}...]")
        if self._stop_requested:
            raise LLMRequestCancelled("Stopped before the request was sent")

        self._inflight = asyncio.create_task(
            self.client.create_completion(settings, list(self.messages), get_native_tools())
        )
        try:
            return await asyncio.wait_for(self._inflight, timeout=settings.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise LLMRequestCancelled(f"Request timed out after {settings.timeout_seconds:g}s") from e
        except asyncio.CancelledError:
            if self._stop_requested:
                raise LLMRequestCancelled("Stopped by user") from None
            raise
        finally:
            self._inflight = None

    def stop(self) -> bool:
        """Cancel the in-flight model request, if any.

        Returns True when a request was actually cancelled. Tool calls that
        are already running finish, and a stop between requests does nothing.
        """
        if self._inflight is None or self._inflight.done():
            return False
        self._stop_requested = True
        self._inflight.cancel()
        return True

    def interrupt(self) -> None:
        """End the running turn at its next request, cancelling the current one."""
        self._stop_requested = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    # Persistence

    async def _save(self, settings: AgentSettings) -> None:
        if not settings.auto_save:
            return

        created = self.current_thread is None
        if created:
            self.current_thread = Thread.new()

        thread = self.current_thread
        thread.messages = [m.to_wire() for m in self.messages[1:]]
        thread.updated = now_ms()
        if thread.title == DEFAULT_THREAD_TITLE:
            first_user = next((m for m in self.messages if m.role == "user" and m.content), None)
            if first_user is not None:
                thread.title = title_from_text(first_user.content)

        self.threads.save(thread)
        if created:
            await self._publish_thread()

    # Thread lifecycle

    async def new_thread(self) -> Thread:
        async with self._idle():
            self.current_thread = Thread.new()
            self._init_messages(self.settings_provider())
            await self._publish_thread()
            return self.current_thread

    async def load_thread(self, thread_id: str) -> bool:
        async with self._idle():
            thread = self.threads.load(thread_id)
            if thread is None:
                return False

            self.current_thread = thread
            self._init_messages(self.settings_provider())
            for raw in thread.messages:
                try:
                    self.messages.append(Message.model_validate(raw))
                except ValidationError as e:
                    logger.warning(f"Skipping malformed message in thread {thread_id}: {e}")
            await self._publish_thread()
            return True

    async def delete_thread(self, thread_id: str) -> bool:
        async with self._idle():
            deleted = self.threads.delete(thread_id)
            if self.current_thread is not None and self.current_thread.id == thread_id:
                self.current_thread = None
                self._init_messages(self.settings_provider())
                await self._publish_thread()
            return deleted

    async def list_threads(self) -> list[Thread]:
        return self.threads.list()

    async def clear_history(self) -> None:
        async with self._idle():
            self.current_thread = None
            self._init_messages(self.settings_provider())
            await self._publish_thread()

    async def test_connection(self) -> ConnectionStatus:
        return await self.client.test_connection(self.settings_provider())

    def visible_messages(self) -> list[dict]:
        """User turns and assistant turns with content, for redrawing a conversation."""
        return [
            m.to_wire()
            for m in self.messages
            if m.role == "user" or (m.role == "assistant" and m.content)
        ]
