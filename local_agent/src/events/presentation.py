# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Bridges agent events to a user interface.

A presentation adapter only needs two callbacks: a one-way text channel for
status and results, and a thread-change hook for keeping a thread picker in
sync. Either may be a plain function or a coroutine function.
"""

import inspect
import logging

from typing import Any, Awaitable, Callable

from .event_bus import EventBus
from ..types.event_types import Event, EventType

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

NotifyCallback = Callable[[str], Awaitable[None] | None]
ThreadChangeCallback = Callable[[dict | None], Awaitable[None] | None]

TEXT_PREFIXES: dict[EventType, str] = {
    EventType.STATUS: "",
    EventType.ASSISTANT_MESSAGE: "",
    EventType.TOOL_CALL: "🔧 ",
    EventType.TOOL_RESULT: "   ",
    EventType.APPLICATION_ERROR: "❌ ",
    EventType.APPLICATION_WARNING: "⚠️ ",
    EventType.STOPPED: "⏹️ ",
}

# Only shown when the round's settings ask for tool call visibility
TOOL_EVENTS = {EventType.TOOL_CALL, EventType.TOOL_RESULT}


def format_event_text(event: Event) -> str | None:
    """The notification line for an event, or None if it should not be shown."""
    if event.type not in TEXT_PREFIXES:
        return None
    if event.type in TOOL_EVENTS and not event.metadata.get("show_tool_calls", True):
        return None
    return f"{TEXT_PREFIXES[event.type]}{event.content}"


async def _call(callback: Callable, arg: Any) -> None:
    result = callback(arg)
    if inspect.isawaitable(result):
        await result


def attach_presentation(
    bus: EventBus,
    agent_id: str,
    notify: NotifyCallback,
    on_thread_change: ThreadChangeCallback | None = None,
) -> Callable[[], None]:
    """Route one agent's events to presentation callbacks.

    Returns a function that detaches the callbacks again.
    """

    async def on_text_event(event: Event) -> None:
        if event.metadata.get("publisher_id") != agent_id:
            return
        text = format_event_text(event)
        if text is not None:
            await _call(notify, text)

    async def on_thread_event(event: Event) -> None:
        if event.metadata.get("publisher_id") != agent_id or on_thread_change is None:
            return
        await _call(on_thread_change, event.metadata.get("thread"))

    text_types = list(TEXT_PREFIXES)
    bus.subscribe(text_types, on_text_event)
    bus.subscribe(EventType.THREAD_CHANGED, on_thread_event)

    def detach() -> None:
        bus.unsubscribe(text_types, on_text_event)
        bus.unsubscribe(EventType.THREAD_CHANGED, on_thread_event)

    return detach
