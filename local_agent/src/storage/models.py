# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Data models for conversation threads and workspace memory.

These dataclasses represent the entities persisted under the workspace's
``.ai-agent`` directory. Timestamps are integer milliseconds since the epoch.
"""

import time
import uuid

from dataclasses import dataclass, field
from typing import Any

DEFAULT_THREAD_TITLE = "New Chat"
TITLE_MAX_CHARS = 50


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_thread_id() -> str:
    """Time-ordered, globally unique thread id, e.g. ``T-1718000000000-3fa9c1``."""
    return f"T-{now_ms()}-{uuid.uuid4().hex[:6]}"


def title_from_text(text: str) -> str:
    title = text[:TITLE_MAX_CHARS]
    if len(text) > TITLE_MAX_CHARS:
        title += "..."
    return title


@dataclass
class Thread:
    """
    A persisted conversation.

    ``messages`` holds the serialised transcript without the system prompt,
    which is rebuilt whenever a thread is loaded.
    """

    id: str
    title: str = DEFAULT_THREAD_TITLE
    created: int = field(default_factory=now_ms)
    updated: int = field(default_factory=now_ms)
    messages: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def new(cls) -> "Thread":
        return cls(id=generate_thread_id())

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "created": self.created,
            "updated": self.updated,
            "messages": self.messages,
        }

    def summary(self) -> dict:
        """Everything except the transcript, for thread pickers."""
        return {
            "id": self.id,
            "title": self.title,
            "created": self.created,
            "updated": self.updated,
            "message_count": len(self.messages),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Thread":
        return cls(
            id=data["id"],
            title=data.get("title") or DEFAULT_THREAD_TITLE,
            created=int(data.get("created", 0)),
            updated=int(data.get("updated", 0)),
            messages=list(data.get("messages") or []),
        )


@dataclass
class Memory:
    """Ordered, de-duplicated free-text facts shared by every thread in a workspace."""

    facts: list[str] = field(default_factory=list)
    updated: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {"facts": self.facts, "updated": self.updated}

    @classmethod
    def from_dict(cls, data: dict) -> "Memory":
        facts = [str(f) for f in data.get("facts") or []]
        return cls(facts=facts, updated=int(data.get("updated", now_ms())))
