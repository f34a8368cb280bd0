# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from datetime import datetime
from dataclasses import field, dataclass


class EventType(Enum):
    STATUS = "status"  # transient progress lines, e.g. "[Connecting to ...]"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    APPLICATION_ERROR = "application_error"
    APPLICATION_WARNING = "application_warning"
    STOPPED = "stopped"
    THREAD_CHANGED = "thread_changed"
    FILE_EVENT = "file_event"


@dataclass
class Event:
    """Base class for all events in the stream"""

    type: EventType
    content: str
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class FileOperation(Enum):
    CREATE = "create"
    CHANGE = "change"
    DELETE = "delete"


@dataclass
class FileEvent:
    """A filesystem change notification for a workspace path.

    ``path`` may be absolute or relative to the workspace root; consumers
    normalise it against their own root.
    """

    type: EventType
    content: str
    operation: FileOperation
    path: str

    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict = field(default_factory=dict)

    @classmethod
    def for_path(cls, operation: FileOperation, path: str) -> "FileEvent":
        return cls(
            type=EventType.FILE_EVENT,
            content="",
            operation=operation,
            path=str(path),
        )
