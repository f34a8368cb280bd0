# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from dataclasses import dataclass


class AgentStatus(str, Enum):
    """How a single chat turn ended."""

    SUCCESS = "success"  # the model produced final content
    ERROR = "error"  # transport or protocol failure talking to the model
    CANCELLED = "cancelled"  # explicit stop or request timeout
    INCOMPLETE = "incomplete"  # iteration cap reached


@dataclass
class ConnectionStatus:
    success: bool
    message: str
