# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Agent settings.

Settings are a value object: the agent loop asks its settings provider for a
fresh snapshot at the start of every round, and threads that snapshot through
the LLM call and the tool context for the round. Nothing in the loop reads
module-level configuration, so edits to the environment (or to the options
pushed by an editor) apply without a restart.

Each option may be given either by its Python name (``max_tokens``), by the
editor's option name (``maxTokens``) or through an ``AI_AGENT_``-prefixed
environment variable (``AI_AGENT_MAX_TOKENS``).
"""

import logging

from typing import Any, Callable

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "http://127.0.0.1:1234/v1/chat/completions"

# Editor option name -> settings field
EDITOR_OPTION_NAMES: dict[str, str] = {
    "apiUrl": "api_url",
    "model": "model",
    "temperature": "temperature",
    "maxTokens": "max_tokens",
    "timeout": "timeout",
    "autoSave": "auto_save",
    "systemPromptAddition": "system_prompt_addition",
    "showToolCalls": "show_tool_calls",
    "confirmBeforeWrite": "confirm_before_write",
    "backupBeforeWrite": "backup_before_write",
    "maxBackups": "max_backups",
    "commandTimeout": "command_timeout",
    "gitTimeout": "git_timeout",
    "logLevel": "log_level",
}


class AgentSettings(BaseSettings):
    """
    Options consumed by the agent loop and the tool executor.

    Timeouts for the model request are in milliseconds (matching the editor
    option); timeouts for subprocesses are in seconds.
    """

    model_config = SettingsConfigDict(env_prefix="AI_AGENT_", extra="ignore")

    # Model endpoint
    api_url: str = DEFAULT_API_URL
    model: str = "local-model"
    temperature: float = 0.1
    max_tokens: int = 4096
    timeout: int = 120_000

    # Conversation behaviour
    auto_save: bool = True
    system_prompt_addition: str = ""
    show_tool_calls: bool = True

    # Write policy
    confirm_before_write: bool = False
    backup_before_write: bool = True
    max_backups: int = 100

    # Subprocess bounds (seconds)
    command_timeout: float = 30.0
    git_timeout: float = 10.0

    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def accept_editor_option_names(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {EDITOR_OPTION_NAMES.get(k, k): v for k, v in data.items()}
        return data

    @field_validator("timeout", "max_tokens", "max_backups")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000


SettingsProvider = Callable[[], AgentSettings]


def load_settings(**overrides: Any) -> AgentSettings:
    """Build a fresh settings snapshot from the environment plus overrides."""
    return AgentSettings(**overrides)


def static_settings(settings: AgentSettings) -> SettingsProvider:
    """A provider that always hands back the same snapshot."""
    return lambda: settings
