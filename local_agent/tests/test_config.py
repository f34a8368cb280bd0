# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import pytest

from pydantic import ValidationError

from local_agent.src.config import DEFAULT_API_URL, AgentSettings, load_settings


def test_defaults():
    settings = AgentSettings()
    assert settings.api_url == DEFAULT_API_URL
    assert settings.timeout == 120_000
    assert settings.timeout_seconds == 120
    assert settings.auto_save is True
    assert settings.confirm_before_write is False


def test_editor_option_names_are_accepted():
    settings = AgentSettings(maxTokens=512, showToolCalls=False, systemPromptAddition="Be brief.")
    assert settings.max_tokens == 512
    assert settings.show_tool_calls is False
    assert settings.system_prompt_addition == "Be brief."


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AI_AGENT_MODEL", "qwen-coder")
    monkeypatch.setenv("AI_AGENT_TIMEOUT", "5000")
    settings = load_settings()
    assert settings.model == "qwen-coder"
    assert settings.timeout_seconds == 5


@pytest.mark.parametrize("field", ["timeout", "max_tokens", "max_backups"])
def test_non_positive_values_are_rejected(field):
    with pytest.raises(ValidationError):
        AgentSettings(**{field: 0})


def test_log_level_is_normalised():
    assert AgentSettings(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        AgentSettings(log_level="chatty")
