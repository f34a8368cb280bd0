# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Shared fixtures: a scratch workspace, settings, and a scripted model server."""
import json
import asyncio

from collections import deque

import httpx
import pytest

from local_agent.agent import create_agent
from local_agent.src.cache.router import FileChangeRouter
from local_agent.src.cache.workspace_cache import WorkspaceCache
from local_agent.src.config import AgentSettings, static_settings
from local_agent.src.editor.headless import HeadlessEditor
from local_agent.src.events import EventBus
from local_agent.src.llm.client import ChatCompletionClient
from local_agent.src.safety.gate import SafetyGate
from local_agent.src.storage.thread_store import MemoryStore
from local_agent.src.tools import ToolContext

_HANG = object()


class ScriptedLLM:
    """Answers chat completion requests from a queue of canned responses."""

    def __init__(self):
        self.responses = deque()
        self.requests: list[dict] = []
        self.hanging = False

    def reply(self, content: str) -> None:
        self.responses.append(
            (200, {"choices": [{"message": {"role": "assistant", "content": content}}]})
        )

    def call_tools(self, *calls: tuple[str, str, dict]) -> None:
        tool_calls = [
            {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(args)}}
            for call_id, name, args in calls
        ]
        self.responses.append(
            (200, {"choices": [{"message": {"role": "assistant", "content": None, "tool_calls": tool_calls}}]})
        )

    def respond(self, status: int, body) -> None:
        self.responses.append((status, body))

    def hang(self) -> None:
        self.responses.append(_HANG)

    async def wait_until_hung(self) -> None:
        while not self.hanging:
            await asyncio.sleep(0.01)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        item = self.responses.popleft()
        if item is _HANG:
            self.hanging = True
            await asyncio.sleep(3600)
        status, body = item
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(autouse=True)
def fresh_event_bus():
    """Each test gets its own EventBus singleton."""
    EventBus._instance = None
    EventBus._lock = None
    yield
    EventBus._instance = None
    EventBus._lock = None


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def settings():
    return AgentSettings(api_url="http://model.test/v1/chat/completions", model="test-model")


@pytest.fixture
def tool_context(workspace, settings):
    cache = WorkspaceCache(workspace)
    return ToolContext(
        workspace_root=workspace,
        settings=settings,
        safety=SafetyGate(workspace),
        cache=cache,
        router=FileChangeRouter(cache),
        memory=MemoryStore(workspace),
        editor=HeadlessEditor(workspace),
    )


@pytest.fixture
def fake_llm():
    return ScriptedLLM()


@pytest.fixture
def agent(workspace, settings, fake_llm):
    return create_agent(
        workspace,
        settings_provider=static_settings(settings),
        client=ChatCompletionClient(transport=fake_llm.transport),
    )
