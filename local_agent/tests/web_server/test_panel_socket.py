# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the editor panel WebSocket and JSON routes."""
import time

import pytest

from fastapi.testclient import TestClient

from local_agent.src.web_server import create_app


@pytest.fixture
def client(agent):
    with TestClient(create_app(agent, agent.router)) as client:
        yield client


def receive_until(ws, frame_type):
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["type"] == frame_type:
            return frames


def test_health(client, agent):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["agent_id"] == agent.agent_id
    assert body["model"] == "test-model"
    assert body["busy"] is False


def test_send_streams_responses_then_done(client, agent, fake_llm):
    fake_llm.reply("Hello from the model")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "send", "text": "hi"})
        frames = receive_until(ws, "done")

    responses = [f["text"] for f in frames if f["type"] == "response"]
    assert responses[0] == "[Connecting to http://model.test/v1/chat/completions...]"
    assert "Hello from the model" in responses

    changed = [f for f in frames if f["type"] == "threadChanged"]
    assert changed[0]["thread"]["id"] == agent.current_thread.id
    assert changed[0]["thread"]["title"] == "hi"


def test_threads_can_be_listed_loaded_and_deleted(client, agent, fake_llm):
    fake_llm.reply("answer")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "send", "text": "question"})
        receive_until(ws, "done")
        thread_id = agent.current_thread.id

        ws.send_json({"type": "newThread"})
        assert ws.receive_json()["type"] == "threadChanged"

        ws.send_json({"type": "getThreads"})
        listed = receive_until(ws, "threadsUpdated")[-1]
        assert [t["id"] for t in listed["threads"]] == [thread_id]

        ws.send_json({"type": "loadThread", "threadId": thread_id})
        loaded = receive_until(ws, "threadLoaded")[-1]
        assert loaded["messages"] == [
            {"role": "user", "content": "question"},
            {"role": "assistant", "content": "answer"},
        ]

        ws.send_json({"type": "deleteThread", "threadId": thread_id})
        updated = receive_until(ws, "threadsUpdated")[-1]
        assert updated["threads"] == []

    assert client.get("/api/threads").json() == []


def test_file_notifications_reach_the_index(client, agent, workspace):
    (workspace / "fresh_module.py").write_text("")

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "fileChanged", "operation": "create", "path": str(workspace / "fresh_module.py")})
        ws.send_json({"type": "getThreads"})
        receive_until(ws, "threadsUpdated")

    for _ in range(100):
        if agent.cache.find_files("fresh_module"):
            break
        time.sleep(0.01)
    assert agent.cache.find_files("fresh_module") == ["fresh_module.py"]
