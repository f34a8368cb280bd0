# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the conversation loop against a scripted model server."""
import sys
import json
import asyncio

import pytest

from local_agent.agent import create_agent
from local_agent.src.agents.prompts import SYSTEM_PROMPT
from local_agent.src.config import static_settings
from local_agent.src.events import EventBus
from local_agent.src.llm.client import ChatCompletionClient
from local_agent.src.types.agent_types import AgentStatus
from local_agent.src.types.event_types import EventType

pytestmark = pytest.mark.asyncio


async def events_of(agent, event_type):
    bus = await EventBus.get_instance()
    return [e for e in bus.get_events(agent.agent_id) if e.type == event_type]


def thread_files(workspace):
    threads_dir = workspace / ".ai-agent" / "threads"
    return sorted(threads_dir.glob("*.json")) if threads_dir.exists() else []


class TestTurns:
    async def test_plain_answer(self, agent, fake_llm, workspace):
        fake_llm.reply("Hello! How can I help?")

        status = await agent.chat("hi")

        assert status == AgentStatus.SUCCESS
        assert [m.role for m in agent.messages] == ["system", "user", "assistant"]
        answers = await events_of(agent, EventType.ASSISTANT_MESSAGE)
        assert [e.content for e in answers] == ["Hello! How can I help?"]

        statuses = await events_of(agent, EventType.STATUS)
        assert statuses[0].content == "[Connecting to http://model.test/v1/chat/completions...]"

    async def test_list_files_turn_is_persisted(self, agent, fake_llm, workspace):
        (workspace / "a.txt").write_text("")
        fake_llm.call_tools(("call_1", "list_files", {}))
        fake_llm.reply("The workspace contains a.txt.")

        status = await agent.chat("What files are here?")

        assert status == AgentStatus.SUCCESS
        # The second request carries the tool result answering call_1
        tool_message = fake_llm.requests[1]["messages"][-1]
        assert tool_message == {"role": "tool", "tool_call_id": "call_1", "content": "a.txt"}

        files = thread_files(workspace)
        assert len(files) == 1
        saved = json.loads(files[0].read_text())
        assert saved["title"] == "What files are here?"
        assert [m["role"] for m in saved["messages"]] == ["user", "assistant", "tool", "assistant"]
        assert saved["messages"][1]["tool_calls"][0]["id"] == "call_1"

    async def test_tool_results_follow_calls_in_order(self, agent, fake_llm, workspace):
        fake_llm.call_tools(
            ("call_a", "write_file", {"path": "one.txt", "content": "1"}),
            ("call_b", "read_file", {"path": "one.txt"}),
            ("call_c", "no_such_tool", {}),
        )
        fake_llm.reply("done")

        await agent.chat("write then read")

        roles = [m.role for m in agent.messages]
        assert roles == ["system", "user", "assistant", "tool", "tool", "tool", "assistant"]
        results = agent.messages[3:6]
        assert [m.tool_call_id for m in results] == ["call_a", "call_b", "call_c"]
        assert results[0].content == "✓ Written: one.txt"
        # The read ran after the write finished
        assert results[1].content == "1"
        assert results[2].content == "Error: Unknown tool: no_such_tool"

    async def test_iterations_are_bounded(self, agent, fake_llm):
        for i in range(agent.MAX_ITERATIONS):
            fake_llm.call_tools((f"call_{i}", "recall", {}))

        status = await agent.chat("loop forever")

        assert status == AgentStatus.INCOMPLETE
        assert len(fake_llm.requests) == agent.MAX_ITERATIONS
        warnings = await events_of(agent, EventType.APPLICATION_WARNING)
        assert [e.content for e in warnings] == ["Max iterations reached."]

    async def test_empty_response_is_retried(self, agent, fake_llm):
        fake_llm.respond(200, {"choices": []})
        fake_llm.reply("second time lucky")

        assert await agent.chat("hi") == AgentStatus.SUCCESS
        assert len(fake_llm.requests) == 2

    async def test_transport_error_ends_turn_without_saving(self, agent, fake_llm, workspace):
        fake_llm.respond(500, "internal error")

        status = await agent.chat("hi")

        assert status == AgentStatus.ERROR
        errors = await events_of(agent, EventType.APPLICATION_ERROR)
        assert [e.content for e in errors] == ["API Error: HTTP 500: internal error"]
        assert thread_files(workspace) == []
        # The user message stays in the live transcript
        assert agent.messages[-1].content == "hi"


class TestStopping:
    async def test_stop_cancels_the_inflight_request(self, agent, fake_llm, workspace):
        fake_llm.hang()

        turn = asyncio.create_task(agent.chat("take your time"))
        await fake_llm.wait_until_hung()
        assert agent.stop() is True
        status = await turn

        assert status == AgentStatus.CANCELLED
        stopped = await events_of(agent, EventType.STOPPED)
        assert [e.content for e in stopped] == ["Stopped"]
        # Cancelled turns are saved with what they had so far
        saved = json.loads(thread_files(workspace)[0].read_text())
        assert [m["role"] for m in saved["messages"]] == ["user"]

    async def test_timeout_is_reported_as_stopped(self, workspace, settings, fake_llm):
        quick = settings.model_copy(update={"timeout": 50})
        agent = create_agent(
            workspace,
            settings_provider=static_settings(quick),
            client=ChatCompletionClient(transport=fake_llm.transport),
        )
        fake_llm.hang()

        assert await agent.chat("hello?") == AgentStatus.CANCELLED
        assert len(await events_of(agent, EventType.STOPPED)) == 1

    @pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell command")
    async def test_stop_while_tools_run_does_not_cancel_the_next_request(self, agent, fake_llm):
        fake_llm.call_tools(("call_1", "run_command", {"cmd": "sleep 0.5"}))
        fake_llm.reply("finished")

        turn = asyncio.create_task(agent.chat("sleep a little"))
        while not fake_llm.requests:
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.1)

        # The command is running and no request is in flight
        assert agent.stop() is False
        assert await turn == AgentStatus.SUCCESS
        assert len(fake_llm.requests) == 2
        assert await events_of(agent, EventType.STOPPED) == []

    @pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell command")
    async def test_new_thread_ends_a_turn_that_is_running_tools(self, agent, fake_llm):
        fake_llm.call_tools(("call_1", "run_command", {"cmd": "sleep 0.5"}))
        fake_llm.reply("never sent")

        turn = asyncio.create_task(agent.chat("sleep a little"))
        while not fake_llm.requests:
            await asyncio.sleep(0.01)

        await agent.new_thread()

        assert await turn == AgentStatus.CANCELLED
        assert len(fake_llm.requests) == 1
        assert [m.role for m in agent.messages] == ["system"]

    async def test_stop_without_a_turn_is_harmless(self, agent, fake_llm):
        assert agent.stop() is False
        fake_llm.reply("still works")
        assert await agent.chat("hi") == AgentStatus.SUCCESS


class TestSystemPrompt:
    async def test_prompt_carries_memory_and_user_instructions(self, workspace, settings, fake_llm):
        tuned = settings.model_copy(update={"system_prompt_addition": "Answer in French."})
        agent = create_agent(
            workspace,
            settings_provider=static_settings(tuned),
            client=ChatCompletionClient(transport=fake_llm.transport),
        )
        agent.memory.add("Project uses pytest")
        fake_llm.reply("ok")

        await agent.chat("hi")

        system = fake_llm.requests[0]["messages"][0]
        assert system["role"] == "system"
        assert system["content"] == (
            SYSTEM_PROMPT
            + "\n\nREMEMBERED CONTEXT:\n1. Project uses pytest"
            + "\n\nADDITIONAL USER INSTRUCTIONS:\nAnswer in French."
        )

    async def test_every_tool_is_offered(self, agent, fake_llm):
        fake_llm.reply("ok")
        await agent.chat("hi")
        assert len(fake_llm.requests[0]["tools"]) == 23


class TestThreads:
    async def test_auto_save_can_be_disabled(self, workspace, settings, fake_llm):
        agent = create_agent(
            workspace,
            settings_provider=static_settings(settings.model_copy(update={"auto_save": False})),
            client=ChatCompletionClient(transport=fake_llm.transport),
        )
        fake_llm.reply("ok")
        await agent.chat("hi")
        assert thread_files(workspace) == []
        assert agent.current_thread is None

    async def test_first_save_creates_thread_and_announces_it(self, agent, fake_llm):
        fake_llm.reply("ok")
        await agent.chat("x" * 80)

        assert agent.current_thread is not None
        assert agent.current_thread.title == "x" * 50 + "..."
        changed = await events_of(agent, EventType.THREAD_CHANGED)
        assert changed[-1].metadata["thread"]["id"] == agent.current_thread.id

    async def test_load_thread_restores_transcript(self, agent, fake_llm):
        fake_llm.reply("first answer")
        await agent.chat("first question")
        thread_id = agent.current_thread.id

        await agent.new_thread()
        assert [m.role for m in agent.messages] == ["system"]

        assert await agent.load_thread(thread_id)
        assert [m.content for m in agent.messages[1:]] == ["first question", "first answer"]
        assert agent.visible_messages() == [
            {"role": "user", "content": "first question"},
            {"role": "assistant", "content": "first answer"},
        ]

    async def test_load_unknown_thread(self, agent):
        assert not await agent.load_thread("T-0-ffffff")

    async def test_deleting_active_thread_resets_conversation(self, agent, fake_llm, workspace):
        fake_llm.reply("ok")
        await agent.chat("hi")
        thread_id = agent.current_thread.id

        assert await agent.delete_thread(thread_id)

        assert agent.current_thread is None
        assert [m.role for m in agent.messages] == ["system"]
        assert thread_files(workspace) == []
        changed = await events_of(agent, EventType.THREAD_CHANGED)
        assert changed[-1].metadata["thread"] is None

    async def test_clear_history_starts_unsaved_conversation(self, agent, fake_llm):
        fake_llm.reply("ok")
        await agent.chat("hi")
        await agent.clear_history()
        assert agent.current_thread is None
        assert len(await agent.list_threads()) == 1

    async def test_continuing_a_thread_updates_it_in_place(self, agent, fake_llm, workspace):
        fake_llm.reply("one")
        fake_llm.reply("two")
        await agent.chat("first")
        await agent.chat("second")

        files = thread_files(workspace)
        assert len(files) == 1
        saved = json.loads(files[0].read_text())
        assert saved["title"] == "first"
        assert [m["content"] for m in saved["messages"]] == ["first", "one", "second", "two"]
