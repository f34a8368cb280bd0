# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the chat completion client against a mocked transport."""
import json

import httpx
import pytest

from local_agent.src.llm.base import FunctionCall, Message
from local_agent.src.llm.client import ChatCompletionClient, LLMError
from local_agent.src.tools.base_tool import parse_arguments


def client_for(handler) -> ChatCompletionClient:
    return ChatCompletionClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_request_body_and_tool_call_parsing(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "choices": [
                    {
                        "message": {
                            "role": "assistant",
                            "content": None,
                            "tool_calls": [
                                {"id": "call_1", "type": "function", "function": {"name": "read_file", "arguments": {"path": "a.py"}}}
                            ],
                        }
                    }
                ]
            },
        )

    tools = [{"type": "function", "function": {"name": "read_file"}}]
    message = await client_for(handler).create_completion(settings, [Message.user("hi")], tools)

    assert seen["url"] == settings.api_url
    body = seen["body"]
    assert body["model"] == "test-model"
    assert body["tool_choice"] == "auto"
    assert body["tools"] == tools
    assert body["messages"] == [{"role": "user", "content": "hi"}]
    assert body["max_tokens"] == settings.max_tokens

    assert message.tool_calls
    call = message.tool_calls[0]
    assert call.id == "call_1"
    # Object arguments are normalised to their JSON encoding
    assert json.loads(call.function.arguments) == {"path": "a.py"}


@pytest.mark.asyncio
async def test_missing_message_returns_none(settings):
    client = client_for(lambda request: httpx.Response(200, json={"choices": []}))
    assert await client.create_completion(settings, [Message.user("hi")], []) is None


@pytest.mark.asyncio
async def test_http_error_status(settings):
    client = client_for(lambda request: httpx.Response(500, text="model crashed"))
    with pytest.raises(LLMError, match=r"^HTTP 500: model crashed$"):
        await client.create_completion(settings, [Message.user("hi")], [])


@pytest.mark.asyncio
async def test_error_object_in_body(settings):
    client = client_for(lambda request: httpx.Response(200, json={"error": {"message": "context length exceeded"}}))
    with pytest.raises(LLMError, match="context length exceeded"):
        await client.create_completion(settings, [Message.user("hi")], [])


@pytest.mark.asyncio
async def test_connection_success(settings):
    def handler(request):
        assert json.loads(request.content)["max_tokens"] == 10
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hello"}}]})

    status = await client_for(handler).test_connection(settings)
    assert status.success
    assert status.message == f"Connected to {settings.api_url}\nModel: test-model"


@pytest.mark.asyncio
async def test_connection_refused(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    status = await client_for(handler).test_connection(settings)
    assert not status.success
    assert status.message.startswith("Connection failed: connection refused")
    assert settings.api_url in status.message


def test_function_arguments_default_to_empty_object():
    assert FunctionCall(name="recall", arguments=None).arguments == "{}"
    assert parse_arguments(FunctionCall(name="recall", arguments="[1, 2]").arguments) == {}


def test_unknown_provider_fields_survive_to_wire():
    raw = {"role": "assistant", "content": "ok", "reasoning_content": "thinking..."}
    assert Message.model_validate(raw).to_wire() == raw
