# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""HTTP client for a locally hosted, OpenAI-compatible chat completion endpoint."""

import json
import httpx
import logging

from typing import Any

from pydantic import ValidationError

from .base import Message
from ..config import AgentSettings
from ..types.agent_types import ConnectionStatus

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class LLMError(Exception):
    """Transport or protocol failure talking to the completion endpoint."""


class LLMRequestCancelled(LLMError):
    """The in-flight request was stopped by the user or ran out of time."""


def _error_text(error: Any) -> str:
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return json.dumps(error) if not isinstance(error, str) else error


class ChatCompletionClient:
    """
    Posts transcripts to the configured endpoint.

    Each call opens a short-lived ``httpx.AsyncClient``; ``transport`` can be
    supplied to route requests somewhere other than the network (tests use
    ``httpx.MockTransport``).
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def _client(self, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    async def _post(self, settings: AgentSettings, body: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        try:
            async with self._client(settings.timeout_seconds) as client:
                response = await client.post(settings.api_url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise LLMRequestCancelled(f"Request timed out after {settings.timeout_seconds:g}s") from e
        except httpx.HTTPError as e:
            raise LLMError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            logger.error(f"HTTP error from {settings.api_url}: {response.status_code} {response.text[:200]}")
            raise LLMError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"Malformed response body: {e}") from e
        if not isinstance(data, dict):
            raise LLMError("Malformed response body: expected a JSON object")
        return data

    async def create_completion(
        self,
        settings: AgentSettings,
        messages: list[Message],
        tools: list[dict],
    ) -> Message | None:
        """Request the next assistant turn.

        Returns None when the response carries no message, so the caller can
        simply try again.

        Raises:
            LLMError: on network failure, a non-2xx status, an undecodable
                body or an ``error`` object in the response.
            LLMRequestCancelled: when the request times out.
        """
        body = {
            "model": settings.model,
            "messages": [m.to_wire() for m in messages],
            "tools": tools,
            "tool_choice": "auto",
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }
        logger.debug(f"Request to {settings.api_url} with {len(messages)} messages")

        data = await self._post(settings, body)
        if data.get("error"):
            raise LLMError(_error_text(data["error"]))

        choices = data.get("choices") or []
        raw_message = choices[0].get("message") if choices and isinstance(choices[0], dict) else None
        if not raw_message:
            return None

        try:
            return Message.model_validate(raw_message)
        except ValidationError as e:
            raise LLMError(f"Malformed message in response: {e}") from e

    async def test_connection(self, settings: AgentSettings) -> ConnectionStatus:
        body = {
            "model": settings.model,
            "messages": [{"role": "user", "content": "Hi"}],
            "max_tokens": 10,
        }
        try:
            data = await self._post(settings, body)
        except LLMError as e:
            if str(e).startswith("HTTP "):
                return ConnectionStatus(False, str(e))
            return ConnectionStatus(
                False,
                f"Connection failed: {e}\n\n"
                f"Make sure the local model server is running and listening at {settings.api_url}.",
            )

        if data.get("error"):
            return ConnectionStatus(False, f"API Error: {_error_text(data['error'])}")
        return ConnectionStatus(True, f"Connected to {settings.api_url}\nModel: {settings.model}")
