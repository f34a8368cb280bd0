# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import json
import time
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar
from pydantic import PrivateAttr, ValidationError

from ..config import AgentSettings
from ..events import EventBus
from ..cache.router import FileChangeRouter
from ..cache.workspace_cache import WorkspaceCache
from ..editor.base import EditorBridge
from ..safety.gate import SafetyCheck, SafetyGate
from ..storage.thread_store import MemoryStore
from ..types.tool_types import ToolInterface, ToolResult
from ..types.event_types import EventType, Event

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ARG_PREVIEW_CHARS = 30
RESULT_PREVIEW_CHARS = 400


@dataclass
class ToolContext:
    """The collaborators a tool may use during one round of the agent loop."""

    workspace_root: Path
    settings: AgentSettings
    safety: SafetyGate
    cache: WorkspaceCache
    router: FileChangeRouter
    memory: MemoryStore
    editor: EditorBridge


# Tool name -> argument model. Populated as tool modules are imported.
tool_registry: dict[str, type["BaseTool"]] = {}


class BaseTool(ToolInterface):
    """Abstract base class for all tools.

    A tool's pydantic fields are its arguments; the class docstring of each
    tool is not sent to the model, ``TOOL_DESCRIPTION`` is.
    """

    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    _context: ToolContext = PrivateAttr()

    def __init__(self, context: ToolContext, /, **data):
        super().__init__(**data)
        self._context = context

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        # Skip registering the BaseTool class itself and private helper bases.
        if cls.__name__ != "BaseTool" and not cls.TOOL_NAME.startswith("_"):
            tool_registry[cls.TOOL_NAME] = cls

    @property
    def context(self) -> ToolContext:
        return self._context

    @classmethod
    def to_native_tool(cls) -> dict:
        schema = cls.model_json_schema(by_alias=True)
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": cls.TOOL_NAME,
                "description": cls.TOOL_DESCRIPTION,
                "parameters": schema,
            },
        }

    # Shared helpers

    def ok(self, output: str) -> ToolResult:
        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=output)

    def fail(self, errors: str) -> ToolResult:
        return ToolResult(tool_name=self.TOOL_NAME, success=False, errors=errors)

    def resolve(self, path: str | None) -> Path:
        return self.context.safety.resolve(path)

    def check_path(self, path: Path) -> SafetyCheck:
        return self.context.safety.is_path_safe(path)


def get_native_tools() -> list[dict]:
    return [tool_cls.to_native_tool() for tool_cls in tool_registry.values()]


def parse_arguments(raw_arguments: str | dict | None) -> dict[str, Any]:
    """Decode a tool call's argument payload; anything unusable becomes ``{}``."""
    if isinstance(raw_arguments, dict):
        return raw_arguments
    try:
        args = json.loads(raw_arguments or "{}")
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable tool arguments: {raw_arguments!r}")
        return {}
    return args if isinstance(args, dict) else {}


def format_tool_call(name: str, args: dict[str, Any]) -> str:
    """One-line rendering of a call, e.g. ``write_file(path=src/app.py)``."""
    parts = []
    for key, value in args.items():
        if key == "content":
            continue
        if isinstance(value, str):
            shown = value[:ARG_PREVIEW_CHARS] + "..." if len(value) > ARG_PREVIEW_CHARS else value
        else:
            shown = json.dumps(value)
        parts.append(f"{key}={shown}")
    return f"{name}({', '.join(parts)})"


def preview(text: str, limit: int = RESULT_PREVIEW_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _validation_summary(error: ValidationError) -> str:
    problems = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        problems.append(f"{loc}: {err.get('msg')}")
    return "; ".join(problems)


async def execute_tool_call(
    name: str,
    raw_arguments: str | dict | None,
    context: ToolContext,
    publisher_id: str | None = None,
) -> ToolResult:
    """Run one tool call and return its result.

    Never raises for tool-level problems: unknown tools, argument schema
    mismatches and exceptions from the tool itself all come back as failed
    results, which render as ``Error: ...`` text for the model.
    """
    args = parse_arguments(raw_arguments)
    event_bus = await EventBus.get_instance() if publisher_id else None
    show = context.settings.show_tool_calls

    if event_bus:
        await event_bus.publish(
            Event(
                type=EventType.TOOL_CALL,
                content=format_tool_call(name, args),
                metadata={"tool_name": name, "args": args, "show_tool_calls": show},
            ),
            publisher_id,
        )

    start = time.perf_counter()
    tool_cls = tool_registry.get(name)
    if tool_cls is None:
        result = ToolResult(tool_name=name, success=False, errors=f"Unknown tool: {name}")
    else:
        try:
            tool = tool_cls(context, **args)
        except ValidationError as e:
            result = ToolResult(
                tool_name=name,
                success=False,
                errors=f"Invalid arguments for {name}: {_validation_summary(e)}",
            )
        else:
            try:
                result = await tool.run()
            except Exception as e:
                logger.error(f"Tool {name} raised: {e}", exc_info=True)
                result = ToolResult(tool_name=name, success=False, errors=str(e) or e.__class__.__name__)
    result.duration = time.perf_counter() - start

    if event_bus:
        await event_bus.publish(
            Event(
                type=EventType.TOOL_RESULT,
                content=preview(result.to_text()),
                metadata={
                    "tool_name": name,
                    "success": result.success,
                    "duration": result.duration,
                    "invocation_id": result.invocation_id,
                    "show_tool_calls": show,
                },
            ),
            publisher_id,
        )

    return result
