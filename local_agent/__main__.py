# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Main entrypoint when running the agent with `python -m local_agent`.
"""

import sys
import signal
import asyncio
import logging
import argparse

from pathlib import Path
from dotenv import load_dotenv

from .agent import create_agent
from .src.agents.chat_agent import ChatAgent
from .src.config import load_settings
from .src.events import EventBus
from .src.events.presentation import attach_presentation
from .src.tools import execute_tool_call
from .src.types.agent_types import AgentStatus
from .src.web_server import create_app, run_server

logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  /new            start a new conversation
  /threads        list saved conversations
  /load <id>      switch to a saved conversation
  /delete <id>    delete a saved conversation
  /undo           undo the last file change
  /quit           leave
Press Ctrl-C while the agent is thinking to stop it."""


def setup_logging(level: str) -> None:
    logging.captureWarnings(True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler()],
    )
    # Request lines from httpx drown out the conversation
    logging.getLogger("httpx").setLevel(logging.WARNING)


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="local_agent", description="Coding agent backed by a local model")
    parser.add_argument(
        "--workspace",
        type=str,
        default=".",
        help="Workspace root the agent may read and modify",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("chat", help="Interactive conversation")

    ask_parser = subparsers.add_parser("ask", help="Run a single turn and print the answer")
    ask_parser.add_argument("prompt", type=str, help="The message to send")

    subparsers.add_parser("threads", help="List saved conversations")
    subparsers.add_parser("ping", help="Test the connection to the model server")

    serve_parser = subparsers.add_parser("serve", help="Serve the editor panel WebSocket")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8080)

    return parser


def print_thread(thread: dict | None) -> None:
    if thread is None:
        print("[new conversation]")
    else:
        print(f"[thread {thread['id']}: {thread['title']}]")


async def attach_stdout(agent: ChatAgent):
    event_bus = await EventBus.get_instance()
    return attach_presentation(event_bus, agent.agent_id, print, print_thread)


async def run_turn(agent: ChatAgent, text: str) -> AgentStatus:
    """Run one turn, letting Ctrl-C stop the model request instead of the process."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, agent.stop)
    except NotImplementedError:
        # Windows event loops have no signal handlers
        return await agent.chat(text)
    try:
        return await agent.chat(text)
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def print_threads(agent: ChatAgent) -> None:
    threads = await agent.list_threads()
    if not threads:
        print("No saved conversations")
        return
    for thread in threads:
        print(f"{thread.id}  {thread.title}  ({len(thread.messages)} messages)")


async def handle_command(agent: ChatAgent, line: str) -> bool:
    """Handle a slash command. Returns False when the session should end."""
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/new":
        await agent.new_thread()
    elif command == "/threads":
        await print_threads(agent)
    elif command == "/load":
        if not await agent.load_thread(arg):
            print(f"❌ Thread not found: {arg}")
    elif command == "/delete":
        if not await agent.delete_thread(arg):
            print(f"❌ Thread not found: {arg}")
    elif command == "/undo":
        context = agent.tool_context(agent.settings_provider())
        result = await execute_tool_call("undo", "{}", context)
        print(result.to_text())
    else:
        print(HELP_TEXT)
    return True


async def chat(agent: ChatAgent) -> None:
    await attach_stdout(agent)
    print(f"Workspace: {agent.workspace_root}")
    print("Type /help for commands.")
    while True:
        try:
            line = (await asyncio.to_thread(input, "\n> ")).strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not line:
            continue
        if line.startswith("/"):
            if not await handle_command(agent, line):
                break
            continue
        await run_turn(agent, line)


async def ask(agent: ChatAgent, prompt: str) -> int:
    await attach_stdout(agent)
    status = await run_turn(agent, prompt)
    return 0 if status == AgentStatus.SUCCESS else 1


async def ping(agent: ChatAgent) -> int:
    status = await agent.test_connection()
    print(("✓ " if status.success else "❌ ") + status.message)
    return 0 if status.success else 1


async def serve(agent: ChatAgent, host: str, port: int) -> None:
    app = create_app(agent, agent.router)
    logger.info(f"Serving on ws://{host}:{port}/ws")
    await run_server(app, host=host, port=port)


async def main() -> int:
    load_dotenv()
    parser = setup_parser()
    args = parser.parse_args()

    settings = load_settings()
    setup_logging("DEBUG" if args.debug else settings.log_level)

    workspace = Path(args.workspace)
    if not workspace.is_dir():
        parser.error(f"workspace {workspace} is not a directory")

    agent = create_agent(workspace)

    if args.command == "chat":
        await chat(agent)
    elif args.command == "ask":
        return await ask(agent, args.prompt)
    elif args.command == "threads":
        await print_threads(agent)
    elif args.command == "ping":
        return await ping(agent)
    elif args.command == "serve":
        await serve(agent, args.host, args.port)
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
