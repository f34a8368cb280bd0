# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""FastAPI server exposing the chat agent to an editor panel over a WebSocket."""

import asyncio
import logging

from typing import Any, Dict, List, Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from ..agents.chat_agent import ChatAgent
from ..cache.router import FileChangeRouter
from ..events import EventBus
from ..events.presentation import attach_presentation
from ..types.event_types import FileOperation

logger = logging.getLogger(__name__)


class PanelConnection:
    """One connected panel: serialises outbound frames and owns the running turn."""

    def __init__(self, websocket: WebSocket, agent: ChatAgent, router: FileChangeRouter):
        self.websocket = websocket
        self.agent = agent
        self.router = router
        self.turn: Optional[asyncio.Task] = None
        self._send_lock = asyncio.Lock()

    async def send(self, frame: Dict[str, Any]) -> None:
        async with self._send_lock:
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                logger.error(f"Error sending {frame.get('type')} frame: {e}")

    async def notify(self, text: str) -> None:
        await self.send({"type": "response", "text": text})

    async def thread_changed(self, thread: Optional[dict]) -> None:
        await self.send({"type": "threadChanged", "thread": thread})

    async def send_threads(self) -> None:
        threads = await self.agent.list_threads()
        await self.send({"type": "threadsUpdated", "threads": [t.summary() for t in threads]})

    async def _run_turn(self, text: str) -> None:
        try:
            status = await self.agent.chat(text)
            logger.info(f"Turn finished: {status.value}")
        finally:
            await self.send({"type": "done"})

    async def handle(self, data: Dict[str, Any]) -> None:
        action = data.get("type")

        if action == "send":
            text = str(data.get("text") or "").strip()
            if not text:
                return
            if self.turn is not None and not self.turn.done():
                await self.notify("⚠️ Still working on the previous message")
                return
            # Runs in the background so that a later "stop" can be received
            self.turn = asyncio.create_task(self._run_turn(text))
        elif action == "stop":
            self.agent.stop()
        elif action == "clear":
            await self.agent.clear_history()
        elif action == "newThread":
            await self.agent.new_thread()
        elif action == "loadThread":
            thread_id = str(data.get("threadId") or "")
            if await self.agent.load_thread(thread_id):
                await self.send({"type": "threadLoaded", "messages": self.agent.visible_messages()})
            else:
                await self.notify(f"❌ Thread not found: {thread_id}")
        elif action == "deleteThread":
            await self.agent.delete_thread(str(data.get("threadId") or ""))
            await self.send_threads()
        elif action == "getThreads":
            await self.send_threads()
        elif action == "fileChanged":
            try:
                operation = FileOperation(data.get("operation"))
            except ValueError:
                logger.warning(f"Ignoring file notification with operation {data.get('operation')!r}")
                return
            path = data.get("path")
            if path:
                self.router.notify(operation, path)
        else:
            logger.warning(f"Unknown panel action: {action!r}")

    async def close(self) -> None:
        if self.turn is not None and not self.turn.done():
            self.agent.interrupt()
            try:
                await self.turn
            except Exception as e:
                logger.error(f"Turn failed while closing connection: {e}")


def create_app(agent: ChatAgent, router: FileChangeRouter) -> FastAPI:
    """Build the app for one agent and its file change router."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        router.start()
        yield
        logger.info("Shutting down agent server...")
        await router.stop()

    app = FastAPI(title="Local Coding Agent", lifespan=lifespan)

    # Enable CORS for editor webviews
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health():
        settings = agent.settings_provider()
        return {
            "status": "ok",
            "agent_id": agent.agent_id,
            "model": settings.model,
            "api_url": settings.api_url,
            "busy": agent.busy,
        }

    @app.get("/api/threads")
    async def threads() -> List[Dict[str, Any]]:
        return [t.summary() for t in await agent.list_threads()]

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        connection = PanelConnection(websocket, agent, router)
        event_bus = await EventBus.get_instance()
        detach = attach_presentation(
            event_bus, agent.agent_id, connection.notify, connection.thread_changed
        )
        try:
            while True:
                data = await websocket.receive_json()
                if isinstance(data, dict):
                    await connection.handle(data)
        except WebSocketDisconnect:
            logger.info("Panel disconnected")
        finally:
            detach()
            await connection.close()

    return app


async def run_server(app: FastAPI, host: str = "127.0.0.1", port: int = 8080) -> None:
    """Run the FastAPI app using uvicorn."""
    config = uvicorn.Config(app, host=host, port=port, log_level="error")
    server = uvicorn.Server(config=config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        logger.info("Web server task cancelled, shutting down gracefully...")
        await server.shutdown()
