# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Wires one workspace's components together.
"""

import logging

from pathlib import Path

from .src.agents.chat_agent import ChatAgent
from .src.cache.router import FileChangeRouter
from .src.cache.workspace_cache import WorkspaceCache
from .src.config import SettingsProvider, load_settings
from .src.editor.base import EditorBridge
from .src.editor.headless import HeadlessEditor
from .src.llm.client import ChatCompletionClient
from .src.safety.gate import SafetyGate
from .src.storage.thread_store import MemoryStore, ThreadStore

logger = logging.getLogger(__name__)


def create_agent(
    workspace_root: Path | str,
    editor: EditorBridge | None = None,
    settings_provider: SettingsProvider | None = None,
    client: ChatCompletionClient | None = None,
) -> ChatAgent:
    """
    Build a ChatAgent for ``workspace_root``.

    Without an explicit provider, settings are re-read from the environment
    at the start of every round. The file change router is created stopped;
    the web server starts it, and otherwise notifications are applied when
    tools flush them.
    """
    root = Path(workspace_root).resolve()
    if not root.is_dir():
        raise ValueError(f"Workspace root ({root}) is not a directory")

    settings_provider = settings_provider or load_settings
    settings = settings_provider()

    cache = WorkspaceCache(root)
    logger.info(f"Indexed {len(cache.index)} files under {root}")

    return ChatAgent(
        workspace_root=root,
        settings_provider=settings_provider,
        client=client or ChatCompletionClient(),
        safety=SafetyGate(root, max_backups=settings.max_backups),
        cache=cache,
        router=FileChangeRouter(cache),
        threads=ThreadStore(root),
        memory=MemoryStore(root),
        editor=editor or HeadlessEditor(root),
    )
