"""Wires config into one WritePathOrchestrator shared by the HTTP layer."""

from __future__ import annotations

import logging
from typing import Optional

from engine import SessionLanes, WritePathOrchestrator
from executor import (
    ChangelogManager,
    InMemoryChangelogStore,
    SqlChangelogStore,
    create_changelog_engine,
    init_changelog_db,
)
from gateway_client import ConsoleResourceClient, InMemoryResourceClient, ResourceClient
from governance import StaticRulePreprocessor

from app.config import AgentConfig, load_config

logger = logging.getLogger(__name__)

_orchestrator: Optional[WritePathOrchestrator] = None


def build_client(config: AgentConfig) -> ResourceClient:
    if config.mock_mode:
        return InMemoryResourceClient()
    return ConsoleResourceClient(
        config.console_url,
        config.console_username,
        config.console_password,
        timeout_sec=config.call_timeout_sec,
    )


def build_changelog(config: AgentConfig) -> ChangelogManager:
    if config.changelog_db_url:
        store = SqlChangelogStore(init_changelog_db(create_changelog_engine(config.changelog_db_url)))
    else:
        store = InMemoryChangelogStore()
    return ChangelogManager(store, timeline_limit=config.timeline_limit)


def build_orchestrator(config: AgentConfig) -> WritePathOrchestrator:
    preprocessor = StaticRulePreprocessor(policies_path=config.policies_path)
    orchestrator = WritePathOrchestrator(
        build_client(config),
        preprocessor=preprocessor,
        changelog=build_changelog(config),
        lanes=SessionLanes(max_concurrency=config.max_lane_concurrency),
    )
    logger.info(
        "agent.configured mock_mode=%s console_url=%s changelog=%s policy_hash=%s",
        config.mock_mode,
        config.console_url,
        "sql" if config.changelog_db_url else "memory",
        preprocessor.policy_snapshot_hash,
    )
    return orchestrator


def get_orchestrator() -> WritePathOrchestrator:
    """FastAPI dependency; built on first use from the environment."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(load_config())
    return _orchestrator


async def shutdown_orchestrator() -> None:
    global _orchestrator
    if _orchestrator is None:
        return
    await _orchestrator.lanes.close()
    if isinstance(_orchestrator.client, ConsoleResourceClient):
        await _orchestrator.client.aclose()
    _orchestrator = None
