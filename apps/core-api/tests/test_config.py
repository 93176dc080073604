"""
Tests for environment configuration and orchestrator wiring

Validates:
- Defaults without any GATEWAY_AGENT_* variable
- Overrides, boolean parsing, invalid integers
- Mock vs console client, memory vs SQL changelog
- Shutdown stops lane workers
"""

import asyncio
from pathlib import Path

from app.config import AgentConfig, load_config
from app.services import agent
from app.services.agent import build_changelog, build_client, build_orchestrator, shutdown_orchestrator
from executor import InMemoryChangelogStore, SqlChangelogStore
from gateway_client import ConsoleResourceClient, InMemoryResourceClient


def test_defaults(monkeypatch):
    for name in ("CONSOLE_URL", "MOCK_MODE", "CHANGELOG_DB_URL", "TIMELINE_LIMIT", "POLICIES_PATH", "LOG_LEVEL"):
        monkeypatch.delenv(f"GATEWAY_AGENT_{name}", raising=False)

    config = load_config()

    assert config.console_url == "http://localhost:8080"
    assert config.mock_mode is True
    assert config.changelog_db_url is None
    assert config.policies_path is None
    assert config.timeline_limit == 50
    assert config.log_level == "INFO"


def test_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("GATEWAY_AGENT_MOCK_MODE", "off")
    monkeypatch.setenv("GATEWAY_AGENT_CONSOLE_URL", "http://gateway:8001")
    monkeypatch.setenv("GATEWAY_AGENT_TIMELINE_LIMIT", "not-a-number")
    monkeypatch.setenv("GATEWAY_AGENT_MAX_LANE_CONCURRENCY", "2")
    monkeypatch.setenv("GATEWAY_AGENT_POLICIES_PATH", str(tmp_path / "p.yaml"))
    monkeypatch.setenv("GATEWAY_AGENT_LOG_LEVEL", "debug")

    config = load_config()

    assert config.mock_mode is False
    assert config.console_url == "http://gateway:8001"
    assert config.timeline_limit == 50
    assert config.max_lane_concurrency == 2
    assert config.policies_path == Path(tmp_path / "p.yaml")
    assert config.log_level == "DEBUG"


def test_build_client_follows_mock_mode():
    assert isinstance(build_client(AgentConfig(mock_mode=True)), InMemoryResourceClient)
    assert isinstance(build_client(AgentConfig(mock_mode=False)), ConsoleResourceClient)


def test_build_changelog_store(tmp_path):
    memory = build_changelog(AgentConfig())
    sql = build_changelog(AgentConfig(changelog_db_url=f"sqlite:///{tmp_path / 'c.db'}", timeline_limit=5))

    assert isinstance(memory.store, InMemoryChangelogStore)
    assert isinstance(sql.store, SqlChangelogStore)
    assert sql.timeline_limit == 5


def test_build_orchestrator_with_custom_policy(tmp_path):
    policy = tmp_path / "policy.yaml"
    policy.write_text("weight_sum:\n  required: 100\nbatch_size:\n  threshold: 2\n", encoding="utf-8")

    orchestrator = build_orchestrator(AgentConfig(policies_path=policy))

    assert orchestrator.preprocessor.policy.batch_size_threshold == 2
    assert orchestrator.preprocessor.policy_snapshot_hash


def test_shutdown_closes_lanes(monkeypatch):
    orchestrator = build_orchestrator(AgentConfig())
    monkeypatch.setattr(agent, "_orchestrator", orchestrator)

    async def run():
        await orchestrator.submit("s1", [])
        await orchestrator.submit("s2", [])
        before = orchestrator.lanes.active_lanes
        await shutdown_orchestrator()
        return before

    assert asyncio.run(run()) == 2
    assert orchestrator.lanes.active_lanes == 0
    assert agent._orchestrator is None
