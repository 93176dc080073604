"""Gateway Agent configuration module.

Everything is read from GATEWAY_AGENT_* environment variables; defaults give
a self-contained local setup (in-memory resource store, in-memory changelog).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "GATEWAY_AGENT_"


def _env(name: str) -> Optional[str]:
    return os.getenv(ENV_PREFIX + name)


def _read_bool_env(name: str, default: bool) -> bool:
    """Read boolean environment variable."""
    raw = _env(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"0", "false", "off", "no"}:
        return False
    if normalized in {"1", "true", "on", "yes"}:
        return True
    return default


def _read_int_env(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _read_str_env(name: str, default: Optional[str]) -> Optional[str]:
    raw = _env(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass
class AgentConfig:
    console_url: str = "http://localhost:8080"
    console_username: str = "admin"
    console_password: str = "admin"
    mock_mode: bool = True
    call_timeout_sec: int = 10
    changelog_db_url: Optional[str] = None  # None: in-memory changelog
    policies_path: Optional[Path] = None  # None: packaged default policy
    timeline_limit: int = 50
    max_lane_concurrency: int = 8
    log_level: str = "INFO"


def load_config() -> AgentConfig:
    policies = _read_str_env("POLICIES_PATH", None)
    return AgentConfig(
        console_url=_read_str_env("CONSOLE_URL", "http://localhost:8080"),
        console_username=_read_str_env("CONSOLE_USERNAME", "admin"),
        console_password=_read_str_env("CONSOLE_PASSWORD", "admin"),
        mock_mode=_read_bool_env("MOCK_MODE", True),
        call_timeout_sec=max(1, _read_int_env("CALL_TIMEOUT_SEC", 10)),
        changelog_db_url=_read_str_env("CHANGELOG_DB_URL", None),
        policies_path=Path(policies) if policies else None,
        timeline_limit=max(1, _read_int_env("TIMELINE_LIMIT", 50)),
        max_lane_concurrency=max(1, _read_int_env("MAX_LANE_CONCURRENCY", 8)),
        log_level=(_read_str_env("LOG_LEVEL", "INFO") or "INFO").upper(),
    )
