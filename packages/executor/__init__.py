"""
Gateway Agent Executor - changelog and rollback.

Philosophy: every applied mutation is recorded, every recorded mutation can be undone.

Architecture:
    Orchestrator → confirmed call succeeds
        ↓
    ChangelogManager.append → versioned entry (before_state, after_state)
        ↓
    RollbackExecutor → inverse call through the same ResourceClient
        ↓
    entry.rollback_status = rolled_back

Key Principle: rollback outcomes are data (RollbackResult), never exceptions.
"""

from .changelog import DEFAULT_TIMELINE_LIMIT, ChangelogManager

from .db import Base, create_changelog_engine, init_changelog_db

from .models import (
    ChangeDraft,
    ChangeLogEntry,
    FailedAt,
    RollbackResult,
    RollbackStatus,
    generate_entry_id,
)

from .rollback import (
    MissingPriorStateError,
    RollbackExecutor,
    inverse_call,
)

from .storage import (
    ChangelogStore,
    InMemoryChangelogStore,
    SqlChangelogStore,
)

__all__ = [
    "Base",
    "ChangeDraft",
    "ChangeLogEntry",
    "ChangelogManager",
    "ChangelogStore",
    "DEFAULT_TIMELINE_LIMIT",
    "FailedAt",
    "InMemoryChangelogStore",
    "MissingPriorStateError",
    "RollbackExecutor",
    "RollbackResult",
    "RollbackStatus",
    "SqlChangelogStore",
    "create_changelog_engine",
    "generate_entry_id",
    "init_changelog_db",
    "inverse_call",
]
