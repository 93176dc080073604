"""
Changelog Manager - append-only, per-session versioned record of applied mutations.

Versions start at 1 and increase by exactly one per append within a session.
Appends for one session are serialised by a per-session asyncio.Lock on top of
whatever atomicity the store gives, so direct callers cannot race either.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from .models import ChangeDraft, ChangeLogEntry, RollbackStatus
from .storage import ChangelogStore, InMemoryChangelogStore

logger = logging.getLogger(__name__)

DEFAULT_TIMELINE_LIMIT = 50


class ChangelogManager:
    def __init__(self, store: Optional[ChangelogStore] = None, timeline_limit: int = DEFAULT_TIMELINE_LIMIT):
        self.store = store or InMemoryChangelogStore()
        self.timeline_limit = timeline_limit
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    async def append(self, draft: ChangeDraft) -> ChangeLogEntry:
        async with self._lock_for(draft.session_id):
            entry = self.store.append(draft)
        logger.info(
            "changelog.append session_id=%s version=%s op=%s resource=%s/%s",
            entry.session_id,
            entry.version_id,
            entry.operation_type.value,
            entry.resource_type.value,
            entry.resource_name,
        )
        return entry

    async def current_version(self, session_id: str) -> int:
        return self.store.current_version(session_id)

    async def latest(self, session_id: str) -> Optional[ChangeLogEntry]:
        """Most recent entry still ACTIVE, or None."""
        return self.store.latest_active(session_id)

    async def by_version(self, session_id: str, version_id: int) -> Optional[ChangeLogEntry]:
        return self.store.get(session_id, version_id)

    async def update_status(self, session_id: str, version_id: int, status: RollbackStatus) -> bool:
        async with self._lock_for(session_id):
            updated = self.store.update_status(session_id, version_id, status)
        if updated:
            logger.info("changelog.status session_id=%s version=%s status=%s", session_id, version_id, status.value)
        else:
            logger.warning("changelog.status_missing session_id=%s version=%s", session_id, version_id)
        return updated

    async def timeline(self, session_id: str, limit: Optional[int] = None) -> List[ChangeLogEntry]:
        """Newest first, bounded by limit (default: timeline_limit)."""
        return self.store.timeline(session_id, self.timeline_limit if limit is None else limit)
