"""
Changelog Stores - per-session, append-only entry lists with a version counter.

Backends:
- InMemoryChangelogStore: process-local dicts (default, tests, local dev)
- SqlChangelogStore: SQLAlchemy tables from executor.db

Both guarantee:
- version assigned atomically at append, strictly increasing from 1 per session
- no cross-session visibility
- only rollback_status is ever mutated after append
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .db import ChangeLogEntryModel, ChangeLogVersionModel
from .models import ChangeDraft, ChangeLogEntry, RollbackStatus

logger = logging.getLogger(__name__)

APPEND_MAX_ATTEMPTS = 3


class ChangelogStore(ABC):
    """Storage contract used by ChangelogManager."""

    @abstractmethod
    def append(self, draft: ChangeDraft) -> ChangeLogEntry:
        """Assign the next version for draft.session_id and persist the entry."""

    @abstractmethod
    def current_version(self, session_id: str) -> int:
        """Highest version ever assigned (0 if none); rollbacks do not lower it."""

    @abstractmethod
    def get(self, session_id: str, version_id: int) -> Optional[ChangeLogEntry]:
        ...

    @abstractmethod
    def latest_active(self, session_id: str) -> Optional[ChangeLogEntry]:
        ...

    @abstractmethod
    def timeline(self, session_id: str, limit: int) -> List[ChangeLogEntry]:
        """Newest first, at most limit entries."""

    @abstractmethod
    def update_status(self, session_id: str, version_id: int, status: RollbackStatus) -> bool:
        """Returns False when the entry does not exist."""


class InMemoryChangelogStore(ChangelogStore):
    def __init__(self):
        self._entries: Dict[str, List[ChangeLogEntry]] = defaultdict(list)
        self._versions: Dict[str, int] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def append(self, draft: ChangeDraft) -> ChangeLogEntry:
        with self._lock_for(draft.session_id):
            version = self._versions.get(draft.session_id, 0) + 1
            entry = ChangeLogEntry(**draft.model_dump(), version_id=version)
            self._entries[draft.session_id].append(entry)
            self._versions[draft.session_id] = version
        return entry.model_copy(deep=True)

    def current_version(self, session_id: str) -> int:
        return self._versions.get(session_id, 0)

    def get(self, session_id: str, version_id: int) -> Optional[ChangeLogEntry]:
        for entry in self._entries.get(session_id, []):
            if entry.version_id == version_id:
                return entry.model_copy(deep=True)
        return None

    def latest_active(self, session_id: str) -> Optional[ChangeLogEntry]:
        for entry in reversed(self._entries.get(session_id, [])):
            if entry.is_active:
                return entry.model_copy(deep=True)
        return None

    def timeline(self, session_id: str, limit: int) -> List[ChangeLogEntry]:
        if limit <= 0:
            return []
        entries = self._entries.get(session_id, [])
        return [e.model_copy(deep=True) for e in reversed(entries[-limit:])]

    def update_status(self, session_id: str, version_id: int, status: RollbackStatus) -> bool:
        with self._lock_for(session_id):
            entries = self._entries.get(session_id, [])
            for index, entry in enumerate(entries):
                if entry.version_id == version_id:
                    entries[index] = entry.model_copy(update={"rollback_status": status})
                    return True
        return False


def _to_entry(row: ChangeLogEntryModel) -> ChangeLogEntry:
    return ChangeLogEntry(
        id=row.id,
        session_id=row.session_id,
        version_id=row.version_id,
        operation_type=row.operation_type,
        resource_type=row.resource_type,
        resource_name=row.resource_name,
        before_state=row.before_state,
        after_state=row.after_state,
        change_summary=row.change_summary or "",
        created_at=row.created_at,
        rollback_status=row.rollback_status,
    )


class SqlChangelogStore(ChangelogStore):
    """
    SQLAlchemy-backed store.

    The counter row and the entry row are written in one transaction; a
    concurrent writer that wins the race trips the unique constraint and the
    loser retries with a fresh counter read.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._write_lock = threading.Lock()

    def _session(self) -> Session:
        return self._session_factory()

    def append(self, draft: ChangeDraft) -> ChangeLogEntry:
        last_error: Optional[IntegrityError] = None
        for attempt in range(1, APPEND_MAX_ATTEMPTS + 1):
            with self._write_lock:
                db = self._session()
                try:
                    counter = (
                        db.query(ChangeLogVersionModel)
                        .filter(ChangeLogVersionModel.session_id == draft.session_id)
                        .with_for_update()
                        .first()
                    )
                    if counter is None:
                        counter = ChangeLogVersionModel(session_id=draft.session_id, current_version=0)
                        db.add(counter)
                    counter.current_version += 1

                    entry = ChangeLogEntry(**draft.model_dump(), version_id=counter.current_version)
                    db.add(ChangeLogEntryModel(
                        id=entry.id,
                        session_id=entry.session_id,
                        version_id=entry.version_id,
                        operation_type=entry.operation_type.value,
                        resource_type=entry.resource_type.value,
                        resource_name=entry.resource_name,
                        before_state=entry.before_state,
                        after_state=entry.after_state,
                        change_summary=entry.change_summary,
                        created_at=entry.created_at,
                        rollback_status=entry.rollback_status.value,
                    ))
                    db.commit()
                    return entry
                except IntegrityError as e:
                    db.rollback()
                    last_error = e
                    logger.warning(
                        "changelog.append_conflict session_id=%s attempt=%d", draft.session_id, attempt
                    )
                finally:
                    db.close()
        raise RuntimeError(f"Could not assign a changelog version for session {draft.session_id}") from last_error

    def current_version(self, session_id: str) -> int:
        db = self._session()
        try:
            counter = db.get(ChangeLogVersionModel, session_id)
            return counter.current_version if counter else 0
        finally:
            db.close()

    def get(self, session_id: str, version_id: int) -> Optional[ChangeLogEntry]:
        db = self._session()
        try:
            row = (
                db.query(ChangeLogEntryModel)
                .filter(
                    ChangeLogEntryModel.session_id == session_id,
                    ChangeLogEntryModel.version_id == version_id,
                )
                .first()
            )
            return _to_entry(row) if row else None
        finally:
            db.close()

    def latest_active(self, session_id: str) -> Optional[ChangeLogEntry]:
        db = self._session()
        try:
            row = (
                db.query(ChangeLogEntryModel)
                .filter(
                    ChangeLogEntryModel.session_id == session_id,
                    ChangeLogEntryModel.rollback_status == RollbackStatus.ACTIVE.value,
                )
                .order_by(ChangeLogEntryModel.version_id.desc())
                .first()
            )
            return _to_entry(row) if row else None
        finally:
            db.close()

    def timeline(self, session_id: str, limit: int) -> List[ChangeLogEntry]:
        if limit <= 0:
            return []
        db = self._session()
        try:
            rows = (
                db.query(ChangeLogEntryModel)
                .filter(ChangeLogEntryModel.session_id == session_id)
                .order_by(ChangeLogEntryModel.version_id.desc())
                .limit(limit)
                .all()
            )
            return [_to_entry(row) for row in rows]
        finally:
            db.close()

    def update_status(self, session_id: str, version_id: int, status: RollbackStatus) -> bool:
        with self._write_lock:
            db = self._session()
            try:
                updated = (
                    db.query(ChangeLogEntryModel)
                    .filter(
                        ChangeLogEntryModel.session_id == session_id,
                        ChangeLogEntryModel.version_id == version_id,
                    )
                    .update({ChangeLogEntryModel.rollback_status: RollbackStatus(status).value})
                )
                db.commit()
                return updated > 0
            finally:
                db.close()
