"""
Changelog and rollback data structures.

ChangeLogEntry is immutable once appended except for rollback_status,
which the rollback executor flips from ACTIVE to ROLLED_BACK exactly once.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field, model_validator

from protocol import ErrorCode, OperationType, ResourceType
from protocol.base import BaseModel


class RollbackStatus(str, Enum):
    ACTIVE = "active"
    ROLLED_BACK = "rolled_back"
    SUPERSEDED = "superseded"


def generate_entry_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeDraft(BaseModel):
    """Everything an entry carries before the store assigns id/version/status/time."""
    session_id: str
    operation_type: OperationType
    resource_type: ResourceType
    resource_name: str
    before_state: Optional[Dict[str, Any]] = None
    after_state: Optional[Dict[str, Any]] = None
    change_summary: str = ""

    @model_validator(mode="after")
    def _creates_have_no_prior_state(self) -> "ChangeDraft":
        if self.operation_type == OperationType.CREATE and self.before_state is not None:
            raise ValueError("create entries must not carry a before_state")
        return self


class ChangeLogEntry(ChangeDraft):
    id: str = Field(default_factory=generate_entry_id)
    version_id: int = Field(ge=1)
    created_at: datetime = Field(default_factory=utcnow)
    rollback_status: RollbackStatus = RollbackStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.rollback_status == RollbackStatus.ACTIVE

    @property
    def rollback_capable(self) -> bool:
        """update/delete entries need the prior state to be undone."""
        if self.operation_type == OperationType.CREATE:
            return True
        return self.before_state is not None


class FailedAt(BaseModel):
    version_id: int
    error: str
    code: Optional[ErrorCode] = None


class RollbackResult(BaseModel):
    """Always returned, never raised, so partial progress can be reported."""
    success: bool
    from_version: int
    to_version: int
    steps_rolled_back: int = 0
    failed_at: Optional[FailedAt] = None

    @classmethod
    def failure(
        cls,
        from_version: int,
        to_version: int,
        version_id: int,
        error: str,
        code: Optional[ErrorCode] = None,
        steps_rolled_back: int = 0,
    ) -> "RollbackResult":
        return cls(
            success=False,
            from_version=from_version,
            to_version=to_version,
            steps_rolled_back=steps_rolled_back,
            failed_at=FailedAt(version_id=version_id, error=error, code=code),
        )
