"""
Rollback Executor - undo changelog entries by replaying their inverse calls.

Inverses:
    create  -> delete-<resource>(name)
    update  -> update-<resource>(before_state)
    delete  -> add-<resource>(before_state)

Inverse calls go through the same ResourceClient as forward calls. The walk
is newest-first and stops at the first failure; the entry that failed is left
ACTIVE. Every outcome is returned as a RollbackResult, never raised.
"""

import logging
from typing import List, Optional, Tuple

from gateway_client import ResourceClient
from protocol import ErrorCode, OperationType, PlannedCall, write_tool_for

from .changelog import ChangelogManager
from .models import ChangeLogEntry, RollbackResult, RollbackStatus

logger = logging.getLogger(__name__)

NOTHING_TO_ROLL_BACK = "nothing to roll back"
MISSING_PRIOR_STATE = "cannot roll back: missing prior state"


class MissingPriorStateError(Exception):
    """update/delete entry recorded without a before_state."""

    code = ErrorCode.MISSING_PRIOR_STATE

    def __init__(self, entry: ChangeLogEntry):
        self.version_id = entry.version_id
        super().__init__(f"{MISSING_PRIOR_STATE} (version {entry.version_id}, {entry.resource_name})")


def inverse_call(entry: ChangeLogEntry) -> PlannedCall:
    """Pure: the call that undoes entry."""
    if entry.operation_type == OperationType.CREATE:
        return PlannedCall(
            tool_name=write_tool_for(OperationType.DELETE, entry.resource_type),
            args={"name": entry.resource_name},
        )

    if entry.before_state is None:
        raise MissingPriorStateError(entry)

    inverse_op = OperationType.UPDATE if entry.operation_type == OperationType.UPDATE else OperationType.CREATE
    args = dict(entry.before_state)
    args.setdefault("name", entry.resource_name)
    return PlannedCall(tool_name=write_tool_for(inverse_op, entry.resource_type), args=args)


class RollbackExecutor:
    def __init__(self, changelog: ChangelogManager, client: ResourceClient):
        self.changelog = changelog
        self.client = client

    async def _undo(self, entry: ChangeLogEntry) -> Optional[Tuple[str, ErrorCode]]:
        """Apply the inverse of entry; returns (error, code) on failure, None on success."""
        if not entry.rollback_capable:
            return str(MissingPriorStateError(entry)), ErrorCode.MISSING_PRIOR_STATE
        call = inverse_call(entry)

        try:
            response = await self.client.invoke(call.tool_name, call.args)
        except Exception as e:
            logger.exception(
                "rollback.invoke_error session_id=%s version=%s tool=%s",
                entry.session_id, entry.version_id, call.tool_name,
            )
            return f"{call.tool_name} failed: {e}", ErrorCode.TOOL_ERROR

        if not response.success:
            return response.error or f"{call.tool_name} failed", ErrorCode.TOOL_ERROR

        await self.changelog.update_status(entry.session_id, entry.version_id, RollbackStatus.ROLLED_BACK)
        logger.info(
            "rollback.step session_id=%s version=%s tool=%s", entry.session_id, entry.version_id, call.tool_name
        )
        return None

    async def rollback_last(self, session_id: str) -> RollbackResult:
        entry = await self.changelog.latest(session_id)
        if entry is None:
            current = await self.changelog.current_version(session_id)
            return RollbackResult.failure(
                from_version=current,
                to_version=current,
                version_id=current,
                error=NOTHING_TO_ROLL_BACK,
                code=ErrorCode.NOTHING_TO_ROLL_BACK,
            )

        failure = await self._undo(entry)
        if failure is not None:
            error, code = failure
            logger.warning(
                "rollback.step_failed session_id=%s version=%s error=%s", session_id, entry.version_id, error
            )
            return RollbackResult.failure(
                from_version=entry.version_id,
                to_version=entry.version_id - 1,
                version_id=entry.version_id,
                error=error,
                code=code,
            )

        return RollbackResult(
            success=True,
            from_version=entry.version_id,
            to_version=entry.version_id - 1,
            steps_rolled_back=1,
        )

    async def rollback_to_version(self, session_id: str, target_version: int) -> RollbackResult:
        """Undo every ACTIVE entry newer than target_version, newest first."""
        current = await self.changelog.current_version(session_id)
        if target_version < 0 or target_version >= current:
            return RollbackResult.failure(
                from_version=current,
                to_version=target_version,
                version_id=target_version,
                error=f"invalid target version {target_version}: current version is {current}",
                code=ErrorCode.INVALID_TARGET,
            )

        steps = 0
        for version_id in range(current, target_version, -1):
            entry = await self.changelog.by_version(session_id, version_id)
            if entry is None or not entry.is_active:
                continue

            failure = await self._undo(entry)
            if failure is not None:
                error, code = failure
                logger.warning(
                    "rollback.step_failed session_id=%s version=%s error=%s", session_id, version_id, error
                )
                return RollbackResult.failure(
                    from_version=current,
                    to_version=target_version,
                    version_id=version_id,
                    error=error,
                    code=code,
                    steps_rolled_back=steps,
                )
            steps += 1

        logger.info(
            "rollback.done session_id=%s from=%s to=%s steps=%s", session_id, current, target_version, steps
        )
        return RollbackResult(
            success=True,
            from_version=current,
            to_version=target_version,
            steps_rolled_back=steps,
        )

    async def timeline(self, session_id: str, limit: Optional[int] = None) -> List[ChangeLogEntry]:
        return await self.changelog.timeline(session_id, limit)
