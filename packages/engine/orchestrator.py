"""
Write-Path Orchestrator - the per-session confirm-before-write control loop.

States per session:
    Idle                  pending is None
    AwaitingConfirmation  exactly one PendingConfirmation

Flow for a write batch:
    1. StaticRulePreprocessor.evaluate -> blocked: stay Idle, report reason
    2. update/delete calls: fetch current state (get-<resource>); missing -> Idle, RESOURCE_NOT_FOUND
       update args are completed with fetched fields the caller omitted
    3. assess risk, build one card from the first write call -> AwaitingConfirmation
    4. cancel -> Idle, nothing executed
    5. accept -> NameInputCard needs the exact resource name (mismatch keeps pending)
    6. pending cleared BEFORE execution; calls run strictly in order, stop at first failure;
       every successful write is changelogged and followed by a rollback hint

Every public turn runs inside the session's lane, so turns of one session never interleave.
Every outcome is a list of AgentEvent; nothing raises to the caller.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from executor import ChangeDraft, ChangelogManager, ChangeLogEntry, RollbackExecutor, RollbackResult
from gateway_client import ResourceClient
from governance import StaticRulePreprocessor, assess_risk, build_confirm_card
from protocol import (
    ConfirmCardEvent,
    DashboardEvent,
    DashboardUpdateEvent,
    ErrorCode,
    ErrorEvent,
    NameInputCard,
    OperationType,
    PlannedCall,
    ResourceType,
    RollbackHintEvent,
    TextEvent,
    ToolCallResult,
    ToolResponse,
    ToolResultEvent,
    ToolStartEvent,
    get_tool_for,
    is_read_tool,
    is_write_tool,
    operation_type_of,
    resource_type_of,
)

from .formatting import change_summary, describe_call, format_batch_summary, format_plan, format_tool_result
from .lanes import SessionLanes
from .session import PendingConfirmation, SessionState, SessionStore

logger = logging.getLogger(__name__)

NOTHING_TO_CONFIRM = "nothing to confirm"

_DASHBOARD_EVENT_TYPES = {
    ResourceType.PROVIDER: "provider_changed",
    ResourceType.ROUTE: "route_changed",
}


def _failure_code(error: str) -> ErrorCode:
    lowered = error.lower()
    if "already exists" in lowered or "http 409" in lowered:
        return ErrorCode.RESOURCE_CONFLICT
    if "not found" in lowered or "http 404" in lowered:
        return ErrorCode.RESOURCE_NOT_FOUND
    return ErrorCode.TOOL_ERROR


class WritePathOrchestrator:
    def __init__(
        self,
        client: ResourceClient,
        preprocessor: Optional[StaticRulePreprocessor] = None,
        changelog: Optional[ChangelogManager] = None,
        rollback: Optional[RollbackExecutor] = None,
        sessions: Optional[SessionStore] = None,
        lanes: Optional[SessionLanes] = None,
    ):
        self.client = client
        self.preprocessor = preprocessor or StaticRulePreprocessor()
        self.changelog = changelog or ChangelogManager()
        self.rollback = rollback or RollbackExecutor(self.changelog, client)
        self.sessions = sessions or SessionStore()
        self.lanes = lanes or SessionLanes()

    # ==================== Public turns ====================

    async def submit(self, session_id: str, calls: Sequence[PlannedCall]) -> List[Any]:
        """Submit a batch of planned calls (read-only batches execute immediately)."""
        batch = list(calls)
        return await self.lanes.submit(session_id, lambda: self._submit(session_id, batch))

    async def confirm(self, session_id: str, action: str, confirmed_name: Optional[str] = None) -> List[Any]:
        """action: "accept" | "cancel"."""
        return await self.lanes.submit(session_id, lambda: self._confirm(session_id, action, confirmed_name))

    async def rollback_last(self, session_id: str) -> List[Any]:
        return await self.lanes.submit(session_id, lambda: self._rollback_last(session_id))

    async def rollback_to_version(self, session_id: str, target_version: int) -> List[Any]:
        return await self.lanes.submit(session_id, lambda: self._rollback_to_version(session_id, target_version))

    async def timeline(self, session_id: str, limit: Optional[int] = None) -> List[ChangeLogEntry]:
        return await self.rollback.timeline(session_id, limit)

    def pending(self, session_id: str) -> Optional[PendingConfirmation]:
        state = self.sessions.peek(session_id)
        return state.pending if state else None

    def history(self, session_id: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """Recent assistant messages of the session, oldest first."""
        state = self.sessions.peek(session_id)
        if state is None:
            return []
        if limit is None:
            return state.memory.context_messages()
        return state.memory.context_messages(limit)

    # ==================== Helpers ====================

    async def _invoke(self, session_id: str, call: PlannedCall) -> ToolResponse:
        try:
            return await self.client.invoke(call.tool_name, dict(call.args))
        except Exception as e:
            logger.exception("orchestrator.invoke_error session_id=%s tool=%s", session_id, call.tool_name)
            return ToolResponse.fail(f"{call.tool_name} failed: {e}")

    def _resolve_name(self, state: SessionState, call: PlannedCall) -> PlannedCall:
        """get/update/delete without a name target the session's most recent resource of that kind."""
        if call.resource_name or call.tool_name.startswith("list-"):
            return call
        if operation_type_of(call.tool_name) == OperationType.CREATE:
            return call
        ref = state.memory.resolve_reference(resource_type_of(call.tool_name).value)
        if ref is None:
            return call
        return PlannedCall(tool_name=call.tool_name, args={**call.args, "name": ref.name})

    def _say(self, state: SessionState, content: str) -> TextEvent:
        state.memory.add_message("assistant", content)
        return TextEvent(content=content)

    # ==================== Submit ====================

    async def _submit(self, session_id: str, batch: List[PlannedCall]) -> List[Any]:
        state = self.sessions.get(session_id)

        if not batch:
            return [ErrorEvent.of(ErrorCode.EMPTY_BATCH, "No tool calls to run.")]

        unknown = [c.tool_name for c in batch if not (is_read_tool(c.tool_name) or is_write_tool(c.tool_name))]
        if unknown:
            return [ErrorEvent.of(
                ErrorCode.UNKNOWN_TOOL,
                f"Unknown tool: {', '.join(unknown)}",
                details={"toolNames": unknown},
            )]

        batch = [self._resolve_name(state, c) for c in batch]

        if not any(is_write_tool(c.tool_name) for c in batch):
            return await self._run_reads(session_id, state, batch)
        return await self._prepare_writes(session_id, state, batch)

    async def _run_reads(self, session_id: str, state: SessionState, batch: List[PlannedCall]) -> List[Any]:
        events: List[Any] = []
        for call in batch:
            events.append(ToolStartEvent(tool_name=call.tool_name))
            response = await self._invoke(session_id, call)
            events.append(ToolResultEvent(result=ToolCallResult(
                tool_name=call.tool_name,
                success=response.success,
                data=response.data,
                error=response.error,
            )))
            if response.success:
                events.append(self._say(state, format_tool_result(call.tool_name, response.payload)))
            else:
                events.append(ErrorEvent.of(ErrorCode.TOOL_ERROR, response.error or f"{call.tool_name} failed"))
        return events

    async def _prepare_writes(self, session_id: str, state: SessionState, batch: List[PlannedCall]) -> List[Any]:
        verdict = self.preprocessor.evaluate(batch)
        if not verdict.allowed:
            state.pending = None
            message = f"Operation blocked: {verdict.block_reason}"
            state.memory.add_message("assistant", message)
            logger.info("orchestrator.blocked session_id=%s rule=%s", session_id, verdict.rule_id)
            return [ErrorEvent.of(ErrorCode.BLOCKED_BY_POLICY, message, details={"ruleId": verdict.rule_id})]

        risk = assess_risk(batch, verdict)

        calls: List[PlannedCall] = []
        before_states: Dict[int, Optional[Dict[str, Any]]] = {}
        for index, call in enumerate(batch):
            operation = operation_type_of(call.tool_name)
            if operation not in (OperationType.UPDATE, OperationType.DELETE):
                before_states[index] = None
                calls.append(call)
                continue

            resource_type = resource_type_of(call.tool_name)
            fetched = await self._invoke(session_id, PlannedCall(
                tool_name=get_tool_for(resource_type),
                args={"name": call.resource_name},
            ))
            current = fetched.payload if fetched.success else None
            if not isinstance(current, dict):
                # abort to Idle: a card is never built against a missing resource
                state.pending = None
                message = f"{describe_call(call)}: {resource_type.value} {call.resource_name!r} not found."
                logger.info(
                    "orchestrator.before_state_missing session_id=%s tool=%s name=%s",
                    session_id, call.tool_name, call.resource_name,
                )
                state.memory.add_message("assistant", message)
                return [ErrorEvent.of(
                    ErrorCode.RESOURCE_NOT_FOUND,
                    message,
                    details={"toolName": call.tool_name, "name": call.resource_name, "error": fetched.error},
                )]

            before_states[index] = current
            if operation == OperationType.UPDATE:
                merged = dict(call.args)
                for key, value in current.items():
                    merged.setdefault(key, value)
                call = PlannedCall(tool_name=call.tool_name, args=merged)
            calls.append(call)

        first_index = next(i for i, c in enumerate(calls) if is_write_tool(c.tool_name))
        first = calls[first_index]
        card = build_confirm_card(first.tool_name, first.args, before_states[first_index], risk, verdict.warnings)

        # a newer batch replaces any earlier unconfirmed one
        state.pending = PendingConfirmation(
            calls=calls,
            card=card,
            before_states=before_states,
            risk=risk,
            warnings=list(verdict.warnings),
        )
        logger.info(
            "orchestrator.awaiting_confirmation session_id=%s calls=%d risk=%s card=%s",
            session_id, len(calls), risk.value, card.type,
        )

        events: List[Any] = []
        if len(calls) > 1:
            events.append(self._say(state, format_plan(calls)))
        events.append(ConfirmCardEvent(card=card))
        return events

    # ==================== Confirm ====================

    async def _confirm(self, session_id: str, action: str, confirmed_name: Optional[str]) -> List[Any]:
        state = self.sessions.get(session_id)
        pending = state.pending

        if pending is None:
            return [ErrorEvent.of(ErrorCode.NOTHING_TO_CONFIRM, NOTHING_TO_CONFIRM)]

        if action == "cancel":
            state.pending = None
            logger.info("orchestrator.cancelled session_id=%s", session_id)
            return [self._say(state, "Operation cancelled.")]

        if action != "accept":
            return [ErrorEvent.of(
                ErrorCode.INVALID_ACTION,
                f'Unknown confirmation action "{action}". Use "accept" or "cancel".',
                details={"action": action},
            )]

        if isinstance(pending.card, NameInputCard) and not pending.card.accepts(confirmed_name):
            return [ErrorEvent.of(
                ErrorCode.NAME_MISMATCH,
                f'Name does not match. Type "{pending.card.resource_name}" to confirm the deletion.',
                details={"expected": pending.card.resource_name},
            )]

        state.pending = None
        return await self._execute(session_id, state, pending)

    async def _execute(self, session_id: str, state: SessionState, pending: PendingConfirmation) -> List[Any]:
        events: List[Any] = []
        lines: List[str] = []
        succeeded: List[int] = []

        for index, call in enumerate(pending.calls):
            events.append(ToolStartEvent(tool_name=call.tool_name))
            response = await self._invoke(session_id, call)
            events.append(ToolResultEvent(result=ToolCallResult(
                tool_name=call.tool_name,
                success=response.success,
                data=response.data,
                error=response.error,
            )))

            if not response.success:
                error = response.error or f"{call.tool_name} failed"
                lines.append(f"✗ {describe_call(call)} failed: {error}")
                code = ErrorCode.PARTIAL_BATCH_FAILURE if succeeded else _failure_code(error)
                logger.warning(
                    "orchestrator.call_failed session_id=%s index=%d tool=%s error=%s",
                    session_id, index, call.tool_name, error,
                )
                events.append(ErrorEvent.of(code, error, details={
                    "succeeded": succeeded,
                    "failedIndex": index,
                    "failedTool": call.tool_name,
                    "notAttempted": list(range(index + 1, len(pending.calls))),
                }))
                break

            succeeded.append(index)
            lines.append(f"✓ {describe_call(call)} done")
            if not is_write_tool(call.tool_name):
                continue
            try:
                events.extend(await self._record(session_id, state, index, call, response, pending))
            except Exception as e:
                # applied but not in the changelog: stop, the change cannot be rolled back from here
                logger.exception(
                    "orchestrator.record_failed session_id=%s index=%d tool=%s", session_id, index, call.tool_name
                )
                lines[-1] = f"✗ {describe_call(call)} applied but not recorded: {e}"
                events.append(ErrorEvent.of(
                    ErrorCode.CHANGELOG_WRITE_FAILED,
                    f"{describe_call(call)} was applied but could not be recorded, so it cannot be rolled back: {e}",
                    details={
                        "succeeded": succeeded,
                        "failedIndex": index,
                        "failedTool": call.tool_name,
                        "unrecorded": {"toolName": call.tool_name, "name": call.resource_name},
                        "notAttempted": list(range(index + 1, len(pending.calls))),
                    },
                ))
                break

        events.append(self._say(state, format_batch_summary(lines, any_applied=bool(succeeded))))
        return events

    async def _record(
        self,
        session_id: str,
        state: SessionState,
        index: int,
        call: PlannedCall,
        response: ToolResponse,
        pending: PendingConfirmation,
    ) -> List[Any]:
        operation = operation_type_of(call.tool_name)
        resource_type = resource_type_of(call.tool_name)
        after_state = response.payload if isinstance(response.payload, dict) else None

        entry = await self.changelog.append(ChangeDraft(
            session_id=session_id,
            operation_type=operation,
            resource_type=resource_type,
            resource_name=call.resource_name,
            before_state=None if operation == OperationType.CREATE else pending.before_states.get(index),
            after_state=None if operation == OperationType.DELETE else after_state,
            change_summary=change_summary(call),
        ))
        state.memory.add_resource_reference(resource_type.value, call.resource_name)

        return [
            RollbackHintEvent(snapshot_id=entry.id, version_id=entry.version_id),
            DashboardUpdateEvent(event=DashboardEvent(
                event_type=_DASHBOARD_EVENT_TYPES[resource_type],
                resource_type=resource_type.value,
                resource_name=call.resource_name,
                action=operation.value,
            )),
        ]

    # ==================== Rollback ====================

    def _rollback_failed(self, state: SessionState, result: RollbackResult) -> List[Any]:
        failed = result.failed_at
        message = f"Rollback failed at v{failed.version_id}: {failed.error}."
        if result.steps_rolled_back:
            message += f" {result.steps_rolled_back} step(s) were rolled back before the failure."
        state.memory.add_message("assistant", message)
        return [ErrorEvent.of(failed.code or ErrorCode.TOOL_ERROR, message, details=result.to_wire())]

    async def _rollback_last(self, session_id: str) -> List[Any]:
        state = self.sessions.get(session_id)
        result = await self.rollback.rollback_last(session_id)
        if not result.success:
            return self._rollback_failed(state, result)

        entry = await self.changelog.by_version(session_id, result.from_version)
        events: List[Any] = [self._say(state, f'Rolled back. "{entry.change_summary}" has been undone.')]
        events.append(DashboardUpdateEvent(event=DashboardEvent(
            event_type="operation_added",
            resource_type=entry.resource_type.value,
            resource_name=entry.resource_name,
            action="rollback",
        )))
        return events

    async def _rollback_to_version(self, session_id: str, target_version: int) -> List[Any]:
        state = self.sessions.get(session_id)
        current = await self.changelog.current_version(session_id)
        active: List[ChangeLogEntry] = []
        for version_id in range(current, max(target_version, 0), -1):
            entry = await self.changelog.by_version(session_id, version_id)
            if entry is not None and entry.is_active:
                active.append(entry)

        result = await self.rollback.rollback_to_version(session_id, target_version)
        if not result.success:
            return self._rollback_failed(state, result)

        events: List[Any] = [self._say(
            state,
            f"Rolled back to version v{target_version}, {result.steps_rolled_back} operation(s) undone.",
        )]
        # only entries undone by this turn, newest first
        for entry in active:
            events.append(DashboardUpdateEvent(event=DashboardEvent(
                event_type="operation_added",
                resource_type=entry.resource_type.value,
                resource_name=entry.resource_name,
                action="rollback",
            )))
        return events
