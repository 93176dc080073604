"""
Tests for the Write-Path Orchestrator

Validates:
- Idle -> AwaitingConfirmation -> Idle transitions (accept, cancel, name mismatch)
- Preprocessor blocks leave no side effects
- Before-state fetch, missing resources, update arg completion
- Sequential execution, changelog entries, rollback hints, dashboard events
- Partial batch failure boundary
- At-most-once execution of a confirmed batch
- Read batches, unknown tools, empty batches
- Rollback turns (last, to version, nothing to roll back)
- Unknown confirm actions, changelog write failures
- Nameless calls resolved from session memory, message history
"""

import asyncio

import pytest

from engine import WritePathOrchestrator
from executor import ChangelogManager, InMemoryChangelogStore
from gateway_client import InMemoryResourceClient
from protocol import (
    ChangeType,
    ErrorCode,
    PlannedCall,
    RiskLevel,
    events_to_wire,
)

ROUTE_R1 = {
    "name": "r1",
    "upstreams": [{"provider": "openai", "weight": 70}, {"provider": "deepseek", "weight": 30}],
    "version": "1",
}


def call(tool_name, **args):
    return PlannedCall(tool_name=tool_name, args=args)


def types(events):
    return [e.type for e in events]


def errors(events):
    return [e.error for e in events if e.type == "error"]


@pytest.fixture
def client():
    return InMemoryResourceClient(
        providers={"p0": {"name": "p0", "type": "openai", "protocol": "openai/v1", "tokens": ["sk-old-123456"], "version": "1"}},
        routes={"r1": ROUTE_R1, "prod-main": {**ROUTE_R1, "name": "prod-main"}},
    )


@pytest.fixture
def orchestrator(client):
    return WritePathOrchestrator(client)


# ==================== Scenario A: create ====================

def test_create_route_builds_low_risk_summary_card(orchestrator, client):
    batch = [call("add-ai-route", name="r2", upstreams=[{"provider": "openai", "weight": 70}, {"provider": "deepseek", "weight": 30}])]

    events = asyncio.run(orchestrator.submit("s1", batch))

    assert types(events) == ["confirm_card"]
    card = events[0].card
    assert card.type == "summary"
    assert card.risk_level == RiskLevel.LOW
    assert orchestrator.pending("s1") is not None
    assert client.calls == []


def test_accept_executes_and_records(orchestrator, client):
    batch = [call("add-ai-route", name="r2", upstreams=[{"provider": "openai", "weight": 100}])]

    async def run():
        await orchestrator.submit("s1", batch)
        events = await orchestrator.confirm("s1", "accept")
        return events, await orchestrator.timeline("s1")

    events, timeline = asyncio.run(run())

    assert types(events) == ["tool_start", "tool_result", "rollback_hint", "dashboard_event", "text"]
    assert events[2].version_id == 1
    assert events[2].snapshot_id == timeline[0].id
    assert events[3].event.event_type == "route_changed"
    assert events[3].event.action == "create"
    assert "✓" in events[-1].content
    assert "r2" in client.routes
    assert orchestrator.pending("s1") is None
    assert timeline[0].before_state is None
    assert timeline[0].after_state["name"] == "r2"
    assert timeline[0].change_summary == "Create AI route r2: openai(100%)"


# ==================== Scenario B: update ====================

def test_full_switch_update_builds_high_risk_diff(orchestrator, client):
    batch = [call("update-ai-route", name="r1", upstreams=[{"provider": "openai", "weight": 100}])]

    events = asyncio.run(orchestrator.submit("s1", batch))

    card = events[-1].card
    assert card.type == "diff"
    assert card.risk_level == RiskLevel.HIGH
    assert any("single upstream" in w for w in card.warnings)
    changes = {c.field: c for c in card.changes}
    assert changes["openai weight"].change_type == ChangeType.MODIFIED
    assert (changes["openai weight"].old_value, changes["openai weight"].new_value) == ("70%", "100%")
    assert changes["deepseek weight"].change_type == ChangeType.REMOVED
    assert client.calls == [("get-ai-route", {"name": "r1"})]


def test_update_args_completed_from_current_state(orchestrator):
    batch = [call("update-ai-provider", name="p0", tokens=["sk-new-654321"])]

    asyncio.run(orchestrator.submit("s1", batch))

    args = orchestrator.pending("s1").calls[0].args
    assert args["tokens"] == ["sk-new-654321"]
    assert args["type"] == "openai"
    assert orchestrator.pending("s1").before_states[0]["tokens"] == ["sk-old-123456"]


def test_update_then_rollback_restores_prior_state(orchestrator, client):
    batch = [call("update-ai-route", name="r1", upstreams=[{"provider": "deepseek", "weight": 100}])]

    async def run():
        await orchestrator.submit("s1", batch)
        await orchestrator.confirm("s1", "accept")
        after_update = client.routes["r1"]["upstreams"]
        events = await orchestrator.rollback_last("s1")
        return after_update, events

    after_update, events = asyncio.run(run())

    assert after_update == [{"provider": "deepseek", "weight": 100}]
    assert client.routes["r1"]["upstreams"] == ROUTE_R1["upstreams"]
    assert types(events) == ["text", "dashboard_event"]
    assert events[1].event.action == "rollback"
    assert events[1].event.event_type == "operation_added"


def test_missing_resource_aborts_to_idle(orchestrator):
    batch = [call("update-ai-route", name="ghost", upstreams=[{"provider": "openai", "weight": 100}])]

    events = asyncio.run(orchestrator.submit("s1", batch))

    assert types(events) == ["error"]
    assert events[0].error.code == ErrorCode.RESOURCE_NOT_FOUND
    assert "not found" in events[0].error.message
    assert orchestrator.pending("s1") is None


# ==================== Scenario C: delete ====================

def test_production_delete_requires_exact_name(orchestrator, client):
    async def run():
        submitted = await orchestrator.submit("s1", [call("delete-ai-route", name="prod-main")])
        mismatch = await orchestrator.confirm("s1", "accept", confirmed_name="prod")
        still_pending = orchestrator.pending("s1") is not None
        accepted = await orchestrator.confirm("s1", "accept", confirmed_name="prod-main")
        return submitted, mismatch, still_pending, accepted

    submitted, mismatch, still_pending, accepted = asyncio.run(run())

    card = submitted[-1].card
    assert card.type == "name_input"
    assert card.resource_name == "prod-main"
    assert any("prod-main" in w for w in card.warnings)
    assert errors(mismatch)[0].code == ErrorCode.NAME_MISMATCH
    assert still_pending is True
    assert "rollback_hint" in types(accepted)
    assert "prod-main" not in client.routes


def test_delete_then_rollback_recreates_resource(orchestrator, client):
    async def run():
        await orchestrator.submit("s1", [call("delete-ai-route", name="r1")])
        await orchestrator.confirm("s1", "accept", confirmed_name="r1")
        gone = "r1" not in client.routes
        await orchestrator.rollback_last("s1")
        return gone

    assert asyncio.run(run()) is True
    assert client.routes["r1"]["upstreams"] == ROUTE_R1["upstreams"]


# ==================== Cancel / Confirm guards ====================

def test_cancel_clears_pending_without_side_effects(orchestrator, client):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-provider", name="p1", type="openai", tokens=["sk-1234567890"])])
        events = await orchestrator.confirm("s1", "cancel")
        return events, await orchestrator.timeline("s1")

    events, timeline = asyncio.run(run())

    assert types(events) == ["text"]
    assert "cancelled" in events[0].content
    assert orchestrator.pending("s1") is None
    assert timeline == []
    assert "p1" not in client.providers


def test_confirm_without_pending_is_nothing_to_confirm(orchestrator):
    events = asyncio.run(orchestrator.confirm("s1", "accept"))

    assert errors(events)[0].code == ErrorCode.NOTHING_TO_CONFIRM
    assert "nothing to confirm" in errors(events)[0].message


def test_duplicate_confirm_executes_once(orchestrator, client):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-provider", name="p1", type="openai", tokens=["sk-1234567890"])])
        return await asyncio.gather(
            orchestrator.confirm("s1", "accept"),
            orchestrator.confirm("s1", "accept"),
        )

    first, second = asyncio.run(run())

    assert "rollback_hint" in types(first)
    assert errors(second)[0].code == ErrorCode.NOTHING_TO_CONFIRM
    assert [name for name, _ in client.calls].count("add-ai-provider") == 1


# ==================== Preprocessor ====================

def test_blocked_batch_has_no_side_effects(orchestrator, client):
    batch = [call("add-ai-route", name="r2", upstreams=[{"provider": "openai", "weight": 70}, {"provider": "deepseek", "weight": 20}])]

    events = asyncio.run(orchestrator.submit("s1", batch))

    error = errors(events)[0]
    assert error.code == ErrorCode.BLOCKED_BY_POLICY
    assert "90" in error.message and "100" in error.message
    assert orchestrator.pending("s1") is None
    assert client.calls == []


def test_blocked_batch_discards_earlier_pending(orchestrator, client):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-provider", name="p9", type="openai", tokens=["k"])])
        await orchestrator.submit("s1", [call("add-ai-route", name="r2", upstreams=[{"provider": "openai", "weight": 50}])])
        return await orchestrator.confirm("s1", "accept")

    events = asyncio.run(run())

    assert errors(events)[0].code == ErrorCode.NOTHING_TO_CONFIRM
    assert "p9" not in client.providers


# ==================== Batches ====================

def test_multi_call_batch_shows_plan_then_card(orchestrator):
    batch = [
        call("add-ai-provider", name="p1", type="openai", tokens=["sk-1234567890"]),
        call("add-ai-provider", name="p2", type="deepseek", tokens=["sk-0987654321"]),
        call("add-ai-route", name="r2", upstreams=[{"provider": "p1", "weight": 50}, {"provider": "p2", "weight": 50}]),
    ]

    events = asyncio.run(orchestrator.submit("s1", batch))

    assert types(events) == ["text", "confirm_card"]
    assert "**Step 1**: Add AI provider p1" in events[0].content
    assert "**Step 3**: Create AI route r2" in events[0].content
    assert any("3 write operations" in w for w in orchestrator.pending("s1").warnings)


def test_partial_batch_failure_stops_at_first_failure(orchestrator, client):
    batch = [
        call("add-ai-provider", name="p1", type="openai", tokens=["sk-1234567890"]),
        call("add-ai-provider", name="p0", type="openai", tokens=["sk-1234567890"]),
        call("add-ai-provider", name="p2", type="openai", tokens=["sk-1234567890"]),
    ]

    async def run():
        await orchestrator.submit("s1", batch)
        events = await orchestrator.confirm("s1", "accept")
        return events, await orchestrator.timeline("s1")

    events, timeline = asyncio.run(run())

    error = errors(events)[0]
    assert error.code == ErrorCode.PARTIAL_BATCH_FAILURE
    assert error.details == {"succeeded": [0], "failedIndex": 1, "failedTool": "add-ai-provider", "notAttempted": [2]}
    assert [e.resource_name for e in timeline] == ["p1"]
    assert "p2" not in client.providers
    assert "✗" in events[-1].content


def test_first_call_conflict_reports_resource_conflict(orchestrator):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-provider", name="p0", type="openai", tokens=["sk-1234567890"])])
        return await orchestrator.confirm("s1", "accept")

    events = asyncio.run(run())

    assert errors(events)[0].code == ErrorCode.RESOURCE_CONFLICT
    assert "rollback_hint" not in types(events)


def test_mixed_batch_card_keys_off_first_write(orchestrator):
    batch = [call("get-ai-route", name="r1"), call("update-ai-route", name="r1", upstreams=[{"provider": "openai", "weight": 50}, {"provider": "deepseek", "weight": 50}])]

    async def run():
        submitted = await orchestrator.submit("s1", batch)
        confirmed = await orchestrator.confirm("s1", "accept")
        return submitted, confirmed, await orchestrator.timeline("s1")

    submitted, confirmed, timeline = asyncio.run(run())

    assert submitted[-1].card.type == "diff"
    assert types(confirmed).count("rollback_hint") == 1
    assert len(timeline) == 1


def test_read_batch_executes_immediately(orchestrator):
    events = asyncio.run(orchestrator.submit("s1", [call("list-ai-routes")]))

    assert types(events) == ["tool_start", "tool_result", "text"]
    assert "**r1**" in events[-1].content
    assert orchestrator.pending("s1") is None


def test_read_failure_is_tool_error(orchestrator):
    events = asyncio.run(orchestrator.submit("s1", [call("get-ai-provider", name="ghost")]))

    assert errors(events)[0].code == ErrorCode.TOOL_ERROR


def test_unknown_and_empty_batches(orchestrator):
    unknown = asyncio.run(orchestrator.submit("s1", [call("drop-all-routes")]))
    empty = asyncio.run(orchestrator.submit("s1", []))

    assert errors(unknown)[0].code == ErrorCode.UNKNOWN_TOOL
    assert errors(empty)[0].code == ErrorCode.EMPTY_BATCH


# ==================== Rollback turns ====================

def test_rollback_last_with_empty_changelog(orchestrator):
    events = asyncio.run(orchestrator.rollback_last("fresh"))

    error = errors(events)[0]
    assert error.code == ErrorCode.NOTHING_TO_ROLL_BACK
    assert "nothing to roll back" in error.message
    assert error.details["stepsRolledBack"] == 0


def test_rollback_to_version_after_three_creates(orchestrator, client):
    async def run():
        for name in ("p1", "p2", "p3"):
            await orchestrator.submit("s1", [call("add-ai-provider", name=name, type="openai", tokens=["sk-1234567890"])])
            await orchestrator.confirm("s1", "accept")
        return await orchestrator.rollback_to_version("s1", 1)

    events = asyncio.run(run())

    assert "2 operation(s) undone" in events[0].content
    assert [e.event.resource_name for e in events[1:]] == ["p3", "p2"]
    assert set(client.providers) == {"p0", "p1"}


def test_rollback_to_invalid_version(orchestrator):
    events = asyncio.run(orchestrator.rollback_to_version("s1", 3))
    assert errors(events)[0].code == ErrorCode.INVALID_TARGET


# ==================== Sessions / wire ====================

def test_sessions_are_independent(orchestrator):
    async def run():
        await orchestrator.submit("a", [call("add-ai-provider", name="p1", type="openai", tokens=["sk-1234567890"])])
        return await orchestrator.confirm("b", "accept")

    events = asyncio.run(run())

    assert errors(events)[0].code == ErrorCode.NOTHING_TO_CONFIRM
    assert orchestrator.pending("a") is not None


def test_successful_mutation_records_resource_reference(orchestrator):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-route", name="r9", upstreams=[{"provider": "openai", "weight": 100}])])
        await orchestrator.confirm("s1", "accept")

    asyncio.run(run())

    memory = orchestrator.sessions.get("s1").memory
    assert memory.resolve_reference("route").name == "r9"


def test_events_serialise_to_wire(orchestrator):
    events = asyncio.run(orchestrator.submit("s1", [call("delete-ai-route", name="r1")]))

    wire = events_to_wire(events)

    assert wire[0]["type"] == "confirm_card"
    assert wire[0]["card"]["type"] == "name_input"
    assert wire[0]["card"]["riskLevel"] == "high"
    assert wire[0]["card"]["resourceName"] == "r1"


# ==================== Confirm Actions ====================

def test_unknown_confirm_action_keeps_pending(orchestrator, client):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-provider", name="p1", type="openai", tokens=["sk-1234567890"])])
        rejected = await orchestrator.confirm("s1", "reject")
        still_pending = orchestrator.pending("s1") is not None
        accepted = await orchestrator.confirm("s1", "accept")
        return rejected, still_pending, accepted

    rejected, still_pending, accepted = asyncio.run(run())

    assert types(rejected) == ["error"]
    assert errors(rejected)[0].code == ErrorCode.INVALID_ACTION
    assert still_pending is True
    assert "rollback_hint" in types(accepted)
    assert "p1" in client.providers


# ==================== Changelog Failures ====================

class BrokenChangelogStore(InMemoryChangelogStore):
    """Refuses every append after the first `allowed` ones."""

    def __init__(self, allowed=0):
        super().__init__()
        self.allowed = allowed

    def append(self, draft):
        if self.allowed <= 0:
            raise RuntimeError("Could not assign a changelog version")
        self.allowed -= 1
        return super().append(draft)


def test_changelog_failure_stops_batch_and_reports_unrecorded_change(client):
    orchestrator = WritePathOrchestrator(client, changelog=ChangelogManager(BrokenChangelogStore(allowed=1)))
    batch = [
        call("add-ai-provider", name="p1", type="openai", tokens=["k"]),
        call("add-ai-provider", name="p2", type="openai", tokens=["k"]),
        call("add-ai-provider", name="p3", type="openai", tokens=["k"]),
    ]

    async def run():
        await orchestrator.submit("s1", batch)
        return await orchestrator.confirm("s1", "accept"), await orchestrator.timeline("s1")

    events, timeline = asyncio.run(run())

    error = errors(events)[0]
    assert error.code == ErrorCode.CHANGELOG_WRITE_FAILED
    assert error.details["succeeded"] == [0, 1]
    assert error.details["failedIndex"] == 1
    assert error.details["unrecorded"] == {"toolName": "add-ai-provider", "name": "p2"}
    assert error.details["notAttempted"] == [2]
    assert types(events).count("rollback_hint") == 1
    assert types(events)[-1] == "text"
    assert set(client.providers) == {"p0", "p1", "p2"}
    assert [e.resource_name for e in timeline] == ["p1"]


# ==================== References / History ====================

def test_nameless_delete_targets_most_recent_route(orchestrator, client):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-route", name="r9", upstreams=[{"provider": "openai", "weight": 100}])])
        await orchestrator.confirm("s1", "accept")
        return await orchestrator.submit("s1", [call("delete-ai-route")])

    events = asyncio.run(run())

    assert events[0].card.type == "name_input"
    assert events[0].card.resource_name == "r9"
    assert orchestrator.pending("s1").calls[0].args == {"name": "r9"}


def test_nameless_call_without_reference_is_left_alone(orchestrator):
    events = asyncio.run(orchestrator.submit("s1", [call("delete-ai-route")]))

    assert errors(events)[0].code == ErrorCode.RESOURCE_NOT_FOUND


def test_history_lists_recent_messages(orchestrator):
    async def run():
        await orchestrator.submit("s1", [call("add-ai-provider", name="p1", type="openai", tokens=["k"])])
        await orchestrator.confirm("s1", "cancel")

    asyncio.run(run())

    assert orchestrator.history("s1") == [{"role": "assistant", "content": "Operation cancelled."}]
    assert orchestrator.history("unknown") == []
