"""Session turns: submit planned calls, confirm/cancel, roll back, inspect.

Every turn answers 200 with the ordered event list; failures travel as
error events. Only malformed bodies are rejected (422).
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import Field

from engine import WritePathOrchestrator
from protocol import PlannedCall, events_to_wire
from protocol.base import BaseModel

from app.services.agent import get_orchestrator

router = APIRouter()


class SubmitCallsRequest(BaseModel):
    """Planned calls produced by the intent layer, in execution order."""
    calls: List[PlannedCall]


class ConfirmRequest(BaseModel):
    action: Literal["accept", "cancel"]
    confirmed_name: Optional[str] = None  # required for name_input cards


class RollbackRequest(BaseModel):
    target_version_id: Optional[int] = Field(default=None, ge=0)  # None: roll back the last step


def _turn(session_id: str, events: List[Any]) -> Dict[str, Any]:
    return {"sessionId": session_id, "events": events_to_wire(events)}


@router.post("/sessions/{session_id}/calls")
async def submit_calls(
    session_id: str,
    request: SubmitCallsRequest,
    orchestrator: WritePathOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    events = await orchestrator.submit(session_id, request.calls)
    return _turn(session_id, events)


@router.post("/sessions/{session_id}/confirm")
async def confirm(
    session_id: str,
    request: ConfirmRequest,
    orchestrator: WritePathOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    events = await orchestrator.confirm(session_id, request.action, request.confirmed_name)
    return _turn(session_id, events)


@router.post("/sessions/{session_id}/rollback")
async def rollback(
    session_id: str,
    request: Optional[RollbackRequest] = Body(default=None),
    orchestrator: WritePathOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    if request is None or request.target_version_id is None:
        events = await orchestrator.rollback_last(session_id)
    else:
        events = await orchestrator.rollback_to_version(session_id, request.target_version_id)
    return _turn(session_id, events)


@router.get("/sessions/{session_id}/timeline")
async def timeline(
    session_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    orchestrator: WritePathOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    entries = await orchestrator.timeline(session_id, limit)
    return {
        "sessionId": session_id,
        "currentVersion": await orchestrator.changelog.current_version(session_id),
        "items": [entry.to_wire() for entry in entries],
    }


@router.get("/sessions/{session_id}/pending")
async def pending(
    session_id: str,
    orchestrator: WritePathOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    current = orchestrator.pending(session_id)
    return {"sessionId": session_id, "pending": current.to_wire() if current else None}


@router.get("/sessions/{session_id}/messages")
async def messages(
    session_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    orchestrator: WritePathOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return {"sessionId": session_id, "items": orchestrator.history(session_id, limit)}
