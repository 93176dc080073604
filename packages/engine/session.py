"""Per-session state: Idle (pending is None) or AwaitingConfirmation (exactly one pending)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from protocol import ConfirmCard, PlannedCall, RiskLevel

from .memory import ConversationMemory


@dataclass
class PendingConfirmation:
    calls: List[PlannedCall]
    card: ConfirmCard
    # prior state per call index; None for creates and reads
    before_states: Dict[int, Optional[Dict[str, Any]]]
    risk: RiskLevel
    warnings: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> Dict[str, Any]:
        return {
            "toolCalls": [call.to_wire() for call in self.calls],
            "card": self.card.to_wire(),
            "riskLevel": self.risk.value,
            "warnings": list(self.warnings),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class SessionState:
    session_id: str
    memory: ConversationMemory
    pending: Optional[PendingConfirmation] = None

    @property
    def awaiting_confirmation(self) -> bool:
        return self.pending is not None


class SessionStore:
    """Session-keyed map; exclusivity per key is provided by SessionLanes, not here."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionState] = {}

    def get(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            state = self._sessions[session_id] = SessionState(
                session_id=session_id,
                memory=ConversationMemory(session_id),
            )
        return state

    def peek(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.get(session_id)

    def put(self, state: SessionState) -> None:
        self._sessions[state.session_id] = state

    def drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
