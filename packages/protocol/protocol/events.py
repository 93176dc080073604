"""Event stream produced by the engine for the chat transport.

Every turn returns an ordered list of these; the transport forwards them
without interpreting them.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from protocol.base import BaseModel
from protocol.cards import ConfirmCard


class ErrorCode(str, Enum):
    BLOCKED_BY_POLICY = "BLOCKED_BY_POLICY"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    MISSING_PRIOR_STATE = "MISSING_PRIOR_STATE"
    NAME_MISMATCH = "NAME_MISMATCH"
    PARTIAL_BATCH_FAILURE = "PARTIAL_BATCH_FAILURE"
    TOOL_ERROR = "TOOL_ERROR"
    NOTHING_TO_CONFIRM = "NOTHING_TO_CONFIRM"
    NOTHING_TO_ROLL_BACK = "NOTHING_TO_ROLL_BACK"
    INVALID_TARGET = "INVALID_TARGET"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    EMPTY_BATCH = "EMPTY_BATCH"
    INVALID_ACTION = "INVALID_ACTION"
    CHANGELOG_WRITE_FAILED = "CHANGELOG_WRITE_FAILED"


class AgentError(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[Any] = None


class DashboardEvent(BaseModel):
    event_type: Literal["provider_changed", "route_changed", "operation_added"]
    resource_type: str
    resource_name: Optional[str] = None
    action: Literal["create", "update", "delete", "rollback"]


class ToolCallResult(BaseModel):
    tool_name: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class TextEvent(BaseModel):
    type: Literal["text"] = "text"
    content: str


class ToolStartEvent(BaseModel):
    type: Literal["tool_start"] = "tool_start"
    tool_name: str


class ConfirmCardEvent(BaseModel):
    type: Literal["confirm_card"] = "confirm_card"
    card: ConfirmCard


class ToolResultEvent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    result: ToolCallResult


class RollbackHintEvent(BaseModel):
    type: Literal["rollback_hint"] = "rollback_hint"
    snapshot_id: str
    version_id: int


class DashboardUpdateEvent(BaseModel):
    type: Literal["dashboard_event"] = "dashboard_event"
    event: DashboardEvent


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: AgentError

    @classmethod
    def of(cls, code: ErrorCode, message: str, details: Any = None) -> "ErrorEvent":
        return cls(error=AgentError(code=code, message=message, details=details))


AgentEvent = Annotated[
    Union[
        TextEvent,
        ToolStartEvent,
        ConfirmCardEvent,
        ToolResultEvent,
        RollbackHintEvent,
        DashboardUpdateEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

_EVENTS_ADAPTER: TypeAdapter = TypeAdapter(List[AgentEvent])


def events_to_wire(events: List[Any]) -> List[dict]:
    return _EVENTS_ADAPTER.dump_python(events, mode="json", by_alias=True, exclude_none=True)
