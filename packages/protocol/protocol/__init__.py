from protocol.cards import (
    ChangeType,
    ConfirmCard,
    DiffCard,
    DiffChange,
    NameInputCard,
    RiskLevel,
    SummaryCard,
    SummaryField,
    parse_card,
)
from protocol.events import (
    AgentError,
    AgentEvent,
    ConfirmCardEvent,
    DashboardEvent,
    DashboardUpdateEvent,
    ErrorCode,
    ErrorEvent,
    RollbackHintEvent,
    TextEvent,
    ToolCallResult,
    ToolResultEvent,
    ToolStartEvent,
    events_to_wire,
)
from protocol.gateway import (
    READ_TOOLS,
    WRITE_TOOLS,
    AIProvider,
    AIRoute,
    FallbackConfig,
    OperationType,
    ResourceType,
    UnknownToolError,
    Upstream,
    get_tool_for,
    is_read_tool,
    is_write_tool,
    operation_type_of,
    resource_type_of,
    write_tool_for,
)
from protocol.tools import PlannedCall, ToolResponse


def schema_for(model: type) -> dict:
    """Lightweight JSON schema helper."""
    return model.model_json_schema(by_alias=True)


__all__ = [
    "AIProvider",
    "AIRoute",
    "AgentError",
    "AgentEvent",
    "ChangeType",
    "ConfirmCard",
    "ConfirmCardEvent",
    "DashboardEvent",
    "DashboardUpdateEvent",
    "DiffCard",
    "DiffChange",
    "ErrorCode",
    "ErrorEvent",
    "FallbackConfig",
    "NameInputCard",
    "OperationType",
    "PlannedCall",
    "READ_TOOLS",
    "ResourceType",
    "RiskLevel",
    "RollbackHintEvent",
    "SummaryCard",
    "SummaryField",
    "TextEvent",
    "ToolCallResult",
    "ToolResponse",
    "ToolResultEvent",
    "ToolStartEvent",
    "UnknownToolError",
    "Upstream",
    "WRITE_TOOLS",
    "events_to_wire",
    "get_tool_for",
    "is_read_tool",
    "is_write_tool",
    "operation_type_of",
    "parse_card",
    "resource_type_of",
    "schema_for",
    "write_tool_for",
]
