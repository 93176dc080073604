"""Gateway resources (providers, routes) and the tool-name tables around them."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from protocol.base import BaseModel


class ResourceType(str, Enum):
    """资源类型"""
    PROVIDER = "ai-provider"
    ROUTE = "ai-route"


class OperationType(str, Enum):
    """写操作类型"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Upstream(BaseModel):
    """One weighted provider inside a route."""
    provider: str
    weight: int
    model_mapping: Optional[Dict[str, str]] = None


class FallbackConfig(BaseModel):
    enabled: bool = False
    strategy: Optional[str] = None  # RAND | SEQ
    upstreams: List[Upstream] = Field(default_factory=list)
    response_codes: List[str] = Field(default_factory=list)


class AIProvider(BaseModel):
    name: str
    type: str
    protocol: str = "openai/v1"
    tokens: List[str] = Field(default_factory=list)
    version: Optional[str] = None


class AIRoute(BaseModel):
    name: str
    upstreams: List[Upstream] = Field(default_factory=list)
    fallback_config: Optional[FallbackConfig] = None
    version: Optional[str] = None


class UnknownToolError(ValueError):
    """Tool name outside the provider/route catalog."""

    code: str = "UNKNOWN_TOOL"

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


READ_TOOLS = frozenset({
    "list-ai-providers", "get-ai-provider",
    "list-ai-routes", "get-ai-route",
})

WRITE_TOOLS = frozenset({
    "add-ai-provider", "update-ai-provider", "delete-ai-provider",
    "add-ai-route", "update-ai-route", "delete-ai-route",
})

TOOL_TO_RESOURCE_TYPE: Dict[str, ResourceType] = {
    "list-ai-providers": ResourceType.PROVIDER,
    "get-ai-provider": ResourceType.PROVIDER,
    "add-ai-provider": ResourceType.PROVIDER,
    "update-ai-provider": ResourceType.PROVIDER,
    "delete-ai-provider": ResourceType.PROVIDER,
    "list-ai-routes": ResourceType.ROUTE,
    "get-ai-route": ResourceType.ROUTE,
    "add-ai-route": ResourceType.ROUTE,
    "update-ai-route": ResourceType.ROUTE,
    "delete-ai-route": ResourceType.ROUTE,
}

TOOL_TO_OPERATION_TYPE: Dict[str, OperationType] = {
    "add-ai-provider": OperationType.CREATE,
    "update-ai-provider": OperationType.UPDATE,
    "delete-ai-provider": OperationType.DELETE,
    "add-ai-route": OperationType.CREATE,
    "update-ai-route": OperationType.UPDATE,
    "delete-ai-route": OperationType.DELETE,
}

# verb prefix of the tool that performs each operation
_OPERATION_VERBS: Dict[OperationType, str] = {
    OperationType.CREATE: "add",
    OperationType.UPDATE: "update",
    OperationType.DELETE: "delete",
}


def is_write_tool(tool_name: str) -> bool:
    return tool_name in WRITE_TOOLS


def is_read_tool(tool_name: str) -> bool:
    return tool_name in READ_TOOLS


def resource_type_of(tool_name: str) -> ResourceType:
    try:
        return TOOL_TO_RESOURCE_TYPE[tool_name]
    except KeyError:
        raise UnknownToolError(tool_name) from None


def operation_type_of(tool_name: str) -> Optional[OperationType]:
    """create/update/delete for write tools, None for read tools."""
    if tool_name in TOOL_TO_OPERATION_TYPE:
        return TOOL_TO_OPERATION_TYPE[tool_name]
    if tool_name in READ_TOOLS:
        return None
    raise UnknownToolError(tool_name)


def get_tool_for(resource_type: ResourceType) -> str:
    return f"get-{ResourceType(resource_type).value}"


def write_tool_for(operation: OperationType, resource_type: ResourceType) -> str:
    """``(UPDATE, ROUTE)`` -> ``update-ai-route``."""
    return f"{_OPERATION_VERBS[OperationType(operation)]}-{ResourceType(resource_type).value}"
