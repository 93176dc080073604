"""ToolMeta and the gateway tool catalog: five tools per resource, read or write."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from protocol import READ_TOOLS, is_write_tool

_NAME_ONLY = {
    "type": "object",
    "properties": {"name": {"type": "string"}},
    "required": ["name"],
}

_NO_ARGS: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

_UPSTREAMS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "provider": {"type": "string"},
            "weight": {"type": "number"},
            "modelMapping": {"type": "object"},
        },
    },
}


@dataclass
class ToolMeta:
    """Tool metadata: name, description, schema, side_effects, risk_level, requires_confirm."""

    name: str
    description: str
    input_schema: Dict[str, Any]
    side_effects: bool = False
    risk_level: str = "read_only"  # read_only | write
    requires_confirm: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _meta(name: str, description: str, input_schema: Dict[str, Any]) -> ToolMeta:
    write = is_write_tool(name)
    return ToolMeta(
        name=name,
        description=description,
        input_schema=input_schema,
        side_effects=write,
        risk_level="write" if write else "read_only",
        requires_confirm=write,
    )


GATEWAY_TOOLS: List[ToolMeta] = [
    _meta("list-ai-providers", "List all configured AI/LLM providers", _NO_ARGS),
    _meta("get-ai-provider", "Get the configuration of one AI provider", _NAME_ONLY),
    _meta(
        "add-ai-provider",
        "Add a new AI/LLM provider",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "type": {"type": "string"},
                "tokens": {"type": "array", "items": {"type": "string"}},
                "protocol": {"type": "string", "enum": ["openai/v1", "original"]},
            },
            "required": ["name", "type", "tokens"],
        },
    ),
    _meta(
        "update-ai-provider",
        "Update an existing AI provider, e.g. rotate its API key",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "type": {"type": "string"},
                "tokens": {"type": "array", "items": {"type": "string"}},
                "protocol": {"type": "string"},
                "tokenFailoverConfig": {"type": "object"},
            },
            "required": ["name"],
        },
    ),
    _meta("delete-ai-provider", "Delete an AI provider no route references any more", _NAME_ONLY),
    _meta("list-ai-routes", "List all AI routes", _NO_ARGS),
    _meta("get-ai-route", "Get the configuration of one AI route", _NAME_ONLY),
    _meta(
        "add-ai-route",
        "Create an AI route; upstream weights must sum to 100",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "upstreams": _UPSTREAMS,
                "fallbackConfig": {"type": "object"},
            },
            "required": ["name", "upstreams"],
        },
    ),
    _meta(
        "update-ai-route",
        "Update an AI route's upstreams or fallback",
        {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "upstreams": _UPSTREAMS,
                "fallbackConfig": {"type": "object"},
            },
            "required": ["name"],
        },
    ),
    _meta("delete-ai-route", "Delete an AI route", _NAME_ONLY),
]

_BY_NAME: Dict[str, ToolMeta] = {meta.name: meta for meta in GATEWAY_TOOLS}


def get_tool(name: str) -> Optional[ToolMeta]:
    return _BY_NAME.get(name)


def list_tools(read_only: bool = False) -> List[ToolMeta]:
    if read_only:
        return [meta for meta in GATEWAY_TOOLS if meta.name in READ_TOOLS]
    return list(GATEWAY_TOOLS)
