"""ResourceClient interface: the only way the write path touches the gateway."""

from __future__ import annotations

from typing import Any, Dict, Protocol

from protocol import ToolResponse


class ResourceClient(Protocol):
    """invoke(tool_name, args) -> {success, data?, error?}; failures are returned, never raised."""

    async def invoke(self, tool_name: str, args: Dict[str, Any]) -> ToolResponse:
        ...
