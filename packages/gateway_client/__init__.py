"""
Gateway Resource Client - the boundary capability the write path consumes.

    invoke(tool_name, args) -> ToolResponse{success, data?, error?}

Implementations:
- InMemoryResourceClient: dict-backed, for local development and tests
- ConsoleResourceClient: httpx against the gateway console REST API
"""

from .base import ResourceClient

from .catalog import GATEWAY_TOOLS, ToolMeta, get_tool, list_tools

from .console import ConsoleResourceClient, build_provider_body

from .memory import InMemoryResourceClient

__all__ = [
    "ConsoleResourceClient",
    "GATEWAY_TOOLS",
    "InMemoryResourceClient",
    "ResourceClient",
    "ToolMeta",
    "build_provider_body",
    "get_tool",
    "list_tools",
]
