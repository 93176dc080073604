from typing import Any, Dict, Optional

from pydantic import Field

from protocol.base import BaseModel


class PlannedCall(BaseModel):
    """One tool invocation planned by the intent layer."""

    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)

    @property
    def resource_name(self) -> str:
        name = self.args.get("name")
        return name if isinstance(name, str) else ""


class ToolResponse(BaseModel):
    """Result of ``ResourceClient.invoke``: ``{success, data?, error?}``."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @property
    def payload(self) -> Any:
        """The resource (or resource list) under ``data.data``, if any."""
        if isinstance(self.data, dict):
            return self.data.get("data")
        return None

    @classmethod
    def ok(cls, payload: Any = None, **extra: Any) -> "ToolResponse":
        data: Dict[str, Any] = {"data": payload} if payload is not None else {}
        data.update(extra)
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResponse":
        return cls(success=False, error=error)
