"""Per-session conversation memory: bounded message log and recent resource references."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

MAX_MESSAGES = 100
TRIMMED_MESSAGES = 80
MAX_RESOURCE_REFS = 20
TRIMMED_RESOURCE_REFS = 10
CONTEXT_MESSAGES = 20

Role = Literal["user", "assistant", "system"]


@dataclass
class ChatMessage:
    role: Role
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class ResourceReference:
    type: str  # ai-provider | ai-route
    name: str
    timestamp: float = field(default_factory=time.time)


class ConversationMemory:
    def __init__(self, session_id: str):
        self.session_id = session_id
        self.messages: List[ChatMessage] = []
        self.recent_resources: List[ResourceReference] = []

    def add_message(self, role: Role, content: str, metadata: Optional[Dict[str, Any]] = None) -> ChatMessage:
        message = ChatMessage(role=role, content=content, metadata=metadata)
        self.messages.append(message)
        if len(self.messages) > MAX_MESSAGES:
            self.messages = self.messages[-TRIMMED_MESSAGES:]
        return message

    def context_messages(self, limit: int = CONTEXT_MESSAGES) -> List[Dict[str, str]]:
        """Last messages as {role, content}, oldest first."""
        return [{"role": m.role, "content": m.content} for m in self.messages[-limit:]]

    def add_resource_reference(self, resource_type: str, name: str) -> None:
        self.recent_resources.append(ResourceReference(type=resource_type, name=name))
        if len(self.recent_resources) > MAX_RESOURCE_REFS:
            self.recent_resources = self.recent_resources[-TRIMMED_RESOURCE_REFS:]

    def resolve_reference(self, reference: str) -> Optional[ResourceReference]:
        """Most recent resource matching "route" / "provider", else the most recent of any kind."""
        if not self.recent_resources:
            return None
        lowered = reference.lower()
        if "route" in lowered:
            wanted = "ai-route"
        elif "provider" in lowered:
            wanted = "ai-provider"
        else:
            return self.recent_resources[-1]
        for ref in reversed(self.recent_resources):
            if ref.type == wanted:
                return ref
        return None
