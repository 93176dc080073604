"""
Gateway Agent Engine - the write path control loop.

Architecture:
    PlannedCall batch
        ↓
    StaticRulePreprocessor → blocked? stop
        ↓
    before-state fetch + Risk Assessor → ConfirmCard (AwaitingConfirmation)
        ↓
    confirm → sequential execution → ChangelogManager + rollback hints
        ↓
    RollbackExecutor (on demand)
"""

from .formatting import change_summary, describe_call, format_plan, format_tool_result

from .lanes import SessionLanes

from .memory import ChatMessage, ConversationMemory, ResourceReference

from .orchestrator import NOTHING_TO_CONFIRM, WritePathOrchestrator

from .session import PendingConfirmation, SessionState, SessionStore

__all__ = [
    "ChatMessage",
    "ConversationMemory",
    "NOTHING_TO_CONFIRM",
    "PendingConfirmation",
    "ResourceReference",
    "SessionLanes",
    "SessionState",
    "SessionStore",
    "WritePathOrchestrator",
    "change_summary",
    "describe_call",
    "format_plan",
    "format_tool_result",
]
