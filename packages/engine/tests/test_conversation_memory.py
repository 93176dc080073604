"""
Tests for ConversationMemory

Validates:
- Message log trimmed to the last 80 once it exceeds 100
- Resource references trimmed to the last 10 once they exceed 20
- resolve_reference by resource kind
"""

from engine import ConversationMemory


def test_message_log_is_trimmed():
    memory = ConversationMemory("s1")
    for i in range(101):
        memory.add_message("user", f"m{i}")

    assert len(memory.messages) == 80
    assert memory.messages[0].content == "m21"
    assert memory.messages[-1].content == "m100"


def test_context_messages_are_the_most_recent():
    memory = ConversationMemory("s1")
    for i in range(30):
        memory.add_message("assistant", f"m{i}")

    context = memory.context_messages()

    assert len(context) == 20
    assert context[0] == {"role": "assistant", "content": "m10"}


def test_resource_references_are_trimmed():
    memory = ConversationMemory("s1")
    for i in range(21):
        memory.add_resource_reference("ai-route", f"r{i}")

    assert [r.name for r in memory.recent_resources] == [f"r{i}" for i in range(11, 21)]


def test_resolve_reference_by_kind():
    memory = ConversationMemory("s1")
    memory.add_resource_reference("ai-route", "r1")
    memory.add_resource_reference("ai-provider", "p1")
    memory.add_resource_reference("ai-route", "r2")

    assert memory.resolve_reference("that route").name == "r2"
    assert memory.resolve_reference("the Provider").name == "p1"
    assert memory.resolve_reference("it").name == "r2"


def test_resolve_reference_empty_or_missing_kind():
    memory = ConversationMemory("s1")
    assert memory.resolve_reference("route") is None

    memory.add_resource_reference("ai-provider", "p1")
    assert memory.resolve_reference("route") is None
