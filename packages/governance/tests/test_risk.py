"""
Tests for the Risk Assessor

Validates:
- Tier derivation from operation kinds
- Override only raises, never lowers
- Card routing (summary / diff / name_input)
- Field-aware route diffs and the non-empty diff guarantee
- Credential masking
"""

import pytest

from governance import (
    PreprocessorVerdict,
    assess_risk,
    build_confirm_card,
    mask_api_key
)
from protocol import (
    ChangeType,
    DiffCard,
    NameInputCard,
    PlannedCall,
    RiskLevel,
    SummaryCard
)


def call(tool_name, **args):
    return PlannedCall(tool_name=tool_name, args=args)


ROUTE_70_30 = {
    "name": "r1",
    "upstreams": [{"provider": "openai", "weight": 70}, {"provider": "deepseek", "weight": 30}],
}


# ==================== Tier ====================

def test_creates_are_low():
    batch = [call("add-ai-provider", name="p1"), call("add-ai-route", name="r1")]
    assert assess_risk(batch, PreprocessorVerdict.allow()) == RiskLevel.LOW


def test_update_is_medium():
    assert assess_risk([call("update-ai-route", name="r1")], PreprocessorVerdict.allow()) == RiskLevel.MEDIUM


def test_delete_wins_regardless_of_position():
    batch = [call("delete-ai-provider", name="p1"), call("update-ai-route", name="r1")]
    assert assess_risk(batch, PreprocessorVerdict.allow()) == RiskLevel.HIGH


def test_read_calls_are_ignored():
    assert assess_risk([call("list-ai-routes")], PreprocessorVerdict.allow()) == RiskLevel.LOW


@pytest.mark.parametrize("tool,override,expected", [
    ("add-ai-route", RiskLevel.MEDIUM, RiskLevel.MEDIUM),
    ("add-ai-route", RiskLevel.HIGH, RiskLevel.HIGH),
    ("update-ai-route", RiskLevel.HIGH, RiskLevel.HIGH),
    ("delete-ai-route", RiskLevel.MEDIUM, RiskLevel.HIGH),
])
def test_override_only_raises(tool, override, expected):
    verdict = PreprocessorVerdict.allow(risk_override=override)
    assert assess_risk([call(tool, name="x")], verdict) == expected


# ==================== Cards ====================

def test_create_route_builds_summary_card():
    card = build_confirm_card("add-ai-route", ROUTE_70_30, None, RiskLevel.LOW)

    assert isinstance(card, SummaryCard)
    assert card.risk_level == RiskLevel.LOW
    assert card.resource_type == "ai-route"
    values = {f.label: f.value for f in card.fields}
    assert values["Upstreams"] == "openai (70%) + deepseek (30%)"
    assert values["Fallback"] == "disabled"


def test_create_provider_masks_tokens():
    card = build_confirm_card(
        "add-ai-provider",
        {"name": "openai", "type": "openai", "tokens": ["sk-abcdefghijklmnop"]},
        None,
        RiskLevel.LOW,
    )
    values = {f.label: f.value for f in card.fields}

    assert values["Protocol"] == "openai/v1"
    assert values["API key"] == "sk-•••nop"
    assert "abcdefghijklmnop" not in card.model_dump_json()


def test_full_switch_diff_rows():
    """70/30 -> openai 100: one modified row, one removed row."""
    card = build_confirm_card(
        "update-ai-route",
        {"name": "r1", "upstreams": [{"provider": "openai", "weight": 100}]},
        ROUTE_70_30,
        RiskLevel.HIGH,
        ["This will route all traffic to a single upstream. Proceed with care."],
    )

    assert isinstance(card, DiffCard)
    assert card.risk_level == RiskLevel.HIGH
    assert [(c.field, c.old_value, c.new_value, c.change_type) for c in card.changes] == [
        ("openai weight", "70%", "100%", ChangeType.MODIFIED),
        ("deepseek weight", "30%", "removed", ChangeType.REMOVED),
    ]
    assert card.warnings


def test_added_upstream_row():
    card = build_confirm_card(
        "update-ai-route",
        {"name": "r1", "upstreams": [
            {"provider": "openai", "weight": 70},
            {"provider": "deepseek", "weight": 20},
            {"provider": "qwen", "weight": 10},
        ]},
        ROUTE_70_30,
        RiskLevel.MEDIUM,
    )

    assert [(c.field, c.change_type) for c in card.changes] == [
        ("deepseek weight", ChangeType.MODIFIED),
        ("qwen weight", ChangeType.ADDED),
    ]


def test_empty_current_upstreams_still_diffed():
    """An existing route with no upstreams yields one added row per new upstream."""
    card = build_confirm_card(
        "update-ai-route",
        {"name": "r1", "upstreams": [{"provider": "openai", "weight": 100}]},
        {"name": "r1", "upstreams": []},
        RiskLevel.MEDIUM,
    )

    assert isinstance(card, DiffCard)
    assert [(c.field, c.change_type) for c in card.changes] == [("openai weight", ChangeType.ADDED)]
    assert card.changes[0].old_value == "none"


def test_credential_only_update_has_one_row():
    card = build_confirm_card(
        "update-ai-provider",
        {"name": "openai", "tokens": ["sk-new-000000"]},
        {"name": "openai", "type": "openai", "tokens": ["sk-old-000000"]},
        RiskLevel.MEDIUM,
    )

    assert len(card.changes) == 1
    assert card.changes[0].change_type == ChangeType.MODIFIED
    assert card.changes[0].field == "API key"


def test_diff_never_empty():
    card = build_confirm_card("update-ai-route", ROUTE_70_30, ROUTE_70_30, RiskLevel.MEDIUM)

    assert len(card.changes) == 1
    assert card.changes[0].field == "configuration"


def test_update_without_state_falls_back_to_summary():
    card = build_confirm_card("update-ai-route", ROUTE_70_30, None, RiskLevel.MEDIUM)
    assert isinstance(card, SummaryCard)


def test_delete_always_name_input():
    card = build_confirm_card("delete-ai-route", {"name": "prod-main"}, ROUTE_70_30, RiskLevel.LOW)

    assert isinstance(card, NameInputCard)
    assert card.risk_level == RiskLevel.HIGH
    assert card.resource_name == "prod-main"
    assert "openai(70%) + deepseek(30%)" in card.impact_description
    assert card.warnings


# ==================== Masking ====================

@pytest.mark.parametrize("key,masked", [
    ("", "••••••••"),
    ("short", "••••••••"),
    ("12345678", "••••••••"),
    ("sk-1234567890", "sk-•••890"),
])
def test_mask_api_key(key, masked):
    assert mask_api_key(key) == masked
