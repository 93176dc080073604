"""
Risk Assessor - risk tier per batch and the confirmation card shown to the operator.

Tier rules:
- start LOW
- any update raises to MEDIUM, any delete forces HIGH (position in batch irrelevant)
- the preprocessor override can only raise the tier, never lower it

Card rules (keyed off one call, normally the first of the batch):
- delete                          -> NameInputCard (always HIGH)
- update with a known prior state -> DiffCard
- anything else                   -> SummaryCard (nothing to diff against)
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from protocol import (
    ChangeType,
    DiffCard,
    DiffChange,
    NameInputCard,
    OperationType,
    PlannedCall,
    ResourceType,
    RiskLevel,
    SummaryCard,
    SummaryField,
    is_write_tool,
    operation_type_of,
    resource_type_of,
)

from .models import PreprocessorVerdict

DEFAULT_PROTOCOL = "openai/v1"
DEFAULT_DELETE_WARNING = "Proceed with care. A deletion can be undone with a rollback."

_RESOURCE_LABELS = {
    ResourceType.PROVIDER: "AI provider",
    ResourceType.ROUTE: "AI route",
}


def mask_api_key(key: str) -> str:
    """Keep the first and last three characters of a credential."""
    if not key or len(key) <= 8:
        return "••••••••"
    return key[:3] + "•••" + key[-3:]


def assess_risk(batch: Sequence[PlannedCall], verdict: PreprocessorVerdict) -> RiskLevel:
    risk = RiskLevel.LOW
    for call in batch:
        if not is_write_tool(call.tool_name):
            continue
        operation = operation_type_of(call.tool_name)
        if operation == OperationType.DELETE:
            risk = RiskLevel.HIGH
        elif operation == OperationType.UPDATE:
            risk = risk.raise_to(RiskLevel.MEDIUM)
    return risk.raise_to(verdict.risk_override)


def build_confirm_card(
    tool_name: str,
    args: Mapping[str, Any],
    current_state: Optional[Mapping[str, Any]],
    risk: RiskLevel,
    warnings: Optional[List[str]] = None,
):
    """Build the card for one planned call; see module docstring for routing."""
    operation = operation_type_of(tool_name) or OperationType.CREATE
    resource_type = resource_type_of(tool_name)
    resource_name = args.get("name") or "unknown"

    if operation == OperationType.DELETE:
        return _build_name_input_card(resource_type, resource_name, current_state, warnings)
    if operation == OperationType.UPDATE and current_state:
        return _build_diff_card(resource_type, args, current_state, risk, warnings)
    return _build_summary_card(resource_type, args)


def _upstream_pairs(upstreams: Any) -> List[Dict[str, Any]]:
    pairs = []
    for upstream in upstreams or []:
        if isinstance(upstream, Mapping):
            pairs.append({"provider": upstream.get("provider"), "weight": upstream.get("weight")})
        else:
            pairs.append({"provider": getattr(upstream, "provider", None), "weight": getattr(upstream, "weight", None)})
    return pairs


def describe_upstreams(upstreams: Any, separator: str = " + ", spaced: bool = True) -> str:
    fmt = "{provider} ({weight}%)" if spaced else "{provider}({weight}%)"
    return separator.join(fmt.format(**u) for u in _upstream_pairs(upstreams))


def _fallback_enabled(args: Mapping[str, Any]) -> bool:
    fallback = args.get("fallbackConfig") or args.get("fallback_config") or {}
    if isinstance(fallback, Mapping):
        return bool(fallback.get("enabled"))
    return bool(getattr(fallback, "enabled", False))


def _build_summary_card(resource_type: ResourceType, args: Mapping[str, Any]) -> SummaryCard:
    resource_name = args.get("name") or ""
    fields: List[SummaryField] = []

    if resource_type == ResourceType.PROVIDER:
        fields.append(SummaryField(label="Name", value=resource_name))
        fields.append(SummaryField(label="Type", value=args.get("type") or ""))
        fields.append(SummaryField(label="Protocol", value=args.get("protocol") or DEFAULT_PROTOCOL))
        tokens = args.get("tokens") or []
        if tokens:
            fields.append(SummaryField(label="API key", value=", ".join(mask_api_key(t) for t in tokens)))
    else:
        fields.append(SummaryField(label="Route name", value=resource_name))
        if args.get("upstreams"):
            fields.append(SummaryField(label="Upstreams", value=describe_upstreams(args["upstreams"])))
        fields.append(SummaryField(label="Fallback", value="enabled" if _fallback_enabled(args) else "disabled"))

    return SummaryCard(
        risk_level=RiskLevel.LOW,
        title=f"Create {_RESOURCE_LABELS[resource_type]}",
        resource_type=resource_type.value,
        resource_name=resource_name,
        fields=fields,
    )


def diff_upstreams(old_upstreams: Any, new_upstreams: Any) -> List[DiffChange]:
    """Field-aware route diff: added / modified per new upstream, removed per dropped one."""
    old = _upstream_pairs(old_upstreams)
    new = _upstream_pairs(new_upstreams)
    old_by_provider = {u["provider"]: u for u in old}
    new_providers = {u["provider"] for u in new}
    changes: List[DiffChange] = []

    for upstream in new:
        previous = old_by_provider.get(upstream["provider"])
        if previous is None:
            changes.append(DiffChange(
                field=f"{upstream['provider']} weight",
                old_value="none",
                new_value=f"{upstream['weight']}%",
                change_type=ChangeType.ADDED,
            ))
        elif previous["weight"] != upstream["weight"]:
            changes.append(DiffChange(
                field=f"{upstream['provider']} weight",
                old_value=f"{previous['weight']}%",
                new_value=f"{upstream['weight']}%",
                change_type=ChangeType.MODIFIED,
            ))

    for upstream in old:
        if upstream["provider"] not in new_providers:
            changes.append(DiffChange(
                field=f"{upstream['provider']} weight",
                old_value=f"{upstream['weight']}%",
                new_value="removed",
                change_type=ChangeType.REMOVED,
            ))
    return changes


def _build_diff_card(
    resource_type: ResourceType,
    args: Mapping[str, Any],
    current_state: Mapping[str, Any],
    risk: RiskLevel,
    warnings: Optional[List[str]],
) -> DiffCard:
    resource_name = args.get("name") or ""
    changes: List[DiffChange] = []

    if (
        resource_type == ResourceType.ROUTE
        and args.get("upstreams") is not None
        and current_state.get("upstreams") is not None
    ):
        changes.extend(diff_upstreams(current_state["upstreams"], args["upstreams"]))

    if resource_type == ResourceType.PROVIDER and args.get("tokens"):
        changes.append(DiffChange(
            field="API key", old_value="(configured)", new_value="(updated)", change_type=ChangeType.MODIFIED,
        ))

    # never show an empty diff
    if not changes:
        changes.append(DiffChange(
            field="configuration", old_value="(current)", new_value="(updated)", change_type=ChangeType.MODIFIED,
        ))

    return DiffCard(
        risk_level=RiskLevel.MEDIUM.raise_to(risk),
        title=f"Update {_RESOURCE_LABELS[resource_type]}: {resource_name}",
        resource_type=resource_type.value,
        resource_name=resource_name,
        changes=changes,
        warnings=list(warnings or []),
    )


def _build_name_input_card(
    resource_type: ResourceType,
    resource_name: str,
    current_state: Optional[Mapping[str, Any]],
    warnings: Optional[List[str]],
) -> NameInputCard:
    impact = "Its configuration will be removed."
    if resource_type == ResourceType.ROUTE and current_state and current_state.get("upstreams"):
        traffic = describe_upstreams(current_state["upstreams"], spaced=False)
        impact = f"This route currently carries traffic: {traffic}. Matching requests can no longer be routed after deletion."

    return NameInputCard(
        risk_level=RiskLevel.HIGH,
        title=f"Delete {_RESOURCE_LABELS[resource_type]}: {resource_name}",
        resource_type=resource_type.value,
        resource_name=resource_name,
        impact_description=impact,
        warnings=list(warnings) if warnings else [DEFAULT_DELETE_WARNING],
    )
