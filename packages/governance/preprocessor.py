"""
Static Rule Preprocessor - first gate of the write path.

Philosophy: the preprocessor is a JUDGE of the batch, it never executes.
- Pure function of the batch: no I/O, nothing retained between calls
- Rules run in a fixed order
- First blocking rule short-circuits (its reason is surfaced, nothing else)
- Otherwise: warnings aggregated in rule order, highest risk override wins

Rules:
    R001 full traffic switch      -> allow, escalate HIGH, warn
    R002 production route delete  -> allow, escalate HIGH, warn
    R003 credential rotation      -> allow, warn
    R005 upstream weight sum      -> BLOCK when the sum is not exactly 100
    R007 batch size               -> allow, warn
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence

import yaml

from protocol import PlannedCall, RiskLevel, is_write_tool

from .models import PreprocessorPolicy, PreprocessorVerdict

logger = logging.getLogger(__name__)

DEFAULT_POLICIES_PATH = Path(__file__).parent / "policies" / "default.yaml"

RuleFn = Callable[[Sequence[PlannedCall], PreprocessorPolicy], Optional[PreprocessorVerdict]]


@dataclass(frozen=True)
class PreprocessorRule:
    id: str
    description: str
    evaluate: RuleFn


def _upstreams_of(call: PlannedCall) -> Optional[List[Any]]:
    upstreams = call.args.get("upstreams")
    if upstreams is None:
        return None
    if isinstance(upstreams, list):
        return upstreams
    return [upstreams]


def _weight_of(upstream: Any) -> Optional[float]:
    if isinstance(upstream, dict):
        weight = upstream.get("weight")
    else:
        weight = getattr(upstream, "weight", None)
    if isinstance(weight, (int, float)) and not isinstance(weight, bool):
        return weight
    return None


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def full_traffic_switch(batch: Sequence[PlannedCall], policy: PreprocessorPolicy) -> Optional[PreprocessorVerdict]:
    for call in batch:
        if call.tool_name != "update-ai-route":
            continue
        upstreams = _upstreams_of(call) or []
        weights = [_weight_of(u) for u in upstreams]
        if any(w is not None and w in policy.full_switch_weights for w in weights):
            return PreprocessorVerdict.allow(
                risk_override=RiskLevel.HIGH,
                warnings=["This will route all traffic to a single upstream. Proceed with care."],
            )
    return None


def production_route_deletion(batch: Sequence[PlannedCall], policy: PreprocessorPolicy) -> Optional[PreprocessorVerdict]:
    pattern = re.compile(policy.production_route_pattern, re.IGNORECASE)
    for call in batch:
        if call.tool_name != "delete-ai-route":
            continue
        name = call.resource_name
        if name and pattern.search(name):
            return PreprocessorVerdict.allow(
                risk_override=RiskLevel.HIGH,
                warnings=[
                    f'Route "{name}" looks like a production route. '
                    "Make sure it is not carrying live traffic before deleting it."
                ],
            )
    return None


def credential_rotation(batch: Sequence[PlannedCall], policy: PreprocessorPolicy) -> Optional[PreprocessorVerdict]:
    for call in batch:
        if call.tool_name == "update-ai-provider" and call.args.get("tokens") is not None:
            return PreprocessorVerdict.allow(
                warnings=["A credential is about to change. Make sure the new API key is valid."],
            )
    return None


def weight_sum(batch: Sequence[PlannedCall], policy: PreprocessorPolicy) -> Optional[PreprocessorVerdict]:
    for call in batch:
        if call.tool_name not in ("add-ai-route", "update-ai-route"):
            continue
        upstreams = _upstreams_of(call)
        if upstreams is None:
            continue
        total = sum(_weight_of(u) or 0 for u in upstreams)
        if total != policy.required_weight_sum:
            return PreprocessorVerdict.block(
                f"Upstream weights sum to {_format_number(total)}, "
                f"they must sum to exactly {policy.required_weight_sum}. Adjust the weights and retry.",
            )
    return None


def batch_size(batch: Sequence[PlannedCall], policy: PreprocessorPolicy) -> Optional[PreprocessorVerdict]:
    write_count = sum(1 for call in batch if is_write_tool(call.tool_name))
    if write_count >= policy.batch_size_threshold:
        return PreprocessorVerdict.allow(
            warnings=[f"This request contains {write_count} write operations (batch operation)."],
        )
    return None


DEFAULT_RULES: List[PreprocessorRule] = [
    PreprocessorRule("R001", "full traffic switch", full_traffic_switch),
    PreprocessorRule("R002", "production route deletion", production_route_deletion),
    PreprocessorRule("R003", "credential rotation", credential_rotation),
    PreprocessorRule("R005", "upstream weight sum", weight_sum),
    PreprocessorRule("R007", "batch size", batch_size),
]


def load_policy(policies_path: Path) -> PreprocessorPolicy:
    """Load rule parameters; multiple YAML documents are merged in order."""
    if not policies_path.exists():
        raise FileNotFoundError(f"Policies not found: {policies_path}")

    merged: dict = {}
    for doc in yaml.safe_load_all(policies_path.read_text(encoding="utf-8")):
        if isinstance(doc, dict):
            merged.update(doc)
    return PreprocessorPolicy.from_dict(merged)


class StaticRulePreprocessor:
    """
    Runs the ordered rule list over a batch of planned calls.

    Flow:
        1. Load policy parameters (YAML) once at construction
        2. evaluate(batch) -> PreprocessorVerdict
    """

    def __init__(
        self,
        policies_path: Optional[Path] = None,
        policy: Optional[PreprocessorPolicy] = None,
        rules: Optional[Iterable[PreprocessorRule]] = None
    ):
        """
        Args:
            policies_path: YAML policy file (default: policies/default.yaml)
            policy: Explicit parameters; skips loading the YAML file
            rules: Rule list override (order is evaluation order)
        """
        if policy is None:
            self.policies_path = Path(policies_path) if policies_path else DEFAULT_POLICIES_PATH
            self.policy = load_policy(self.policies_path)
            self.policy_snapshot_hash = hashlib.sha256(self.policies_path.read_bytes()).hexdigest()
        else:
            self.policies_path = None
            self.policy = policy
            self.policy_snapshot_hash = None
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def evaluate(self, batch: Sequence[PlannedCall]) -> PreprocessorVerdict:
        warnings: List[str] = []
        highest: Optional[RiskLevel] = None

        for rule in self.rules:
            outcome = rule.evaluate(batch, self.policy)
            if outcome is None:
                continue
            if not outcome.allowed:
                outcome.rule_id = rule.id
                logger.info("preprocessor.blocked rule=%s reason=%s", rule.id, outcome.block_reason)
                return outcome
            if outcome.risk_override is not None:
                highest = outcome.risk_override if highest is None else highest.raise_to(outcome.risk_override)
            warnings.extend(outcome.warnings)

        if warnings or highest:
            logger.debug("preprocessor.allowed risk_override=%s warnings=%d", highest, len(warnings))
        return PreprocessorVerdict.allow(risk_override=highest, warnings=warnings)
