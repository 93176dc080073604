"""
Governance data structures.

- PreprocessorVerdict: outcome of the static rule pass over one batch
- PreprocessorPolicy: rule parameters loaded from policies/*.yaml
"""

from dataclasses import dataclass, field
from typing import List, Optional

from protocol import RiskLevel


@dataclass
class PreprocessorVerdict:
    """
    Verdict for a batch of planned calls.

    allowed=False aborts the batch before any side effect; block_reason
    then says why. An allowed verdict may carry warnings (rule order) and
    a risk override that can only raise the assessed tier.
    """
    allowed: bool
    risk_override: Optional[RiskLevel] = None
    block_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    rule_id: Optional[str] = None  # blocking rule, if any

    @classmethod
    def allow(
        cls,
        risk_override: Optional[RiskLevel] = None,
        warnings: Optional[List[str]] = None
    ) -> "PreprocessorVerdict":
        return cls(allowed=True, risk_override=risk_override, warnings=list(warnings or []))

    @classmethod
    def block(cls, reason: str, rule_id: Optional[str] = None) -> "PreprocessorVerdict":
        return cls(allowed=False, block_reason=reason, rule_id=rule_id)

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "riskOverride": self.risk_override.value if self.risk_override else None,
            "blockReason": self.block_reason,
            "warnings": list(self.warnings),
        }


@dataclass
class PreprocessorPolicy:
    """Rule parameters. Defaults mirror policies/default.yaml."""
    required_weight_sum: int = 100
    full_switch_weights: List[int] = field(default_factory=lambda: [0, 100])
    production_route_pattern: str = "prod|production|main"
    batch_size_threshold: int = 3

    @classmethod
    def from_dict(cls, data: dict) -> "PreprocessorPolicy":
        defaults = cls()
        weight_sum = data.get("weight_sum") or {}
        full_switch = data.get("full_traffic_switch") or {}
        production = data.get("production_route") or {}
        batch = data.get("batch_size") or {}
        return cls(
            required_weight_sum=int(weight_sum.get("required", defaults.required_weight_sum)),
            full_switch_weights=[int(w) for w in full_switch.get("weights", defaults.full_switch_weights)],
            production_route_pattern=str(production.get("pattern", defaults.production_route_pattern)),
            batch_size_threshold=int(batch.get("threshold", defaults.batch_size_threshold)),
        )
