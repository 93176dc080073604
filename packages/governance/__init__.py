"""
Governance Package - safety gate of the write path.

Components:
- preprocessor: ordered static rules over a batch (block / warn / escalate)
- risk: risk tier per batch and the confirmation card for the operator
- models: PreprocessorVerdict, PreprocessorPolicy

Philosophy:
- Governance judges a batch, it never executes it
- A block stops the batch before any side effect
- Risk only ever escalates
"""

from .models import (
    PreprocessorPolicy,
    PreprocessorVerdict
)

from .preprocessor import (
    DEFAULT_POLICIES_PATH,
    DEFAULT_RULES,
    PreprocessorRule,
    StaticRulePreprocessor,
    load_policy
)

from .risk import (
    assess_risk,
    build_confirm_card,
    describe_upstreams,
    diff_upstreams,
    mask_api_key
)

__all__ = [
    # Models
    "PreprocessorPolicy",
    "PreprocessorVerdict",

    # Preprocessor
    "DEFAULT_POLICIES_PATH",
    "DEFAULT_RULES",
    "PreprocessorRule",
    "StaticRulePreprocessor",
    "load_policy",

    # Risk assessor
    "assess_risk",
    "build_confirm_card",
    "describe_upstreams",
    "diff_upstreams",
    "mask_api_key"
]

__version__ = "1.0.0"
