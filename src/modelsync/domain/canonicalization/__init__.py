"""Model name canonicalization."""

from __future__ import annotations

from .pipeline import (
    COMPANION_STAGES,
    DEFAULT_CONFIG,
    MAIN_STAGES,
    CanonicalizationConfig,
    NameCanonicalizer,
    Stage,
    canonicalize,
    companion_canonicalize,
    run_stages,
)
from .user_rules import (
    RULE_TEMPLATES,
    CustomRule,
    MergeRule,
    NameMatchRule,
    RuleCondition,
    RuleSet,
    RuleTemplate,
    RuleType,
    list_templates,
)

__all__ = [
    "COMPANION_STAGES",
    "DEFAULT_CONFIG",
    "MAIN_STAGES",
    "RULE_TEMPLATES",
    "CanonicalizationConfig",
    "CustomRule",
    "MergeRule",
    "NameCanonicalizer",
    "NameMatchRule",
    "RuleCondition",
    "RuleSet",
    "RuleTemplate",
    "RuleType",
    "Stage",
    "canonicalize",
    "companion_canonicalize",
    "list_templates",
    "run_stages",
]
