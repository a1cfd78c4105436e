"""Canonical model names.

``canonicalize`` turns a raw model name advertised by a channel into the
name used as the key of the model mapping. The smart matching part is an
ordered tuple of stages; every stage is a pure
``(value, config, channel_label) -> value`` function that returns its input
untouched when its config flag turns it off.

Two pipelines are built from the same rule tables:

- ``MAIN_STAGES`` is the full engine,
- ``COMPANION_STAGES`` is the subset the in-page companion tool runs. It skips
  the short-date reorder, the name formatter and the numeric-suffix rule.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import Final

from .rules import PREFIX_RULES, SUFFIX_RULES
from .stages import (
    append_channel_suffix,
    collapse_separators,
    drop_date_before_stage,
    format_claude_name,
    strip_leading_identifiers,
    strip_namespace,
    strip_numeric_suffix,
    strip_rules,
    strip_short_date_before_stage,
    strip_suffix_chain,
    trim_model_name,
)
from .user_rules import RuleSet

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CanonicalizationConfig:
    smart_match: bool = True
    keep_date: bool = False
    keep_version: bool = False
    keep_namespace: bool = False
    format_name: bool = False
    enable_custom_rules: bool = False
    auto_channel_suffix: bool = False
    rules: RuleSet = field(default_factory=RuleSet, compare=False)


DEFAULT_CONFIG: Final[CanonicalizationConfig] = CanonicalizationConfig()

type Stage = Callable[[str, CanonicalizationConfig, str | None], str]


def strip_prefix_stage(value: str, config: CanonicalizationConfig, channel_label: str | None) -> str:
    return trim_model_name(strip_rules(value, PREFIX_RULES))


def strip_namespace_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    if config.keep_namespace:
        return value
    return trim_model_name(strip_namespace(value))


def strip_leading_identifier_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    return trim_model_name(strip_leading_identifiers(value))


def strip_channel_suffix_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    return trim_model_name(strip_rules(value, SUFFIX_RULES.channel))


def short_date_reorder_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    if config.keep_date:
        return value
    return trim_model_name(strip_short_date_before_stage(value))


def date_stage(value: str, config: CanonicalizationConfig, channel_label: str | None) -> str:
    """Keep a stage token that follows a full date, then strip trailing dates."""

    if config.keep_date:
        return value
    return trim_model_name(strip_rules(drop_date_before_stage(value), SUFFIX_RULES.date))


def suffix_chain_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    if config.keep_version:
        return value
    return strip_suffix_chain(value, SUFFIX_RULES.chain)


def second_date_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    # Stripping a stage token can expose a date that was not trailing before.
    if config.keep_date:
        return value
    return trim_model_name(strip_rules(value, SUFFIX_RULES.date))


def format_name_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    if not config.format_name:
        return value
    return trim_model_name(format_claude_name(value))


def numeric_suffix_stage(
    value: str, config: CanonicalizationConfig, channel_label: str | None
) -> str:
    return trim_model_name(
        strip_numeric_suffix(value, keep_date=config.keep_date, keep_version=config.keep_version)
    )


def collapse_stage(value: str, config: CanonicalizationConfig, channel_label: str | None) -> str:
    return trim_model_name(collapse_separators(value))


MAIN_STAGES: Final[tuple[Stage, ...]] = (
    strip_prefix_stage,
    strip_namespace_stage,
    strip_leading_identifier_stage,
    strip_channel_suffix_stage,
    short_date_reorder_stage,
    date_stage,
    suffix_chain_stage,
    second_date_stage,
    format_name_stage,
    numeric_suffix_stage,
    collapse_stage,
)

COMPANION_STAGES: Final[tuple[Stage, ...]] = (
    strip_prefix_stage,
    strip_namespace_stage,
    strip_leading_identifier_stage,
    strip_channel_suffix_stage,
    date_stage,
    suffix_chain_stage,
    second_date_stage,
    collapse_stage,
)


def run_stages(
    raw: str,
    stages: tuple[Stage, ...],
    config: CanonicalizationConfig = DEFAULT_CONFIG,
    channel_label: str | None = None,
) -> str:
    """Run ``stages`` over ``raw`` until a full pass changes nothing.

    A later stage can uncover text an earlier one strips (dropping a numeric
    suffix can leave a trailing stage token), so a single pass is not enough
    to reach a canonical name. An empty outcome falls back to ``raw``.
    """

    value = trim_model_name(raw.strip())
    if not value:
        return raw
    updated = True
    while updated:
        previous = value
        for stage in stages:
            value = stage(value, config, channel_label)
        if not value:
            return raw
        updated = value != previous
    return value


def smart_match(raw: str, config: CanonicalizationConfig = DEFAULT_CONFIG) -> str:
    """Exact name-match overrides first, otherwise the main stage pipeline."""

    overridden = config.rules.apply_name_match(raw)
    if overridden != raw:
        return overridden
    return run_stages(raw, MAIN_STAGES, config)


def canonicalize(
    raw: str,
    config: CanonicalizationConfig = DEFAULT_CONFIG,
    channel_label: str | None = None,
) -> str:
    result = raw
    if config.smart_match:
        result = smart_match(result, config)
    if config.enable_custom_rules:
        result = config.rules.apply_custom(result) or result
    if config.auto_channel_suffix:
        if channel_label:
            result = append_channel_suffix(result, channel_label)
        else:
            log.debug(f"No channel label for {raw!r}; skipping channel suffix")
    return result or raw


def companion_canonicalize(raw: str, config: CanonicalizationConfig = DEFAULT_CONFIG) -> str:
    return run_stages(raw, COMPANION_STAGES, config)


class NameCanonicalizer:
    """Callable wrapper binding a ``CanonicalizationConfig``."""

    def __init__(self, config: CanonicalizationConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def __call__(self, raw: str, channel_label: str | None = None) -> str:
        return canonicalize(raw, self.config, channel_label)


__all__ = [
    "COMPANION_STAGES",
    "DEFAULT_CONFIG",
    "MAIN_STAGES",
    "CanonicalizationConfig",
    "NameCanonicalizer",
    "Stage",
    "canonicalize",
    "companion_canonicalize",
    "run_stages",
    "smart_match",
]
