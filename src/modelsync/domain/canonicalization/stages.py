"""Pure string transformations used by the canonicalization pipelines."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .rules import (
    CHANNEL_LABEL_INVALID,
    CLAUDE_VARIANT_FIRST,
    CLAUDE_VERSION_FIRST,
    COLLAPSE_RULES,
    DATE_BEFORE_STAGE_RULES,
    LEADING_AT_RULE,
    LEADING_TOKEN_RULE,
    NUMERIC_SUFFIX_RULE,
    QUOTE_TRIM_RULE,
    SEPARATOR_TRIM_RULE,
    SHORT_DATE_BEFORE_STAGE_RULE,
)

if TYPE_CHECKING:
    import re
    from collections.abc import Iterable, Sequence


def trim_model_name(value: str) -> str:
    """Drop surrounding whitespace and quotes, then surrounding ``.``/``_``/``-``."""

    return SEPARATOR_TRIM_RULE.sub("", QUOTE_TRIM_RULE.sub("", value))


def strip_rules(value: str, rules: Iterable[re.Pattern[str]]) -> str:
    """Apply every rule once per sweep, sweeping until nothing matches."""

    patterns = tuple(rules)
    result = value
    updated = True
    while updated:
        updated = False
        for rule in patterns:
            if rule.search(result):
                result = rule.sub("", result, count=1)
                updated = True
    return result


def strip_suffix_chain(value: str, groups: Sequence[Sequence[re.Pattern[str]]]) -> str:
    result = value
    updated = True
    while updated:
        updated = False
        for rules in groups:
            candidate = trim_model_name(strip_rules(result, rules))
            if candidate != result:
                result = candidate
                updated = True
    return result


def strip_namespace(value: str) -> str:
    if "/" not in value:
        return value
    parts = [part for part in value.split("/") if part]
    if len(parts) <= 1:
        return value
    return parts[-1]


def strip_leading_identifiers(value: str) -> str:
    result = LEADING_AT_RULE.sub("", value, count=1)
    return LEADING_TOKEN_RULE.sub("", result, count=1)


def is_short_date(digits: str) -> bool:
    """Whether four digits read as ``YYMM`` or ``MMDD``."""

    if len(digits) != 4 or not digits.isdigit():
        return False
    first, second = int(digits[:2]), int(digits[2:])
    is_yymm = 1 <= second <= 12
    is_mmdd = 1 <= first <= 12 and 1 <= second <= 31
    return is_yymm or is_mmdd


def strip_short_date_before_stage(value: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        if is_short_date(match.group(1)):
            return f"-{match.group(2)}"
        return match.group(0)

    return SHORT_DATE_BEFORE_STAGE_RULE.sub(_replace, value, count=1)


def drop_date_before_stage(value: str) -> str:
    """``name-20240115-preview`` becomes ``name-preview``."""

    result = value
    for rule in DATE_BEFORE_STAGE_RULES:
        if rule.search(result):
            result = rule.sub(r"-\2", result, count=1)
    return result


def strip_numeric_suffix(value: str, *, keep_date: bool, keep_version: bool) -> str:
    match = NUMERIC_SUFFIX_RULE.search(value)
    if match is None:
        return value

    digits = match.group(1)
    stripped = value[: match.start()]
    short_date = is_short_date(digits)

    if not keep_date and short_date:
        return stripped
    if not keep_version:
        if len(digits) == 3:
            return stripped
        if not keep_date or not short_date:
            return stripped
    return value


def format_claude_name(value: str) -> str:
    """Order Claude names as ``claude-<variant>-<major[.minor]>``."""

    raw = value.strip()
    match = CLAUDE_VERSION_FIRST.match(raw)
    if match is not None:
        major, minor, variant = match.groups()
    else:
        match = CLAUDE_VARIANT_FIRST.match(raw)
        if match is None:
            return value
        variant, major, minor = match.groups()
    version = f"{major}.{minor}" if minor else major
    return f"claude-{variant.lower()}-{version}"


def collapse_separators(value: str) -> str:
    for pattern, replacement in COLLAPSE_RULES:
        value = pattern.sub(replacement, value)
    return value


def sanitize_channel_label(label: str) -> str:
    sanitized = CHANNEL_LABEL_INVALID.sub("-", label.strip())
    while "--" in sanitized:
        sanitized = sanitized.replace("--", "-")
    return sanitized.strip("-")


def append_channel_suffix(value: str, channel_label: str | None) -> str:
    """Append ``-<label>`` unless the name already ends with it."""

    if not channel_label:
        return value
    suffix = sanitize_channel_label(channel_label)
    if not suffix:
        return value
    if value.lower().endswith(f"-{suffix}".lower()):
        return value
    return f"{value}-{suffix}"
