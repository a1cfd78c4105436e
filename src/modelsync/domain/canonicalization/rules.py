"""Compiled rule tables for smart name matching.

The main pipeline and the companion pipeline share these objects, so both
always strip exactly the same decorations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

_SEP: Final[str] = r"(?:-|_|\s+)"

STAGE_TOKENS: Final[str] = "preview|beta|alpha|test|rc\\d*|experimental|exp|latest|stable"
VARIANT_TOKENS: Final[str] = (
    "instruct|instruction|chat|assistant|next|thinking|reasoning|reasoner|base|sft|dpo|rlhf|it"
)
PARAMETER_SIZE: Final[str] = r"(?:a\d+(?:\.\d+)?b|\d+(?:\.\d+)?b|\d+(?:\.\d+)?t|\d+(?:\.\d+)?k)"

PREFIX_RULES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^\s*\[[^\]]+\]\s*"),
    re.compile(r"^\s*【[^】]+】\s*"),
    re.compile(r"^\s*\([^)]*\)\s*"),
    re.compile(r"^\s*（[^）]+）\s*"),
    re.compile(r"^\s*<[^>]+>\s*"),
)


@dataclass(frozen=True, slots=True)
class SuffixRules:
    channel: tuple[re.Pattern[str], ...]
    date: tuple[re.Pattern[str], ...]
    version: tuple[re.Pattern[str], ...]
    stage: tuple[re.Pattern[str], ...]
    provider: tuple[re.Pattern[str], ...]

    @property
    def chain(self) -> tuple[tuple[re.Pattern[str], ...], ...]:
        """Groups stripped together, in order, until none of them match."""

        return (self.stage, self.version, self.provider)


SUFFIX_RULES: Final[SuffixRules] = SuffixRules(
    channel=(
        re.compile(r"(?:-|_)\[?渠道[_\s]?\d+\]?$", re.IGNORECASE),
        re.compile(rf"{_SEP}?\[[^\]]+\]$"),
        re.compile(rf"{_SEP}?【[^】]+】$"),
        re.compile(rf"{_SEP}?\([^)]*\)$"),
        re.compile(rf"{_SEP}?（[^）]+）$"),
        re.compile(rf"{_SEP}?<[^>]+>$"),
    ),
    date=(
        re.compile(r"(?:-|_)(?:20\d{2})(?:\d{2})(?:\d{2})$", re.IGNORECASE),
        re.compile(r"(?:-|_)(?:20\d{2})[-_.]\d{2}[-_.]\d{2}$", re.IGNORECASE),
    ),
    version=(
        re.compile(rf"{_SEP}(?:v|ver|version)\d+(?:\.\d+){{0,3}}$", re.IGNORECASE),
        re.compile(rf"{_SEP}(?:{VARIANT_TOKENS}){_SEP}{PARAMETER_SIZE}$", re.IGNORECASE),
        re.compile(rf"{_SEP}(?:{VARIANT_TOKENS})$", re.IGNORECASE),
        re.compile(rf"{_SEP}{PARAMETER_SIZE}$", re.IGNORECASE),
    ),
    stage=(re.compile(rf"{_SEP}({STAGE_TOKENS})$", re.IGNORECASE),),
    provider=(
        re.compile(rf"{_SEP}(official|internal|public|private|dev|test)$", re.IGNORECASE),
        re.compile(rf"{_SEP}[\u4e00-\u9fa5]{{1,6}}$"),
    ),
)

DATE_BEFORE_STAGE_RULES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(
        rf"{_SEP}(20\d{{2}}\d{{2}}\d{{2}}){_SEP}({STAGE_TOKENS}|{VARIANT_TOKENS})$",
        re.IGNORECASE,
    ),
    re.compile(
        rf"{_SEP}(20\d{{2}})[-_.]\d{{2}}[-_.]\d{{2}}{_SEP}({STAGE_TOKENS}|{VARIANT_TOKENS})$",
        re.IGNORECASE,
    ),
)

SHORT_DATE_BEFORE_STAGE_RULE: Final[re.Pattern[str]] = re.compile(
    rf"{_SEP}(\d{{4}}){_SEP}({STAGE_TOKENS}|{VARIANT_TOKENS})$", re.IGNORECASE
)

NUMERIC_SUFFIX_RULE: Final[re.Pattern[str]] = re.compile(rf"{_SEP}(\d{{3,4}})$")

LEADING_AT_RULE: Final[re.Pattern[str]] = re.compile(r"^@+")
LEADING_TOKEN_RULE: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9._-]{2,32}[:|]")

_CLAUDE_VERSION: Final[str] = r"(\d+)(?:[-_.](\d+))?"
_CLAUDE_VARIANT: Final[str] = r"(haiku|sonnet|opus)"
CLAUDE_VERSION_FIRST: Final[re.Pattern[str]] = re.compile(
    rf"^claude{_SEP}{_CLAUDE_VERSION}{_SEP}{_CLAUDE_VARIANT}$", re.IGNORECASE
)
CLAUDE_VARIANT_FIRST: Final[re.Pattern[str]] = re.compile(
    rf"^claude{_SEP}{_CLAUDE_VARIANT}{_SEP}{_CLAUDE_VERSION}$", re.IGNORECASE
)

QUOTE_TRIM_RULE: Final[re.Pattern[str]] = re.compile(r"^[\s\"'`]+|[\s\"'`]+$")
SEPARATOR_TRIM_RULE: Final[re.Pattern[str]] = re.compile(r"^[\s._-]+|[\s._-]+$")

CHANNEL_LABEL_INVALID: Final[re.Pattern[str]] = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fff-]")

COLLAPSE_RULES: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"-{2,}"), "-"),
    (re.compile(r"_{2,}"), "_"),
    (re.compile(r"\s{2,}"), " "),
)
