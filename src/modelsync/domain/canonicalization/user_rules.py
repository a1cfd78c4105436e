"""Operator-defined rules layered on top of smart name matching.

Three kinds of rule exist:

- name-match rules replace one exact raw name with a fixed target and
  short-circuit the smart pipeline,
- custom rules rewrite the canonical name after the smart pipeline ran,
- merge rules replace a complete set of names with a single target name.

Rules are plain data so a ``RuleSet`` can round-trip through JSON storage
and through import/export files.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import StrEnum
from logging import getLogger
from typing import Any

from modelsync.domain.errors import UnknownTemplateError

log = getLogger(__name__)

_JS_GROUP_REF = re.compile(r"\$(\d{1,2}|&|\$)")


class RuleType(StrEnum):
    REGEX = "regex"
    STRING = "string"
    PREFIX = "prefix"
    SUFFIX = "suffix"


class RuleCondition(StrEnum):
    ALL = "all"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"
    CONTAINS = "contains"


@dataclass(frozen=True, slots=True)
class NameMatchRule:
    source: str
    target: str
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class MergeRule:
    models: tuple[str, ...]
    target: str
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class CustomRule:
    type: RuleType
    pattern: str
    replacement: str = ""
    condition: RuleCondition = RuleCondition.ALL
    condition_value: str = ""
    flags: str = "gi"
    priority: int = 0
    enabled: bool = True
    name: str = ""

    def matches_condition(self, value: str) -> bool:
        match self.condition:
            case RuleCondition.ALL:
                return True
            case RuleCondition.STARTSWITH:
                return value.startswith(self.condition_value)
            case RuleCondition.ENDSWITH:
                return value.endswith(self.condition_value)
            case RuleCondition.CONTAINS:
                return self.condition_value in value

    def apply(self, value: str) -> str:
        if not self.enabled or not self.matches_condition(value):
            return value
        match self.type:
            case RuleType.REGEX:
                return self._apply_regex(value)
            case RuleType.STRING:
                if not self.pattern:
                    return value
                return value.replace(self.pattern, self.replacement)
            case RuleType.PREFIX:
                if value.startswith(self.pattern):
                    return self.replacement + value[len(self.pattern) :]
                return value
            case RuleType.SUFFIX:
                if self.pattern and value.endswith(self.pattern):
                    return value[: -len(self.pattern)] + self.replacement
                return value

    def _apply_regex(self, value: str) -> str:
        try:
            compiled = re.compile(self.pattern, _regex_flags(self.flags))
        except re.error as exc:
            log.warning(f"Ignoring custom rule with invalid pattern {self.pattern!r}: {exc}")
            return value
        count = 0 if "g" in self.flags else 1
        try:
            return compiled.sub(_to_python_replacement(self.replacement), value, count=count)
        except (re.error, IndexError) as exc:
            log.warning(f"Ignoring custom rule with invalid replacement {self.replacement!r}: {exc}")
            return value


def _regex_flags(flags: str) -> re.RegexFlag:
    result = re.RegexFlag(0)
    if "i" in flags:
        result |= re.IGNORECASE
    if "m" in flags:
        result |= re.MULTILINE
    if "s" in flags:
        result |= re.DOTALL
    return result


def _to_python_replacement(replacement: str) -> str:
    """Translate ``$1``/``$&``/``$$`` references into ``re.sub`` syntax."""

    escaped = replacement.replace("\\", "\\\\")

    def _swap(match: re.Match[str]) -> str:
        token = match.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return r"\g<0>"
        return rf"\g<{int(token)}>"

    return _JS_GROUP_REF.sub(_swap, escaped)


@dataclass(frozen=True, slots=True)
class RuleTemplate:
    id: str
    name: str
    description: str
    example: str
    rules: tuple[CustomRule, ...]


def _regex(pattern: str, replacement: str, name: str) -> CustomRule:
    return CustomRule(type=RuleType.REGEX, pattern=pattern, replacement=replacement, name=name)


RULE_TEMPLATES: dict[str, RuleTemplate] = {
    template.id: template
    for template in (
        RuleTemplate(
            id="openai-standardization",
            name="OpenAI standardization",
            description="Drop date and preview suffixes from GPT model names",
            example="gpt-4-0125-preview -> gpt-4, gpt-4o-2024-08-06 -> gpt-4o",
            rules=(
                _regex(r"^(gpt-4)(?:-\d{4})?(?:-preview)?$", "$1", "GPT-4"),
                _regex(
                    r"^(gpt-4-turbo)(?:-\d{4}-\d{2}-\d{2})?(?:-preview)?$", "$1", "GPT-4 Turbo"
                ),
                _regex(r"^(gpt-4o)(?:-\d{4}-\d{2}-\d{2})?(?:-mini)?$", "$1", "GPT-4o"),
                _regex(r"^gpt-35-turbo(?:-\d+)?$", "gpt-3.5-turbo", "GPT-3.5"),
            ),
        ),
        RuleTemplate(
            id="anthropic-standardization",
            name="Anthropic standardization",
            description="Drop date suffixes from Claude model names",
            example="claude-3-5-sonnet-20241022 -> claude-3.5-sonnet",
            rules=(
                _regex(
                    r"^claude-(\d+)-(\d+)-(haiku|sonnet|opus)(?:-\d{8})?$",
                    "claude-$1.$2-$3",
                    "Claude version",
                ),
                _regex(r"^claude-(haiku|sonnet|opus)(?:-\d{8})?$", "claude-$1", "Claude short"),
            ),
        ),
        RuleTemplate(
            id="google-standardization",
            name="Google standardization",
            description="Drop version numbers and dates from Gemini model names",
            example="gemini-1.5-pro-002 -> gemini-pro, gemini-2.0-flash -> gemini-flash",
            rules=(
                _regex(
                    r"^gemini-[\d.]+-?(pro|flash|ultra)(?:-\d+)?(?:-latest)?$",
                    "gemini-$1",
                    "Gemini",
                ),
                _regex(
                    r"^gemini-(pro|flash|ultra)(?:-\d{4}-\d{2}-\d{2})?$", "gemini-$1", "Gemini date"
                ),
            ),
        ),
        RuleTemplate(
            id="clean-provider-prefix",
            name="Clean provider prefixes",
            description="Remove identifiers resellers put in front of model names",
            example="[official]gpt-4 -> gpt-4, @provider/claude -> claude",
            rules=(
                _regex(r"^\[.+?\]", "", "Square bracket prefix"),
                _regex(r"^【.+?】", "", "Full-width bracket prefix"),
                _regex(r"^\(.+?\)", "", "Parenthesised prefix"),
                _regex(r"^@[^/]+/", "", "@provider/ prefix"),
            ),
        ),
        RuleTemplate(
            id="clean-provider-suffix",
            name="Clean provider suffixes",
            description="Remove identifiers resellers append to model names",
            example="gpt-4-官方 -> gpt-4, claude-beta -> claude",
            rules=(
                _regex(r"-[\u4e00-\u9fa5]+$", "", "CJK suffix"),
                _regex(r"-(official|test|beta|alpha|preview|stable)$", "", "Status suffix"),
            ),
        ),
        RuleTemplate(
            id="clean-dates",
            name="Clean date suffixes",
            description="Remove the common date formats from the end of model names",
            example="model-20241022 -> model, model-2024-01-15 -> model",
            rules=(
                _regex(r"-\d{8}$", "", "YYYYMMDD"),
                _regex(r"-\d{4}-\d{2}-\d{2}$", "", "YYYY-MM-DD"),
                _regex(r"-\d{4}$", "", "MMDD"),
                _regex(r"-v?\d+(\.\d+)*$", "", "Version number"),
            ),
        ),
    )
}


@dataclass(slots=True)
class RuleSet:
    name_match: list[NameMatchRule] = field(default_factory=list[NameMatchRule])
    merge: list[MergeRule] = field(default_factory=list[MergeRule])
    custom: list[CustomRule] = field(default_factory=list[CustomRule])

    def __bool__(self) -> bool:
        return bool(self.name_match or self.merge or self.custom)

    def apply_name_match(self, name: str) -> str:
        for rule in self.name_match:
            if rule.enabled and rule.source == name:
                return rule.target
        return name

    def apply_custom(self, name: str) -> str:
        """Run every enabled custom rule in list order."""

        result = name
        for rule in self.custom:
            before = result
            result = rule.apply(result)
            if result != before:
                log.debug(f"Custom rule {rule.name or rule.pattern!r}: {before} -> {result}")
        return result

    def apply_merge_rules(self, models: list[str]) -> list[str]:
        result = list(models)
        for rule in self.merge:
            if not rule.enabled or not rule.models:
                continue
            if all(model in result for model in rule.models):
                result = [model for model in result if model not in rule.models]
                result.append(rule.target)
        return result

    def apply_template(self, template_id: str) -> int:
        template = RULE_TEMPLATES.get(template_id)
        if template is None:
            raise UnknownTemplateError(template_id)

        added = 0
        for rule in template.rules:
            exists = any(
                existing.pattern == rule.pattern and existing.type == rule.type
                for existing in self.custom
            )
            if exists:
                continue
            self.custom.append(replace(rule, priority=100 - added))
            added += 1
        log.info(f"Applied rule template {template.id}: {added} rule(s) added")
        return added

    def clear(self) -> None:
        self.name_match.clear()
        self.merge.clear()
        self.custom.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name_match": [
                {"source": rule.source, "target": rule.target, "enabled": rule.enabled}
                for rule in self.name_match
            ],
            "merge": [
                {"models": list(rule.models), "target": rule.target, "enabled": rule.enabled}
                for rule in self.merge
            ],
            "custom": [
                {
                    "type": str(rule.type),
                    "pattern": rule.pattern,
                    "replacement": rule.replacement,
                    "condition": str(rule.condition),
                    "condition_value": rule.condition_value,
                    "flags": rule.flags,
                    "priority": rule.priority,
                    "enabled": rule.enabled,
                    "name": rule.name,
                }
                for rule in self.custom
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleSet:
        name_match = [
            NameMatchRule(
                source=str(item["source"]),
                target=str(item["target"]),
                enabled=bool(item.get("enabled", True)),
            )
            for item in data.get("name_match", [])
        ]
        merge = [
            MergeRule(
                models=tuple(str(model) for model in item.get("models", [])),
                target=str(item["target"]),
                enabled=bool(item.get("enabled", True)),
            )
            for item in data.get("merge", [])
        ]
        custom = [
            CustomRule(
                type=RuleType(item.get("type", RuleType.REGEX)),
                pattern=str(item.get("pattern", "")),
                replacement=str(item.get("replacement", "")),
                condition=RuleCondition(item.get("condition", RuleCondition.ALL)),
                condition_value=str(item.get("condition_value", "")),
                flags=str(item.get("flags") or "gi"),
                priority=int(item.get("priority", 0)),
                enabled=bool(item.get("enabled", True)),
                name=str(item.get("name", "")),
            )
            for item in data.get("custom", [])
        ]
        return cls(name_match=name_match, merge=merge, custom=custom)


def list_templates() -> list[RuleTemplate]:
    return list(RULE_TEMPLATES.values())
