"""
Rule Engine - Drives the four classification criteria from JSON rule definitions.

Design:
- Rules are loaded from JSON files at startup
- Each rule declares which criterion it supports and the keywords it needs
- One generic matcher evaluates every rule against a finding's text
- New rules added without code changes

Rule semantics:
  required_any     at least one keyword present in the match text
  patterns         at least one regex matches the match text
  required_all_of  every keyword group has one keyword in the qualifier text
A rule fires when every clause it declares is satisfied.
"""

from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from seo_triage.core.config import get_settings
from seo_triage.engines.base import Criterion

logger = structlog.get_logger(__name__)

TextField = Literal["name", "description", "notes"]

URL_RE = re.compile(r"https?://\S+")


# ─────────────────────────────────────────────
# Rule Schema
# ─────────────────────────────────────────────

class CriterionRule(BaseModel):
    """
    Complete rule definition loaded from JSON.
    A rule is one way a finding can satisfy a criterion.
    """
    id: str
    criterion: Criterion
    description: str = ""
    required_any: list[str] = Field(default_factory=list)
    required_all_of: list[list[str]] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    match_fields: list[TextField] = Field(default_factory=lambda: ["name", "description"])
    qualifier_fields: list[TextField] = Field(default_factory=lambda: ["description"])
    enabled: bool = True

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not re.match(r"^[a-z][a-z0-9_-]{2,63}$", v):
            raise ValueError(f"Rule ID '{v}' must be lowercase alphanumeric with hyphens/underscores")
        return v

    @field_validator("required_any")
    @classmethod
    def lower_keywords(cls, v: list[str]) -> list[str]:
        return [keyword.lower() for keyword in v]

    @field_validator("required_all_of")
    @classmethod
    def lower_groups(cls, v: list[list[str]]) -> list[list[str]]:
        if any(not group for group in v):
            raise ValueError("required_all_of groups must not be empty")
        return [[keyword.lower() for keyword in group] for group in v]

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid pattern '{pattern}': {e}") from e
        return v

    @model_validator(mode="after")
    def require_match_terms(self) -> "CriterionRule":
        if not self.required_any and not self.patterns:
            raise ValueError(f"Rule '{self.id}' needs required_any keywords or patterns")
        return self


# ─────────────────────────────────────────────
# Matcher
# ─────────────────────────────────────────────

def mask_urls(text: str | None) -> str:
    """Replace absolute URLs with the token "url"."""
    return URL_RE.sub("url", text or "")


def build_text(fields: dict[str, str], names: list[TextField]) -> str:
    """Join the selected text fields into one lower-cased haystack."""
    return " ".join(fields.get(name) or "" for name in names).lower()


class RuleMatcher:
    """Evaluates criterion rules against a finding's text fields."""

    def matches(self, rule: CriterionRule, fields: dict[str, str]) -> bool:
        text = build_text(fields, rule.match_fields)
        if not text.strip():
            return False

        if rule.required_any and not any(keyword in text for keyword in rule.required_any):
            return False

        if rule.patterns and not any(re.search(pattern, text) for pattern in rule.patterns):
            return False

        if rule.required_all_of:
            qualifier_text = build_text(fields, rule.qualifier_fields)
            for group in rule.required_all_of:
                if not any(keyword in qualifier_text for keyword in group):
                    return False

        return True

    def evaluate(
        self,
        rules: list[CriterionRule],
        name: str | None,
        description: str | None,
        notes: str | None = None,
    ) -> dict[Criterion, list[str]]:
        """
        Evaluate every rule and return the ids that fired, keyed by criterion.
        Every criterion is present in the result, possibly with an empty list.
        """
        fields = {
            "name": mask_urls(name),
            "description": mask_urls(description),
            "notes": mask_urls(notes),
        }
        fired: dict[Criterion, list[str]] = {criterion: [] for criterion in Criterion}
        for rule in rules:
            if rule.enabled and self.matches(rule, fields):
                fired[rule.criterion].append(rule.id)
        return fired


# ─────────────────────────────────────────────
# Rule Registry
# ─────────────────────────────────────────────

class RuleRegistry:
    """
    Loads and manages all criterion rule definitions.
    Rules are loaded from JSON files, one file per criterion.
    """

    def __init__(self, rules_dir: Path):
        self.rules_dir = rules_dir
        self._rules: dict[str, CriterionRule] = {}
        self._loaded = False

    def load(self) -> None:
        """Load all rule JSON files from the rules directory."""
        count = 0
        files = sorted(self.rules_dir.glob("**/*.json"))
        for json_file in files:
            try:
                with open(json_file, encoding="utf-8") as f:
                    data = json.load(f)

                rules_data = data if isinstance(data, list) else [data]
                for rule_data in rules_data:
                    rule = CriterionRule.model_validate(rule_data)
                    if rule.enabled:
                        self._rules[rule.id] = rule
                        count += 1

            except Exception as e:
                logger.error("Failed to load rule file", file=str(json_file), error=str(e))

        self._loaded = True
        logger.info("Rules loaded", total=count, files=len(files))

    def register(self, rule: CriterionRule) -> None:
        self._rules[rule.id] = rule

    def get_by_criterion(self, criterion: Criterion) -> list[CriterionRule]:
        return [r for r in self._rules.values() if r.criterion == criterion]

    def get_by_id(self, rule_id: str) -> CriterionRule | None:
        return self._rules.get(rule_id)

    def get_all(self) -> list[CriterionRule]:
        return list(self._rules.values())

    @property
    def loaded(self) -> bool:
        return self._loaded


# ─────────────────────────────────────────────
# Global Registry Instance
# ─────────────────────────────────────────────

_registry: RuleRegistry | None = None
_registry_lock = threading.Lock()


def get_rule_registry(rules_dir: Path | None = None) -> RuleRegistry:
    global _registry
    if rules_dir is not None:
        registry = RuleRegistry(rules_dir)
        registry.load()
        return registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                registry = RuleRegistry(get_settings().RULES_DIR)
                registry.load()
                _registry = registry
    return _registry
