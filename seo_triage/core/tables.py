"""
Static lookup tables for effort estimation and business impact.

Tables are built once at import time, wrapped in read-only mappings and
handed to engines through TriageTables. Tests substitute their own
TriageTables instead of patching engine internals.

Effort matrix:
  issue type → base effort, whether one template fix resolves every page,
  and a per-extra-page multiplier for issues fixed page by page.

Business impact rules:
  (category, subcategory) → base impact and per-page-type multipliers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

LevelName = Literal["low", "medium", "high"]


class EffortMatrixEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_effort: LevelName
    is_template_efficient: bool
    multiplier: float | None = Field(default=None, gt=0.0)


class PageTypeMultipliers(BaseModel):
    model_config = ConfigDict(frozen=True)

    homepage: float = 1.0
    service: float = 1.0
    contact: float = 1.0
    location: float = 1.0
    other: float = 1.0

    def for_page_type(self, page_type: str) -> float:
        if page_type not in type(self).model_fields:
            return 1.0
        return getattr(self, page_type)


class BusinessImpactRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_impact: LevelName
    page_type_multipliers: PageTypeMultipliers = Field(default_factory=PageTypeMultipliers)


# Rows are evaluated top to bottom; the first row whose base matches and whose
# minimum multiplier is met decides the level. No match keeps the base level.
IMPACT_COMBINATIONS: tuple[tuple[LevelName, float, LevelName], ...] = (
    ("high", 1.3, "high"),
    ("medium", 1.4, "high"),
    ("high", 1.0, "high"),
    ("medium", 1.1, "medium"),
    ("low", 1.3, "medium"),
)


_EFFORT_MATRIX: dict[str, EffortMatrixEntry] = {
    "missing_meta_title": EffortMatrixEntry(base_effort="low", is_template_efficient=True),
    "missing_meta_description": EffortMatrixEntry(base_effort="low", is_template_efficient=True),
    "duplicate_title": EffortMatrixEntry(base_effort="medium", is_template_efficient=True),
    "missing_h1": EffortMatrixEntry(base_effort="low", is_template_efficient=True),
    "multiple_h1": EffortMatrixEntry(base_effort="low", is_template_efficient=True),
    # Each image is quick to fix by hand
    "missing_alt_text": EffortMatrixEntry(base_effort="low", is_template_efficient=False, multiplier=0.1),
    "slow_page_speed": EffortMatrixEntry(base_effort="high", is_template_efficient=True),
    "missing_ssl": EffortMatrixEntry(base_effort="medium", is_template_efficient=True),
    "missing_contact_info": EffortMatrixEntry(base_effort="low", is_template_efficient=True),
    "poor_content_structure": EffortMatrixEntry(base_effort="high", is_template_efficient=False, multiplier=0.8),
    "missing_schema": EffortMatrixEntry(base_effort="medium", is_template_efficient=True),
    "broken_links": EffortMatrixEntry(base_effort="low", is_template_efficient=False, multiplier=0.2),
    "mobile_unfriendly": EffortMatrixEntry(base_effort="high", is_template_efficient=True),
}


def _multipliers(homepage: float, service: float, contact: float, location: float, other: float) -> PageTypeMultipliers:
    return PageTypeMultipliers(
        homepage=homepage,
        service=service,
        contact=contact,
        location=location,
        other=other,
    )


_BUSINESS_IMPACT_RULES: dict[str, dict[str, BusinessImpactRule]] = {
    "Technical SEO": {
        "Meta Tags": BusinessImpactRule(base_impact="high", page_type_multipliers=_multipliers(1.5, 1.3, 1.1, 1.2, 1.0)),
        "Site Structure": BusinessImpactRule(base_impact="medium", page_type_multipliers=_multipliers(1.4, 1.2, 1.0, 1.1, 0.9)),
        "Performance": BusinessImpactRule(base_impact="high", page_type_multipliers=_multipliers(1.5, 1.3, 1.0, 1.2, 1.0)),
    },
    "Content & UX": {
        "Content Quality": BusinessImpactRule(base_impact="medium", page_type_multipliers=_multipliers(1.4, 1.5, 1.1, 1.3, 1.0)),
        "User Experience": BusinessImpactRule(base_impact="high", page_type_multipliers=_multipliers(1.5, 1.3, 1.2, 1.1, 1.0)),
    },
    "Local SEO": {
        "Contact Information": BusinessImpactRule(base_impact="high", page_type_multipliers=_multipliers(1.3, 1.1, 1.5, 1.4, 0.8)),
        "Location Targeting": BusinessImpactRule(base_impact="medium", page_type_multipliers=_multipliers(1.2, 1.1, 1.0, 1.5, 0.7)),
    },
}


@dataclass(frozen=True)
class TriageTables:
    """Read-only bundle of the lookup tables an engine needs."""
    effort_matrix: Mapping[str, EffortMatrixEntry] = field(default_factory=dict)
    business_impact_rules: Mapping[str, Mapping[str, BusinessImpactRule]] = field(default_factory=dict)
    impact_combinations: tuple[tuple[LevelName, float, LevelName], ...] = IMPACT_COMBINATIONS

    @classmethod
    def build(
        cls,
        effort_matrix: Mapping[str, EffortMatrixEntry],
        business_impact_rules: Mapping[str, Mapping[str, BusinessImpactRule]],
        impact_combinations: tuple[tuple[LevelName, float, LevelName], ...] = IMPACT_COMBINATIONS,
    ) -> "TriageTables":
        """Freeze caller-supplied tables so engines can share them across threads."""
        return cls(
            effort_matrix=MappingProxyType(dict(effort_matrix)),
            business_impact_rules=MappingProxyType({
                category: MappingProxyType(dict(rules))
                for category, rules in business_impact_rules.items()
            }),
            impact_combinations=tuple(impact_combinations),
        )

    def effort_entry(self, issue_type: str) -> EffortMatrixEntry | None:
        return self.effort_matrix.get(issue_type)

    def impact_rule(self, category: str, subcategory: str) -> BusinessImpactRule | None:
        return self.business_impact_rules.get(category, {}).get(subcategory)


@lru_cache()
def get_default_tables() -> TriageTables:
    """Process-wide default tables - created once."""
    return TriageTables.build(_EFFORT_MATRIX, _BUSINESS_IMPACT_RULES)
