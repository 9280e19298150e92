"""
Prioritization Engine

Ranks issue groups with a multiplicative score.

Priority Score Formula:
  P = Severity_Weight × Business_Weight × Effort_Weight × Page_Impact

Where:
  Severity_Weight = high=3, medium=2, low=1
  Business_Weight = high=3, medium=2, low=1
  Effort_Weight   = low=3, medium=2, high=1   → cheap wins rank higher
  Page_Impact     = ln(pages + 1) × 2         for template groups
                  = min(pages, 5)             for individual groups

Template groups get diminishing returns so a 100-page template issue does not
outrank everything; individual groups are capped so one widespread manual
fix cannot dominate the ranking.
"""

from __future__ import annotations

import math

import structlog

from seo_triage.core.config import Settings, get_settings
from seo_triage.engines.base import IssueGroup, Level, TriageEngine

logger = structlog.get_logger(__name__)


SEVERITY_WEIGHTS: dict[Level, float] = {
    Level.HIGH: 3.0,
    Level.MEDIUM: 2.0,
    Level.LOW: 1.0,
}

BUSINESS_WEIGHTS: dict[Level, float] = {
    Level.HIGH: 3.0,
    Level.MEDIUM: 2.0,
    Level.LOW: 1.0,
}

# Inverted: lower effort = higher priority
EFFORT_WEIGHTS: dict[Level, float] = {
    Level.LOW: 3.0,
    Level.MEDIUM: 2.0,
    Level.HIGH: 1.0,
}


def page_impact(page_count: int, is_template_issue: bool, settings: Settings | None = None) -> float:
    settings = settings or get_settings()
    if is_template_issue:
        return math.log(page_count + 1) * settings.TEMPLATE_PAGE_IMPACT_FACTOR
    return float(min(page_count, settings.INDIVIDUAL_PAGE_IMPACT_CAP))


def calculate_group_priority(group: IssueGroup, settings: Settings | None = None) -> float:
    """
    Multi-factor priority score for group ordering.

    P = Severity × Business × Effort_Ease × Page_Impact
    """
    return (
        SEVERITY_WEIGHTS[group.severity]
        * BUSINESS_WEIGHTS[group.business_impact]
        * EFFORT_WEIGHTS[group.effort]
        * page_impact(len(group.pages), group.is_template_issue, settings)
    )


class PriorityScorer(TriageEngine):
    """Scores and orders issue groups. Pure: returns new group objects."""

    ENGINE_NAME = "prioritization"

    def score(self, group: IssueGroup) -> float:
        return calculate_group_priority(group, self.settings)

    def rank(self, groups: list[IssueGroup]) -> list[IssueGroup]:
        """Attach priority scores and sort descending. Ties keep input order."""
        scored = [
            group.model_copy(update={"priority_score": round(self.score(group), 4)})
            for group in groups
        ]
        scored.sort(key=lambda g: g.priority_score, reverse=True)

        if scored:
            self.logger.debug(
                "Groups ranked",
                total=len(scored),
                top_issue=scored[0].issue_type,
                top_score=scored[0].priority_score,
            )
        return scored
