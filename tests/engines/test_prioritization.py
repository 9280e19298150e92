"""
Tests for the group priority score and ranking.
"""

import math

import pytest

from seo_triage.core.config import Settings
from seo_triage.engines.base import IssueGroup, Level
from seo_triage.engines.prioritization.engine import (
    PriorityScorer,
    calculate_group_priority,
    page_impact,
)


def make_group(
    issue_type: str = "issue",
    pages: int = 1,
    severity: Level = Level.MEDIUM,
    effort: Level = Level.MEDIUM,
    business_impact: Level = Level.MEDIUM,
    is_template_issue: bool = False,
) -> IssueGroup:
    return IssueGroup(
        issue_type=issue_type,
        pages=[f"/page-{i}" for i in range(pages)],
        severity=severity,
        effort=effort,
        business_impact=business_impact,
        is_template_issue=is_template_issue,
    )


# ─────────────────────────────────────────────
# Page Impact Tests
# ─────────────────────────────────────────────

class TestPageImpact:

    def test_template_is_logarithmic(self):
        assert page_impact(16, True) == pytest.approx(math.log(17) * 2)

    def test_individual_is_capped(self):
        assert page_impact(3, False) == 3.0
        assert page_impact(50, False) == 5.0

    def test_cap_configurable(self):
        assert page_impact(50, False, Settings(INDIVIDUAL_PAGE_IMPACT_CAP=8)) == 8.0

    def test_template_grows_with_pages(self):
        impacts = [page_impact(n, True) for n in (3, 10, 100, 1000)]
        assert impacts == sorted(impacts)


# ─────────────────────────────────────────────
# Priority Score Tests
# ─────────────────────────────────────────────

class TestPriorityScore:

    def test_formula(self):
        group = make_group(pages=3, severity=Level.HIGH, effort=Level.LOW, business_impact=Level.MEDIUM)
        assert calculate_group_priority(group) == 3.0 * 2.0 * 3.0 * 3.0

    def test_lower_effort_scores_higher(self):
        cheap = make_group(effort=Level.LOW)
        costly = make_group(effort=Level.HIGH)
        assert calculate_group_priority(cheap) > calculate_group_priority(costly)

    def test_individual_groups_stop_growing_at_cap(self):
        assert calculate_group_priority(make_group(pages=5)) == calculate_group_priority(make_group(pages=40))


class TestRanking:

    def setup_method(self):
        self.scorer = PriorityScorer()

    def test_sorted_descending(self):
        groups = [
            make_group("low", severity=Level.LOW),
            make_group("high", severity=Level.HIGH),
            make_group("medium"),
        ]
        ranked = self.scorer.rank(groups)
        assert [g.issue_type for g in ranked] == ["high", "medium", "low"]

    def test_ties_keep_input_order(self):
        ranked = self.scorer.rank([make_group("first"), make_group("second")])
        assert [g.issue_type for g in ranked] == ["first", "second"]

    def test_scores_attached_without_mutation(self):
        group = make_group(pages=2)
        ranked = self.scorer.rank([group])
        assert group.priority_score == 0.0
        assert ranked[0].priority_score == 16.0

    def test_scores_rounded(self):
        ranked = self.scorer.rank([make_group(pages=16, is_template_issue=True)])
        assert ranked[0].priority_score == round(8 * math.log(17) * 2, 4)
