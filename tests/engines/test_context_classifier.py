"""
Tests for the context-aware classifier and its threshold model.
"""

import pytest

from seo_triage.engines.base import (
    BusinessType,
    CompetitiveContext,
    Finding,
    Level,
    PageContext,
    PagePriority,
    PageType,
    SiteSize,
    TrafficImportance,
    Verdict,
)
from seo_triage.engines.classifier.engine import CriteriaClassifier
from seo_triage.engines.context.engine import ContextAwareClassifier

SSL_NAME = "No SSL Certificate"
SSL_DESCRIPTION = "Website is not using HTTPS"
TWO_CRITERIA_DESCRIPTION = "Website is not using HTTPS, giving competitors an advantage"


@pytest.fixture
def classifier():
    return ContextAwareClassifier()


@pytest.fixture
def neutral_context():
    return PageContext(page_type=PageType.CONTACT)


@pytest.fixture
def homepage_context():
    return PageContext(page_type=PageType.HOMEPAGE, page_priority=PagePriority.TIER_1)


# ─────────────────────────────────────────────
# Threshold Tests
# ─────────────────────────────────────────────

class TestRecommendedThreshold:

    def test_neutral_context_keeps_base(self, classifier, neutral_context):
        recommendation = classifier.recommended_threshold(neutral_context)
        assert recommendation.threshold == 2.0
        assert recommendation.adjustments == []

    def test_generic_page_raises_threshold(self, classifier):
        assert classifier.recommended_threshold(PageContext()).threshold == 2.25

    def test_homepage_tier_1(self, classifier, homepage_context):
        recommendation = classifier.recommended_threshold(homepage_context)
        assert recommendation.threshold == 1.0
        assert [a.factor for a in recommendation.adjustments] == ["Homepage", "Tier 1 Page"]

    def test_deep_page_on_large_site(self, classifier):
        context = PageContext(page_priority=PagePriority.TIER_3, site_size=SiteSize.LARGE)
        assert classifier.recommended_threshold(context).threshold == 2.75

    def test_tier_3_on_small_site_not_penalised(self, classifier):
        context = PageContext(page_type=PageType.CONTACT, page_priority=PagePriority.TIER_3, site_size=SiteSize.SMALL)
        assert classifier.recommended_threshold(context).threshold == 2.0

    def test_clamped_to_minimum(self, classifier):
        context = PageContext(
            page_type=PageType.HOMEPAGE,
            page_priority=PagePriority.TIER_1,
            business_type=BusinessType.LOCAL,
            competitive_context=CompetitiveContext(industry_competitiveness=Level.HIGH),
            traffic_importance=TrafficImportance(
                monthly_traffic=50_000,
                conversion_value=5_000,
                business_criticality=Level.HIGH,
            ),
        )
        recommendation = classifier.recommended_threshold(context)
        assert recommendation.threshold == 1.0
        assert len(recommendation.adjustments) == 7

    def test_clamped_to_maximum(self, classifier):
        context = PageContext(
            page_type=PageType.OTHER,
            page_priority=PagePriority.TIER_3,
            site_size=SiteSize.ENTERPRISE,
            competitive_context=CompetitiveContext(industry_competitiveness=Level.LOW),
            traffic_importance=TrafficImportance(business_criticality=Level.LOW),
        )
        assert classifier.recommended_threshold(context).threshold == 3.0

    def test_traffic_threshold_is_exclusive(self, classifier, neutral_context):
        context = neutral_context.model_copy(
            update={"traffic_importance": TrafficImportance(monthly_traffic=10_000)}
        )
        assert classifier.recommended_threshold(context).threshold == 2.0

    def test_reasoning_lines(self, classifier, homepage_context):
        reasoning = classifier.recommended_threshold(homepage_context).reasoning
        assert reasoning[0] == "Base threshold: 2.00"
        assert reasoning[1].startswith("Homepage: -0.75 (")
        assert reasoning[-1] == "Final threshold: 1.00 (clamped between 1.00-3.00)"


# ─────────────────────────────────────────────
# Classification Tests
# ─────────────────────────────────────────────

class TestClassifyWithContext:

    def test_neutral_context_matches_context_free(self, classifier, neutral_context):
        plain = CriteriaClassifier()
        for description in (SSL_DESCRIPTION, TWO_CRITERIA_DESCRIPTION):
            with_context = classifier.classify_with_context(SSL_NAME, description, neutral_context)
            assert with_context.verdict == plain.classify(SSL_NAME, description).verdict

    def test_single_criterion_priority_on_homepage(self, classifier, homepage_context):
        result = classifier.classify_with_context(SSL_NAME, SSL_DESCRIPTION, homepage_context)
        assert result.verdict == Verdict.PRIORITY
        assert result.threshold == 1.0
        assert "THRESHOLD: 1" in result.decision_trace
        assert "Threshold Adjustments:" in result.justification

    def test_two_criteria_standard_on_deep_page(self, classifier):
        context = PageContext(page_priority=PagePriority.TIER_3, site_size=SiteSize.LARGE)
        result = classifier.classify_with_context(SSL_NAME, TWO_CRITERIA_DESCRIPTION, context)
        assert result.criteria.count() == 2
        assert result.verdict == Verdict.STANDARD
        assert "TALLY: 2/4 priority criteria met (score 2, threshold 2.75)" in result.decision_trace

    def test_workaround_still_downgrades(self, classifier, homepage_context):
        result = classifier.classify_with_context(
            SSL_NAME, SSL_DESCRIPTION, homepage_context, notes="Use the www host instead"
        )
        assert result.verdict == Verdict.STANDARD
        assert result.downgraded_reason is not None

    @pytest.mark.parametrize("page_priority", list(PagePriority))
    @pytest.mark.parametrize("page_type", list(PageType))
    def test_verdict_follows_threshold(self, classifier, page_type, page_priority):
        context = PageContext(page_type=page_type, page_priority=page_priority)
        result = classifier.classify_with_context(SSL_NAME, TWO_CRITERIA_DESCRIPTION, context)
        expected = Verdict.PRIORITY if result.score >= result.threshold else Verdict.STANDARD
        assert result.verdict == expected
        assert 1.0 <= result.threshold <= 3.0

    def test_classify_dispatches_on_page_context(self, classifier, homepage_context):
        result = classifier.classify(SSL_NAME, SSL_DESCRIPTION, context=homepage_context)
        assert result.verdict == Verdict.PRIORITY

    def test_classify_without_context(self, classifier):
        result = classifier.classify(SSL_NAME, SSL_DESCRIPTION)
        assert result.verdict == Verdict.STANDARD
        assert result.context_factors == []


class TestBatchClassify:

    def test_batch_keeps_order_and_context(self, classifier, homepage_context):
        findings = [
            Finding(name=SSL_NAME, description=SSL_DESCRIPTION, page_url="/"),
            Finding(name=SSL_NAME, description=SSL_DESCRIPTION, page_url="/blog/post"),
        ]
        results = classifier.batch_classify_with_context([
            (findings[0], homepage_context),
            (findings[1], None),
        ])
        assert [r.finding for r in results] == findings
        assert results[0].context == homepage_context
        assert results[0].result.verdict == Verdict.PRIORITY
        assert results[1].context is None
        assert results[1].result.verdict == Verdict.STANDARD
