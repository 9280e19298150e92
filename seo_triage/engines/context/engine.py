"""
Context-Aware Classifier

Same four criteria as the context-free classifier, but the Priority threshold
is a continuous value derived from the page context instead of a fixed 2.

Threshold model:
  start at CONTEXT_BASE_THRESHOLD (2.0, same scale as the criteria count)
  lower it for high-value contexts (homepage, tier-1 pages, high business
  criticality, high competition, high traffic or conversion value)
  raise it for low-value contexts (generic pages, low competition, tier-3
  pages on large sites)
  clamp to [CONTEXT_MIN_THRESHOLD, CONTEXT_MAX_THRESHOLD]

Every adjustment carries a reason so the decision stays auditable. A neutral
context (tier 2, medium site, corporate, contact/location page, no traffic
or competition data) leaves the threshold at 2.0 and reproduces the
context-free verdict.
"""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from seo_triage.engines.base import (
    BusinessType,
    ClassificationMetrics,
    ClassificationResult,
    Finding,
    FindingClassification,
    Level,
    PageContext,
    PagePriority,
    PageType,
    SiteSize,
    ThresholdAdjustment,
    ThresholdRecommendation,
)
from seo_triage.engines.classifier.engine import CriteriaClassifier, format_threshold

logger = structlog.get_logger(__name__)


PAGE_TYPE_ADJUSTMENTS: dict[PageType, tuple[str, float, str]] = {
    PageType.HOMEPAGE: ("Homepage", -0.75, "Homepage issues have the highest visibility and business impact"),
    PageType.SERVICE: ("Service Page", -0.25, "Service pages are critical for conversions"),
    PageType.OTHER: ("Generic Page", 0.25, "Generic pages carry less search and business weight"),
}

BUSINESS_TYPE_ADJUSTMENTS: dict[BusinessType, tuple[str, float, str]] = {
    BusinessType.LOCAL: ("Local Business", -0.1, "Local businesses benefit more from SEO improvements"),
    BusinessType.ECOMMERCE: ("E-commerce", -0.1, "E-commerce revenue depends directly on organic visibility"),
}

COMPETITION_ADJUSTMENTS: dict[Level, tuple[str, float, str]] = {
    Level.HIGH: ("High Competition", -0.25, "Competitive industries require more urgent SEO attention"),
    Level.LOW: ("Low Competition", 0.15, "Low-competition industries tolerate slower fixes"),
}

CRITICALITY_ADJUSTMENTS: dict[Level, tuple[str, float, str]] = {
    Level.HIGH: ("Business-Critical Page", -0.25, "Business-critical pages magnify every issue"),
    Level.LOW: ("Low Criticality Page", 0.15, "Page is not business critical"),
}

HIGH_TRAFFIC_MONTHLY_VISITS = 10_000
HIGH_CONVERSION_VALUE = 1_000

HIGH_TRAFFIC_ADJUSTMENT = ("High Traffic", -0.1, "Issues on high-traffic pages affect many users")
HIGH_CONVERSION_ADJUSTMENT = ("High Conversion Value", -0.15, "High-value conversion page carries revenue risk")
TIER_1_ADJUSTMENT = ("Tier 1 Page", -0.25, "Tier 1 pages are top business priority")
DEEP_PAGE_ADJUSTMENT = ("Deep Page On Large Site", 0.5, "Low-priority pages on large sites rarely move results")

LARGE_SITES = (SiteSize.LARGE, SiteSize.ENTERPRISE)


class ContextAwareClassifier(CriteriaClassifier):

    ENGINE_NAME = "context_classifier"

    # ── Threshold ─────────────────────────────────

    def threshold_adjustments(self, context: PageContext) -> list[ThresholdAdjustment]:
        """Ordered adjustments that apply to this context."""
        selected: list[tuple[str, float, str]] = []

        if context.page_type in PAGE_TYPE_ADJUSTMENTS:
            selected.append(PAGE_TYPE_ADJUSTMENTS[context.page_type])

        if context.business_type in BUSINESS_TYPE_ADJUSTMENTS:
            selected.append(BUSINESS_TYPE_ADJUSTMENTS[context.business_type])

        competitive = context.competitive_context
        if competitive and competitive.industry_competitiveness in COMPETITION_ADJUSTMENTS:
            selected.append(COMPETITION_ADJUSTMENTS[competitive.industry_competitiveness])

        traffic = context.traffic_importance
        if traffic:
            if traffic.business_criticality in CRITICALITY_ADJUSTMENTS:
                selected.append(CRITICALITY_ADJUSTMENTS[traffic.business_criticality])
            if traffic.monthly_traffic and traffic.monthly_traffic > HIGH_TRAFFIC_MONTHLY_VISITS:
                selected.append(HIGH_TRAFFIC_ADJUSTMENT)
            if traffic.conversion_value and traffic.conversion_value > HIGH_CONVERSION_VALUE:
                selected.append(HIGH_CONVERSION_ADJUSTMENT)

        if context.page_priority == PagePriority.TIER_1:
            selected.append(TIER_1_ADJUSTMENT)
        elif context.page_priority == PagePriority.TIER_3 and context.site_size in LARGE_SITES:
            selected.append(DEEP_PAGE_ADJUSTMENT)

        return [
            ThresholdAdjustment(factor=factor, adjustment=adjustment, reason=reason)
            for factor, adjustment, reason in selected
        ]

    def recommended_threshold(self, context: PageContext) -> ThresholdRecommendation:
        base = self.settings.CONTEXT_BASE_THRESHOLD
        adjustments = self.threshold_adjustments(context)

        raw = base + sum(adj.adjustment for adj in adjustments)
        threshold = round(
            max(self.settings.CONTEXT_MIN_THRESHOLD, min(self.settings.CONTEXT_MAX_THRESHOLD, raw)),
            2,
        )

        reasoning = [f"Base threshold: {base:.2f}"]
        reasoning.extend(
            f"{adj.factor}: {adj.adjustment:+.2f} ({adj.reason})" for adj in adjustments
        )
        reasoning.append(
            f"Final threshold: {threshold:.2f} (clamped between "
            f"{self.settings.CONTEXT_MIN_THRESHOLD:.2f}-{self.settings.CONTEXT_MAX_THRESHOLD:.2f})"
        )
        return ThresholdRecommendation(threshold=threshold, reasoning=reasoning, adjustments=adjustments)

    # ── Classification ────────────────────────────

    def classify_with_context(
        self,
        name: str | None,
        description: str | None,
        context: PageContext,
        metrics: ClassificationMetrics | None = None,
        notes: str | None = None,
    ) -> ClassificationResult:
        metrics = metrics or ClassificationMetrics()
        recommendation = self.recommended_threshold(context)

        criteria, fired = self.evaluate_criteria(name, description, notes)
        trace_prefix = [
            f"CONTEXT: {context.page_type.value} page, tier {int(context.page_priority)} "
            f"({context.business_type.value}, {context.site_size.value})",
            f"THRESHOLD: {format_threshold(recommendation.threshold)}",
        ]
        result = self.decide(
            criteria=criteria,
            fired=fired,
            score=float(criteria.count()),
            threshold=recommendation.threshold,
            description=description,
            notes=notes,
            metrics=metrics,
            trace_prefix=trace_prefix,
            context_factors=recommendation.reasoning,
        )
        self.logger.debug(
            "Finding classified with context",
            name=name,
            verdict=result.verdict.value,
            page_type=context.page_type.value,
            threshold=recommendation.threshold,
        )
        return result

    def classify(
        self,
        name: str | None,
        description: str | None,
        metrics: ClassificationMetrics | None = None,
        context: PageContext | Mapping[str, Any] | None = None,
    ) -> ClassificationResult:
        """Use the page context when given one, otherwise the context-free path."""
        if isinstance(context, PageContext):
            return self.classify_with_context(name, description, context, metrics)
        return super().classify(name, description, metrics, context)

    def classify_finding_with_context(self, finding: Finding, context: PageContext | None) -> ClassificationResult:
        if context is None:
            return self.classify_finding(finding)
        return self.classify_with_context(
            finding.name,
            finding.description or "",
            context,
            self.extract_metrics(finding),
            finding.notes,
        )

    def batch_classify_with_context(
        self,
        items: list[tuple[Finding, PageContext | None]],
    ) -> list[FindingClassification]:
        return [
            FindingClassification(
                finding=finding,
                result=self.classify_finding_with_context(finding, context),
                context=context,
            )
            for finding, context in items
        ]
