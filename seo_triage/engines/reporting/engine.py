"""
Aggregate Reporter

Summarizes triage output for the report renderer and API layer:
- Grouping report: group counts, template vs individual split, top groups,
  and how much effort template fixes save
- Classification report: verdict counts, validation load, workaround
  downgrades, and recommendations when the Priority ratio drifts
"""

from __future__ import annotations

from typing import Iterable

import structlog

from seo_triage.engines.base import (
    ClassificationReport,
    ClassificationResult,
    Criterion,
    EfficiencyGains,
    FindingClassification,
    GroupingReport,
    IssueGroup,
    Level,
    TriageEngine,
    Verdict,
)

logger = structlog.get_logger(__name__)


class AggregateReporter(TriageEngine):

    ENGINE_NAME = "reporting"

    def grouping_report(self, groups: list[IssueGroup], top_n: int | None = None) -> GroupingReport:
        top_n = self.settings.REPORT_TOP_N if top_n is None else top_n

        template_groups = [g for g in groups if g.is_template_issue]
        total_pages = sum(len(g.pages) for g in groups)
        pages_fixed_by_templates = sum(len(g.pages) for g in template_groups)
        individual_pages = total_pages - pages_fixed_by_templates

        # One fix per template group, one per page everywhere else
        fixes_required = len(template_groups) + individual_pages
        pages_fixed_for_free = pages_fixed_by_templates - len(template_groups)
        reduction = round(pages_fixed_for_free / total_pages * 100) if total_pages else 0

        ranked = sorted(groups, key=lambda g: g.priority_score, reverse=True)

        return GroupingReport(
            total_groups=len(groups),
            template_issues=len(template_groups),
            individual_issues=len(groups) - len(template_groups),
            high_priority_groups=len([g for g in groups if g.severity == Level.HIGH]),
            total_pages_affected=total_pages,
            top_priority_groups=ranked[:top_n],
            efficiency_gains=EfficiencyGains(
                template_fixes_available=len(template_groups),
                pages_fixed_by_templates=pages_fixed_by_templates,
                pages_fixed_for_free=pages_fixed_for_free,
                fixes_required=fixes_required,
                effort_reduction_percent=reduction,
                estimated_effort_reduction=f"{reduction}% effort reduction through template fixes",
            ),
        )

    def classification_report(
        self,
        classifications: Iterable[ClassificationResult | FindingClassification],
    ) -> ClassificationReport:
        results = [
            item.result if isinstance(item, FindingClassification) else item
            for item in classifications
        ]
        total = len(results)
        priority = len([r for r in results if r.verdict == Verdict.PRIORITY])
        flagged = len([r for r in results if r.requires_validation])
        downgraded = len([r for r in results if r.downgraded_reason])
        ratio = priority / total if total else 0.0

        criteria_hits = {
            criterion.value: len([r for r in results if r.criteria.is_met(criterion)])
            for criterion in Criterion
        }
        thresholds = [r.threshold for r in results]

        recommendations: list[str] = []
        if total:
            if ratio > self.settings.PRIORITY_RATIO_MAX:
                recommendations.append(
                    f"Priority OFI rate is high ({ratio:.0%} > {self.settings.PRIORITY_RATIO_MAX:.0%}). "
                    "Review classification criteria application."
                )
            elif ratio < self.settings.PRIORITY_RATIO_MIN:
                recommendations.append(
                    f"Priority OFI rate is low ({ratio:.0%} < {self.settings.PRIORITY_RATIO_MIN:.0%}). "
                    "Check that critical issues are not being missed."
                )
            if downgraded and downgraded > priority:
                recommendations.append(
                    "More findings were downgraded for workarounds than kept as Priority OFI. "
                    "Confirm the documented workarounds are acceptable."
                )

        report = ClassificationReport(
            total_classified=total,
            priority_ofi_count=priority,
            standard_ofi_count=total - priority,
            flagged_for_validation=flagged,
            downgraded_count=downgraded,
            priority_ratio=round(ratio, 4),
            criteria_hits=criteria_hits,
            average_threshold=round(sum(thresholds) / total, 2) if total else 0.0,
            threshold_range=(min(thresholds), max(thresholds)) if thresholds else (0.0, 0.0),
            recommendations=recommendations,
        )
        self.logger.info(
            "Classification report built",
            total=total,
            priority=priority,
            downgraded=downgraded,
            recommendations=len(recommendations),
        )
        return report
