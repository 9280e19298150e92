"""
Severity / Criteria Classifier

Classifies a finding as Standard OFI or Priority OFI.

Decision model:
1. Evaluate four independent criteria from declarative keyword rules
   (SEO visibility, user experience, business impact, compliance risk)
2. Priority OFI iff the number of criteria met reaches the threshold (2)
3. A workaround mentioned in the description or notes forces Standard OFI

The decision trace is part of the output and is fully determined by the
inputs. Numeric metrics only strengthen the justification wording.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

import structlog

from seo_triage.core.config import Settings
from seo_triage.core.rule_engine import CriterionRule, RuleMatcher, get_rule_registry
from seo_triage.core.tables import TriageTables
from seo_triage.engines.base import (
    ClassificationCriteria,
    ClassificationMetrics,
    ClassificationResult,
    Criterion,
    Finding,
    Importance,
    TriageEngine,
    Verdict,
)

logger = structlog.get_logger(__name__)


WORKAROUND_KEYWORDS: tuple[str, ...] = ("workaround", "alternative", "can use", "instead", "manually")
WORKAROUND_REASON = "Workaround available"

# Trace step label and justification wording per criterion, in step order.
CRITERION_STEPS: list[tuple[Criterion, str, str]] = [
    (Criterion.SEO_VISIBILITY_IMPACT, "Critical SEO visibility impact", "SEO Visibility Impact"),
    (Criterion.USER_EXPERIENCE_IMPACT, "Severe user experience impact", "User Experience Impact"),
    (Criterion.BUSINESS_IMPACT, "Significant business impact", "Business Impact"),
    (Criterion.COMPLIANCE_RISK, "Compliance/security risk", "Compliance Risk"),
]

NOT_MET_WORDING: dict[Criterion, str] = {
    Criterion.SEO_VISIBILITY_IMPACT: "No critical SEO visibility issues identified",
    Criterion.USER_EXPERIENCE_IMPACT: "No critical UX issues identified",
    Criterion.BUSINESS_IMPACT: "No significant business impact identified",
    Criterion.COMPLIANCE_RISK: "No critical compliance issues identified",
}

SPEED_SCORE_RE = re.compile(r"speed score[:\s]*(\d+)", re.IGNORECASE)
PERCENT_RE = re.compile(r"(\d+)%")


def met_wording(criterion: Criterion, metrics: ClassificationMetrics) -> str:
    """Explain a met criterion, quoting metrics when they are strong enough."""
    if criterion == Criterion.SEO_VISIBILITY_IMPACT:
        if metrics.performance_impact and metrics.performance_impact > 50:
            return f"Core Web Vitals failure ({metrics.performance_impact:g}% degradation)"
        return "Missing meta tags, indexing issues, or mobile problems identified"
    if criterion == Criterion.USER_EXPERIENCE_IMPACT:
        if metrics.user_base_affected and metrics.user_base_affected > 30:
            return f"Affects {metrics.user_base_affected:g}% of users' ability to navigate/use site"
        return "Broken navigation, forms, or unreadable content identified"
    if criterion == Criterion.BUSINESS_IMPACT:
        if metrics.revenue_impact_per_day and metrics.revenue_impact_per_day > 10_000:
            return f"SEO ranking/revenue risk ${metrics.revenue_impact_per_day:,.0f}/day"
        if metrics.support_tickets_per_day and metrics.support_tickets_per_day > 10:
            return f"Generating {metrics.support_tickets_per_day:g} support tickets per day"
        return "SEO ranking drops, missing conversions, or brand credibility issues identified"
    if metrics.cvss_score and metrics.cvss_score >= 7.0:
        return f"Security compliance issue (CVSS: {metrics.cvss_score:g})"
    return "GDPR violations, accessibility issues, or security non-compliance identified"


def format_threshold(value: float) -> str:
    return f"{value:g}" if float(value).is_integer() else f"{value:.2f}"


class CriteriaClassifier(TriageEngine):
    """
    Context-free OFI classifier.

    Rules are injected or taken from the process-wide rule registry.
    """

    ENGINE_NAME = "classifier"

    def __init__(
        self,
        settings: Settings | None = None,
        tables: TriageTables | None = None,
        rules: list[CriterionRule] | None = None,
        workaround_keywords: tuple[str, ...] = WORKAROUND_KEYWORDS,
    ):
        super().__init__(settings, tables)
        if rules is None:
            rules = get_rule_registry().get_all()
        self.rules: tuple[CriterionRule, ...] = tuple(rules)
        self.workaround_keywords = tuple(k.lower() for k in workaround_keywords)
        self.matcher = RuleMatcher()

    # ── Criteria ──────────────────────────────────

    def evaluate_criteria(
        self,
        name: str | None,
        description: str | None,
        notes: str | None = None,
    ) -> tuple[ClassificationCriteria, dict[Criterion, list[str]]]:
        fired = self.matcher.evaluate(list(self.rules), name, description, notes)
        criteria = ClassificationCriteria(**{
            criterion.value: bool(rule_ids) for criterion, rule_ids in fired.items()
        })
        return criteria, fired

    def has_workaround(self, description: str | None, notes: str | None = None) -> bool:
        for text in (description, notes):
            lowered = (text or "").lower()
            if any(keyword in lowered for keyword in self.workaround_keywords):
                return True
        return False

    # ── Classification ────────────────────────────

    def classify(
        self,
        name: str | None,
        description: str | None,
        metrics: ClassificationMetrics | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> ClassificationResult:
        """
        Classify one finding.

        `context` is optional free-form data about the finding; its "notes"
        entry takes part in meta-tag pattern matching and workaround detection.
        """
        metrics = metrics or ClassificationMetrics()
        notes = _notes_from(context)
        threshold = float(self.settings.PRIORITY_CRITERIA_THRESHOLD)

        criteria, fired = self.evaluate_criteria(name, description, notes)
        result = self.decide(
            criteria=criteria,
            fired=fired,
            score=float(criteria.count()),
            threshold=threshold,
            description=description,
            notes=notes,
            metrics=metrics,
        )
        self.logger.debug(
            "Finding classified",
            name=name,
            verdict=result.verdict.value,
            criteria_met=criteria.count(),
            downgraded=result.downgraded_reason is not None,
        )
        return result

    def classify_finding(self, finding: Finding) -> ClassificationResult:
        """Classify a crawler finding, deriving metrics from its notes."""
        context = {
            "current_status": finding.status,
            "importance": finding.importance.value,
            "notes": finding.notes,
        }
        return self.classify(
            finding.name,
            finding.description or "",
            self.extract_metrics(finding),
            context,
        )

    def decide(
        self,
        criteria: ClassificationCriteria,
        fired: dict[Criterion, list[str]],
        score: float,
        threshold: float,
        description: str | None,
        notes: str | None,
        metrics: ClassificationMetrics,
        trace_prefix: list[str] | None = None,
        context_factors: list[str] | None = None,
    ) -> ClassificationResult:
        """
        Apply the threshold, then the workaround override.
        This is the whole severity state machine.
        """
        count = criteria.count()
        verdict = Verdict.PRIORITY if score >= threshold else Verdict.STANDARD

        downgraded_reason = None
        if self.has_workaround(description, notes):
            verdict = Verdict.STANDARD
            downgraded_reason = WORKAROUND_REASON

        trace = ["START: New issue identified"]
        trace.extend(trace_prefix or [])
        trace.extend(self.build_steps(criteria, fired))
        trace.append(
            f"TALLY: {count}/4 priority criteria met "
            f"(score {format_threshold(score)}, threshold {format_threshold(threshold)})"
        )
        if downgraded_reason:
            trace.append(f"OVERRIDE: {downgraded_reason} → STANDARD OFI")
        if verdict == Verdict.PRIORITY:
            trace.append(f"RESULT: {count} priority criteria met → PRIORITY OFI")
        else:
            trace.append(f"RESULT: {count} priority criteria met → STANDARD OFI")

        justification = self.build_justification(
            verdict, criteria, count, threshold, metrics, downgraded_reason, context_factors or [],
        )

        return ClassificationResult(
            verdict=verdict,
            criteria=criteria,
            justification=justification,
            decision_trace=trace,
            requires_validation=verdict == Verdict.PRIORITY,
            metrics=metrics,
            matched_rules=[rule_id for rule_ids in fired.values() for rule_id in rule_ids],
            downgraded_reason=downgraded_reason,
            score=score,
            threshold=threshold,
            context_factors=list(context_factors or []),
        )

    # ── Trace & justification ─────────────────────

    @staticmethod
    def build_steps(
        criteria: ClassificationCriteria,
        fired: dict[Criterion, list[str]],
    ) -> list[str]:
        steps: list[str] = []
        for number, (criterion, label, _) in enumerate(CRITERION_STEPS, start=1):
            if criteria.is_met(criterion):
                rule_ids = ", ".join(fired.get(criterion, []))
                steps.append(f"✓ STEP {number}: {label} - YES ({rule_ids})")
            else:
                steps.append(f"✗ STEP {number}: {label} - NO")
        return steps

    @staticmethod
    def build_justification(
        verdict: Verdict,
        criteria: ClassificationCriteria,
        count: int,
        threshold: float,
        metrics: ClassificationMetrics,
        downgraded_reason: str | None,
        context_factors: list[str],
    ) -> str:
        lines = [
            f"Classification: {verdict.value}",
            f"Priority criteria met: {count}/4",
            "",
            "Criteria Evaluation:",
        ]
        for criterion, _, heading in CRITERION_STEPS:
            if criteria.is_met(criterion):
                lines.append(f"✓ {heading}: {met_wording(criterion, metrics)}")
            else:
                lines.append(f"✗ {heading}: {NOT_MET_WORDING[criterion]}")

        if context_factors:
            lines.append("")
            lines.append("Threshold Adjustments:")
            lines.extend(f"- {factor}" for factor in context_factors)

        if downgraded_reason:
            lines.append("")
            lines.append(f"AUTO-DOWNGRADED: {downgraded_reason}")

        lines.append("")
        required = format_threshold(threshold)
        if verdict == Verdict.PRIORITY:
            lines.append(f"PRIORITY OFI: Meets {count} criteria (minimum {required} required)")
            lines.append("Requires immediate attention and validation")
        elif downgraded_reason:
            lines.append(f"STANDARD OFI: Meets {count} criteria but was downgraded")
            lines.append("Classify as standard improvement opportunity")
        else:
            lines.append(f"STANDARD OFI: Only meets {count} criteria (minimum {required} required for Priority)")
            lines.append("Classify as standard improvement opportunity")
        return "\n".join(lines)

    # ── Metrics ───────────────────────────────────

    @staticmethod
    def extract_metrics(finding: Finding) -> ClassificationMetrics:
        """
        Derive conservative metrics from a finding's notes.
        Only extreme values produce numbers large enough to matter.
        """
        values: dict[str, float] = {}
        name = finding.name.lower()
        description = (finding.description or "").lower()

        if finding.notes:
            speed_match = SPEED_SCORE_RE.search(finding.notes)
            if speed_match:
                speed_score = int(speed_match.group(1))
                values["performance_impact"] = 60 if speed_score < 20 else 40 if speed_score < 30 else 0

            percent_match = PERCENT_RE.search(finding.notes)
            if percent_match and ("block" in name or "prevent" in name):
                values["user_base_affected"] = 35 if int(percent_match.group(1)) > 70 else 0

        # HTTPS alone is not a vulnerability
        if "security" in name and "vulnerability" in description:
            values["cvss_score"] = 7.5

        if finding.importance == Importance.HIGH and "block" in description:
            values["user_base_affected"] = 25

        return ClassificationMetrics(**values)


def _notes_from(context: Mapping[str, Any] | None) -> str | None:
    if not context:
        return None
    notes = context.get("notes")
    return notes if isinstance(notes, str) else None
