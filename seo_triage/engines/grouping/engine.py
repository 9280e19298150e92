"""
Issue Grouping Engine

Clusters findings that describe the same defect on different pages and flags
clusters whose root cause is a shared page template.

Pipeline:
  bucket()    pass 1 - one bucket per normalized issue key, per-finding
              estimates taken from the first finding of each bucket
  finalize()  passes 2+3 - template detection from URL patterns, effort
              refinement, severity escalation; pure over complete buckets
  group()     bucket → finalize → rank by priority score

Template detection needs the complete bucket population, so grouping is never
streamed or flagged incrementally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

import structlog

from seo_triage.core.config import Settings
from seo_triage.core.tables import EffortMatrixEntry, TriageTables
from seo_triage.engines.base import (
    LEVEL_SCORES,
    Finding,
    GroupAnalysis,
    GroupingReport,
    Importance,
    IssueGroup,
    Level,
    NormalizedFinding,
    TriageEngine,
    Verdict,
)
from seo_triage.engines.impact.engine import BusinessImpactModel
from seo_triage.engines.normalizer.engine import FindingNormalizer
from seo_triage.engines.prioritization.engine import PriorityScorer
from seo_triage.engines.reporting.engine import AggregateReporter

logger = structlog.get_logger(__name__)

NUMERIC_RE = re.compile(r"^[0-9]+$")
SLUG_ID_RE = re.compile(r"^[a-z]+-[0-9]+$")


@dataclass
class IssueBucket:
    """Pass-1 output: every finding that shares one issue key."""
    issue_key: str
    first: NormalizedFinding
    severity: Level
    effort: Level
    business_impact: Level
    pages: list[str] = field(default_factory=list)

    @property
    def issue_type(self) -> str:
        return self.first.issue_type


class IssueGroupingEngine(TriageEngine):

    ENGINE_NAME = "grouping"

    def __init__(
        self,
        settings: Settings | None = None,
        tables: TriageTables | None = None,
    ):
        super().__init__(settings, tables)
        self.normalizer = FindingNormalizer(self.settings, self.tables)
        self.impact_model = BusinessImpactModel(self.settings, self.tables)
        self.scorer = PriorityScorer(self.settings, self.tables)
        self.reporter = AggregateReporter(self.settings, self.tables)

    # ── Entry points ──────────────────────────────

    def group(self, findings: Iterable[Finding | Mapping[str, Any]]) -> list[IssueGroup]:
        buckets = self.bucket(findings)
        groups = self.scorer.rank(self.finalize(buckets))

        self.logger.info(
            "Grouping complete",
            findings=sum(len(b.pages) for b in buckets),
            groups=len(groups),
            template_groups=len([g for g in groups if g.is_template_issue]),
        )
        return groups

    def report(self, groups: list[IssueGroup], top_n: int | None = None) -> GroupingReport:
        return self.reporter.grouping_report(groups, top_n)

    # ── Pass 1: bucketing ─────────────────────────

    def bucket(self, findings: Iterable[Finding | Mapping[str, Any]]) -> list[IssueBucket]:
        buckets: dict[str, IssueBucket] = {}
        for raw in findings:
            normalized = self.normalizer.normalize(raw)
            bucket = buckets.get(normalized.issue_key)
            if bucket is None:
                bucket = IssueBucket(
                    issue_key=normalized.issue_key,
                    first=normalized,
                    severity=self.assess_severity(normalized.finding),
                    effort=self.estimate_effort(normalized),
                    business_impact=self.impact_model.impact(
                        normalized.category,
                        normalized.subcategory,
                        normalized.page_type,
                        normalized.finding.importance,
                    ),
                )
                buckets[normalized.issue_key] = bucket
            bucket.pages.append(normalized.page_url)
        return list(buckets.values())

    def assess_severity(self, finding: Finding) -> Level:
        if finding.importance == Importance.HIGH or finding.status == Verdict.PRIORITY.value:
            return Level.HIGH
        if finding.importance == Importance.MEDIUM:
            return Level.MEDIUM
        return Level.LOW

    def estimate_effort(self, normalized: NormalizedFinding) -> Level:
        entry = self.tables.effort_entry(normalized.issue_type)
        if entry is not None:
            return Level(entry.base_effort)
        return self.level_from_importance(normalized.finding.importance)

    # ── Passes 2+3: finalization ──────────────────

    def finalize(self, buckets: list[IssueBucket]) -> list[IssueGroup]:
        """Turn complete buckets into groups. Does not touch the buckets."""
        return [self.finalize_bucket(bucket) for bucket in buckets]

    def finalize_bucket(self, bucket: IssueBucket) -> IssueGroup:
        pages = list(bucket.pages)
        entry = self.tables.effort_entry(bucket.issue_type)
        characteristics: list[str] = []

        is_template, similarity, patterns, evidence = self.detect_template(pages, entry)
        effort = self.refine_effort(bucket.effort, len(pages), is_template, entry, characteristics)
        severity = self.refine_severity(bucket.severity, len(pages), is_template, characteristics)

        finding = bucket.first.finding
        return IssueGroup(
            issue_type=bucket.issue_key,
            effort_type=bucket.issue_type,
            pages=pages,
            severity=severity,
            effort=effort,
            business_impact=bucket.business_impact,
            is_template_issue=is_template,
            category=bucket.first.category,
            subcategory=bucket.first.subcategory,
            description=finding.description or finding.name,
            analysis=GroupAnalysis(
                url_patterns=patterns,
                pattern_similarity=round(similarity, 4),
                common_characteristics=characteristics,
                template_evidence=evidence,
            ),
        )

    def detect_template(
        self,
        pages: list[str],
        entry: EffortMatrixEntry | None,
    ) -> tuple[bool, float, list[str], list[str]]:
        """Return (is_template, similarity, unique patterns, evidence)."""
        if len(pages) < self.settings.TEMPLATE_MIN_PAGES:
            return False, 0.0, [], []

        unique_patterns = self.unique_patterns(pages)
        similarity = self.pattern_similarity(pages)
        template_efficient = bool(entry and entry.is_template_efficient)

        evidence: list[str] = []
        similar = similarity > self.settings.TEMPLATE_SIMILARITY_THRESHOLD
        if similar:
            evidence.append(f"High URL pattern similarity ({round(similarity * 100)}%)")
        if len(pages) >= self.settings.TEMPLATE_EFFICIENT_MIN_PAGES:
            evidence.append(f"Affects {len(pages)} pages (template-scale impact)")
        if template_efficient:
            evidence.append("Issue type is typically template-fixable")

        widespread_template_fix = (
            len(pages) >= self.settings.TEMPLATE_EFFICIENT_MIN_PAGES and template_efficient
        )
        return similar or widespread_template_fix, similarity, unique_patterns, evidence

    def refine_effort(
        self,
        effort: Level,
        page_count: int,
        is_template: bool,
        entry: EffortMatrixEntry | None,
        characteristics: list[str],
    ) -> Level:
        if entry is None:
            return effort

        if is_template and entry.is_template_efficient:
            # Fix once in the template, applies everywhere
            return Level(entry.base_effort)

        if not is_template and entry.multiplier:
            base_score = LEVEL_SCORES[Level(entry.base_effort)]
            adjusted = base_score * (1 + (page_count - 1) * entry.multiplier)
            refined = self.effort_level(adjusted)
            characteristics.append(
                f"Per-page fixes on {page_count} pages (effort score {adjusted:.2f})"
            )
            return refined

        return effort

    def effort_level(self, effort_score: float) -> Level:
        if effort_score >= self.settings.EFFORT_HIGH_CUTOFF:
            return Level.HIGH
        if effort_score >= self.settings.EFFORT_MEDIUM_CUTOFF:
            return Level.MEDIUM
        return Level.LOW

    def refine_severity(
        self,
        severity: Level,
        page_count: int,
        is_template: bool,
        characteristics: list[str],
    ) -> Level:
        if is_template:
            return severity

        if page_count >= self.settings.ESCALATE_MEDIUM_AT_PAGES and severity == Level.MEDIUM:
            characteristics.append(
                f"Widespread impact across {self.settings.ESCALATE_MEDIUM_AT_PAGES}+ pages"
            )
            return Level.HIGH
        if page_count >= self.settings.ESCALATE_LOW_AT_PAGES and severity == Level.LOW:
            characteristics.append(
                f"Moderate impact across {self.settings.ESCALATE_LOW_AT_PAGES}+ pages"
            )
            return Level.MEDIUM
        return severity

    # ── URL patterns ──────────────────────────────

    def extract_url_pattern(self, url: str) -> str:
        """
        Collapse a URL path into a template signature.

        /blog/123           → blog/{id}
        /products/shoe-42   → products/{slug-id}
        /a-very-long-article-slug-here → {long-slug}
        """
        if url.startswith(("http://", "https://")):
            try:
                path = urlparse(url).path
            except ValueError:
                return url
        else:
            path = url.split("?", 1)[0].split("#", 1)[0]

        segments = [segment for segment in path.split("/") if segment]
        pattern = "/".join(self._segment_pattern(segment) for segment in segments)
        return pattern or "/"

    def _segment_pattern(self, segment: str) -> str:
        if NUMERIC_RE.match(segment):
            return "{id}"
        if SLUG_ID_RE.match(segment):
            return "{slug-id}"
        if len(segment) > self.settings.LONG_SEGMENT_LENGTH:
            return "{long-slug}"
        return segment

    def unique_patterns(self, pages: list[str]) -> list[str]:
        """Distinct URL patterns in first-seen order."""
        return list(dict.fromkeys(self.extract_url_pattern(url) for url in pages))

    def pattern_similarity(self, pages: list[str]) -> float:
        if not pages:
            return 0.0
        return 1 - (len(self.unique_patterns(pages)) / len(pages))
