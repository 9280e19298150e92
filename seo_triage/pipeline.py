"""
Triage Pipeline

Runs every finding of one audit through the engines in order:
  1. Coerce raw records into findings (never raises)
  2. Classify each finding, with its page context when one is known
  3. Stamp the verdict into the finding's status
  4. Group, detect templates, score and rank
  5. Build the grouping and classification reports

Page contexts are keyed by the finding's normalized page URL.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Mapping

import structlog

from seo_triage.core.config import Settings
from seo_triage.core.rule_engine import CriterionRule
from seo_triage.core.tables import TriageTables
from seo_triage.engines.base import (
    EngineStatus,
    Finding,
    FindingClassification,
    PageContext,
    TriageEngine,
    TriageResult,
)
from seo_triage.engines.context.engine import ContextAwareClassifier
from seo_triage.engines.grouping.engine import IssueGroupingEngine

logger = structlog.get_logger(__name__)


class TriagePipeline(TriageEngine):

    ENGINE_NAME = "pipeline"

    def __init__(
        self,
        settings: Settings | None = None,
        tables: TriageTables | None = None,
        rules: list[CriterionRule] | None = None,
    ):
        super().__init__(settings, tables)
        self.classifier = ContextAwareClassifier(self.settings, self.tables, rules=rules)
        self.grouping = IssueGroupingEngine(self.settings, self.tables)
        self.normalizer = self.grouping.normalizer
        self.reporter = self.grouping.reporter

    def run(
        self,
        findings: Iterable[Finding | Mapping[str, Any]],
        contexts: Mapping[str, PageContext] | None = None,
    ) -> TriageResult:
        contexts = contexts or {}
        classifications: list[FindingClassification] = []

        for raw in findings:
            finding = self.normalizer.coerce(raw)
            context = contexts.get(self.normalizer.page_url(finding))
            result = self.classifier.classify_finding_with_context(finding, context)
            classifications.append(
                FindingClassification(
                    finding=finding.model_copy(update={"status": result.verdict.value}),
                    result=result,
                    context=context,
                )
            )

        groups = self.grouping.group(item.finding for item in classifications)

        return TriageResult(
            classifications=classifications,
            groups=groups,
            grouping_report=self.reporter.grouping_report(groups),
            classification_report=self.reporter.classification_report(classifications),
        )

    def execute(
        self,
        findings: Iterable[Finding | Mapping[str, Any]],
        contexts: Mapping[str, PageContext] | None = None,
    ) -> TriageResult:
        """
        Wrapper around run() that adds timing, logging, and error handling.
        Call this instead of run() directly.
        """
        findings = list(findings)
        start = time.perf_counter()
        self.logger.info(
            "Triage starting",
            engine=self.ENGINE_NAME,
            finding_count=len(findings),
            context_count=len(contexts or {}),
        )

        try:
            result = self.run(findings, contexts)
            elapsed = (time.perf_counter() - start) * 1000
            result.execution_time_ms = elapsed
            self.logger.info(
                "Triage complete",
                engine=self.ENGINE_NAME,
                priority=result.classification_report.priority_ofi_count,
                groups=len(result.groups),
                template_groups=result.grouping_report.template_issues,
                elapsed_ms=round(elapsed, 2),
            )
            return result

        except Exception as exc:
            elapsed = (time.perf_counter() - start) * 1000
            self.logger.error(
                "Triage failed",
                engine=self.ENGINE_NAME,
                error=str(exc),
                elapsed_ms=round(elapsed, 2),
                exc_info=True,
            )
            return TriageResult(
                status=EngineStatus.FAILED,
                execution_time_ms=elapsed,
                error_message=str(exc),
            )
