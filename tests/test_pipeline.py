"""
End-to-end tests for the triage pipeline.
"""

import pytest

from seo_triage.engines.base import (
    EngineStatus,
    PageContext,
    PagePriority,
    PageType,
    Verdict,
)
from seo_triage.pipeline import TriagePipeline


def audit_findings() -> list[dict]:
    findings = [
        {
            "name": "Missing Meta Title",
            "description": "Page has no title tag",
            "category": "Technical SEO",
            "importance": "High",
            "pageUrl": f"https://example.com/services/plumbing-{i}",
        }
        for i in range(1, 16)
    ]
    findings.append({
        "name": "Missing Meta Title",
        "description": "Page has no title tag",
        "category": "Technical SEO",
        "importance": "High",
        "pageUrl": "https://example.com/",
    })
    findings.append({
        "name": "No SSL Certificate",
        "description": "Website is not using HTTPS",
        "category": "Technical SEO",
        "importance": "Medium",
        "pageUrl": "https://example.com/",
    })
    findings.append({
        "name": "No SSL Certificate",
        "description": "Website is not using HTTPS",
        "category": "Technical SEO",
        "importance": "Medium",
        "pageUrl": "https://example.com/blog/post",
    })
    return findings


@pytest.fixture
def pipeline():
    return TriagePipeline()


@pytest.fixture
def contexts():
    return {
        "https://example.com/": PageContext(page_type=PageType.HOMEPAGE, page_priority=PagePriority.TIER_1),
    }


class TestTriagePipeline:

    def test_every_finding_classified(self, pipeline):
        result = pipeline.run(audit_findings())
        assert len(result.classifications) == 18
        assert result.classification_report.total_classified == 18

    def test_status_stamped_with_verdict(self, pipeline):
        result = pipeline.run(audit_findings())
        for item in result.classifications:
            assert item.finding.status == item.result.verdict.value

    def test_context_applied_by_page_url(self, pipeline, contexts):
        result = pipeline.run(audit_findings(), contexts)
        ssl = [c for c in result.classifications if c.finding.name == "No SSL Certificate"]
        assert ssl[0].context is not None
        assert ssl[0].result.verdict == Verdict.PRIORITY
        assert ssl[1].context is None
        assert ssl[1].result.verdict == Verdict.STANDARD

    def test_groups_and_reports(self, pipeline):
        result = pipeline.run(audit_findings())
        meta = next(g for g in result.groups if g.effort_type == "missing_meta_title")
        assert len(meta.pages) == 16
        assert meta.is_template_issue
        assert result.grouping_report.total_groups == 2
        assert result.grouping_report.total_pages_affected == 18

    def test_priority_verdict_raises_group_severity(self, pipeline, contexts):
        result = pipeline.run(audit_findings(), contexts)
        ssl_group = next(g for g in result.groups if g.effort_type == "missing_ssl")
        assert ssl_group.severity.value == "high"

    def test_deterministic(self, pipeline, contexts):
        first = pipeline.run(audit_findings(), contexts)
        second = pipeline.run(audit_findings(), contexts)
        assert first == second

    def test_sparse_records_tolerated(self, pipeline):
        result = pipeline.run([{}, None, {"importance": 7}])
        assert len(result.classifications) == 3
        assert all(c.result.verdict == Verdict.STANDARD for c in result.classifications)


class TestExecute:

    def test_execute_times_run(self, pipeline):
        result = pipeline.execute(audit_findings())
        assert result.status == EngineStatus.SUCCESS
        assert result.execution_time_ms >= 0
        assert result.error_message is None

    def test_execute_reports_failure(self, pipeline, monkeypatch):
        def explode(findings, contexts=None):
            raise RuntimeError("rule table corrupted")

        monkeypatch.setattr(pipeline, "run", explode)
        result = pipeline.execute(audit_findings())
        assert result.status == EngineStatus.FAILED
        assert result.error_message == "rule table corrupted"
        assert result.groups == []
