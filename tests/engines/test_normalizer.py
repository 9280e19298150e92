"""
Tests for the Finding Normalizer.
Covers raw record coercion and every extracted field's fallback.
"""

import pytest

from seo_triage.engines.base import Finding, Importance, PageType
from seo_triage.engines.normalizer.engine import (
    OTHER_ISSUE_TYPE,
    OTHER_SUBCATEGORY,
    UNKNOWN_CATEGORY,
    UNKNOWN_URL,
    FindingNormalizer,
)


@pytest.fixture
def normalizer():
    return FindingNormalizer()


# ─────────────────────────────────────────────
# Coercion Tests
# ─────────────────────────────────────────────

class TestCoerce:

    def test_finding_passes_through(self, normalizer):
        finding = Finding(name="Missing H1")
        assert normalizer.coerce(finding) is finding

    def test_camel_case_keys_accepted(self, normalizer):
        finding = normalizer.coerce({
            "name": "Missing Meta Title",
            "pageUrl": "https://example.com/about",
            "pageType": "other",
            "importance": "High",
        })
        assert finding.page_url == "https://example.com/about"
        assert finding.page_type == "other"
        assert finding.importance == Importance.HIGH

    def test_non_mapping_becomes_empty_finding(self, normalizer):
        finding = normalizer.coerce(["not", "a", "record"])
        assert finding.name == ""
        assert finding.description is None

    def test_none_becomes_empty_finding(self, normalizer):
        assert normalizer.coerce(None).name == ""

    def test_unusable_values_dropped(self, normalizer):
        finding = normalizer.coerce({"name": {"nested": True}, "description": 42})
        assert finding.name == ""
        assert finding.description == "42"

    def test_unknown_importance_defaults_low(self, normalizer):
        assert normalizer.coerce({"importance": "urgent"}).importance == Importance.LOW

    def test_importance_case_insensitive(self, normalizer):
        assert normalizer.coerce({"importance": " medium "}).importance == Importance.MEDIUM


# ─────────────────────────────────────────────
# Issue Key Tests
# ─────────────────────────────────────────────

class TestIssueKey:

    def test_masks_urls_and_digits(self, normalizer):
        assert normalizer.normalize_text("Page 12 at https://example.com/a") == "page_n_at_url"

    def test_strips_punctuation(self, normalizer):
        assert normalizer.normalize_text("Title: too long!") == "title_too_long"

    def test_truncates_normalized_text(self, normalizer):
        assert len(normalizer.normalize_text("word " * 40)) == 50

    def test_empty_text(self, normalizer):
        assert normalizer.normalize_text(None) == ""

    def test_key_layout(self, normalizer):
        finding = Finding(category="Technical SEO", name="Missing Meta Title", description="Page has no title")
        assert normalizer.issue_key(finding) == "technical seo_missing_meta_title_page_has_no_title"

    def test_key_truncated(self, normalizer):
        finding = Finding(category="x" * 200, name="Missing H1")
        assert len(normalizer.issue_key(finding)) == 100

    def test_numbers_do_not_split_keys(self, normalizer):
        a = Finding(name="Image 1 missing alt text", description="Found 3 images")
        b = Finding(name="Image 27 missing alt text", description="Found 140 images")
        assert normalizer.issue_key(a) == normalizer.issue_key(b)

    def test_missing_category_uses_unknown(self, normalizer):
        assert normalizer.issue_key(Finding(name="X")).startswith("unknown_")


# ─────────────────────────────────────────────
# Field Extraction Tests
# ─────────────────────────────────────────────

class TestFieldExtraction:

    def test_category_fallback(self, normalizer):
        assert normalizer.category(Finding(category="  ")) == UNKNOWN_CATEGORY

    def test_explicit_subcategory_wins(self, normalizer):
        finding = Finding(name="Missing Meta Title", subcategory="Site Structure")
        assert normalizer.subcategory(finding) == "Site Structure"

    @pytest.mark.parametrize("name,expected", [
        ("Missing Meta Title", "Meta Tags"),
        ("Slow page speed", "Performance"),
        ("Missing H1 heading", "Content Structure"),
        ("Not mobile responsive", "Mobile Optimization"),
        ("No SSL certificate", "Security"),
        ("Something else entirely", OTHER_SUBCATEGORY),
    ])
    def test_subcategory_inferred(self, normalizer, name, expected):
        assert normalizer.subcategory(Finding(name=name)) == expected

    def test_page_url_from_description(self, normalizer):
        finding = Finding(description="Broken link on https://example.com/team page")
        assert normalizer.page_url(finding) == "https://example.com/team"

    def test_page_url_from_notes(self, normalizer):
        finding = Finding(notes="Seen at https://example.com/blog/1")
        assert normalizer.page_url(finding) == "https://example.com/blog/1"

    def test_page_url_fallback(self, normalizer):
        assert normalizer.page_url(Finding(name="Missing H1")) == UNKNOWN_URL

    @pytest.mark.parametrize("url,expected", [
        ("https://example.com/", PageType.HOMEPAGE),
        ("https://example.com", PageType.HOMEPAGE),
        ("/", PageType.HOMEPAGE),
        ("/home", PageType.HOMEPAGE),
        ("https://example.com/contact-us", PageType.CONTACT),
        ("/services/plumbing", PageType.SERVICE),
        ("/locations/denver", PageType.LOCATION),
        ("/blog/post", PageType.OTHER),
    ])
    def test_page_type_from_url(self, normalizer, url, expected):
        assert normalizer.page_type(Finding(page_url=url)) == expected

    def test_explicit_page_type_wins(self, normalizer):
        finding = Finding(page_url="/blog/post", page_type="Service")
        assert normalizer.page_type(finding) == PageType.SERVICE

    def test_unrecognised_page_type_inferred(self, normalizer):
        finding = Finding(page_url="/contact", page_type="landing")
        assert normalizer.page_type(finding) == PageType.CONTACT

    @pytest.mark.parametrize("name,expected", [
        ("Missing Meta Title", "missing_meta_title"),
        ("Missing meta description", "missing_meta_description"),
        ("Duplicate title tags", "duplicate_title"),
        ("Missing H1", "missing_h1"),
        ("Multiple H1 tags", "multiple_h1"),
        ("Missing Alt Text", "missing_alt_text"),
        ("Slow page speed", "slow_page_speed"),
        ("Broken internal link", "broken_links"),
        ("Odd canonical", OTHER_ISSUE_TYPE),
    ])
    def test_issue_type(self, normalizer, name, expected):
        assert normalizer.issue_type(Finding(name=name)) == expected

    def test_urls_ignored_by_keyword_lookups(self, normalizer):
        finding = Finding(name="Poor content structure", description="Poor content structure on https://example.com/a")
        assert normalizer.issue_type(finding) == "poor_content_structure"
        assert normalizer.subcategory(finding) == OTHER_SUBCATEGORY
        assert normalizer.page_url(finding) == "https://example.com/a"

    def test_normalize_sparse_finding(self, normalizer):
        normalized = normalizer.normalize({})
        assert normalized.page_url == UNKNOWN_URL
        assert normalized.category == UNKNOWN_CATEGORY
        assert normalized.subcategory == OTHER_SUBCATEGORY
        assert normalized.issue_type == OTHER_ISSUE_TYPE
        assert normalized.page_type == PageType.OTHER
