"""
Finding Normalizer

Extracts canonical fields from heterogeneous raw findings:
- Issue key (bucketing key for the grouping engine)
- Issue type (effort matrix key)
- Page URL and page type
- Category and subcategory

Every extraction has a safe default. Nothing in this module raises on
sparse or malformed input.
"""

from __future__ import annotations

import re
from typing import Any, Mapping
from urllib.parse import urlparse

import structlog

from seo_triage.core.rule_engine import URL_RE, mask_urls
from seo_triage.engines.base import (
    Finding,
    NormalizedFinding,
    PageType,
    TriageEngine,
)

logger = structlog.get_logger(__name__)

UNKNOWN_URL = "unknown"
UNKNOWN_CATEGORY = "Unknown"
OTHER_ISSUE_TYPE = "other"
OTHER_SUBCATEGORY = "Other"

DIGITS_RE = re.compile(r"\d+")
WHITESPACE_RE = re.compile(r"\s+")
NON_KEY_CHARS_RE = re.compile(r"[^a-z_]")

# Raw record keys accepted for each Finding field, snake_case first.
RAW_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "title"),
    "description": ("description",),
    "status": ("status",),
    "importance": ("importance",),
    "category": ("category",),
    "subcategory": ("subcategory", "subCategory"),
    "page_url": ("page_url", "pageUrl", "url"),
    "page_type": ("page_type", "pageType"),
    "notes": ("notes",),
}

# Ordered: the first matching entry wins.
SUBCATEGORY_KEYWORDS: list[tuple[str, tuple[tuple[str, ...], ...]]] = [
    ("Meta Tags", (("meta",), ("title", "description"))),
    ("Content Structure", (("h1", "heading"),)),
    ("Performance", (("speed", "performance", "loading"),)),
    ("Mobile Optimization", (("mobile", "responsive"),)),
    ("Contact Information", (("contact", "phone", "address"),)),
    ("Security", (("ssl", "https", "security"),)),
    ("Images", (("alt", "image"),)),
    ("Navigation", (("link", "navigation"),)),
    ("Structured Data", (("schema", "structured"),)),
]

# Ordered: the first matching entry wins. Each entry needs one keyword from
# every group to match.
ISSUE_TYPE_KEYWORDS: list[tuple[str, tuple[tuple[str, ...], ...]]] = [
    ("missing_meta_title", (("meta title",), ("missing",))),
    ("missing_meta_description", (("meta description",), ("missing",))),
    ("duplicate_title", (("duplicate",), ("title",))),
    ("missing_h1", (("h1",), ("missing",))),
    ("multiple_h1", (("h1",), ("multiple",))),
    ("missing_alt_text", (("alt",), ("missing",))),
    ("slow_page_speed", (("speed", "slow"),)),
    ("missing_ssl", (("ssl", "https"),)),
    ("missing_contact_info", (("contact",), ("missing",))),
    ("poor_content_structure", (("content",), ("structure",))),
    ("missing_schema", (("schema",), ("missing",))),
    ("broken_links", (("broken",), ("link",))),
    ("mobile_unfriendly", (("mobile",), ("unfriendly",))),
]

PAGE_TYPE_URL_HINTS: list[tuple[str, PageType]] = [
    ("contact", PageType.CONTACT),
    ("service", PageType.SERVICE),
    ("location", PageType.LOCATION),
]


def _matches_all_groups(text: str, groups: tuple[tuple[str, ...], ...]) -> bool:
    return all(any(keyword in text for keyword in group) for group in groups)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    # Enums and other scalars
    inner = getattr(value, "value", None)
    if isinstance(inner, str):
        return inner
    return None


class FindingNormalizer(TriageEngine):
    """Turns raw findings into NormalizedFinding records."""

    ENGINE_NAME = "normalizer"

    # ── Raw input ─────────────────────────────────

    def coerce(self, raw: Finding | Mapping[str, Any] | None) -> Finding:
        """Build a Finding from a raw record, dropping anything unusable."""
        if isinstance(raw, Finding):
            return raw
        if not isinstance(raw, Mapping):
            logger.debug("Unusable raw finding replaced with empty finding", raw_type=type(raw).__name__)
            return Finding()

        values: dict[str, Any] = {}
        for field_name, aliases in RAW_FIELD_ALIASES.items():
            for alias in aliases:
                if alias in raw:
                    text = _as_text(raw[alias])
                    if text is not None:
                        values[field_name] = text
                        break
        return Finding.model_validate(values)

    # ── Issue key ─────────────────────────────────

    def normalize_text(self, text: str | None) -> str:
        """Lower-case, mask URLs and digits, keep only letters and underscores."""
        text = (text or "").lower()
        text = URL_RE.sub("url", text)
        text = DIGITS_RE.sub("n", text)
        text = WHITESPACE_RE.sub("_", text)
        text = NON_KEY_CHARS_RE.sub("", text)
        return text[: self.settings.NORMALIZED_TEXT_MAX_LENGTH]

    def issue_key(self, finding: Finding) -> str:
        category = (finding.category or "unknown").lower()
        name = self.normalize_text(finding.name)
        description = self.normalize_text(finding.description)
        return f"{category}_{name}_{description}"[: self.settings.ISSUE_KEY_MAX_LENGTH]

    # ── Field extraction ──────────────────────────

    @staticmethod
    def match_text(finding: Finding) -> str:
        """Name and description for keyword lookups, URLs masked."""
        return f"{finding.name} {mask_urls(finding.description)}".lower()

    def category(self, finding: Finding) -> str:
        return finding.category.strip() if finding.category and finding.category.strip() else UNKNOWN_CATEGORY

    def subcategory(self, finding: Finding) -> str:
        if finding.subcategory and finding.subcategory.strip():
            return finding.subcategory.strip()

        text = self.match_text(finding)
        for subcategory, groups in SUBCATEGORY_KEYWORDS:
            if _matches_all_groups(text, groups):
                return subcategory
        return OTHER_SUBCATEGORY

    def page_url(self, finding: Finding) -> str:
        if finding.page_url and finding.page_url.strip():
            return finding.page_url.strip()

        text = f"{finding.description or ''} {finding.notes or ''}"
        match = URL_RE.search(text)
        if match:
            return match.group(0)
        return UNKNOWN_URL

    def page_type(self, finding: Finding) -> PageType:
        if finding.page_type:
            try:
                return PageType(finding.page_type.strip().lower())
            except ValueError:
                logger.debug("Unrecognised page type, inferring from URL", page_type=finding.page_type)

        url = self.page_url(finding).lower()
        for hint, page_type in PAGE_TYPE_URL_HINTS:
            if hint in url:
                return page_type
        if url == "/" or "home" in url or self._is_site_root(url):
            return PageType.HOMEPAGE
        return PageType.OTHER

    @staticmethod
    def _is_site_root(url: str) -> bool:
        if not url.startswith(("http://", "https://")):
            return False
        try:
            return urlparse(url).path in ("", "/")
        except ValueError:
            return False

    def issue_type(self, finding: Finding) -> str:
        """Effort matrix key for the finding, or 'other'."""
        text = self.match_text(finding)
        for issue_type, groups in ISSUE_TYPE_KEYWORDS:
            if _matches_all_groups(text, groups):
                return issue_type
        return OTHER_ISSUE_TYPE

    # ── Entry point ───────────────────────────────

    def normalize(self, raw: Finding | Mapping[str, Any] | None) -> NormalizedFinding:
        finding = self.coerce(raw)
        return NormalizedFinding(
            finding=finding,
            issue_key=self.issue_key(finding),
            issue_type=self.issue_type(finding),
            category=self.category(finding),
            subcategory=self.subcategory(finding),
            page_url=self.page_url(finding),
            page_type=self.page_type(finding),
        )
