"""
Base class and type contracts for all triage engines.

Design principles:
- Engines are stateless: all state comes from the findings passed in
- Engines hold only immutable settings and lookup tables
- Engines never raise on sparse or malformed findings; every field has a default
- Engines return frozen pydantic models, never mutate their inputs
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from seo_triage.core.config import Settings, get_settings
from seo_triage.core.tables import TriageTables, get_default_tables

logger = structlog.get_logger(__name__)


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class Importance(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Level(str, Enum):
    """Shared three-step scale for severity, effort and business impact."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Verdict(str, Enum):
    STANDARD = "Standard OFI"
    PRIORITY = "Priority OFI"


class Criterion(str, Enum):
    SEO_VISIBILITY_IMPACT = "seo_visibility_impact"
    USER_EXPERIENCE_IMPACT = "user_experience_impact"
    BUSINESS_IMPACT = "business_impact"
    COMPLIANCE_RISK = "compliance_risk"


class PageType(str, Enum):
    HOMEPAGE = "homepage"
    SERVICE = "service"
    CONTACT = "contact"
    LOCATION = "location"
    OTHER = "other"


class PagePriority(IntEnum):
    TIER_1 = 1   # Homepage, primary service pages, key landing pages
    TIER_2 = 2   # Category pages, secondary services, about/contact
    TIER_3 = 3   # Blog posts, archives, utility pages


class SiteSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class BusinessType(str, Enum):
    LOCAL = "local"
    ECOMMERCE = "ecommerce"
    CORPORATE = "corporate"
    NONPROFIT = "nonprofit"


class EngineStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


LEVEL_SCORES: dict[Level, int] = {
    Level.LOW: 1,
    Level.MEDIUM: 2,
    Level.HIGH: 3,
}


# ─────────────────────────────────────────────
# Input
# ─────────────────────────────────────────────

class Finding(BaseModel):
    """A single reported defect (OFI) as produced by the crawler/analyzer."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = ""
    description: str | None = None
    status: str | None = None
    importance: Importance = Importance.LOW
    category: str | None = None
    subcategory: str | None = None
    page_url: str | None = Field(default=None, alias="pageUrl")
    page_type: str | None = Field(default=None, alias="pageType")
    notes: str | None = None

    @field_validator("importance", mode="before")
    @classmethod
    def coerce_importance(cls, v: Any) -> Importance:
        if isinstance(v, Importance):
            return v
        if isinstance(v, str):
            for member in Importance:
                if member.value.lower() == v.strip().lower():
                    return member
        return Importance.LOW

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> str:
        return "" if v is None else str(v)


class ClassificationMetrics(BaseModel):
    """Optional numeric evidence. Strengthens justification text only."""
    model_config = ConfigDict(frozen=True)

    performance_impact: float | None = None       # % degradation
    user_base_affected: float | None = None       # % of users
    revenue_impact_per_day: float | None = None   # currency units
    support_tickets_per_day: float | None = None
    cvss_score: float | None = None
    memory_leak_rate: float | None = None         # MB per hour
    blocked_initiatives: int | None = None
    incident_rate_increase: float | None = None   # %
    eol_months: int | None = None


class CompetitiveContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    industry_competitiveness: Level = Level.MEDIUM
    current_ranking_position: int | None = None
    target_keywords: list[str] = Field(default_factory=list)


class TrafficImportance(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly_traffic: int | None = None
    conversion_value: float | None = None
    business_criticality: Level = Level.MEDIUM


class PageContext(BaseModel):
    """Optional enrichment describing a page's role and value."""
    model_config = ConfigDict(frozen=True)

    page_type: PageType = PageType.OTHER
    page_priority: PagePriority = PagePriority.TIER_2
    site_size: SiteSize = SiteSize.MEDIUM
    business_type: BusinessType = BusinessType.CORPORATE
    competitive_context: CompetitiveContext | None = None
    traffic_importance: TrafficImportance | None = None


# ─────────────────────────────────────────────
# Classification output
# ─────────────────────────────────────────────

class ClassificationCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    seo_visibility_impact: bool = False
    user_experience_impact: bool = False
    business_impact: bool = False
    compliance_risk: bool = False

    def count(self) -> int:
        return sum(1 for met in self.model_dump().values() if met)

    def is_met(self, criterion: Criterion) -> bool:
        return bool(getattr(self, criterion.value))


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)

    verdict: Verdict
    criteria: ClassificationCriteria
    justification: str
    decision_trace: list[str] = Field(default_factory=list)
    requires_validation: bool = False
    metrics: ClassificationMetrics = Field(default_factory=ClassificationMetrics)
    matched_rules: list[str] = Field(default_factory=list)
    downgraded_reason: str | None = None
    score: float = 0.0
    threshold: float = 2.0
    context_factors: list[str] = Field(default_factory=list)


class ThresholdAdjustment(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    adjustment: float
    reason: str


class ThresholdRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float
    reasoning: list[str] = Field(default_factory=list)
    adjustments: list[ThresholdAdjustment] = Field(default_factory=list)


# ─────────────────────────────────────────────
# Grouping output
# ─────────────────────────────────────────────

class NormalizedFinding(BaseModel):
    """A finding plus the canonical fields extracted by the normalizer."""
    model_config = ConfigDict(frozen=True)

    finding: Finding
    issue_key: str
    issue_type: str
    category: str
    subcategory: str
    page_url: str
    page_type: PageType


class GroupAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    url_patterns: list[str] = Field(default_factory=list)
    pattern_similarity: float = 0.0
    common_characteristics: list[str] = Field(default_factory=list)
    template_evidence: list[str] = Field(default_factory=list)


class IssueGroup(BaseModel):
    """A cluster of findings sharing one normalized issue key."""
    model_config = ConfigDict(frozen=True)

    issue_type: str
    effort_type: str = "other"
    pages: list[str] = Field(default_factory=list)
    severity: Level = Level.LOW
    effort: Level = Level.LOW
    business_impact: Level = Level.LOW
    is_template_issue: bool = False
    category: str = "Unknown"
    subcategory: str = "Other"
    description: str = ""
    analysis: GroupAnalysis = Field(default_factory=GroupAnalysis)
    priority_score: float = 0.0


class EfficiencyGains(BaseModel):
    template_fixes_available: int = 0
    pages_fixed_by_templates: int = 0
    pages_fixed_for_free: int = 0
    fixes_required: int = 0
    effort_reduction_percent: int = 0
    estimated_effort_reduction: str = ""


class GroupingReport(BaseModel):
    total_groups: int = 0
    template_issues: int = 0
    individual_issues: int = 0
    high_priority_groups: int = 0
    total_pages_affected: int = 0
    top_priority_groups: list[IssueGroup] = Field(default_factory=list)
    efficiency_gains: EfficiencyGains = Field(default_factory=EfficiencyGains)


class ClassificationReport(BaseModel):
    total_classified: int = 0
    priority_ofi_count: int = 0
    standard_ofi_count: int = 0
    flagged_for_validation: int = 0
    downgraded_count: int = 0
    priority_ratio: float = 0.0
    criteria_hits: dict[str, int] = Field(default_factory=dict)
    average_threshold: float = 0.0
    threshold_range: tuple[float, float] = (0.0, 0.0)
    recommendations: list[str] = Field(default_factory=list)


class FindingClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    finding: Finding
    result: ClassificationResult
    context: PageContext | None = None


class TriageResult(BaseModel):
    classifications: list[FindingClassification] = Field(default_factory=list)
    groups: list[IssueGroup] = Field(default_factory=list)
    grouping_report: GroupingReport = Field(default_factory=GroupingReport)
    classification_report: ClassificationReport = Field(default_factory=ClassificationReport)
    status: EngineStatus = EngineStatus.SUCCESS
    execution_time_ms: float = 0.0
    error_message: str | None = None


# ─────────────────────────────────────────────
# Base Engine
# ─────────────────────────────────────────────

class TriageEngine:
    """
    Common base for triage engines.

    All engines MUST:
    1. Be stateless - store nothing on self between calls
    2. Take settings/tables by injection, falling back to process defaults
    3. Never raise on sparse findings
    """

    ENGINE_NAME: str = "base"

    def __init__(
        self,
        settings: Settings | None = None,
        tables: TriageTables | None = None,
    ):
        self.settings = settings or get_settings()
        self.tables = tables or get_default_tables()
        self.logger = structlog.get_logger(self.__class__.__name__)

    @staticmethod
    def level_from_importance(importance: Importance | str | None) -> Level:
        """Map the coarse High/Medium/Low importance onto the shared scale."""
        value = importance.value if isinstance(importance, Importance) else str(importance or "")
        if value == Importance.HIGH.value:
            return Level.HIGH
        if value == Importance.MEDIUM.value:
            return Level.MEDIUM
        return Level.LOW
