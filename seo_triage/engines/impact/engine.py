"""
Business Impact Model

impact(category, subcategory, page_type) → low | medium | high

Looks up the base impact for (category, subcategory), applies the page-type
multiplier and maps the pair back onto a discrete level through the
combination table in core.tables. Findings without a rule fall back to their
own coarse importance.
"""

from __future__ import annotations

import structlog

from seo_triage.engines.base import Importance, Level, PageType, TriageEngine

logger = structlog.get_logger(__name__)


class BusinessImpactModel(TriageEngine):

    ENGINE_NAME = "impact"

    def impact(
        self,
        category: str | None,
        subcategory: str | None,
        page_type: PageType | str | None,
        importance: Importance | str | None = None,
    ) -> Level:
        rule = self.tables.impact_rule(category or "Unknown", subcategory or "Other")
        if rule is None:
            return self.level_from_importance(importance)

        page_type_value = page_type.value if isinstance(page_type, PageType) else (page_type or PageType.OTHER.value)
        multiplier = rule.page_type_multipliers.for_page_type(page_type_value)
        return self.combine(Level(rule.base_impact), multiplier)

    def combine(self, base: Level, multiplier: float) -> Level:
        """Resolve a (base, multiplier) pair with the combination table."""
        for row_base, min_multiplier, result in self.tables.impact_combinations:
            if base.value == row_base and multiplier >= min_multiplier:
                return Level(result)
        return base
