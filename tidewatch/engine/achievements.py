"""
tidewatch.engine.achievements — Achievement Criteria Pipeline
==============================================================

Handler-registry implementation for achievement evaluation.  Each
AchievementCategory maps to a pure handler that receives the definition's
criteria map and an AchievementContext of the user's aggregates.

A definition is satisfied when its criteria map is non-empty, every key is
an aggregate its category may reference, and every threshold is met.
Anything else (unknown key, non-numeric threshold, empty map) simply does not
fire.  Evaluation never raises on catalog content.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from tidewatch.database.models import AchievementCategory
from tidewatch.engine.catalog import AchievementCatalog, CatalogEntry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Aggregate keys each category may reference
# ---------------------------------------------------------------------------
REPORTING_KEYS: frozenset[str] = frozenset({"report_count", "category_count", "location_count"})
VERIFICATION_KEYS: frozenset[str] = frozenset({"validated_count"})
COMMUNITY_KEYS: frozenset[str] = frozenset({"points", "comment_count"})
ALL_KEYS: frozenset[str] = REPORTING_KEYS | VERIFICATION_KEYS | COMMUNITY_KEYS


# ---------------------------------------------------------------------------
# Achievement Context: passed to every category handler
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of a user's aggregates at evaluation time.

    Parameters
    ----------
    report_count : Non-deleted reports authored.
    validated_count : Authored reports currently in ``validated`` status.
    category_count : Distinct categories among authored reports.
    location_count : Distinct coordinates (rounded to 2 decimals).
    points : Current cumulative points.
    comment_count : Comments written.
    """

    report_count: int = 0
    validated_count: int = 0
    category_count: int = 0
    location_count: int = 0
    points: int = 0
    comment_count: int = 0

    def value(self, key: str) -> int:
        return getattr(self, key)

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Category handlers: pure functions (criteria, ctx) → bool
# ---------------------------------------------------------------------------
def _is_threshold(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _meets_all(criteria: Mapping[str, Any], ctx: AchievementContext, allowed: frozenset[str]) -> bool:
    if not criteria:
        return False
    for key, threshold in criteria.items():
        if key not in allowed or not _is_threshold(threshold):
            return False
        if ctx.value(key) < threshold:
            return False
    return True


def _check_reporting(criteria: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Config: {"report_count": 10} / {"category_count": 3} / {"location_count": 5}"""
    return _meets_all(criteria, ctx, REPORTING_KEYS)


def _check_verification(criteria: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Config: {"validated_count": 10}"""
    return _meets_all(criteria, ctx, VERIFICATION_KEYS)


def _check_community(criteria: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Config: {"points": 1000} / {"comment_count": 25}"""
    return _meets_all(criteria, ctx, COMMUNITY_KEYS)


def _check_special(criteria: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Any aggregate key; every listed threshold must be reached."""
    return _meets_all(criteria, ctx, ALL_KEYS)


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
CATEGORY_HANDLERS: dict[str, Callable[[Mapping[str, Any], AchievementContext], bool]] = {
    AchievementCategory.REPORTING: _check_reporting,
    AchievementCategory.VERIFICATION: _check_verification,
    AchievementCategory.COMMUNITY: _check_community,
    AchievementCategory.SPECIAL: _check_special,
}

CATEGORY_KEYS: dict[str, frozenset[str]] = {
    AchievementCategory.REPORTING: REPORTING_KEYS,
    AchievementCategory.VERIFICATION: VERIFICATION_KEYS,
    AchievementCategory.COMMUNITY: COMMUNITY_KEYS,
    AchievementCategory.SPECIAL: ALL_KEYS,
}


def is_satisfied(entry: CatalogEntry, ctx: AchievementContext) -> bool:
    handler = CATEGORY_HANDLERS.get(entry.category)
    if handler is None:
        return False
    return handler(entry.criteria, ctx)


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_achievements(
    catalog: AchievementCatalog,
    ctx: AchievementContext,
    already_earned: set[int],
) -> list[CatalogEntry]:
    """Return the catalog entries the user has newly satisfied, in catalog order."""
    newly_earned: list[CatalogEntry] = []
    for entry in catalog:
        if entry.id in already_earned:
            continue
        if is_satisfied(entry, ctx):
            newly_earned.append(entry)
            logger.debug("Achievement criteria met: %s (id=%d)", entry.name, entry.id)
    return newly_earned


def criteria_progress(entry: CatalogEntry, ctx: AchievementContext) -> tuple[int, int, int]:
    """Return ``(current, target, percent)`` for display.

    With several criteria the least-advanced one is reported.  Malformed
    criteria report ``(0, 0, 0)``.
    """
    allowed = CATEGORY_KEYS.get(entry.category, frozenset())
    worst: tuple[int, int, int] | None = None
    for key, threshold in entry.criteria.items():
        if key not in allowed or not _is_threshold(threshold):
            return 0, 0, 0
        current = ctx.value(key)
        target = int(threshold)
        percent = 100 if target <= 0 else min(int(current * 100 / target), 100)
        if worst is None or percent < worst[2]:
            worst = (current, target, percent)
    return worst or (0, 0, 0)
