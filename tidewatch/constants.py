"""
tidewatch.constants — Shared Constants & Helpers
=================================================

Single source of truth for the leveling formula, role groupings and ledger
action tags.  Import from here instead of duplicating in services.
"""

from __future__ import annotations

import enum
from bisect import bisect_right


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
class Role(enum.StrEnum):
    """Every role the authorization collaborator may hand us."""
    SUPER_ADMIN = "super_admin"
    NGO_ADMIN = "ngo_admin"
    GOVERNMENT_OFFICER = "government_officer"
    RESEARCHER = "researcher"
    FISHERMAN = "fisherman"
    COASTAL_RESIDENT = "coastal_resident"
    CITIZEN_SCIENTIST = "citizen_scientist"
    LOCAL_GUIDE = "local_guide"
    PUBLIC_VISITOR = "public_visitor"


REVIEWER_ROLES: frozenset[Role] = frozenset({
    Role.SUPER_ADMIN,
    Role.NGO_ADMIN,
    Role.GOVERNMENT_OFFICER,
})

# May edit any report / award points by hand
PRIVILEGED_ROLES: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.NGO_ADMIN})

# May re-review a report that already reached a review outcome
OVERRIDE_ROLES: frozenset[Role] = frozenset({Role.SUPER_ADMIN})

NON_REPORTING_ROLES: frozenset[Role] = frozenset({Role.PUBLIC_VISITOR})


# ---------------------------------------------------------------------------
# Ledger action tags
# ---------------------------------------------------------------------------
class LedgerAction(enum.StrEnum):
    SUBMIT_REPORT = "SUBMIT_REPORT"
    FIRST_REPORT = "FIRST_REPORT"
    VERIFIED_REPORT = "VERIFIED_REPORT"
    VERIFIED_REPORT_REVERSED = "VERIFIED_REPORT_REVERSED"
    VERIFY_REPORT = "VERIFY_REPORT"
    COMMENT = "COMMENT"
    MANUAL_AWARD = "MANUAL_AWARD"


def achievement_action(name: str) -> str:
    """Ledger tag used when an achievement's bonus points are credited."""
    return f"ACHIEVEMENT_{name}"


# ---------------------------------------------------------------------------
# Leveling formula: THE single canonical implementation
# ---------------------------------------------------------------------------
# Lower bound (inclusive) of levels 1..10.
LEVEL_THRESHOLDS: tuple[int, ...] = (0, 100, 300, 600, 1000, 1500, 2100, 2800, 3600, 4500)
MAX_LEVEL = len(LEVEL_THRESHOLDS)


def level_for_points(points: int) -> int:
    """Level reached with *points* cumulative points.

    Step table::

        0–99 → 1, 100–299 → 2, 300–599 → 3, 600–999 → 4, 1000–1499 → 5,
        1500–2099 → 6, 2100–2799 → 7, 2800–3599 → 8, 3600–4499 → 9,
        ≥4500 → 10

    Negative totals (after corrections) stay at level 1.
    """
    return max(bisect_right(LEVEL_THRESHOLDS, points), 1)


def points_for_level(level: int) -> int:
    """Minimum cumulative points needed to hold *level*."""
    if level < 1 or level > MAX_LEVEL:
        raise ValueError(f"level must be between 1 and {MAX_LEVEL}, got {level}")
    return LEVEL_THRESHOLDS[level - 1]


def level_progress(points: int) -> tuple[int, int, int | None, int]:
    """Return ``(level, level_floor, next_threshold, percent)``.

    ``next_threshold`` is ``None`` at the top level, where percent is 100.
    """
    level = level_for_points(points)
    floor = points_for_level(level)
    if level == MAX_LEVEL:
        return level, floor, None, 100
    nxt = LEVEL_THRESHOLDS[level]
    percent = int(max(points - floor, 0) * 100 / (nxt - floor))
    return level, floor, nxt, percent
