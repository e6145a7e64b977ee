"""
tidewatch.engine.scoring — Validation Score Heuristic
======================================================

Pure calculation of a report's evidence-completeness score (0–100).

The score is always derived from content and never accepted as input.  It is
recomputed by the report service on every content mutation and stored only
as a denormalised copy for sorting.

Scoring table::

    base                                  10
    ≥ 1 photo                            +20
    > 2 photos                           +10
    coordinate pair (exactly 2 values)   +15
    description longer than 100 chars    +10
    description longer than 300 chars     +5
    estimated area present               +10
    ≥ 1 tag                               +5
"""

from __future__ import annotations

from typing import Any, Protocol

BASE_SCORE = 10
MAX_SCORE = 100


class ScorableContent(Protocol):
    """Anything exposing the content the score looks at.

    Both :class:`~tidewatch.database.models.Report` and
    :class:`~tidewatch.schemas.ReportDraft` satisfy it.
    """

    @property
    def photos(self) -> list[Any]: ...

    @property
    def coordinates(self) -> list[float]: ...

    description: str
    estimated_area: Any
    tags: list[str] | None


def compute_validation_score(report: ScorableContent) -> int:
    """Return the validation score for *report*, clamped to [0, 100]."""
    score = BASE_SCORE

    photos = report.photos or []
    if len(photos) >= 1:
        score += 20
    if len(photos) > 2:
        score += 10

    coords = report.coordinates or []
    if len(coords) == 2:
        score += 15

    desc_len = len(report.description or "")
    if desc_len > 100:
        score += 10
    if desc_len > 300:
        score += 5

    if report.estimated_area:
        score += 10

    if report.tags:
        score += 5

    return max(0, min(score, MAX_SCORE))
