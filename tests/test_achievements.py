"""
tests/test_achievements.py — Unit Tests for the Achievement Criteria Pipeline
==============================================================================

Tests the category-handler engine with AchievementContext, criteria maps,
already-earned filtering, and malformed criteria.
"""

from __future__ import annotations

import pytest
from conftest import catalog_entry

from tidewatch.database.models import AchievementCategory as C
from tidewatch.engine.achievements import (
    AchievementContext,
    check_achievements,
    criteria_progress,
)
from tidewatch.engine.catalog import AchievementCatalog


def _ctx(**kwargs) -> AchievementContext:
    """Build an AchievementContext with sensible defaults."""
    return AchievementContext(**kwargs)


def _ids(entries) -> set[int]:
    return {e.id for e in entries}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def catalog() -> AchievementCatalog:
    return AchievementCatalog([
        catalog_entry(1, "first_report", C.REPORTING, {"report_count": 1}, 10),
        catalog_entry(2, "explorer", C.REPORTING, {"location_count": 5}, 75),
        catalog_entry(3, "validator", C.VERIFICATION, {"validated_count": 10}, 100),
        catalog_entry(4, "leader", C.COMMUNITY, {"points": 1000}),
        catalog_entry(5, "chatty", C.COMMUNITY, {"comment_count": 25}, 25),
        catalog_entry(6, "all_rounder", C.SPECIAL, {"category_count": 6, "validated_count": 3}, 100),
    ])


# ---------------------------------------------------------------------------
# Tests: Individual categories
# ---------------------------------------------------------------------------
class TestCategories:
    def test_reporting_count(self, catalog):
        assert 1 in _ids(check_achievements(catalog, _ctx(report_count=1), set()))

    def test_reporting_below(self, catalog):
        assert 1 not in _ids(check_achievements(catalog, _ctx(report_count=0), set()))

    def test_reporting_locations(self, catalog):
        assert 2 in _ids(check_achievements(catalog, _ctx(location_count=5), set()))
        assert 2 not in _ids(check_achievements(catalog, _ctx(location_count=4), set()))

    def test_verification(self, catalog):
        assert 3 in _ids(check_achievements(catalog, _ctx(validated_count=10), set()))
        assert 3 not in _ids(check_achievements(catalog, _ctx(validated_count=9), set()))

    def test_community_points(self, catalog):
        assert 4 in _ids(check_achievements(catalog, _ctx(points=1000), set()))

    def test_community_comments(self, catalog):
        assert 5 in _ids(check_achievements(catalog, _ctx(comment_count=30), set()))

    def test_special_requires_every_threshold(self, catalog):
        assert 6 not in _ids(check_achievements(catalog, _ctx(category_count=6), set()))
        assert 6 in _ids(check_achievements(catalog, _ctx(category_count=6, validated_count=3), set()))


# ---------------------------------------------------------------------------
# Tests: Malformed criteria never fire and never raise
# ---------------------------------------------------------------------------
class TestMalformedCriteria:
    @pytest.mark.parametrize("category,criteria", [
        (C.REPORTING, {}),
        (C.REPORTING, {"validated_count": 1}),          # key from another family
        (C.VERIFICATION, {"report_count": 1}),
        (C.COMMUNITY, {"points": "lots"}),              # non-numeric
        (C.COMMUNITY, {"points": True}),
        (C.SPECIAL, {"karma": 1}),                      # unknown aggregate
        (C.REPORTING, {"report_count": 1, "bogus": 1}),
    ])
    def test_skipped(self, category, criteria):
        catalog = AchievementCatalog([catalog_entry(99, "bad", category, criteria)])
        rich = _ctx(report_count=999, validated_count=999, category_count=999,
                    location_count=999, points=999_999, comment_count=999)
        assert check_achievements(catalog, rich, set()) == []


# ---------------------------------------------------------------------------
# Tests: Already earned & multiple
# ---------------------------------------------------------------------------
class TestEarnedFiltering:
    def test_already_earned_skipped(self, catalog):
        ctx = _ctx(report_count=99, location_count=99, validated_count=99,
                   points=9999, comment_count=99, category_count=6)
        assert check_achievements(catalog, ctx, {1, 2, 3, 4, 5, 6}) == []

    def test_multiple_at_once_in_catalog_order(self, catalog):
        ctx = _ctx(report_count=5, location_count=5, points=1200)
        assert [e.id for e in check_achievements(catalog, ctx, set())] == [1, 2, 4]


class TestProgress:
    def test_single_criterion(self, catalog):
        assert criteria_progress(catalog.get(3), _ctx(validated_count=4)) == (4, 10, 40)

    def test_least_advanced_reported(self, catalog):
        ctx = _ctx(category_count=3, validated_count=3)
        assert criteria_progress(catalog.get(6), ctx) == (3, 6, 50)

    def test_capped_at_100(self, catalog):
        assert criteria_progress(catalog.get(1), _ctx(report_count=7)) == (7, 1, 100)

    def test_malformed(self):
        entry = catalog_entry(1, "bad", C.VERIFICATION, {"points": 10})
        assert criteria_progress(entry, _ctx(points=50)) == (0, 0, 0)


class TestCatalog:
    def test_lookup(self, catalog):
        assert len(catalog) == 6
        assert catalog.by_name("validator").id == 3
        assert catalog.get(42) is None

    def test_entries_are_read_only(self, catalog):
        entry = catalog.get(1)
        with pytest.raises(TypeError):
            entry.criteria["report_count"] = 0
