"""
tidewatch.engine.catalog — Immutable Achievement Catalog
=========================================================

The set of achievement definitions is read-mostly, so it is loaded once at
startup into an :class:`AchievementCatalog` and passed explicitly to every
operation that evaluates achievements.  Tests build catalogs by hand.

Entries are detached, frozen snapshots; the catalog never touches a session
after :func:`load_catalog` returns.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from tidewatch.database.models import AchievementCategory, AchievementDefinition

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """One achievement definition.

    ``criteria`` maps an aggregate name (e.g. ``report_count``) to the
    threshold that must be reached.
    """

    id: int
    name: str
    category: AchievementCategory
    points: int = 0
    criteria: Mapping[str, Any] = field(default_factory=dict)
    description: str | None = None
    icon: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "criteria", MappingProxyType(dict(self.criteria or {})))

    @classmethod
    def from_row(cls, row: AchievementDefinition) -> CatalogEntry:
        return cls(
            id=row.id,
            name=row.name,
            category=AchievementCategory(row.category),
            points=row.points or 0,
            criteria=row.criteria or {},
            description=row.description,
            icon=row.icon,
        )


class AchievementCatalog:
    """Read-only collection of :class:`CatalogEntry` keyed by id and name."""

    __slots__ = ("_entries", "_by_id", "_by_name")

    def __init__(self, entries: Iterable[CatalogEntry] = ()) -> None:
        self._entries: tuple[CatalogEntry, ...] = tuple(entries)
        self._by_id = {e.id: e for e in self._entries}
        self._by_name = {e.name: e for e in self._entries}

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, achievement_id: int) -> CatalogEntry | None:
        return self._by_id.get(achievement_id)

    def by_name(self, name: str) -> CatalogEntry | None:
        return self._by_name.get(name)


def load_catalog(engine: Engine) -> AchievementCatalog:
    """Snapshot every active definition, ordered by id."""
    with Session(engine) as session:
        rows = session.scalars(
            select(AchievementDefinition)
            .where(AchievementDefinition.active.is_(True))
            .order_by(AchievementDefinition.id)
        ).all()
        entries = []
        for row in rows:
            try:
                entries.append(CatalogEntry.from_row(row))
            except ValueError:
                logger.warning(
                    "Skipping achievement %r with unknown category %r", row.name, row.category
                )
    logger.info("Achievement catalog loaded: %d definitions", len(entries))
    return AchievementCatalog(entries)
