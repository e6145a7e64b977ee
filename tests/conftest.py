"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import Engine, create_engine

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from tidewatch.constants import Role
from tidewatch.database.models import AchievementCategory, Base
from tidewatch.engine.catalog import AchievementCatalog, CatalogEntry
from tidewatch.engine.lifecycle import Actor
from tidewatch.services.user_service import create_user

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Tidewatch tables.

    Uses StaticPool so every session (and ``asyncio.to_thread`` in
    ``run_db``) shares the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------
@pytest.fixture
def empty_catalog() -> AchievementCatalog:
    """No achievements, so point totals only reflect action awards."""
    return AchievementCatalog()


def catalog_entry(
    id: int,
    name: str,
    category: AchievementCategory = AchievementCategory.REPORTING,
    criteria: dict | None = None,
    points: int = 0,
) -> CatalogEntry:
    return CatalogEntry(id=id, name=name, category=category, points=points, criteria=criteria or {})


# ---------------------------------------------------------------------------
# Users / actors
# ---------------------------------------------------------------------------
_ROLE_INFO: dict[Role, dict[str, Any]] = {
    Role.NGO_ADMIN: {"organization_name": "Mangrove Action Network"},
    Role.GOVERNMENT_OFFICER: {"government_id": "GOV-001", "department": "Forestry"},
}


@pytest.fixture
def make_actor(db_engine: Engine) -> Callable[..., Actor]:
    """Factory: insert a user and return the matching Actor."""
    counter = iter(range(1, 10_000))

    def _make(
        role: Role = Role.COASTAL_RESIDENT,
        *,
        name: str | None = None,
        region: str | None = None,
        email: str | None = None,
    ) -> Actor:
        n = next(counter)
        user = create_user(
            db_engine,
            name or f"{role.value}-{n}",
            role,
            email=email if email is not None else f"user{n}@example.org",
            region=region,
            role_info=_ROLE_INFO.get(role),
        )
        return Actor(user_id=user.id, role=role)

    return _make


@pytest.fixture
def reporter(make_actor) -> Actor:
    return make_actor(Role.FISHERMAN, name="Asha", region="Kerala")


@pytest.fixture
def ngo_admin(make_actor) -> Actor:
    return make_actor(Role.NGO_ADMIN, name="Ngo Reviewer")


@pytest.fixture
def officer(make_actor) -> Actor:
    return make_actor(Role.GOVERNMENT_OFFICER, name="Officer")


@pytest.fixture
def super_admin(make_actor) -> Actor:
    return make_actor(Role.SUPER_ADMIN, name="Root")


# ---------------------------------------------------------------------------
# Report drafts
# ---------------------------------------------------------------------------
def draft_data(**overrides: Any) -> dict[str, Any]:
    """A valid report draft scoring 55 (one photo, coordinates, 150-char description)."""
    data: dict[str, Any] = {
        "title": "Illegal cutting spotted",
        "description": "x" * 150,
        "category": "illegal_cutting",
        "location": {"coordinates": [79.85, 9.28]},
        "media": [{"url": "https://media.example.org/p1.jpg"}],
    }
    data.update(overrides)
    return data
