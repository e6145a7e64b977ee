"""
tidewatch.services.user_service — Minimal User Records
=======================================================

Registration and authentication live outside the core; this is just enough
to create the users actors resolve to and to read them back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from tidewatch.constants import Role
from tidewatch.database.engine import get_session
from tidewatch.database.models import User
from tidewatch.errors import InvalidContent, NotFound
from tidewatch.schemas import parse_role_info

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def create_user(
    engine: Engine,
    display_name: str,
    role: Role | str = Role.COASTAL_RESIDENT,
    *,
    email: str | None = None,
    region: str | None = None,
    role_info: dict[str, Any] | None = None,
) -> User:
    """Insert a user whose role info matches the role's family."""
    try:
        role = Role(role)
    except ValueError as exc:
        raise InvalidContent(
            "Unknown role", [{"field": "role", "message": f"unknown role {role!r}"}]
        ) from exc
    if not display_name or not display_name.strip():
        raise InvalidContent(
            "Display name required", [{"field": "display_name", "message": "must not be empty"}]
        )
    info = parse_role_info(role, role_info)

    with get_session(engine) as session:
        user = User(
            display_name=display_name.strip(),
            email=email,
            role=role.value,
            region=region,
            role_info=info.model_dump(),
        )
        session.add(user)
        session.flush()

    logger.info("Created user %d (%s, %s)", user.id, user.display_name, user.role)
    return user


def get_user(engine: Engine, user_id: int) -> User:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user
