"""
Tidewatch — Community Incident Reporting for Mangrove Habitats
===============================================================
Lets distributed observers submit incident reports, routes them through a
moderation lifecycle, and rewards participation with points, levels,
achievements and leaderboards.

Package layout::

    tidewatch/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Level table (canonical formula), roles, tags
    ├── errors.py          # Domain error taxonomy
    ├── schemas.py         # Pydantic drafts, updates, role info variants
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session helper, async bridge
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default achievement catalog seeder
    ├── engine/
    │   ├── scoring.py     # Validation score heuristic
    │   ├── lifecycle.py   # Report state machine + permission predicates
    │   ├── achievements.py # Category handlers for achievement criteria
    │   ├── catalog.py     # Immutable achievement catalog
    │   └── events.py      # Domain events + in-process event bus
    └── services/
        ├── report_service.py       # Submit / review / resolve / engagement
        ├── ledger_service.py       # Point ledger (append + increment)
        ├── achievement_service.py  # Aggregates, idempotent grants
        ├── reward_service.py       # Transition → points → achievements
        ├── leaderboard_service.py  # Ranked snapshots
        ├── stats_service.py        # Report statistics, user profile
        ├── notification_service.py # Fire-and-forget notifications
        └── user_service.py         # Minimal user records
"""

__version__ = "0.1.0"
