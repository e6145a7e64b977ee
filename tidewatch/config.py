"""
tidewatch.config — YAML Configuration Loader
=============================================

Reads ``config.yaml`` for community identity, point values per action and
leaderboard limits.  Secrets (``DATABASE_URL``) stay in the
environment and are loaded via python-dotenv by the entry point.

Usage::

    from tidewatch.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.community_name)        # "Tidewatch Dev"
    print(cfg.points.submit_report)  # 10
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Point values awarded per ledger action
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PointValues:
    """Points credited by the reward pipeline for each report-driven action."""

    submit_report: int = 10
    verified_report: int = 20
    comment: int = 2
    verify_report: int = 5
    first_report: int = 50


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TidewatchConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Gameplay
    points: PointValues = field(default_factory=PointValues)

    # Leaderboard
    leaderboard_default_limit: int = 20
    leaderboard_max_limit: int = 100

    # Seeds
    seed_catalog: bool = True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> TidewatchConfig:
    """Read *path* and return a :class:`TidewatchConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    points_raw: dict = raw.get("points") or {}
    defaults = PointValues()
    points = PointValues(
        submit_report=int(points_raw.get("submit_report", defaults.submit_report)),
        verified_report=int(points_raw.get("verified_report", defaults.verified_report)),
        comment=int(points_raw.get("comment", defaults.comment)),
        verify_report=int(points_raw.get("verify_report", defaults.verify_report)),
        first_report=int(points_raw.get("first_report", defaults.first_report)),
    )

    leaderboard: dict = raw.get("leaderboard") or {}

    return TidewatchConfig(
        community_name=raw["community_name"],
        points=points,
        leaderboard_default_limit=int(leaderboard.get("default_limit", 20)),
        leaderboard_max_limit=int(leaderboard.get("max_limit", 100)),
        seed_catalog=bool(raw.get("seed_catalog", True)),
    )
