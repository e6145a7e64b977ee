"""
tests/test_config.py — YAML Configuration Loader Tests
=======================================================
"""

from __future__ import annotations

import pytest

from tidewatch.config import PointValues, TidewatchConfig, load_config


def test_missing_file_hints_at_example(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "config.yaml")


def test_defaults_when_sections_omitted(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('community_name: "Pichavaram Watch"\n', encoding="utf-8")

    cfg = load_config(path)

    assert cfg.community_name == "Pichavaram Watch"
    assert cfg.points == PointValues()
    assert (cfg.leaderboard_default_limit, cfg.leaderboard_max_limit) == (20, 100)
    assert cfg.seed_catalog is True


def test_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "community_name: Sundarbans\n"
        "points:\n"
        "  submit_report: 15\n"
        "  first_report: 0\n"
        "leaderboard:\n"
        "  max_limit: 50\n"
        "seed_catalog: false\n",
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg.points.submit_report == 15
    assert cfg.points.first_report == 0
    assert cfg.points.comment == 2
    assert cfg.leaderboard_max_limit == 50
    assert cfg.seed_catalog is False


def test_missing_community_name(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("points: {}\n", encoding="utf-8")
    with pytest.raises(KeyError):
        load_config(path)


def test_config_is_frozen():
    cfg = TidewatchConfig(community_name="x")
    with pytest.raises(AttributeError):
        cfg.community_name = "y"


def test_unknown_keys_ignored(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("community_name: x\nnearby_radius_m: 2500\n", encoding="utf-8")
    cfg = load_config(path)
    assert not hasattr(cfg, "nearby_radius_m")
