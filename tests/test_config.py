import json

import pytest

from tripscout import config

_KEYS = [
    "DEFAULT_REGION",
    "NARROW_RADIUS_M",
    "NARROW_SIZE",
    "WIDE_RADIUS_M",
    "WIDE_SIZE_PER_REGION",
    "POLYGON_GRID_SPACING_DEG",
    "POLYGON_RADIUS_M",
    "POLYGON_SIZE_PER_POINT",
    "POLYGON_MAX_GRID_POINTS",
    "MIN_PER_CATEGORY",
    "TOP_PER_CATEGORY",
    "TOTAL_CAP",
    "FANOUT_MAX_WORKERS",
]


@pytest.fixture
def restore_config(monkeypatch):
    for key in _KEYS:
        monkeypatch.setattr(config, key, getattr(config, key))


def test_missing_config_file_returns_false(tmp_path):
    assert config.load_search_config(str(tmp_path / "nope.json")) is False


def test_load_search_config_updates_and_clamps(tmp_path, restore_config):
    path = tmp_path / "search_config.json"
    path.write_text(
        json.dumps(
            {
                "default_region": " 부산 ",
                "narrow": {"radius_m": 50000, "size": 40},
                "wide": {"radius_m": 2000, "size_per_region": 7},
                "polygon": {"grid_spacing_deg": 0.02, "max_grid_points": 20},
                "rebalance": {"min_per_category": 2, "total_cap": 12},
                "max_workers": 4,
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )

    assert config.load_search_config(str(path)) is True

    settings = config.search_settings()
    assert settings.default_region == "부산"
    assert settings.narrow_radius_m == config.MAX_RADIUS_M
    assert settings.narrow_size == config.MAX_PAGE_SIZE
    assert settings.wide_radius_m == 2000
    assert settings.wide_size_per_region == 7
    assert settings.grid_spacing_deg == 0.02
    assert settings.max_grid_points == 20
    assert settings.min_per_category == 2
    assert settings.top_per_category == 1
    assert settings.total_cap == 12
    assert settings.max_workers == 4


def test_non_positive_grid_spacing_is_rejected(tmp_path, restore_config):
    path = tmp_path / "search_config.json"
    path.write_text(json.dumps({"polygon": {"grid_spacing_deg": 0}}), encoding="utf-8")
    with pytest.raises(ValueError):
        config.load_search_config(str(path))


def test_clamps():
    assert config.clamp_radius(25_000) == 20_000
    assert config.clamp_radius(0) == 1
    assert config.clamp_size(100) == 15
    assert config.clamp_size(5) == 5
