"""Project configuration.

Loads user-defined search parameters from search_config.json when available,
falling back to sensible defaults. Keep provider request shapes and ceilings
centralized here.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

KAKAO_BASE_URL = "https://dapi.kakao.com"
KAKAO_ADDRESS_SEARCH_URL = f"{KAKAO_BASE_URL}/v2/local/search/address.json"
KAKAO_CATEGORY_SEARCH_URL = f"{KAKAO_BASE_URL}/v2/local/search/category.json"
KAKAO_KEYWORD_SEARCH_URL = f"{KAKAO_BASE_URL}/v2/local/search/keyword.json"
KAKAO_COORD2REGION_URL = f"{KAKAO_BASE_URL}/v2/local/geo/coord2regioncode.json"

VWORLD_WFS_URL = "https://api.vworld.kr/req/wfs"
VWORLD_DOMAIN = "http://localhost:4141"
VWORLD_SIGG_LAYER = "lt_c_adsigg_info"

# --- Provider ceilings (documented maxima, callers cannot exceed) ---

MAX_RADIUS_M = 20000
MAX_PAGE_SIZE = 15

# --- Search strategy defaults ---

DEFAULT_REGION = "서울"

NARROW_RADIUS_M = 3000
NARROW_SIZE = 15

WIDE_RADIUS_M = 3000
WIDE_SIZE_PER_REGION = 5

POLYGON_GRID_SPACING_DEG = 0.05
POLYGON_RADIUS_M = 3000
POLYGON_SIZE_PER_POINT = 15
POLYGON_MAX_GRID_POINTS = 50

EXPAND_FACTOR = 1.5
EXPAND_MAX_RADIUS_M = 10000

# --- Rebalancing ---

MIN_PER_CATEGORY = 4
TOP_PER_CATEGORY = 1
TOTAL_CAP: Optional[int] = None

# --- Fan-out ---

FANOUT_MAX_WORKERS = 8
CANCEL_POLL_SECONDS = 0.1

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 10
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Outputs ---

OUTPUT_DIR = "out"


@dataclass(frozen=True)
class SearchSettings:
    default_region: str = DEFAULT_REGION
    narrow_radius_m: int = NARROW_RADIUS_M
    narrow_size: int = NARROW_SIZE
    wide_radius_m: int = WIDE_RADIUS_M
    wide_size_per_region: int = WIDE_SIZE_PER_REGION
    grid_spacing_deg: float = POLYGON_GRID_SPACING_DEG
    polygon_radius_m: int = POLYGON_RADIUS_M
    polygon_size_per_point: int = POLYGON_SIZE_PER_POINT
    max_grid_points: int = POLYGON_MAX_GRID_POINTS
    min_per_category: int = MIN_PER_CATEGORY
    top_per_category: int = TOP_PER_CATEGORY
    total_cap: Optional[int] = TOTAL_CAP
    max_workers: int = FANOUT_MAX_WORKERS


def search_settings() -> SearchSettings:
    """Snapshot the current module-level defaults into a SearchSettings."""
    return SearchSettings(
        default_region=DEFAULT_REGION,
        narrow_radius_m=NARROW_RADIUS_M,
        narrow_size=NARROW_SIZE,
        wide_radius_m=WIDE_RADIUS_M,
        wide_size_per_region=WIDE_SIZE_PER_REGION,
        grid_spacing_deg=POLYGON_GRID_SPACING_DEG,
        polygon_radius_m=POLYGON_RADIUS_M,
        polygon_size_per_point=POLYGON_SIZE_PER_POINT,
        max_grid_points=POLYGON_MAX_GRID_POINTS,
        min_per_category=MIN_PER_CATEGORY,
        top_per_category=TOP_PER_CATEGORY,
        total_cap=TOTAL_CAP,
        max_workers=FANOUT_MAX_WORKERS,
    )


def clamp_radius(radius_m: int) -> int:
    return min(MAX_RADIUS_M, max(1, int(radius_m)))


def clamp_size(size: int) -> int:
    return min(MAX_PAGE_SIZE, max(1, int(size)))


def load_search_config(path: Optional[str] = None) -> bool:
    """Load search configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "search_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    region = data.get("default_region")
    if region:
        globals_ref["DEFAULT_REGION"] = str(region).strip()

    narrow = data.get("narrow", {})
    if "radius_m" in narrow:
        globals_ref["NARROW_RADIUS_M"] = clamp_radius(narrow["radius_m"])
    if "size" in narrow:
        globals_ref["NARROW_SIZE"] = clamp_size(narrow["size"])

    wide = data.get("wide", {})
    if "radius_m" in wide:
        globals_ref["WIDE_RADIUS_M"] = clamp_radius(wide["radius_m"])
    if "size_per_region" in wide:
        globals_ref["WIDE_SIZE_PER_REGION"] = clamp_size(wide["size_per_region"])

    polygon = data.get("polygon", {})
    if "grid_spacing_deg" in polygon:
        spacing = float(polygon["grid_spacing_deg"])
        if spacing <= 0:
            raise ValueError("polygon.grid_spacing_deg must be positive")
        globals_ref["POLYGON_GRID_SPACING_DEG"] = spacing
    if "radius_m" in polygon:
        globals_ref["POLYGON_RADIUS_M"] = clamp_radius(polygon["radius_m"])
    if "size_per_point" in polygon:
        globals_ref["POLYGON_SIZE_PER_POINT"] = clamp_size(polygon["size_per_point"])
    if "max_grid_points" in polygon:
        globals_ref["POLYGON_MAX_GRID_POINTS"] = max(0, int(polygon["max_grid_points"]))

    rebalance = data.get("rebalance", {})
    if "min_per_category" in rebalance:
        globals_ref["MIN_PER_CATEGORY"] = max(0, int(rebalance["min_per_category"]))
    if "top_per_category" in rebalance:
        globals_ref["TOP_PER_CATEGORY"] = max(0, int(rebalance["top_per_category"]))
    if "total_cap" in rebalance:
        cap = rebalance["total_cap"]
        globals_ref["TOTAL_CAP"] = int(cap) if cap is not None else None

    workers = data.get("max_workers")
    if workers is not None:
        globals_ref["FANOUT_MAX_WORKERS"] = max(1, int(workers))

    return True
