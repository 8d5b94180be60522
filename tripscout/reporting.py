"""Output reporting helpers."""
from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, TextIO

from .models import RecommendationResult


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except (OSError, AttributeError):
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def write_recommendation_json(path: str, result: RecommendationResult) -> None:
    write_json_object(path, result.to_dict())


def render_summary(result: RecommendationResult, limit: int = 10) -> List[str]:
    lines = []
    search_type = result.search_type.value if result.search_type else "POLYGON"
    lines.append(f"Search: {search_type}")
    if result.center is not None:
        lines.append(
            f"- center: ({result.center.lat:.5f}, {result.center.lng:.5f}) radius={result.radius_meters}m"
        )
    if result.weather is not None:
        lines.append(f"- weather: {result.weather.condition} {result.weather.temp_c:.0f}C")
    lines.append(f"- places: {len(result.places)}")
    counts: Dict[str, int] = {}
    for place in result.places:
        counts[place.category.value] = counts.get(place.category.value, 0) + 1
    for name in sorted(counts):
        lines.append(f"  - {name}: {counts[name]}")
    if result.top_picks:
        lines.append("- top picks: " + ", ".join(p.name for p in result.top_picks))
    for idx, place in enumerate(result.places[:limit], start=1):
        marker = "*" if place.id in result.ai_top_ids else " "
        lines.append(f"{idx:>3}.{marker}[{place.category.value}] {place.name}")
        reason = result.gpt_reasons.get(place.id)
        if reason:
            lines.append(f"        {reason}")
    return lines
