"""CLI entrypoint."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv as _load_dotenv

from tripscout import config
from tripscout.boundary_client import VWorldBoundaryClient
from tripscout.http import RequestMetrics
from tripscout.kakao_client import KakaoLocalClient
from tripscout.models import Category, Filter, GeoPoint, RecommendationResult
from tripscout.orchestrator import SearchOrchestrator, next_expand_radius
from tripscout.regions import all_wide_regions
from tripscout.reporting import ensure_dir, render_summary, write_recommendation_json
from tripscout.reranker import GeminiReranker, NoopReranker

logger = logging.getLogger("tripscout.run")


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def load_polygon(path: str) -> List[GeoPoint]:
    """Read a polygon from JSON: [[lat, lng], ...] or [{"lat":..,"lng":..}, ...]."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    points: List[GeoPoint] = []
    for item in data:
        if isinstance(item, dict):
            points.append(GeoPoint(float(item["lat"]), float(item["lng"])))
        else:
            points.append(GeoPoint(float(item[0]), float(item[1])))
    return points


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recommend places for a travel region")
    parser.add_argument("--region", type=str, default="", help="Region text, e.g. 부산 or '부산 해운대'")
    parser.add_argument(
        "--categories",
        type=str,
        default="",
        help="Comma-separated categories (default: food). One of: "
        + ", ".join(c.value.lower() for c in Category),
    )
    parser.add_argument("--polygon", type=str, default=None, help="JSON file with polygon vertices")
    parser.add_argument("--boundary", action="store_true", help="Search inside the region's district boundary")
    parser.add_argument("--no-ai", action="store_true", help="Skip Gemini re-ranking")
    parser.add_argument("--radius", type=int, default=None, help="NARROW search radius in meters")
    parser.add_argument("--size", type=int, default=None, help="NARROW results per category code")
    parser.add_argument("--expand", action="store_true", help="Grow a NARROW search once and append new places")
    parser.add_argument("--duration", type=str, default=None)
    parser.add_argument("--budget", type=int, default=None, help="Budget per person")
    parser.add_argument("--companion", type=str, default=None)
    parser.add_argument("--config", type=str, default=None, help="Path to search_config.json")
    parser.add_argument("--list-regions", action="store_true", help="Print broad regions and exit")
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def build_filter(args: argparse.Namespace) -> Filter:
    return Filter(
        region=args.region.strip(),
        categories=Category.parse_many(args.categories),
        duration=args.duration,
        budget_per_person=args.budget,
        companion=args.companion,
    )


def apply_expand(
    orchestrator: SearchOrchestrator, filter: Filter, result: RecommendationResult
) -> RecommendationResult:
    if result.center is None or result.radius_meters is None:
        logger.warning("Expand is only available for NARROW searches")
        return result
    new_radius = next_expand_radius(result.radius_meters)
    fresh = orchestrator.expand_search(
        result.center,
        filter.effective_categories(),
        new_radius,
        exclude=result.place_ids(),
    )
    if not fresh:
        return result
    return RecommendationResult(
        places=result.places + tuple(fresh),
        weather=result.weather,
        top_picks=result.top_picks,
        gpt_reasons=result.gpt_reasons,
        ai_top_ids=result.ai_top_ids,
        search_type=result.search_type,
        center=result.center,
        radius_meters=new_radius,
    )


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config.load_search_config(args.config)

    if args.list_regions:
        for name in all_wide_regions():
            print(name)
        return 0

    kakao_key = (os.environ.get("KAKAO_REST_API_KEY") or "").strip()
    if not kakao_key:
        print("Missing KAKAO_REST_API_KEY in environment", file=sys.stderr)
        return 1

    try:
        filter = build_filter(args)
    except ValueError as exc:
        print(f"Invalid arguments: {exc}", file=sys.stderr)
        return 1

    metrics = RequestMetrics()
    provider = KakaoLocalClient.from_api_key(kakao_key, metrics=metrics)
    reranker = NoopReranker("disabled") if args.no_ai else GeminiReranker.from_env()
    orchestrator = SearchOrchestrator(provider, reranker=reranker)
    use_ai = not args.no_ai

    if args.polygon:
        polygon = load_polygon(args.polygon)
        result = orchestrator.recommend(filter, polygon=polygon, use_ai=use_ai)
    elif args.boundary:
        vworld_key = (os.environ.get("VWORLD_API_KEY") or "").strip()
        if not vworld_key:
            print("Missing VWORLD_API_KEY in environment", file=sys.stderr)
            return 1
        boundary_client = VWorldBoundaryClient.from_api_key(vworld_key, metrics=metrics)
        result = orchestrator.recommend_region_boundary(filter, boundary_client, use_ai=use_ai)
    elif args.radius is not None or args.size is not None:
        result = orchestrator.recommend_narrow(
            filter, use_ai=use_ai, radius_meters=args.radius, size=args.size
        )
    else:
        result = orchestrator.recommend(filter, use_ai=use_ai)

    if args.expand:
        result = apply_expand(orchestrator, filter, result)

    ensure_dir(args.out)
    out_path = os.path.join(args.out, "recommendation.json")
    write_recommendation_json(out_path, result)

    for line in render_summary(result):
        print(line)
    stats = metrics.snapshot()
    print(f"- requests: {stats['network_requests']} (failed {stats['failed_requests']})")
    print(f"- output: {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
