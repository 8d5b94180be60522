"""Search orchestration: strategy selection, fan-out, merge, rerank, rebalance."""
from __future__ import annotations

import logging
import threading
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence

from . import config
from .fetcher import fetch_all
from .geo import generate_grid, point_in_polygon, polygon_centroid
from .kakao_client import CandidateProvider
from .merge import exclude_ids, merge_batches
from .models import (
    Category,
    Filter,
    GeoPoint,
    Place,
    Polygon,
    RecommendationResult,
    RerankOutput,
    SearchType,
    WeatherInfo,
)
from .rebalance import rebalance_by_category
from .regions import classify, sub_regions_of
from .reranker import BaseReranker

logger = logging.getLogger(__name__)

WeatherLookup = Callable[[GeoPoint], Optional[WeatherInfo]]


def next_expand_radius(current_radius_m: int) -> int:
    return min(config.EXPAND_MAX_RADIUS_M, int(current_radius_m * config.EXPAND_FACTOR))


class SearchOrchestrator:
    def __init__(
        self,
        provider: CandidateProvider,
        reranker: Optional[BaseReranker] = None,
        weather_lookup: Optional[WeatherLookup] = None,
        settings: Optional[config.SearchSettings] = None,
    ) -> None:
        self.provider = provider
        self.reranker = reranker
        self.weather_lookup = weather_lookup
        self.settings = settings or config.search_settings()

    # --- entrypoints ---

    def recommend(
        self,
        filter: Filter,
        polygon: Optional[Polygon] = None,
        use_ai: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> RecommendationResult:
        if polygon is not None:
            return self.recommend_polygon(filter, polygon, use_ai=use_ai, cancel_event=cancel_event)

        region = filter.region.strip() or self.settings.default_region
        filter = filter.with_region(region)
        search_type = classify(region)
        logger.info("Search type for %r: %s", region, search_type.value)

        if search_type is SearchType.WIDE:
            subs = sub_regions_of(region)
            if subs:
                return self.recommend_wide(filter, subs, use_ai=use_ai, cancel_event=cancel_event)
            logger.warning("No sub-regions for %s, falling back to NARROW", region)
        return self.recommend_narrow(filter, use_ai=use_ai)

    def recommend_narrow(
        self,
        filter: Filter,
        use_ai: bool = True,
        radius_meters: Optional[int] = None,
        size: Optional[int] = None,
    ) -> RecommendationResult:
        region = filter.region.strip() or self.settings.default_region
        center = self._geocode(region)
        if center is None and region != self.settings.default_region:
            logger.warning("Geocode failed for %s, retrying with %s", region, self.settings.default_region)
            center = self._geocode(self.settings.default_region)
        if center is None:
            logger.warning("No center resolved for %s", region)
            return RecommendationResult.empty(search_type=SearchType.NARROW)

        radius = config.clamp_radius(radius_meters or self.settings.narrow_radius_m)
        categories = filter.effective_categories()
        weather = self._lookup_weather(center)
        candidates = self.search_narrow(
            center,
            categories,
            radius_meters=radius,
            size=size or self.settings.narrow_size,
        )
        logger.info("Stage 1: narrow search around %s returned %s candidates", region, len(candidates))
        return self._finalize(
            filter,
            weather,
            candidates,
            use_ai=use_ai,
            search_type=SearchType.NARROW,
            center=center,
            radius_meters=radius,
        )

    def recommend_wide(
        self,
        filter: Filter,
        sub_regions: Sequence[str],
        use_ai: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> RecommendationResult:
        main_region = filter.region.strip() or self.settings.default_region
        center = self._geocode(main_region)
        weather = self._lookup_weather(center) if center is not None else None

        candidates = self.search_multiple_points(
            main_region,
            sub_regions,
            filter.effective_categories(),
            radius_per_point=self.settings.wide_radius_m,
            size_per_point=self.settings.wide_size_per_region,
            cancel_event=cancel_event,
        )
        logger.info("Stage 1: wide search over %s sub-regions returned %s candidates", len(sub_regions), len(candidates))
        if not candidates:
            logger.warning("No candidates found for %s", main_region)
            return RecommendationResult.empty(weather, search_type=SearchType.WIDE)
        return self._finalize(filter, weather, candidates, use_ai=use_ai, search_type=SearchType.WIDE)

    def recommend_polygon(
        self,
        filter: Filter,
        polygon: Polygon,
        use_ai: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> RecommendationResult:
        if len(polygon) < 3:
            logger.warning("Degenerate polygon with %s vertices", len(polygon))
            return RecommendationResult.empty()

        weather = self._lookup_weather(polygon_centroid(polygon))
        candidates = self.search_within_polygon(
            polygon,
            filter.effective_categories(),
            cancel_event=cancel_event,
        )
        logger.info("Stage 1: polygon search returned %s candidates", len(candidates))
        if not candidates:
            return RecommendationResult.empty(weather)
        return self._finalize(filter, weather, candidates, use_ai=use_ai)

    def recommend_region_boundary(
        self,
        filter: Filter,
        boundary_client,
        use_ai: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> RecommendationResult:
        """Polygon search over the administrative boundary of filter.region."""
        region = filter.region.strip() or self.settings.default_region
        polygons = boundary_client.admin_boundary(region)
        if not polygons:
            logger.warning("No boundary for %s, using region search", region)
            return self.recommend(filter.with_region(region), use_ai=use_ai, cancel_event=cancel_event)
        boundary = polygons[0]
        logger.info("Using boundary %s (%s vertices)", boundary.name, len(boundary.coordinates))
        return self.recommend_polygon(
            filter.with_region(region), boundary.coordinates, use_ai=use_ai, cancel_event=cancel_event
        )

    # --- candidate searches ---

    def search_narrow(
        self,
        center: GeoPoint,
        categories: Iterable[Category],
        radius_meters: int,
        size: int,
    ) -> List[Place]:
        try:
            places = self.provider.search_by_categories(
                center,
                set(categories),
                config.clamp_radius(radius_meters),
                config.clamp_size(size),
            )
        except Exception as exc:
            logger.warning("Category search at (%s, %s) failed: %s", center.lat, center.lng, exc)
            return []
        return merge_batches([places])

    def search_multiple_points(
        self,
        main_region: str,
        sub_regions: Sequence[str],
        categories: Iterable[Category],
        radius_per_point: int = config.WIDE_RADIUS_M,
        size_per_point: int = config.WIDE_SIZE_PER_REGION,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Place]:
        cats = frozenset(categories) or frozenset({Category.FOOD})
        radius = config.clamp_radius(radius_per_point)
        size = config.clamp_size(size_per_point)

        def make_task(sub_region: str) -> Callable[[], List[Place]]:
            def task() -> List[Place]:
                full_name = f"{main_region} {sub_region}"
                center = self.provider.geocode(full_name)
                if center is None:
                    logger.warning("Geocode failed for %s", full_name)
                    return []
                if cancel_event is not None and cancel_event.is_set():
                    return []
                places = self.provider.search_by_categories(center, set(cats), radius, size)
                logger.debug("%s: %s places", sub_region, len(places))
                return places

            return task

        batches = fetch_all(
            [make_task(sub) for sub in sub_regions],
            max_workers=self.settings.max_workers,
            cancel_event=cancel_event,
            label="wide",
        )
        merged = merge_batches(batches)
        logger.info(
            "Wide merge: %s total, %s unique", sum(len(b) for b in batches), len(merged)
        )
        return merged

    def search_within_polygon(
        self,
        polygon: Polygon,
        categories: Iterable[Category],
        spacing_degrees: Optional[float] = None,
        radius_per_point: Optional[int] = None,
        size_per_point: Optional[int] = None,
        max_grid_points: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Place]:
        if len(polygon) < 3:
            return []
        cats = frozenset(categories) or frozenset({Category.FOOD})
        spacing = spacing_degrees or self.settings.grid_spacing_deg
        radius = config.clamp_radius(radius_per_point or self.settings.polygon_radius_m)
        size = config.clamp_size(size_per_point or self.settings.polygon_size_per_point)
        max_points = self.settings.max_grid_points if max_grid_points is None else max_grid_points

        grid = generate_grid(polygon, spacing, max_points)
        logger.info("Generated %s grid points (max %s)", len(grid), max_points)
        if not grid:
            logger.warning("No grid points inside polygon")
            return []

        def make_task(point: GeoPoint) -> Callable[[], List[Place]]:
            return lambda: self.provider.search_by_categories(point, set(cats), radius, size)

        batches = fetch_all(
            [make_task(point) for point in grid],
            max_workers=self.settings.max_workers,
            cancel_event=cancel_event,
            label="polygon",
        )
        merged = merge_batches(batches)
        inside = [p for p in merged if point_in_polygon(p.point, polygon)]
        logger.info(
            "Polygon merge: %s total, %s unique, %s inside",
            sum(len(b) for b in batches),
            len(merged),
            len(inside),
        )
        return inside

    def expand_search(
        self,
        center: GeoPoint,
        categories: Iterable[Category],
        new_radius_meters: int,
        exclude: Iterable[str] = (),
    ) -> List[Place]:
        """Search a larger radius, dropping places already shown."""
        cats = frozenset(categories) or frozenset({Category.FOOD})
        places = self.search_narrow(center, cats, new_radius_meters, config.MAX_PAGE_SIZE)
        fresh = exclude_ids(places, exclude)
        logger.info("Expand search: %s places, %s new", len(places), len(fresh))
        return fresh

    # --- pipeline helpers ---

    def _geocode(self, text: str) -> Optional[GeoPoint]:
        try:
            return self.provider.geocode(text)
        except Exception as exc:
            logger.warning("Geocode error for %s: %s", text, exc)
            return None

    def _lookup_weather(self, point: GeoPoint) -> Optional[WeatherInfo]:
        if self.weather_lookup is None:
            return None
        try:
            return self.weather_lookup(point)
        except Exception as exc:
            logger.warning("Weather lookup failed: %s", exc)
            return None

    def _rerank(
        self,
        filter: Filter,
        weather: Optional[WeatherInfo],
        candidates: List[Place],
        use_ai: bool,
    ) -> RerankOutput:
        fallback = RerankOutput(places=tuple(candidates))
        if not use_ai or self.reranker is None or not candidates:
            return fallback
        try:
            out = self.reranker.rerank(filter, weather, candidates)
            if out is None or not out.places:
                logger.warning("Rerank returned no places, keeping provider order")
                return fallback
            # The reranker may reorder but never add or drop places.
            by_id = {p.id: p for p in candidates}
            ranked = [by_id[p.id] for p in out.places if p.id in by_id]
            places = merge_batches([ranked, candidates])
            return RerankOutput(
                places=tuple(places),
                reasons={str(k): str(v) for k, v in out.reasons.items()},
                ai_top_ids=frozenset(out.ai_top_ids),
            )
        except Exception as exc:
            logger.warning("Rerank failed, keeping provider order: %s", exc)
            return fallback

    def _finalize(
        self,
        filter: Filter,
        weather: Optional[WeatherInfo],
        candidates: List[Place],
        use_ai: bool,
        search_type: Optional[SearchType] = None,
        center: Optional[GeoPoint] = None,
        radius_meters: Optional[int] = None,
    ) -> RecommendationResult:
        categories: FrozenSet[Category] = filter.effective_categories()
        out = self._rerank(filter, weather, candidates, use_ai)
        logger.info("Stage 2: rerank (%s reasons, %s AI picks)", len(out.reasons), len(out.ai_top_ids))

        top, ordered = rebalance_by_category(
            out.places,
            categories,
            min_per_cat=self.settings.min_per_category,
            per_cat_top=self.settings.top_per_category,
            total_cap=self.settings.total_cap,
        )
        logger.info("Stage 3: rebalance -> %s places, %s top picks", len(ordered), len(top))
        return RecommendationResult(
            places=tuple(ordered),
            weather=weather,
            top_picks=tuple(top),
            gpt_reasons=dict(out.reasons),
            ai_top_ids=frozenset(out.ai_top_ids),
            search_type=search_type,
            center=center,
            radius_meters=radius_meters,
        )
