"""Kakao Local API client and response parsing.

The orchestrator only depends on the CandidateProvider protocol below; this
client is the production implementation of it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol

from . import config
from .geo import haversine_km
from .http import HttpClient, RequestMetrics
from .merge import merge_batches
from .models import Category, GeoPoint, Place

logger = logging.getLogger(__name__)

CATEGORY_CODES: Dict[Category, List[str]] = {
    Category.FOOD: ["FD6"],
    Category.CAFE: ["CE7"],
    Category.CULTURE: ["CT1"],
    Category.PHOTO: ["AT4"],
    Category.SHOPPING: ["MT1", "CS2"],
    Category.HEALING: ["AT4"],
    Category.EXPERIENCE: ["AT4", "AC5"],
    Category.NIGHT: ["AD5"],
    Category.STAY: ["AD5"],
}

_CODE_CATEGORIES: Dict[str, Category] = {
    "FD6": Category.FOOD,
    "CE7": Category.CAFE,
    "CT1": Category.CULTURE,
    "AT4": Category.PHOTO,
    "MT1": Category.SHOPPING,
    "CS2": Category.SHOPPING,
    "AD5": Category.NIGHT,
}


class CandidateProvider(Protocol):
    def geocode(self, text: str) -> Optional[GeoPoint]:
        ...

    def search_by_categories(
        self,
        center: GeoPoint,
        categories: Iterable[Category],
        radius_meters: int,
        max_results: int,
    ) -> List[Place]:
        ...


@dataclass(frozen=True)
class RegionInfo:
    region1: str
    region2: str
    region3: str

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.region1, self.region2, self.region3) if p)

    @property
    def city_district_name(self) -> str:
        return " ".join(p for p in (self.region1, self.region2) if p)

    @property
    def display_name(self) -> str:
        return self.region2 or self.region1


def category_codes_for(categories: Iterable[Category]) -> List[str]:
    """Provider category group codes for a set of categories, without repeats.

    Categories are visited in enum order so the request order is stable.
    """
    wanted = set(categories)
    codes: List[str] = []
    for category in Category:
        if category not in wanted:
            continue
        for code in CATEGORY_CODES[category]:
            if code not in codes:
                codes.append(code)
    return codes


def category_for_code(code: Optional[str]) -> Category:
    # Other codes are mostly attractions and venues.
    return _CODE_CATEGORIES.get(code or "", Category.CULTURE)


class KakaoLocalClient:
    def __init__(self, http_client: HttpClient) -> None:
        self.http = http_client

    @classmethod
    def from_api_key(
        cls, api_key: str, metrics: Optional[RequestMetrics] = None
    ) -> "KakaoLocalClient":
        http_client = HttpClient(
            headers={"Authorization": f"KakaoAK {api_key}"},
            timeout=config.HTTP_TIMEOUT_SECONDS,
            retry_max=config.HTTP_RETRY_MAX,
            backoff_base=config.HTTP_BACKOFF_BASE,
            backoff_max=config.HTTP_BACKOFF_MAX,
            metrics=metrics,
        )
        return cls(http_client)

    def geocode(self, text: str) -> Optional[GeoPoint]:
        query = (text or "").strip()
        if not query:
            return None
        resp = self.http.get_json(config.KAKAO_ADDRESS_SEARCH_URL, {"query": query})
        return parse_address_response(resp)

    def reverse_geocode(self, point: GeoPoint) -> Optional[RegionInfo]:
        resp = self.http.get_json(
            config.KAKAO_COORD2REGION_URL, {"x": point.lng, "y": point.lat}
        )
        return parse_region_response(resp)

    def search_by_categories(
        self,
        center: GeoPoint,
        categories: Iterable[Category],
        radius_meters: int = config.NARROW_RADIUS_M,
        max_results: int = config.MAX_PAGE_SIZE,
    ) -> List[Place]:
        codes = category_codes_for(categories)
        if not codes:
            return []
        radius = config.clamp_radius(radius_meters)
        size = config.clamp_size(max_results)

        out: List[Place] = []
        for code in codes:
            params = build_category_search_params(code, center, radius, size)
            resp = self.http.get_json(config.KAKAO_CATEGORY_SEARCH_URL, params)
            out.extend(parse_places_response(resp, center=center))
        return sort_by_distance(merge_batches([out]))

    def search_by_keyword(
        self,
        center: GeoPoint,
        keyword: str,
        radius_meters: int = config.NARROW_RADIUS_M,
        max_results: int = config.MAX_PAGE_SIZE,
    ) -> List[Place]:
        params = {
            "query": keyword,
            "x": center.lng,
            "y": center.lat,
            "radius": config.clamp_radius(radius_meters),
            "size": config.clamp_size(max_results),
            "sort": "accuracy",
        }
        resp = self.http.get_json(config.KAKAO_KEYWORD_SEARCH_URL, params)
        return sort_by_distance(merge_batches([parse_places_response(resp, center=center)]))


def build_category_search_params(
    code: str, center: GeoPoint, radius: int, size: int
) -> Dict[str, Any]:
    return {
        "category_group_code": code,
        "x": center.lng,
        "y": center.lat,
        "radius": radius,
        "size": size,
        "sort": "distance",
    }


def sort_by_distance(places: List[Place]) -> List[Place]:
    # Stable: unknown distances go last, ties keep provider order.
    return sorted(
        places,
        key=lambda p: p.distance_meters if p.distance_meters is not None else float("inf"),
    )


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    if number is None:
        return None
    return int(number)


# Adapter/mapper for Kakao response fields

def parse_address_response(response: Dict[str, Any]) -> Optional[GeoPoint]:
    documents = response.get("documents") or []
    if not documents:
        return None
    doc = documents[0]
    # Kakao uses x for longitude and y for latitude.
    lat = _to_float(doc.get("y"))
    lng = _to_float(doc.get("x"))
    if lat is None or lng is None:
        return None
    return GeoPoint(lat, lng)


def parse_region_response(response: Dict[str, Any]) -> Optional[RegionInfo]:
    documents = response.get("documents") or []
    if not documents:
        return None
    doc = next((d for d in documents if d.get("region_type") == "B"), documents[0])
    return RegionInfo(
        region1=doc.get("region_1depth_name") or "",
        region2=doc.get("region_2depth_name") or "",
        region3=doc.get("region_3depth_name") or "",
    )


def parse_places_response(
    response: Dict[str, Any], center: Optional[GeoPoint] = None
) -> List[Place]:
    documents = response.get("documents") or []
    parsed: List[Place] = []
    for doc in documents:
        place_id = doc.get("id")
        if not place_id:
            continue
        lat = _to_float(doc.get("y"))
        lng = _to_float(doc.get("x"))
        if lat is None or lng is None:
            logger.debug("Skipping place %s with unparseable coordinates", place_id)
            continue
        distance = _to_int(doc.get("distance"))
        if distance is None and center is not None:
            distance = int(round(haversine_km(center.lat, center.lng, lat, lng) * 1000))
        parsed.append(
            Place(
                id=str(place_id),
                name=doc.get("place_name") or "",
                category=category_for_code(doc.get("category_group_code")),
                lat=lat,
                lng=lng,
                distance_meters=distance,
                address=doc.get("road_address_name") or doc.get("address_name") or None,
                rating=None,
            )
        )
    return parsed
