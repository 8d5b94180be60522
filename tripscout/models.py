"""Domain value types shared across the search pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Sequence, Tuple


class Category(Enum):
    FOOD = "FOOD"
    CAFE = "CAFE"
    CULTURE = "CULTURE"
    PHOTO = "PHOTO"
    SHOPPING = "SHOPPING"
    HEALING = "HEALING"
    EXPERIENCE = "EXPERIENCE"
    NIGHT = "NIGHT"
    STAY = "STAY"

    @classmethod
    def parse(cls, text: str) -> "Category":
        key = (text or "").strip().upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown category: {text!r}") from None

    @classmethod
    def parse_many(cls, text: str) -> FrozenSet["Category"]:
        parts = [p for p in (text or "").replace(" ", "").split(",") if p]
        return frozenset(cls.parse(p) for p in parts)


class SearchType(Enum):
    WIDE = "WIDE"
    NARROW = "NARROW"


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


# Ring of vertices; first and last are implicitly connected.
Polygon = Sequence[GeoPoint]


@dataclass(frozen=True)
class Place:
    id: str
    name: str
    category: Category
    lat: float
    lng: float
    distance_meters: Optional[int] = None
    address: Optional[str] = None
    rating: Optional[float] = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "lat": self.lat,
            "lng": self.lng,
            "distance_meters": self.distance_meters,
            "address": self.address,
            "rating": self.rating,
        }


@dataclass(frozen=True)
class Filter:
    region: str = ""
    categories: FrozenSet[Category] = frozenset()
    duration: Optional[str] = None
    budget_per_person: Optional[int] = None
    companion: Optional[str] = None

    def effective_categories(self) -> FrozenSet[Category]:
        if not self.categories:
            return frozenset({Category.FOOD})
        return frozenset(self.categories)

    def with_region(self, region: str) -> "Filter":
        return replace(self, region=region)


@dataclass(frozen=True)
class WeatherInfo:
    temp_c: float
    condition: str
    icon: Optional[str] = None


@dataclass(frozen=True)
class RerankOutput:
    places: Tuple[Place, ...]
    reasons: Dict[str, str] = field(default_factory=dict)
    ai_top_ids: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class RecommendationResult:
    places: Tuple[Place, ...]
    weather: Optional[WeatherInfo] = None
    top_picks: Tuple[Place, ...] = ()
    gpt_reasons: Dict[str, str] = field(default_factory=dict)
    ai_top_ids: FrozenSet[str] = frozenset()
    search_type: Optional[SearchType] = None
    center: Optional[GeoPoint] = None
    radius_meters: Optional[int] = None

    @classmethod
    def empty(cls, weather: Optional[WeatherInfo] = None, **kwargs: Any) -> "RecommendationResult":
        return cls(places=(), weather=weather, **kwargs)

    def place_ids(self) -> Iterable[str]:
        return (p.id for p in self.places)

    def to_dict(self) -> Dict[str, Any]:
        weather = None
        if self.weather is not None:
            weather = {
                "temp_c": self.weather.temp_c,
                "condition": self.weather.condition,
                "icon": self.weather.icon,
            }
        center = None
        if self.center is not None:
            center = {"lat": self.center.lat, "lng": self.center.lng}
        return {
            "search_type": self.search_type.value if self.search_type else None,
            "center": center,
            "radius_meters": self.radius_meters,
            "weather": weather,
            "top_picks": [p.id for p in self.top_picks],
            "ai_top_ids": sorted(self.ai_top_ids),
            "gpt_reasons": dict(self.gpt_reasons),
            "places": [p.to_dict() for p in self.places],
        }
