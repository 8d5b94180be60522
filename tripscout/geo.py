"""Geospatial helpers."""
from __future__ import annotations

import math
from typing import List, Tuple

from .models import GeoPoint, Polygon


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    r = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def point_in_polygon(point: GeoPoint, polygon: Polygon) -> bool:
    """Ray casting test with longitude as x and latitude as y.

    Points lying exactly on an edge may land on either side.
    """
    n = len(polygon)
    if n < 3:
        return False

    x = point.lng
    y = point.lat
    inside = False
    j = n - 1
    for i in range(n):
        xi = polygon[i].lng
        yi = polygon[i].lat
        xj = polygon[j].lng
        yj = polygon[j].lat
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def bounding_box(polygon: Polygon) -> Tuple[float, float, float, float]:
    if not polygon:
        raise ValueError("Polygon must have at least one vertex")
    lats = [p.lat for p in polygon]
    lngs = [p.lng for p in polygon]
    return min(lats), max(lats), min(lngs), max(lngs)


def polygon_centroid(polygon: Polygon) -> GeoPoint:
    if not polygon:
        raise ValueError("Polygon must have at least one vertex")
    lat = sum(p.lat for p in polygon) / len(polygon)
    lng = sum(p.lng for p in polygon) / len(polygon)
    return GeoPoint(lat, lng)


def generate_grid(polygon: Polygon, spacing_degrees: float, max_points: int) -> List[GeoPoint]:
    """Sample search centers inside a polygon.

    Walks the bounding box row by row (latitude, then longitude) and stops as
    soon as max_points centers have been kept.
    """
    if spacing_degrees <= 0:
        raise ValueError("spacing_degrees must be positive")
    if len(polygon) < 3 or max_points <= 0:
        return []

    min_lat, max_lat, min_lng, max_lng = bounding_box(polygon)

    points: List[GeoPoint] = []
    row = 0
    lat = min_lat
    while lat <= max_lat and len(points) < max_points:
        col = 0
        lng = min_lng
        while lng <= max_lng and len(points) < max_points:
            candidate = GeoPoint(lat, lng)
            if point_in_polygon(candidate, polygon):
                points.append(candidate)
            col += 1
            lng = min_lng + col * spacing_degrees
        row += 1
        lat = min_lat + row * spacing_degrees
    return points
