"""VWorld WFS client for administrative boundary polygons."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from . import config
from .http import HttpClient, RequestMetrics
from .models import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminPolygon:
    name: str
    coordinates: Tuple[GeoPoint, ...]


class VWorldBoundaryClient:
    def __init__(self, http_client: HttpClient, api_key: str) -> None:
        self.http = http_client
        self.api_key = api_key

    @classmethod
    def from_api_key(
        cls, api_key: str, metrics: Optional[RequestMetrics] = None
    ) -> "VWorldBoundaryClient":
        http_client = HttpClient(
            timeout=config.HTTP_TIMEOUT_SECONDS,
            retry_max=config.HTTP_RETRY_MAX,
            backoff_base=config.HTTP_BACKOFF_BASE,
            backoff_max=config.HTTP_BACKOFF_MAX,
            metrics=metrics,
        )
        return cls(http_client, api_key)

    def admin_boundary(self, region_name: str) -> List[AdminPolygon]:
        """Boundary polygons of the districts whose name matches region_name."""
        params = {
            "service": "WFS",
            "request": "GetFeature",
            "typename": config.VWORLD_SIGG_LAYER,
            "key": self.api_key,
            "domain": config.VWORLD_DOMAIN,
            "output": "application/json",
            "attrFilter": f"sig_kor_nm:like:{region_name}",
        }
        try:
            resp = self.http.get_json(config.VWORLD_WFS_URL, params)
        except (requests.RequestException, ValueError) as exc:
            logger.error("Boundary lookup failed for %s: %s", region_name, exc)
            return []
        polygons = parse_boundary_response(resp, fallback_name=region_name)
        logger.info("Boundary lookup %s: %s polygons", region_name, len(polygons))
        return polygons


def extract_outer_ring(geometry: Dict[str, Any]) -> Tuple[GeoPoint, ...]:
    """Outer ring of a GeoJSON Polygon, or of the first part of a MultiPolygon."""
    geom_type = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if geom_type == "Polygon":
        rings = coords
    elif geom_type == "MultiPolygon":
        rings = coords[0] if coords else []
    else:
        return ()
    if not rings:
        return ()
    ring = rings[0]
    # GeoJSON positions are [lng, lat].
    return tuple(
        GeoPoint(lat=float(pos[1]), lng=float(pos[0]))
        for pos in ring
        if isinstance(pos, (list, tuple)) and len(pos) >= 2
    )


def parse_boundary_response(
    response: Dict[str, Any], fallback_name: str = ""
) -> List[AdminPolygon]:
    features = response.get("features") or []
    polygons: List[AdminPolygon] = []
    for feature in features:
        try:
            ring = extract_outer_ring(feature.get("geometry") or {})
        except (TypeError, ValueError, IndexError) as exc:
            logger.warning("Skipping malformed boundary feature: %s", exc)
            continue
        if len(ring) < 3:
            continue
        props = feature.get("properties") or {}
        polygons.append(AdminPolygon(name=props.get("sig_kor_nm") or fallback_name, coordinates=ring))
    return polygons
