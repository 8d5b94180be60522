import requests

from tripscout import config
from tripscout.boundary_client import (
    VWorldBoundaryClient,
    extract_outer_ring,
    parse_boundary_response,
)
from tripscout.http import HttpClient
from tripscout.models import GeoPoint

RING = [[129.10, 35.15], [129.20, 35.15], [129.20, 35.20], [129.10, 35.20], [129.10, 35.15]]


def feature(geometry, name="해운대구"):
    return {"type": "Feature", "properties": {"sig_kor_nm": name}, "geometry": geometry}


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload
        self.status_code = 200
        self.headers = {}

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, payload=None, exc=None):
        self.payload = payload
        self.exc = exc
        self.params = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.params.append(params)
        if self.exc is not None:
            raise self.exc
        return FakeResponse(self.payload)


def make_client(session):
    http_client = HttpClient(timeout=1, retry_max=1, backoff_base=0.0, backoff_max=0.0)
    http_client.session = session
    return VWorldBoundaryClient(http_client, api_key="vworld-key")


def test_extract_outer_ring_swaps_lng_lat():
    ring = extract_outer_ring({"type": "Polygon", "coordinates": [RING]})
    assert ring[0] == GeoPoint(lat=35.15, lng=129.10)
    assert len(ring) == 5


def test_extract_outer_ring_multipolygon_uses_first_part():
    other = [[126.0, 37.0], [126.1, 37.0], [126.1, 37.1]]
    ring = extract_outer_ring({"type": "MultiPolygon", "coordinates": [[RING], [other]]})
    assert ring[1] == GeoPoint(lat=35.15, lng=129.20)


def test_extract_outer_ring_unknown_geometry():
    assert extract_outer_ring({"type": "Point", "coordinates": [129.1, 35.1]}) == ()
    assert extract_outer_ring({}) == ()


def test_parse_boundary_skips_malformed_and_short_rings():
    response = {
        "features": [
            feature({"type": "Polygon", "coordinates": [RING]}),
            feature({"type": "Polygon", "coordinates": [[[129.1, 35.1], [129.2, 35.1]]]}, name="짧음"),
            feature({"type": "Polygon", "coordinates": [[["x", 35.1], [129.2, 35.1], [129.2, 35.2]]]}, name="깨짐"),
            {"geometry": {"type": "Polygon", "coordinates": [RING]}},
        ]
    }
    polygons = parse_boundary_response(response, fallback_name="fallback")
    assert [p.name for p in polygons] == ["해운대구", "fallback"]
    assert parse_boundary_response({}) == []


def test_admin_boundary_request_params():
    session = FakeSession({"features": [feature({"type": "Polygon", "coordinates": [RING]})]})
    client = make_client(session)

    polygons = client.admin_boundary("해운대구")

    assert len(polygons) == 1
    params = session.params[0]
    assert params["typename"] == config.VWORLD_SIGG_LAYER
    assert params["attrFilter"] == "sig_kor_nm:like:해운대구"
    assert params["key"] == "vworld-key"


def test_admin_boundary_network_error_is_empty():
    client = make_client(FakeSession(exc=requests.ConnectionError("down")))
    assert client.admin_boundary("해운대구") == []
