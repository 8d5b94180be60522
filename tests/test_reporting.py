import json

import pytest

from tripscout.models import Category, GeoPoint, Place, RecommendationResult, SearchType, WeatherInfo
from tripscout.reporting import atomic_writer, render_summary, write_json_object, write_recommendation_json


def make_result():
    food = Place(id="1", name="돼지국밥", category=Category.FOOD, lat=35.1, lng=129.1, distance_meters=120)
    cafe = Place(id="2", name="바다카페", category=Category.CAFE, lat=35.1, lng=129.1)
    return RecommendationResult(
        places=(food, cafe),
        weather=WeatherInfo(temp_c=21.2, condition="Clear"),
        top_picks=(food, cafe),
        gpt_reasons={"1": "현지인 맛집"},
        ai_top_ids=frozenset({"1"}),
        search_type=SearchType.NARROW,
        center=GeoPoint(35.16, 129.16),
        radius_meters=3000,
    )


def test_write_json_object_nested_atomic(tmp_path):
    path = tmp_path / "summary.json"
    payload = {"regions": {"부산": 5}, "nested": {"list": [1, 2, 3]}}

    write_json_object(str(path), payload)

    text = path.read_text(encoding="utf-8")
    assert json.loads(text) == payload
    assert "부산" in text

    leftovers = [p for p in tmp_path.iterdir() if p.name != "summary.json"]
    assert not leftovers


def test_atomic_writer_keeps_old_file_on_error(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("old", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with atomic_writer(str(path)) as f:
            f.write("partial")
            raise RuntimeError("boom")

    assert path.read_text(encoding="utf-8") == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["out.txt"]


def test_write_recommendation_json(tmp_path):
    path = tmp_path / "recommendation.json"
    write_recommendation_json(str(path), make_result())

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["search_type"] == "NARROW"
    assert data["center"] == {"lat": 35.16, "lng": 129.16}
    assert data["top_picks"] == ["1", "2"]
    assert data["ai_top_ids"] == ["1"]
    assert data["places"][0]["category"] == "FOOD"
    assert data["places"][0]["distance_meters"] == 120
    assert data["weather"]["condition"] == "Clear"


def test_render_summary_marks_ai_picks():
    lines = render_summary(make_result())
    assert lines[0] == "Search: NARROW"
    assert "- weather: Clear 21C" in lines
    assert "  - CAFE: 1" in lines
    assert any(line.startswith("  1.*[FOOD] 돼지국밥") for line in lines)
    assert any(line.startswith("  2. [CAFE] 바다카페") for line in lines)
    assert "        현지인 맛집" in lines


def test_render_summary_polygon_without_center():
    lines = render_summary(RecommendationResult.empty())
    assert lines == ["Search: POLYGON", "- places: 0"]
