import json

import pytest
import requests

from tripscout.models import Category, Filter, Place, WeatherInfo
from tripscout.reranker import (
    GeminiReranker,
    NoopReranker,
    RerankError,
    apply_rerank_payload,
    build_rerank_prompt,
)


def make_place(place_id, category=Category.FOOD):
    return Place(id=place_id, name=f"name-{place_id}", category=category, lat=37.5, lng=127.0)


CANDIDATES = [make_place("a"), make_place("b", Category.CAFE), make_place("c")]


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.urls = []

    def post(self, url, json=None, timeout=None):
        self.urls.append(url)
        return self.responses.pop(0)


def gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_apply_payload_reorders_and_appends_missing():
    out = apply_rerank_payload(
        CANDIDATES,
        {"order": ["c", "ghost", "a", "c"], "reasons": {"c": " 분위기 좋음 ", "ghost": "x"}, "top_ids": ["c", "ghost"]},
    )
    assert [p.id for p in out.places] == ["c", "a", "b"]
    assert out.reasons == {"c": "분위기 좋음"}
    assert out.ai_top_ids == {"c"}


def test_apply_payload_rejects_malformed():
    with pytest.raises(RerankError):
        apply_rerank_payload(CANDIDATES, {"reasons": {}})
    with pytest.raises(RerankError):
        apply_rerank_payload(CANDIDATES, {"order": ["nope"]})
    with pytest.raises(RerankError):
        apply_rerank_payload(CANDIDATES, {"order": ["a"], "reasons": ["a"]})
    with pytest.raises(RerankError):
        apply_rerank_payload(CANDIDATES, {"order": ["a"], "top_ids": "a"})


def test_prompt_mentions_trip_weather_and_every_candidate():
    prompt = build_rerank_prompt(
        Filter(region="성수동", companion="친구"),
        WeatherInfo(temp_c=18.4, condition="Rain"),
        CANDIDATES,
    )
    assert "성수동" in prompt
    assert "Rain, 18C" in prompt
    assert '"FOOD"' in prompt
    for place in CANDIDATES:
        assert f'"id": "{place.id}"' in prompt


def test_gemini_rerank_parses_fenced_json():
    body = "```json\n" + json.dumps({"order": ["b", "a", "c"], "top_ids": ["b"]}) + "\n```"
    session = FakeSession([FakeResponse(gemini_payload(body))])
    reranker = GeminiReranker(api_key="secret-key", session=session)

    out = reranker.rerank(Filter(region="성수동"), None, CANDIDATES)

    assert [p.id for p in out.places] == ["b", "a", "c"]
    assert out.ai_top_ids == {"b"}
    assert len(session.urls) == 1
    assert "gemini-2.5-flash" in session.urls[0]


def test_gemini_falls_through_model_chain():
    session = FakeSession(
        [
            FakeResponse(status_code=404, text="not found"),
            FakeResponse(gemini_payload('Sure! {"order": ["c"]}')),
        ]
    )
    reranker = GeminiReranker(api_key="secret-key", session=session)

    out = reranker.rerank(Filter(), None, CANDIDATES)

    assert [p.id for p in out.places] == ["c", "a", "b"]
    assert "gemini-2.5-pro" in session.urls[1]


def test_gemini_all_models_failing_raises_redacted_error():
    class ExplodingSession:
        def post(self, url, json=None, timeout=None):
            raise requests.ConnectionError(f"cannot reach {url}")

    reranker = GeminiReranker(api_key="secret-key", session=ExplodingSession())
    with pytest.raises(RerankError) as excinfo:
        reranker.rerank(Filter(), None, CANDIDATES)
    message = str(excinfo.value)
    assert message.startswith("request_error")
    assert "secret-key" not in message
    assert "[REDACTED]" in message


def test_gemini_invalid_json_raises():
    session = FakeSession([FakeResponse(gemini_payload("not json at all"))])
    reranker = GeminiReranker(api_key="k", session=session)
    with pytest.raises(RerankError):
        reranker.rerank(Filter(), None, CANDIDATES)


def test_gemini_empty_candidates_makes_no_call():
    session = FakeSession([])
    out = GeminiReranker(api_key="k", session=session).rerank(Filter(), None, [])
    assert out.places == ()
    assert session.urls == []


def test_from_env_without_key_is_noop(monkeypatch, caplog):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    reranker = GeminiReranker.from_env()
    assert isinstance(reranker, NoopReranker)
    with caplog.at_level("INFO", logger="tripscout.reranker"):
        out = reranker.rerank(Filter(), None, CANDIDATES)
    assert list(out.places) == CANDIDATES
    assert "skipped_no_api_key" in caplog.text


def test_from_env_with_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
    reranker = GeminiReranker.from_env()
    assert isinstance(reranker, GeminiReranker)
    assert reranker._model_chain() == ["gemini-2.5-pro", "gemini-2.5-flash"]
