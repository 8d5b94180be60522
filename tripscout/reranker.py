"""Optional AI re-ranking of candidates via Gemini.

Re-ranking is a quality enhancement: every failure surfaces as RerankError so
the caller can keep the provider order. Without GEMINI_API_KEY the factory
returns a NoopReranker instead of failing.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .models import Filter, Place, RerankOutput, WeatherInfo

logger = logging.getLogger(__name__)

GEMINI_API_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MODEL_CHAIN = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
]
MAX_TOP_IDS = 5

PROMPT_TEMPLATE = """You are a local travel guide. Re-rank the candidate places for this trip.

Trip:
{trip}

Weather: {weather}

Candidates (JSON lines):
{candidates}

Return only a JSON object with these keys:
- "order": every candidate id, best first
- "reasons": object mapping id to one short Korean sentence explaining the pick
- "top_ids": up to {max_top} ids you consider the best picks
"""


class RerankError(RuntimeError):
    pass


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    stripped = re.sub(r"^```(?:json)?", "", stripped, flags=re.IGNORECASE).strip()
    stripped = re.sub(r"```$", "", stripped).strip()
    return stripped


def _extract_json_candidate(text: str) -> str:
    """Best-effort extraction of a JSON object from model output."""
    candidate = _strip_code_fences(text)
    if candidate.startswith("{"):
        return candidate
    obj_start = candidate.find("{")
    obj_end = candidate.rfind("}")
    if obj_start != -1 and obj_end != -1 and obj_end > obj_start:
        return candidate[obj_start : obj_end + 1]
    return candidate


def _parse_json_loose(text: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    candidate = _extract_json_candidate(text)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return None, f"json_decode_error: {exc}"
    if not isinstance(parsed, dict):
        return None, f"json_not_object: {type(parsed).__name__}"
    return parsed, None


def build_rerank_prompt(
    filter: Filter, weather: Optional[WeatherInfo], candidates: Sequence[Place]
) -> str:
    trip = {
        "region": filter.region,
        "categories": sorted(c.value for c in filter.effective_categories()),
        "duration": filter.duration,
        "budget_per_person": filter.budget_per_person,
        "companion": filter.companion,
    }
    if weather is None:
        weather_text = "unknown"
    else:
        weather_text = f"{weather.condition}, {weather.temp_c:.0f}C"
    lines = [
        json.dumps(
            {
                "id": p.id,
                "name": p.name,
                "category": p.category.value,
                "distance_m": p.distance_meters,
                "address": p.address,
            },
            ensure_ascii=False,
        )
        for p in candidates
    ]
    return PROMPT_TEMPLATE.format(
        trip=json.dumps(trip, ensure_ascii=False),
        weather=weather_text,
        candidates="\n".join(lines),
        max_top=MAX_TOP_IDS,
    )


def apply_rerank_payload(candidates: Sequence[Place], data: Dict[str, Any]) -> RerankOutput:
    """Turn a model payload into a RerankOutput over the original candidates.

    Ids the model invented are ignored and candidates it left out are appended
    in their original order, so the result is always a permutation.
    """
    order = data.get("order")
    if not isinstance(order, list):
        raise RerankError("payload missing 'order' list")

    by_id = {p.id: p for p in candidates}
    placed: List[Place] = []
    seen = set()
    for raw_id in order:
        place_id = str(raw_id)
        if place_id in by_id and place_id not in seen:
            seen.add(place_id)
            placed.append(by_id[place_id])
    if not placed and candidates:
        raise RerankError("payload 'order' matched no candidate ids")
    placed.extend(p for p in candidates if p.id not in seen)

    reasons_raw = data.get("reasons") or {}
    if not isinstance(reasons_raw, dict):
        raise RerankError("payload 'reasons' is not an object")
    reasons = {
        str(k): str(v).strip()
        for k, v in reasons_raw.items()
        if str(k) in by_id and isinstance(v, str) and v.strip()
    }

    top_raw = data.get("top_ids") or []
    if not isinstance(top_raw, list):
        raise RerankError("payload 'top_ids' is not a list")
    top_ids = frozenset(str(i) for i in top_raw if str(i) in by_id)

    return RerankOutput(places=tuple(placed), reasons=reasons, ai_top_ids=top_ids)


class BaseReranker:
    def rerank(
        self,
        filter: Filter,
        weather: Optional[WeatherInfo],
        candidates: Sequence[Place],
    ) -> RerankOutput:
        raise NotImplementedError


class NoopReranker(BaseReranker):
    def __init__(self, reason: str = "skipped_no_api_key") -> None:
        self.reason = reason

    def rerank(
        self,
        filter: Filter,
        weather: Optional[WeatherInfo],
        candidates: Sequence[Place],
    ) -> RerankOutput:
        logger.info("Rerank skipped (%s), keeping %s candidates in order", self.reason, len(candidates))
        return RerankOutput(places=tuple(candidates))


class GeminiReranker(BaseReranker):
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> BaseReranker:
        api_key = os.environ.get("GEMINI_API_KEY")
        if not api_key:
            return NoopReranker("skipped_no_api_key")
        model = os.environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        return cls(api_key=api_key, model=model)

    def _redact(self, text: str) -> str:
        if not text:
            return text
        redacted = text.replace(self.api_key, "[REDACTED]")
        redacted = re.sub(r"(key=)[^&\s()]+", r"\1[REDACTED]", redacted)
        return redacted

    def _call_api(self, prompt_text: str, model: str) -> Tuple[str, Optional[str]]:
        url = f"{GEMINI_API_URL_TEMPLATE.format(model=model)}?key={self.api_key}"
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt_text}],
                }
            ],
            "generationConfig": {
                "temperature": 0.2,
                "responseMimeType": "application/json",
            },
        }
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            return "", f"request_error: {exc}"
        if resp.status_code >= 400:
            return resp.text, f"http_error: {resp.status_code}"
        try:
            data = resp.json()
        except ValueError as exc:
            return resp.text, f"non_json_response: {exc}"
        candidates = data.get("candidates") or []
        if not candidates:
            return "", "no_candidates"
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts or not isinstance(parts[0].get("text"), str):
            return "", "missing_text_part"
        return parts[0]["text"], None

    def _model_chain(self) -> List[str]:
        primary = (self.model or "").strip()
        chain: List[str] = []
        if primary:
            chain.append(primary)
        for model in DEFAULT_MODEL_CHAIN:
            if model not in chain:
                chain.append(model)
        return chain

    def rerank(
        self,
        filter: Filter,
        weather: Optional[WeatherInfo],
        candidates: Sequence[Place],
    ) -> RerankOutput:
        if not candidates:
            return RerankOutput(places=())
        prompt = build_rerank_prompt(filter, weather, candidates)
        prompt_hash = hash_text(prompt)

        last_error = "no_models"
        raw_text = ""
        for model in self._model_chain():
            raw_text, error = self._call_api(prompt, model=model)
            if error is None:
                logger.debug("Rerank prompt %s answered by %s", prompt_hash[:12], model)
                break
            last_error = self._redact(error)
            logger.warning("Gemini %s failed: %s", model, last_error)
        else:
            raise RerankError(last_error)

        parsed, parse_error = _parse_json_loose(self._redact(raw_text))
        if parse_error:
            raise RerankError(parse_error)
        return apply_rerank_payload(candidates, parsed)
