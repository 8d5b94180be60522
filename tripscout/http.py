"""HTTP client with retry/backoff and request metrics."""
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


@dataclass
class RequestMetrics:
    network_requests: int = 0
    failed_requests: int = 0
    retries: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc_network(self) -> None:
        with self._lock:
            self.network_requests += 1

    def inc_failed(self) -> None:
        with self._lock:
            self.failed_requests += 1

    def inc_retry(self) -> None:
        with self._lock:
            self.retries += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                "network_requests": self.network_requests,
                "failed_requests": self.failed_requests,
                "retries": self.retries,
            }


class HttpClient:
    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        timeout: int = 10,
        retry_max: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.retry_max = retry_max
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.metrics = metrics
        self.session = requests.Session()

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = dict(self.headers)
        if extra_headers:
            headers.update(extra_headers)

        for attempt in range(1, self.retry_max + 1):
            if self.metrics is not None:
                self.metrics.inc_network()
            try:
                resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            except requests.RequestException:
                if attempt >= self.retry_max:
                    self._mark_failed()
                    raise
                self._mark_retry()
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if status == 200:
                try:
                    return resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    self._mark_failed()
                    raise

            if status in (429, 500, 502, 503, 504):
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    self._mark_failed()
                    resp.raise_for_status()
                self._mark_retry()
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            self._mark_failed()
            resp.raise_for_status()

        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _mark_failed(self) -> None:
        if self.metrics is not None:
            self.metrics.inc_failed()

    def _mark_retry(self) -> None:
        if self.metrics is not None:
            self.metrics.inc_retry()

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
