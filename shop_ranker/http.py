"""HTTP client with retry/backoff for JSON APIs."""
from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class HttpClient:
    def __init__(
        self,
        timeout: Optional[float] = None,
        retry_max: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS
        self.retry_max = max(1, int(retry_max if retry_max is not None else config.HTTP_RETRY_MAX))
        self.backoff_base = backoff_base if backoff_base is not None else config.HTTP_BACKOFF_BASE
        self.backoff_max = backoff_max if backoff_max is not None else config.HTTP_BACKOFF_MAX
        self.user_agent = user_agent or config.HTTP_USER_AGENT
        self.session = requests.Session()
        self.request_count = 0

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = {"Accept": "application/json", "User-Agent": self.user_agent}
        if extra_headers:
            headers.update(extra_headers)

        for attempt in range(1, self.retry_max + 1):
            self.request_count += 1
            try:
                resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            except requests.RequestException as exc:
                logger.warning("Request to %s failed (attempt %s): %s", url, attempt, exc)
                if attempt >= self.retry_max:
                    raise
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if status == 200:
                try:
                    return resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    raise

            if status in RETRYABLE_STATUSES:
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    resp.raise_for_status()
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            resp.raise_for_status()

        raise RuntimeError("Unexpected HTTP retry loop exit")

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
