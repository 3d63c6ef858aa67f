"""Paced HTTP calls to the Kakao APIs.

Each Kakao host gets its own limiter. A 429 response, or a Kakao quota
error body (code -10), doubles the pause before the next call to that host
and the call is retried up to ``HTTP_MAX_RETRIES`` times. A successful
response drops the pause back to ``HTTP_MIN_DELAY_SECONDS``.

Env vars:
- HTTP_MIN_DELAY_SECONDS (default 0)
- HTTP_MAX_DELAY_SECONDS (default 10)
- HTTP_MAX_RETRIES (default 3)
"""

import logging
import os
import threading
import time
from typing import Dict, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

KAKAO_QUOTA_ERROR_CODE = -10
FIRST_BACKOFF_SECONDS = 0.5


def _env_number(name: str, default: float) -> float:
    try:
        return float(os.getenv(name) or default)
    except ValueError:
        return default


def retry_after_seconds(headers: Mapping[str, str]) -> Optional[float]:
    """Seconds from a ``Retry-After`` header; HTTP-date values are ignored."""
    try:
        return float(headers.get('Retry-After'))
    except (TypeError, ValueError):
        return None


def is_rate_limited(resp: requests.Response) -> bool:
    if resp.status_code == 429:
        return True
    if resp.status_code not in (400, 403):
        return False
    try:
        body = resp.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get('code') == KAKAO_QUOTA_ERROR_CODE


class KakaoRateLimiter:
    """Spacing between calls to one Kakao host."""

    def __init__(self, key: str):
        self.key = key
        self.min_delay = max(0.0, _env_number('HTTP_MIN_DELAY_SECONDS', 0.0))
        self.max_delay = max(self.min_delay, _env_number('HTTP_MAX_DELAY_SECONDS', 10.0))
        self.delay = self.min_delay
        self._next_call = time.monotonic()
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            pause = self._next_call - time.monotonic()
            if pause > 0:
                time.sleep(pause)
            self._next_call = time.monotonic() + self.delay

    def slow_down(self, retry_after: Optional[float] = None) -> None:
        with self._lock:
            delay = self.delay * 2 or FIRST_BACKOFF_SECONDS
            if retry_after is not None:
                delay = max(delay, retry_after)
            self.delay = min(self.max_delay, delay)
            self._next_call = time.monotonic() + self.delay

    def reset(self) -> None:
        with self._lock:
            self.delay = self.min_delay


_limiters: Dict[str, KakaoRateLimiter] = {}
_limiters_lock = threading.Lock()


def get_limiter(key: str) -> KakaoRateLimiter:
    with _limiters_lock:
        if key not in _limiters:
            _limiters[key] = KakaoRateLimiter(key)
        return _limiters[key]


def adaptive_request(limiter_key: str, method: str, url: str, max_retries: Optional[int] = None,
                     **kwargs) -> requests.Response:
    """
    ``requests.request`` paced by the ``limiter_key`` limiter.

    Rate-limited and 5xx responses are retried; the last response is
    returned once the retries run out. Connection errors are retried the
    same way and re-raised on the final attempt.
    """
    limiter = get_limiter(limiter_key)
    attempts = max(1, int(max_retries or _env_number('HTTP_MAX_RETRIES', 3)))

    for attempt in range(1, attempts + 1):
        limiter.wait()
        last_attempt = attempt == attempts
        try:
            resp = requests.request(method, url, **kwargs)
        except requests.exceptions.RequestException as exc:
            logger.warning(f"Kakao call {limiter_key} {url} failed (attempt {attempt}/{attempts}): {exc}")
            if last_attempt:
                raise
            continue

        if is_rate_limited(resp):
            wait = retry_after_seconds(resp.headers)
            limiter.slow_down(wait)
            logger.warning(f"Kakao rate limit on {limiter_key} ({resp.status_code}), retry after {wait}")
        elif resp.status_code >= 500:
            logger.warning(f"Kakao {limiter_key} returned {resp.status_code} (attempt {attempt}/{attempts})")
        else:
            limiter.reset()
            return resp

        if last_attempt:
            return resp


def adaptive_get(limiter_key: str, url: str, **kwargs) -> requests.Response:
    return adaptive_request(limiter_key, 'GET', url, **kwargs)


def adaptive_post(limiter_key: str, url: str, **kwargs) -> requests.Response:
    return adaptive_request(limiter_key, 'POST', url, **kwargs)
