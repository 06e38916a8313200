"""
Rate-limited HTTP client shared by the watchlist adapters.

Each upstream gets its own RateLimiter instance, so Jikan can be paced more
slowly than Letterboxd. Transient failures (408/429/5xx, connection errors,
timeouts) are retried a bounded number of times, honoring Retry-After.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional
import logging
import time

import requests

from config.settings import (
    HTTP_BACKOFF_BASE,
    HTTP_BACKOFF_MAX,
    HTTP_DEFAULT_HEADERS,
    HTTP_MAX_RETRIES,
    HTTP_RETRY_STATUS_CODES,
    HTTP_TIMEOUT,
)

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """An upstream request failed after all retries, or with a non-retryable status."""

    def __init__(self, url: str, status_code: Optional[int] = None, message: str = ""):
        self.url = url
        self.status_code = status_code
        detail = message or (f"HTTP {status_code}" if status_code else "request failed")
        super().__init__(f"{detail} ({url})")


class RateLimiter:
    """Enforces a minimum delay between consecutive dispatches to one upstream."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between two dispatches
            clock: Monotonic time source
            sleep: Blocking sleep function
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self.last_request_time: Optional[float] = None
        self.total_wait = 0.0

    def wait_if_needed(self) -> float:
        """Wait if necessary to keep the minimum interval. Returns the dispatch time."""
        if self.last_request_time is not None:
            elapsed = self._clock() - self.last_request_time
            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.debug(f"Rate limiting: waiting {wait_time:.3f}s")
                self.total_wait += wait_time
                self._sleep(wait_time)
        self.last_request_time = self._clock()
        return self.last_request_time


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """
    Parse a Retry-After header value.

    Args:
        value: Header value, either delta-seconds or an HTTP-date
        now: Reference time for HTTP-dates (defaults to current UTC time)

    Returns:
        Seconds to wait (never negative), or None if absent/unparseable
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (retry_at - now).total_seconds())


class HttpClient:
    """requests.Session wrapper with per-upstream pacing and bounded retries."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = HTTP_MAX_RETRIES,
        timeout: int = HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.rate_limiter = rate_limiter or RateLimiter(0.0)
        self.max_retries = max_retries
        self.timeout = timeout
        self._sleep = sleep
        if session is None:
            session = requests.Session()
            session.headers.update(HTTP_DEFAULT_HEADERS)
        self.session = session
        self.request_count = 0

    @staticmethod
    def backoff_delay(attempt: int) -> float:
        """Exponential backoff: 1s, 2s, 4s, ... capped at HTTP_BACKOFF_MAX."""
        return min(HTTP_BACKOFF_BASE * (2 ** attempt), HTTP_BACKOFF_MAX)

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Execute a request with rate limiting and retry logic.

        Args:
            method: HTTP method
            url: Absolute URL
            **kwargs: Passed through to requests (params, json, headers)

        Returns:
            The successful response

        Raises:
            FetchError: On a non-retryable status or after exhausting retries
        """
        for attempt in range(self.max_retries + 1):
            self.rate_limiter.wait_if_needed()
            self.request_count += 1
            logger.debug(f"{method} {url} (attempt {attempt + 1}/{self.max_retries + 1})")

            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if attempt >= self.max_retries:
                    raise FetchError(url, message=str(e)) from e
                delay = self.backoff_delay(attempt)
                logger.warning(f"Request error for {url}: {e}, retrying in {delay:.1f}s")
                self._sleep(delay)
                continue

            status = response.status_code
            if status in HTTP_RETRY_STATUS_CODES:
                if attempt >= self.max_retries:
                    raise FetchError(url, status, f"HTTP {status} after {attempt + 1} attempts")
                delay = parse_retry_after(response.headers.get("Retry-After"))
                if delay is None:
                    delay = self.backoff_delay(attempt)
                logger.warning(
                    f"HTTP {status} from {url}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                self._sleep(delay)
                continue

            if status >= 400:
                raise FetchError(url, status)

            return response

        # max_retries < 0 leaves the loop without a request
        raise FetchError(url, message="no attempts made")

    def get_text(self, url: str, **kwargs) -> str:
        """Fetch a URL and return the body as text."""
        logger.debug(f"Fetching HTML from {url}")
        return self.request("GET", url, **kwargs).text

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Fetch a URL and decode its JSON body."""
        logger.debug(f"Fetching JSON from {url}")
        response = self.request("GET", url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(url, response.status_code, "invalid JSON body") from e

    def post_json(self, url: str, payload: Dict[str, Any]) -> requests.Response:
        return self.request("POST", url, json=payload)
