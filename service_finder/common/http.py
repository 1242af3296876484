"""JSON-over-HTTP client for the geocoding service.

One client talks to one upstream. Calls are spaced by a shared rate limiter,
retried with jittered exponential backoff on throttling, server errors and
timeouts, and surface as typed errors otherwise.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from service_finder.common.constants import USER_AGENT
from service_finder.common.errors import StageError
from service_finder.common.logging import log_event

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 30.0

    def as_tuple(self) -> tuple[float, float]:
        return (self.connect, self.read)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 0.5
    max_wait: float = 5.0


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload


class NotFoundHttpError(HttpRequestError):
    error_code = "HTTP_NOT_FOUND"


class RetryableHttpError(HttpRequestError):
    error_code = "HTTP_RETRYABLE"


class HttpTimeoutError(RetryableHttpError):
    error_code = "HTTP_TIMEOUT"


class RateLimiter:
    """Spaces calls at most ``rate_per_sec`` apart across threads.

    Each caller reserves the next free slot under the lock and sleeps outside it.
    """

    def __init__(self, rate_per_sec: float, *, clock=time.monotonic, sleep=time.sleep) -> None:
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be positive")
        self.interval = 1.0 / rate_per_sec
        self._clock = clock
        self._sleep = sleep
        self._next_slot = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval
        if slot > now:
            self._sleep(slot - now)


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_for_status(response: requests.Response, url: str) -> HttpRequestError | None:
    status = response.status_code
    if status < 400:
        return None
    if status in RETRYABLE_STATUS_CODES:
        return RetryableHttpError(f"{url} answered {status}; will retry", status=status)
    error_cls = NotFoundHttpError if status == 404 else HttpRequestError
    return error_cls(f"{url} answered {status}", status=status, payload=_json_or_none(response))


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    log_event(
        logger,
        f"retrying after attempt {state.attempt_number}: {exc}",
        level=logging.WARNING,
        event="HTTP_RETRY",
        status="retry",
        error_code=getattr(exc, "error_code", None),
    )


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        rate_per_sec: float = 10.0,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        self.limiter = RateLimiter(rate_per_sec)

    @classmethod
    def from_config(cls, geocoding_cfg: dict) -> "HttpClient":
        retry_cfg = geocoding_cfg["retry"]
        return cls(
            timeout=TimeoutConfig(
                connect=float(geocoding_cfg["timeout"]["connect"]),
                read=float(geocoding_cfg["timeout"]["read"]),
            ),
            retry=RetryConfig(
                max_attempts=int(retry_cfg["max_attempts"]),
                multiplier=float(retry_cfg["multiplier"]),
                max_wait=float(retry_cfg["max_wait"]),
            ),
            rate_per_sec=float(geocoding_cfg["rate_per_sec"]),
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(initial=self.retry.multiplier, max=self.retry.max_wait, jitter=1.0),
            retry=retry_if_exception_type(RetryableHttpError),
            before_sleep=_log_retry,
            reraise=True,
        )

    def _send_once(self, method: str, url: str, **kwargs: Any) -> Any:
        self.limiter.wait()
        try:
            response = self.session.request(method=method, url=url, timeout=self.timeout.as_tuple(), **kwargs)
        except requests.Timeout as exc:
            raise HttpTimeoutError(f"{method} {url} timed out") from exc
        except requests.ConnectionError as exc:
            raise RetryableHttpError(f"{method} {url} could not connect") from exc

        error = _error_for_status(response, url)
        if error is not None:
            raise error
        try:
            return response.json()
        except ValueError as exc:
            raise HttpRequestError(f"{url} returned a body that is not JSON", status=response.status_code) from exc

    def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        return self._retrying()(self._send_once, method, url, **kwargs)

    def get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        return self.request_json("GET", url, params=params)

    def post_json(self, url: str, *, json_body: dict[str, Any]) -> Any:
        return self.request_json("POST", url, json=json_body)
