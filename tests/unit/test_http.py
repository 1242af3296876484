from __future__ import annotations

import pytest
import requests

from service_finder.common.http import (
    HttpClient,
    HttpRequestError,
    HttpTimeoutError,
    NotFoundHttpError,
    RateLimiter,
    RetryConfig,
    RetryableHttpError,
)


class FakeResponse:
    def __init__(self, status_code: int, payload=None, raises_json: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._raises_json = raises_json

    def json(self):
        if self._raises_json:
            raise ValueError("bad json")
        return self._payload


def test_http_get_json_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    calls = []

    def fake_request(**kwargs):
        calls.append(kwargs)
        return FakeResponse(200, {"status": 200, "result": {"ok": True}})

    monkeypatch.setattr(client.session, "request", fake_request)
    payload = client.get_json("https://api.postcodes.io/postcodes/SW1A%201AA")

    assert payload["result"] == {"ok": True}
    assert calls[0]["method"] == "GET"
    assert client.session.headers["Accept"] == "application/json"


def test_http_post_json_sends_body(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    calls = []

    def fake_request(**kwargs):
        calls.append(kwargs)
        return FakeResponse(200, {"status": 200, "result": []})

    monkeypatch.setattr(client.session, "request", fake_request)
    client.post_json("https://api.postcodes.io/postcodes", json_body={"postcodes": ["M1 1AE"]})

    assert calls[0]["method"] == "POST"
    assert calls[0]["json"] == {"postcodes": ["M1 1AE"]}


def test_http_retryable_status_raises_retryable_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(503, {"x": 1}))

    with pytest.raises(RetryableHttpError):
        client.get_json("https://example.com")


def test_http_retries_until_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=3, multiplier=0.0, max_wait=0.0))
    responses = [FakeResponse(502), FakeResponse(200, {"ok": True})]
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: responses.pop(0))

    assert client.get_json("https://example.com") == {"ok": True}
    assert responses == []


def test_http_not_found_keeps_payload(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(
        client.session,
        "request",
        lambda **_kwargs: FakeResponse(404, {"status": 404, "error": "Postcode not found"}),
    )

    with pytest.raises(NotFoundHttpError) as excinfo:
        client.get_json("https://example.com")
    assert excinfo.value.payload == {"status": 404, "error": "Postcode not found"}


def test_http_timeout_is_typed(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    def fake_request(**_kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(client.session, "request", fake_request)

    with pytest.raises(HttpTimeoutError):
        client.get_json("https://example.com")


def test_http_invalid_json_raises(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, raises_json=True))

    with pytest.raises(HttpRequestError):
        client.get_json("https://example.com")


def test_http_client_from_config():
    client = HttpClient.from_config(
        {
            "timeout": {"connect": 2, "read": 4},
            "retry": {"max_attempts": 5, "multiplier": 0.1, "max_wait": 1},
            "rate_per_sec": 3,
        }
    )
    assert client.timeout.connect == 2.0
    assert client.retry.max_attempts == 5
    client.close()


def test_rate_limiter_spaces_calls():
    now = [100.0]
    sleeps = []

    def sleep(seconds):
        sleeps.append(round(seconds, 6))
        now[0] += seconds

    limiter = RateLimiter(4.0, clock=lambda: now[0], sleep=sleep)
    for _ in range(3):
        limiter.wait()

    assert sleeps == [0.25, 0.25]
