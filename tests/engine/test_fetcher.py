from __future__ import annotations

import ssl

import httpx
import pytest

from balatro_wiki.config import FetchSettings
from balatro_wiki.engine.fetcher import Fetcher
from balatro_wiki.errors import FailureKind, NetworkError

BASE = "https://wiki.example.org"


def make_fetcher(handler, sleeps: list[float], **settings) -> Fetcher:
    options = {"timeout": 5, "max_attempts": 3, "backoff_base": 0.5, "backoff_max": 8.0}
    options.update(settings)
    return Fetcher(
        FetchSettings(**options),
        BASE,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )


def test_fetcher_returns_bytes_and_resolves_relative_urls() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content="<p>ok</p>".encode("utf-8"))

    sleeps: list[float] = []
    with make_fetcher(handler, sleeps) as fetcher:
        response = fetcher.fetch("/wiki/Mod_List")

    assert seen == ["https://wiki.example.org/wiki/Mod_List"]
    assert response.status_code == 200
    assert response.content == b"<p>ok</p>"
    assert sleeps == []


def test_fetcher_sends_user_agent() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["ua"] = request.headers.get("user-agent")
        return httpx.Response(200, content=b"")

    with make_fetcher(handler, [], user_agent="balatro-wiki-tests") as fetcher:
        fetcher.fetch("/wiki/Main_Page")
    assert captured["ua"] == "balatro-wiki-tests"


def test_fetcher_retries_transient_status_with_backoff() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503)
        return httpx.Response(200, content=b"recovered")

    sleeps: list[float] = []
    with make_fetcher(handler, sleeps) as fetcher:
        response = fetcher.fetch("/wiki/Flaky")

    assert calls["count"] == 3
    assert response.content == b"recovered"
    assert sleeps == [0.5, 1.0]


def test_fetcher_does_not_retry_permanent_status() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(404)

    sleeps: list[float] = []
    with make_fetcher(handler, sleeps) as fetcher:
        with pytest.raises(NetworkError) as excinfo:
            fetcher.fetch("/wiki/Missing")

    assert calls["count"] == 1
    assert excinfo.value.kind is FailureKind.PERMANENT
    assert excinfo.value.status_code == 404
    assert sleeps == []


def test_fetcher_treats_rate_limit_as_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    sleeps: list[float] = []
    with make_fetcher(handler, sleeps, max_attempts=2) as fetcher:
        with pytest.raises(NetworkError) as excinfo:
            fetcher.fetch("/wiki/Busy")

    assert excinfo.value.transient
    assert "gave up after 2 attempts" in excinfo.value.reason
    assert len(sleeps) == 1


def test_fetcher_gives_up_after_repeated_timeouts() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ReadTimeout("slow", request=request)

    sleeps: list[float] = []
    with make_fetcher(handler, sleeps, backoff_base=1.0, backoff_max=1.5) as fetcher:
        with pytest.raises(NetworkError) as excinfo:
            fetcher.fetch("/wiki/Slow")

    assert calls["count"] == 3
    assert excinfo.value.kind is FailureKind.TRANSIENT
    assert sleeps == [1.0, 1.5]


def test_fetcher_tls_failures_are_permanent() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        try:
            raise ssl.SSLCertVerificationError("certificate verify failed")
        except ssl.SSLError as exc:
            raise httpx.ConnectError("tls handshake failed", request=request) from exc

    with make_fetcher(handler, []) as fetcher:
        with pytest.raises(NetworkError) as excinfo:
            fetcher.fetch("/wiki/Secure")

    assert calls["count"] == 1
    assert excinfo.value.kind is FailureKind.PERMANENT
    assert "TLS" in excinfo.value.reason


def test_fetcher_connection_reset_is_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, content=b"ok")

    with make_fetcher(handler, []) as fetcher:
        assert fetcher.fetch("/wiki/Reset").content == b"ok"
    assert calls["count"] == 2
