"""HTTP fetching with timeouts and bounded retry."""

from __future__ import annotations

import ssl
import time
from dataclasses import dataclass, field
from typing import Callable, Dict
from urllib.parse import urljoin

import httpx
import structlog

from ..config import FetchSettings
from ..errors import FailureKind, NetworkError
from .retry import BackoffPolicy


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)


class Fetcher:
    """Retrieve raw pages; knows nothing about their content."""

    def __init__(
        self,
        settings: FetchSettings,
        base_url: str,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.base_url = base_url.rstrip("/") + "/"
        self.policy = BackoffPolicy(settings)
        self.logger = logger or structlog.get_logger("balatro_wiki.fetcher")
        self._sleep = sleep
        # certificate verification is mandatory
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=settings.timeout,
            verify=True,
            headers={"User-Agent": settings.user_agent},
            transport=transport,
        )

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def resolve(self, url: str) -> str:
        return urljoin(self.base_url, url)

    def fetch(self, url: str) -> FetchResponse:
        target = self.resolve(url)
        context = self.policy.start(target)
        while True:
            delay = self.policy.delay(context)
            if delay:
                self._sleep(delay)
            try:
                response = self._client.get(target, timeout=self.settings.timeout)
                error = self._classify_status(target, response)
                if error is None:
                    return FetchResponse(
                        url=str(response.url),
                        status_code=response.status_code,
                        content=response.content,
                        headers=dict(response.headers),
                    )
            except httpx.InvalidURL as exc:
                error = NetworkError(FailureKind.PERMANENT, target, f"invalid url: {exc}")
            except httpx.HTTPError as exc:
                error = self._classify_exception(target, exc)

            self.logger.warning(
                "fetch_error",
                url=target,
                attempt=context.attempt,
                kind=error.kind.value,
                error=error.reason,
            )
            self.policy.notify_failure(context, error)
            if not self.policy.should_retry(context):
                break

        if error.transient:
            raise NetworkError(
                FailureKind.TRANSIENT,
                target,
                f"gave up after {context.max_attempts} attempts: {error.reason}",
                status_code=error.status_code,
            ) from error
        raise error

    # ------------------------------------------------------------------
    @staticmethod
    def _classify_status(url: str, response: httpx.Response) -> NetworkError | None:
        status = response.status_code
        if status < 400:
            return None
        kind = FailureKind.TRANSIENT if status == 429 or status >= 500 else FailureKind.PERMANENT
        return NetworkError(kind, url, f"HTTP {status}", status_code=status)

    @staticmethod
    def _classify_exception(url: str, exc: httpx.HTTPError) -> NetworkError:
        if _caused_by_tls(exc):
            return NetworkError(FailureKind.PERMANENT, url, f"TLS failure: {exc}")
        if isinstance(exc, httpx.TimeoutException):
            return NetworkError(FailureKind.TRANSIENT, url, f"timeout: {exc}")
        if isinstance(exc, (httpx.UnsupportedProtocol, httpx.LocalProtocolError)):
            return NetworkError(FailureKind.PERMANENT, url, str(exc) or type(exc).__name__)
        if isinstance(exc, httpx.TransportError):
            return NetworkError(FailureKind.TRANSIENT, url, str(exc) or type(exc).__name__)
        return NetworkError(FailureKind.PERMANENT, url, str(exc) or type(exc).__name__)


def _caused_by_tls(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


__all__ = ["FetchResponse", "Fetcher"]
