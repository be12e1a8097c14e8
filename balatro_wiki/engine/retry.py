"""Retry bookkeeping consulted by the fetch loop."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import FetchSettings
from ..errors import NetworkError


@dataclass
class RetryContext:
    """Shared state for one logical request across its attempts."""

    url: str
    attempt: int = 1
    max_attempts: int = 1
    last_error: NetworkError | None = None


class BackoffPolicy:
    """Bounded exponential backoff applied to transient failures only."""

    def __init__(self, settings: FetchSettings) -> None:
        self.settings = settings

    def start(self, url: str) -> RetryContext:
        return RetryContext(url=url, max_attempts=self.settings.max_attempts)

    def notify_failure(self, context: RetryContext, error: NetworkError) -> None:
        context.last_error = error
        context.attempt += 1

    def should_retry(self, context: RetryContext) -> bool:
        error = context.last_error
        if error is None or not error.transient:
            return False
        return context.attempt <= context.max_attempts

    def delay(self, context: RetryContext) -> float:
        """Seconds to wait before the current attempt (zero for the first)."""

        if context.attempt <= 1:
            return 0.0
        delay = self.settings.backoff_base * (2 ** (context.attempt - 2))
        return min(delay, self.settings.backoff_max)


__all__ = ["BackoffPolicy", "RetryContext"]
