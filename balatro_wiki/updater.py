"""Refresh cycle wiring together fetching, extraction and the store swap."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import replace
from datetime import datetime
from threading import Event
from typing import Callable, Sequence

import structlog

from .config import PageSource, WikiConfig
from .engine import Extractor, Fetcher, ModRecord, ModStore, ThreadPoolManager, UpdateSummary
from .engine.extractor import ModDetail
from .engine.fetcher import FetchResponse
from .engine.records import utcnow
from .errors import NetworkError, StoreError, UpdateCancelled, UpdateFailed

ProgressCallback = Callable[[str], None]


class Updater:
    """Pull the wiki, merge the pages and atomically replace the cache."""

    def __init__(
        self,
        config: WikiConfig,
        store: ModStore,
        fetcher: Fetcher | None = None,
        extractor: Extractor | None = None,
        thread_pool: ThreadPoolManager | None = None,
        logger: structlog.BoundLogger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.store = store
        self.logger = logger or structlog.get_logger("balatro_wiki.updater")
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(config.fetch, config.base_url, logger=self.logger)
        self.extractor = extractor or Extractor(config.base_url, logger=self.logger)
        self.thread_pool = thread_pool
        self._clock = clock

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    # ------------------------------------------------------------------
    def update(
        self,
        cancel_event: Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> UpdateSummary:
        cancel = cancel_event or Event()
        report = progress or (lambda _message: None)
        summary = UpdateSummary()
        pool = self.thread_pool or ThreadPoolManager(self.config.workers)
        try:
            report(f"Fetching {len(self.config.pages)} wiki page(s)…")
            responses = self._fetch_pages(pool, self.config.pages, cancel, summary)
            if not responses:
                self.logger.error("update_failed", warnings=summary.warnings)
                raise UpdateFailed(summary.warnings)

            report("Extracting mod entries…")
            merged = self._merge(responses, summary)
            if not merged:
                summary.warnings.append("no mod entries found on any fetched page")
                self.logger.error("update_empty", warnings=summary.warnings)
                raise UpdateFailed(summary.warnings, reason="no mod entries found")

            if self.config.enrich_details:
                pending = [r for r in merged.values() if r.wiki_url and (r.source_url is None or not r.description)]
                if pending:
                    report(f"Reading {len(pending)} mod page(s)…")
                    for record in self._enrich(pool, pending, cancel, summary):
                        merged[record.id] = record
        except KeyboardInterrupt:
            cancel.set()
            raise UpdateCancelled("update interrupted") from None
        finally:
            if self.thread_pool is None:
                pool.shutdown(cancel_pending=True)

        if cancel.is_set():
            raise UpdateCancelled("update cancelled before the cache swap")

        report("Writing cache…")
        previous = self._previous_generation(summary)
        now = self._clock()
        records = [record.seen_at(now) for record in merged.values()]
        self._diff(previous, records, summary)
        self.store.replace_all(records, updated_at=now)
        summary.total = len(records)
        summary.updated_at = now
        self.logger.info(
            "update_finished",
            total=summary.total,
            added=len(summary.added),
            changed=len(summary.changed),
            removed=len(summary.removed),
            warnings=len(summary.warnings),
        )
        return summary

    # ------------------------------------------------------------------
    def _fetch_pages(
        self,
        pool: ThreadPoolManager,
        pages: Sequence[PageSource],
        cancel: Event,
        summary: UpdateSummary,
    ) -> list[tuple[PageSource, FetchResponse]]:
        executor = pool.get()
        futures: list[tuple[PageSource, Future[FetchResponse]]] = [
            (page, executor.submit(self._fetch_one, page.url, cancel)) for page in pages
        ]
        responses: list[tuple[PageSource, FetchResponse]] = []
        for page, future in futures:
            try:
                responses.append((page, future.result()))
                summary.pages_ok += 1
            except UpdateCancelled:
                for _, pending in futures:
                    pending.cancel()
                raise
            except NetworkError as exc:
                summary.pages_failed += 1
                summary.warnings.append(f"{page.url}: {exc}")
                self.logger.warning("page_failed", page=page.url, kind=exc.kind.value, error=exc.reason)
            except Exception as exc:  # noqa: BLE001
                summary.pages_failed += 1
                summary.warnings.append(f"{page.url}: {exc}")
                self.logger.error("page_error", page=page.url, error=str(exc))
        return responses

    def _fetch_one(self, url: str, cancel: Event) -> FetchResponse:
        if cancel.is_set():
            raise UpdateCancelled(f"cancelled before requesting {url}")
        return self.fetcher.fetch(url)

    def _merge(
        self,
        responses: Sequence[tuple[PageSource, FetchResponse]],
        summary: UpdateSummary,
    ) -> dict[str, ModRecord]:
        merged: dict[str, ModRecord] = {}
        for page, response in responses:
            try:
                result = self.extractor.parse(response.content, page=page, page_url=response.url)
            except Exception as exc:  # noqa: BLE001
                summary.warnings.append(f"{page.url}: page could not be parsed: {exc}")
                self.logger.error("page_parse_error", page=page.url, error=str(exc))
                continue
            summary.warnings.extend(str(warning) for warning in result.warnings)
            for record in result.records:
                merged[record.id] = record
        return merged

    def _enrich(
        self,
        pool: ThreadPoolManager,
        pending: Sequence[ModRecord],
        cancel: Event,
        summary: UpdateSummary,
    ) -> list[ModRecord]:
        executor = pool.get()
        futures = [(record, executor.submit(self._fetch_one, record.wiki_url, cancel)) for record in pending]
        enriched: list[ModRecord] = []
        for record, future in futures:
            try:
                response = future.result()
                detail = self.extractor.parse_detail(response.content, page_url=response.url)
            except UpdateCancelled:
                for _, waiting in futures:
                    waiting.cancel()
                raise
            except Exception as exc:  # noqa: BLE001
                summary.warnings.append(f"{record.wiki_url}: detail page skipped: {exc}")
                self.logger.warning("detail_failed", mod=record.name, error=str(exc))
                continue
            enriched.append(self._apply_detail(record, detail))
        return enriched

    @staticmethod
    def _apply_detail(record: ModRecord, detail: ModDetail) -> ModRecord:
        tags = tuple(dict.fromkeys((*record.tags, *detail.tags)))
        return replace(
            record,
            description=record.description or detail.description,
            source_url=record.source_url or detail.source_url,
            author=record.author or detail.author,
            version=record.version or detail.version,
            tags=tags,
        )

    def _previous_generation(self, summary: UpdateSummary) -> dict[str, ModRecord]:
        try:
            return {record.id: record for record in self.store.list()}
        except StoreError as exc:
            summary.warnings.append(f"previous cache unreadable, rebuilding it: {exc}")
            self.logger.warning("previous_cache_unreadable", error=str(exc))
            return {}

    @staticmethod
    def _diff(previous: dict[str, ModRecord], records: Sequence[ModRecord], summary: UpdateSummary) -> None:
        current = {record.id: record for record in records}
        summary.added = sorted(set(current) - set(previous))
        summary.removed = sorted(set(previous) - set(current))
        summary.changed = sorted(
            record_id
            for record_id in set(current) & set(previous)
            if current[record_id].fingerprint() != previous[record_id].fingerprint()
        )


__all__ = ["Updater"]
