"""Orchestrator: wires the scan gate, browser session, adapters, and merge engine.

Per-source flow:
  1. Skip disabled links
  2. Hold the browser (bounded wait; SessionBusy -> skipped)
  3. Page loop: navigate (one retry) -> blocked check -> extract -> merge
     -> stop/close check -> next page, up to ``max_pages``
  4. Record the outcome and, unless it errored, the last-scanned time

One link's failure never stops the others. Every entry point goes through the
scan gate, so at most one scan runs at a time.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Protocol

from jobscan.browser.actions import random_sleep
from jobscan.browser.controller import BrowserController, ScanLease
from jobscan.core.config import ScannerConfig
from jobscan.core.errors import (
    ExtractionAnomaly,
    NavigationError,
    SessionBusy,
    SessionClosed,
    SourceBlocked,
    StoreUnavailable,
)
from jobscan.core.schemas import (
    CandidatePosting,
    Job,
    MergeResult,
    PageContent,
    ScanOutcome,
    ScanStatus,
    Site,
    Source,
)
from jobscan.pipeline.gate import ScanGate
from jobscan.pipeline.merge import CatalogStore, MergeEngine
from jobscan.pipeline.state import ScanRunState, ScanStateSnapshot
from jobscan.sites.base import AdapterRegistry, ExtractionAdapter

logger = logging.getLogger(__name__)

# Outcomes after which the link counts as scanned.
_SCANNED_STATUSES = frozenset({
    ScanStatus.SUCCESS,
    ScanStatus.PARTIAL,
    ScanStatus.BLOCKED,
    ScanStatus.ABORTED,
})

Sleeper = Callable[[float, float], Awaitable[float]]


class ScanStore(CatalogStore, Protocol):
    """Catalog operations the orchestrator needs beyond the merge engine's."""

    def list_sources(self) -> list[Source]: ...
    def get_source(self, link_id: int) -> Source: ...
    def get_site(self, site_id: int) -> Site | None: ...
    def update_source_last_scanned(self, link_id: int, ts: datetime) -> None: ...


class _Tally:
    """Running counts for one source."""

    def __init__(self) -> None:
        self.created = 0
        self.updated = 0
        self.unchanged = 0
        self.failed = 0
        self.pages = 0

    def add(self, result: MergeResult) -> None:
        self.created += len(result.created)
        self.updated += len(result.updated)
        self.unchanged += result.unchanged
        self.failed += len(result.failed)

    def outcome(self, link_id: int, status: ScanStatus, message: str = "") -> ScanOutcome:
        return ScanOutcome(
            link_id=link_id,
            status=status,
            created=self.created,
            updated=self.updated,
            unchanged=self.unchanged,
            failed=self.failed,
            pages=self.pages,
            message=message,
        )


class _Run:
    def __init__(self) -> None:
        self.aborted = False


class JobScanner:
    """Scans links for new postings and refreshes existing jobs.

    Usage::

        scanner = JobScanner(store, browser, settings.scanner)
        outcomes = await scanner.scan_all()
    """

    def __init__(
        self,
        store: ScanStore,
        browser: BrowserController,
        config: ScannerConfig,
        *,
        gate: ScanGate | None = None,
        sleep: Sleeper = random_sleep,
    ) -> None:
        self._store = store
        self._browser = browser
        self._config = config
        self._gate = gate or ScanGate()
        self._sleep = sleep
        self._merge = MergeEngine(store)
        self._state = ScanRunState()
        self._stop_requested = False

    # --- Queries ---

    def is_scanning(self) -> bool:
        return self._state.active

    def get_state(self) -> ScanStateSnapshot:
        return self._state.snapshot()

    # --- Entry points ---

    async def scan_all(self) -> dict[int, ScanOutcome]:
        """Scan every link once. Returns outcomes keyed by link id."""
        return await self._gate.run("scan_all", self._scan_all)

    async def scan_link(self, link_id: int) -> ScanOutcome:
        """Scan a single link."""
        return await self._gate.run(f"scan_link:{link_id}", lambda: self._scan_link(link_id))

    async def scan_jobs(self, jobs: list[Job]) -> list[Job]:
        """Refresh catalogued jobs from their detail pages.

        Returns one job per input, in order. A job whose page could not be
        read comes back unchanged.
        """
        return await self._gate.run("scan_jobs", lambda: self._scan_jobs(jobs))

    def stop(self) -> bool:
        """Ask the running scan to stop after its current merge."""
        if not self._state.active:
            return False
        logger.info("Stop requested for running scan")
        self._stop_requested = True
        return True

    # --- Gate bodies ---

    async def _scan_all(self) -> dict[int, ScanOutcome]:
        outcomes: dict[int, ScanOutcome] = {}
        async with self._run() as run:
            sources = self._store.list_sources()
            logger.info("Scanning %d links", len(sources))
            for source in sources:
                if self._stop_requested:
                    logger.info("Scan stopped before link %d", source.id)
                    run.aborted = True
                    break
                outcome = await self._scan_source(source)
                outcomes[source.id] = outcome
                if outcome.status is ScanStatus.ABORTED:
                    run.aborted = True
                    break
        _log_summary(outcomes)
        return outcomes

    async def _scan_link(self, link_id: int) -> ScanOutcome:
        async with self._run() as run:
            source = self._store.get_source(link_id)
            outcome = await self._scan_source(source)
            run.aborted = outcome.status is ScanStatus.ABORTED
        return outcome

    async def _scan_jobs(self, jobs: list[Job]) -> list[Job]:
        results = list(jobs)
        async with self._run() as run:
            try:
                async with self._browser.hold_for_scan(self._config.session_wait_timeout_s) as lease:
                    for i, job in enumerate(jobs):
                        if self._stop_requested or lease.revoked:
                            run.aborted = True
                            break
                        results[i] = await self._refresh_job(job, lease)
            except SessionBusy as e:
                logger.warning("Job refresh skipped, returning jobs unchanged: %s", e)
        return results

    @asynccontextmanager
    async def _run(self) -> AsyncIterator[_Run]:
        """Bracket a scan so the active flag is always cleared."""
        run = _Run()
        self._stop_requested = False
        self._state.begin_run()
        try:
            yield run
        except BaseException:
            run.aborted = True
            raise
        finally:
            self._state.end_run(aborted=run.aborted)
            self._stop_requested = False
            try:
                await self._browser.shutdown_if_idle()
            except Exception:
                logger.warning("Failed to shut down idle browser", exc_info=True)

    # --- Per source ---

    async def _scan_source(self, source: Source) -> ScanOutcome:
        self._state.begin_source(source.id)
        try:
            outcome = await self._scan_source_inner(source)
        except Exception as e:
            logger.exception("Unexpected error scanning link %d", source.id)
            outcome = ScanOutcome(link_id=source.id, status=ScanStatus.ERROR, message=str(e))
        self._state.end_source(outcome)
        logger.info(
            "Link %d '%s': %s (%d created, %d updated, %d unchanged, %d pages)%s",
            source.id, source.title, outcome.status.value, outcome.created,
            outcome.updated, outcome.unchanged, outcome.pages,
            f" — {outcome.message}" if outcome.message else "",
        )
        return outcome

    async def _scan_source_inner(self, source: Source) -> ScanOutcome:
        if not source.enabled:
            return ScanOutcome(link_id=source.id, status=ScanStatus.SKIPPED, message="link disabled")

        adapter = self._adapter_for_site(source.site_id)
        if adapter is None:
            return ScanOutcome(
                link_id=source.id,
                status=ScanStatus.ERROR,
                message=f"no extraction adapter for site {source.site_id}",
            )

        tally = _Tally()
        try:
            async with self._browser.hold_for_scan(self._config.session_wait_timeout_s) as lease:
                status, message = await self._paginate(source, adapter, lease, tally)
        except SessionBusy as e:
            return ScanOutcome(
                link_id=source.id,
                status=ScanStatus.SKIPPED,
                message=f"session busy: {e}",
            )

        outcome = tally.outcome(source.id, status, message)
        if status in _SCANNED_STATUSES:
            try:
                self._store.update_source_last_scanned(source.id, outcome.finished_at)
            except StoreUnavailable as e:
                outcome = outcome.model_copy(
                    update={"message": _join(outcome.message, f"last-scanned not saved: {e}")},
                )
        return outcome

    async def _paginate(
        self,
        source: Source,
        adapter: ExtractionAdapter,
        lease: ScanLease,
        tally: _Tally,
    ) -> tuple[ScanStatus, str]:
        url: str | None = source.url
        max_pages = self._config.max_pages

        while url is not None:
            if tally.pages >= max_pages:
                logger.warning("Link %d: stopping at page limit (%d)", source.id, max_pages)
                break

            if self._stop_requested or lease.revoked:
                return ScanStatus.ABORTED, "scan stopped"

            try:
                page = await self._navigate_with_retry(lease, url, adapter.card_selector)
            except SessionClosed:
                return ScanStatus.ABORTED, "browser closed during scan"
            except NavigationError as e:
                if tally.pages:
                    return ScanStatus.PARTIAL, str(e)
                return ScanStatus.ERROR, str(e)
            tally.pages += 1

            try:
                _ensure_not_blocked(adapter, page)
            except SourceBlocked as e:
                logger.warning("Link %d: %s", source.id, e)
                return ScanStatus.BLOCKED, str(e)

            result = self._merge.merge(_guarded(adapter.extract(page), page.url), source)
            tally.add(result)
            if result.error is not None:
                return ScanStatus.ERROR, result.error

            if self._stop_requested or lease.revoked:
                return ScanStatus.ABORTED, "scan stopped"

            url = _next_page(adapter, page)
            if url is not None and tally.pages < max_pages:
                await self._sleep(self._config.page_delay_min_s, self._config.page_delay_max_s)

        if tally.failed:
            return ScanStatus.PARTIAL, f"{tally.failed} postings failed to merge"
        return ScanStatus.SUCCESS, ""

    # --- Per job ---

    async def _refresh_job(self, job: Job, lease: ScanLease) -> Job:
        adapter = self._adapter_for_site(job.site_id)
        if adapter is None:
            return job
        try:
            page = await self._navigate_with_retry(lease, job.external_url, None)
        except NavigationError as e:
            logger.info("Detail page unreachable for job %s: %s", job.id, e)
            return job
        try:
            _ensure_not_blocked(adapter, page)
        except SourceBlocked as e:
            logger.warning("Job %s: %s", job.id, e)
            return job
        try:
            detail = adapter.extract_detail(page)
        except Exception:
            logger.warning("Adapter failed on detail page %s", page.url, exc_info=True)
            return job
        if detail is None:
            return job
        try:
            return self._merge.apply_detail(job, detail)
        except StoreUnavailable as e:
            logger.error("Could not save refreshed job %s: %s", job.id, e)
            return job

    # --- Helpers ---

    async def _navigate_with_retry(
        self,
        lease: ScanLease,
        url: str,
        settle_selector: str | None,
    ) -> PageContent:
        try:
            return await lease.navigate(url, settle_selector=settle_selector)
        except SessionClosed:
            raise
        except NavigationError as e:
            backoff = self._config.retry_backoff_s
            logger.warning("%s — retrying once in %.1fs", e, backoff)
            await self._sleep(backoff, backoff)
            return await lease.navigate(url, settle_selector=settle_selector)

    def _adapter_for_site(self, site_id: int) -> ExtractionAdapter | None:
        site = self._store.get_site(site_id)
        if site is None:
            logger.error("Site %d not found", site_id)
            return None
        try:
            return AdapterRegistry.get(site.key)
        except KeyError as e:
            logger.error("%s", e)
            return None


def _guarded(candidates: Iterable[CandidatePosting], url: str) -> Iterator[CandidatePosting]:
    """Stop quietly if an adapter trips over page structure mid-iteration."""
    try:
        yield from candidates
    except ExtractionAnomaly as e:
        logger.warning("Extraction anomaly on %s: %s", url, e)
    except Exception:
        logger.warning("Adapter failed while extracting %s", url, exc_info=True)


def _ensure_not_blocked(adapter: ExtractionAdapter, page: PageContent) -> None:
    if adapter.is_blocked(page):
        msg = f"blocked at {page.url}"
        raise SourceBlocked(msg)


def _next_page(adapter: ExtractionAdapter, page: PageContent) -> str | None:
    try:
        next_url = adapter.next_page_url(page)
    except Exception:
        logger.warning("Adapter failed to find next page on %s", page.url, exc_info=True)
        return None
    if next_url == page.url:
        return None
    return next_url


def _join(*parts: str) -> str:
    return "; ".join(p for p in parts if p)


def _log_summary(outcomes: dict[int, ScanOutcome]) -> None:
    created = sum(o.created for o in outcomes.values())
    errors = sum(1 for o in outcomes.values() if o.status is ScanStatus.ERROR)
    logger.info(
        "Scan finished: %d links, %d new jobs, %d errors", len(outcomes), created, errors,
    )
