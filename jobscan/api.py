"""Presentation-facing facade over the scan core and the catalog.

Every method returns an ApiResult carrying either ``data`` or an ``error``
message. Nothing raises to the UI layer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from jobscan.browser.controller import BrowserController
from jobscan.core import db
from jobscan.core.errors import JobScanError
from jobscan.core.schemas import JobLabel, JobSortOption, JobStatus
from jobscan.pipeline.orchestrator import JobScanner
from jobscan.pipeline.scheduler import ScanScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiResult(BaseModel):
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _api_call(method: Callable[[], Awaitable[Any]]) -> ApiResult:
    """Run ``method`` and fold any failure into an error result."""
    try:
        return ApiResult(data=await method())
    except JobScanError as e:
        logger.warning("%s: %s", type(e).__name__, e)
        return ApiResult(error=str(e))
    except ValidationError as e:
        logger.warning("Invalid input: %s", e)
        return ApiResult(error=f"Invalid input: {e.errors()[0]['msg']}")
    except ValueError as e:
        logger.warning("Rejected request: %s", e)
        return ApiResult(error=str(e))
    except Exception as e:
        logger.exception("Unhandled API error")
        return ApiResult(error=str(e) or type(e).__name__)


class DesktopApi:
    """Handlers the desktop UI calls."""

    def __init__(
        self,
        store: db.SqliteStore,
        scanner: JobScanner,
        scheduler: ScanScheduler,
        browser: BrowserController,
    ) -> None:
        self._store = store
        self._conn = store.conn
        self._scanner = scanner
        self._scheduler = scheduler
        self._browser = browser
        self._background: set[asyncio.Task[Any]] = set()

    # --- Scanning ---

    async def scan_link(self, link_id: int) -> ApiResult:
        return await _api_call(lambda: self._scanner.scan_link(link_id))

    async def scan_all(self) -> ApiResult:
        return await _api_call(self._scheduler.scan_now)

    async def stop_scan(self) -> ApiResult:
        return await _api_call(_wrap(self._scanner.stop))

    async def scan_job_description(self, job_id: int) -> ApiResult:
        async def _scan() -> Any:
            job = db.get_job(self._conn, job_id)
            if job is None:
                msg = f"Job {job_id} not found"
                raise ValueError(msg)
            [updated] = await self._scanner.scan_jobs([job])
            return updated

        return await _api_call(_scan)

    async def get_app_state(self) -> ApiResult:
        return await _api_call(_wrap(self._scanner.get_state))

    async def get_scan_settings(self) -> ApiResult:
        return await _api_call(_wrap(self._scheduler.get_settings))

    async def update_scan_settings(self, settings: dict[str, Any]) -> ApiResult:
        return await _api_call(lambda: self._scheduler.update_settings(settings))

    # --- Browser ---

    async def open_browser(self, url: str) -> ApiResult:
        return await _api_call(lambda: self._browser.open(url))

    async def close_browser(self) -> ApiResult:
        return await _api_call(self._browser.close)

    async def navigate_browser(self, url: str) -> ApiResult:
        return await _api_call(lambda: self._browser.navigate(url))

    async def browser_go_back(self) -> ApiResult:
        return await _api_call(self._browser.go_back)

    async def browser_go_forward(self) -> ApiResult:
        return await _api_call(self._browser.go_forward)

    async def browser_can_go_back(self) -> ApiResult:
        return await _api_call(_wrap(self._browser.can_go_back))

    async def browser_can_go_forward(self) -> ApiResult:
        return await _api_call(_wrap(self._browser.can_go_forward))

    async def finish_browser(self) -> ApiResult:
        return await _api_call(self._browser.finish)

    # --- Links & sites ---

    async def create_link(self, site_key: str, title: str, url: str) -> ApiResult:
        """Save a new link and start scanning it in the background."""

        async def _create() -> Any:
            site = db.get_site_by_key(self._conn, site_key)
            if site is None or site.id is None:
                msg = f"Unknown site '{site_key}'"
                raise ValueError(msg)
            link = db.create_link(self._conn, site_id=site.id, title=title, url=url)
            self._spawn(self._scanner.scan_link(link.id), f"initial scan of link {link.id}")
            return link

        return await _api_call(_create)

    async def update_link(
        self,
        link_id: int,
        *,
        title: str | None = None,
        url: str | None = None,
        enabled: bool | None = None,
    ) -> ApiResult:
        return await _api_call(
            _wrap(lambda: db.update_link(self._conn, link_id, title=title, url=url, enabled=enabled)),
        )

    async def delete_link(self, link_id: int) -> ApiResult:
        return await _api_call(_wrap(lambda: db.delete_link(self._conn, link_id)))

    async def list_links(self) -> ApiResult:
        return await _api_call(_wrap(lambda: db.list_links(self._conn)))

    async def list_sites(self) -> ApiResult:
        return await _api_call(_wrap(lambda: db.list_sites(self._conn)))

    # --- Jobs ---

    async def list_jobs(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        site_ids: list[int] | None = None,
        link_ids: list[int] | None = None,
        labels: list[str] | None = None,
        sort_by: str = JobSortOption.LISTED_AT_DESC.value,
        limit: int = 50,
        after: str | None = None,
    ) -> ApiResult:
        def _list() -> dict[str, Any]:
            jobs, next_token = db.list_jobs(
                self._conn,
                status=JobStatus(status) if status else None,
                search=search,
                site_ids=site_ids,
                link_ids=link_ids,
                labels=[JobLabel(v) for v in labels] if labels else None,
                sort_by=JobSortOption(sort_by),
                limit=limit,
                after=after,
            )
            return {"jobs": jobs, "next_page_token": next_token}

        return await _api_call(_wrap(_list))

    async def get_job(self, job_id: int) -> ApiResult:
        return await _api_call(_wrap(lambda: db.get_job(self._conn, job_id)))

    async def update_job_status(self, job_id: int, status: str) -> ApiResult:
        return await _api_call(
            _wrap(lambda: db.update_job_status(self._conn, job_id, JobStatus(status))),
        )

    async def update_job_labels(self, job_id: int, labels: list[str]) -> ApiResult:
        return await _api_call(
            _wrap(lambda: db.update_job_labels(self._conn, job_id, [JobLabel(v) for v in labels])),
        )

    async def change_all_job_status(self, from_status: str, to_status: str) -> ApiResult:
        return await _api_call(
            _wrap(lambda: db.change_all_job_status(
                self._conn, JobStatus(from_status), JobStatus(to_status),
            )),
        )

    # --- Internals ---

    def _spawn(self, coro: Awaitable[Any], what: str) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._background.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Background %s failed: %s", what, t.exception())

        task.add_done_callback(_done)


def _wrap(fn: Callable[[], T]) -> Callable[[], Awaitable[T]]:
    """Adapt a synchronous call to the async ``_api_call`` helper."""

    async def _call() -> T:
        return fn()

    return _call
