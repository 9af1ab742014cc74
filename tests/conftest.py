"""Shared fixtures: a fresh SQLite catalog, a fake browser, and a scanner."""

import sqlite3
from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from jobscan.browser.controller import BrowserController
from jobscan.core import db
from jobscan.core.config import ScannerConfig
from jobscan.core.schemas import Site, Source
from jobscan.pipeline.orchestrator import JobScanner
from jobscan.sites.base import AdapterRegistry, load_all_adapters
from tests.support import FakePage, SessionFactory

load_all_adapters()


@pytest.fixture
def conn(tmp_path: Path) -> sqlite3.Connection:
    connection = db.init_db(tmp_path / "test.db")
    for site in AdapterRegistry.sites():
        db.upsert_site(connection, site)
    return connection


@pytest.fixture
def store(conn: sqlite3.Connection) -> db.SqliteStore:
    return db.SqliteStore(conn)


@pytest.fixture
def board_site(conn: sqlite3.Connection) -> Site:
    site = db.get_site_by_key(conn, "testboard")
    assert site is not None
    return site


@pytest.fixture
def make_link(conn: sqlite3.Connection, board_site: Site) -> Callable[..., Source]:
    def _make(url: str, title: str = "Python jobs", enabled: bool = True) -> Source:
        assert board_site.id is not None
        link = db.create_link(conn, site_id=board_site.id, title=title, url=url)
        if not enabled:
            updated = db.update_link(conn, link.id, enabled=False)
            assert updated is not None
            return updated
        return link

    return _make


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def sessions(page: FakePage) -> SessionFactory:
    return SessionFactory(page)


@pytest.fixture
def browser(sessions: SessionFactory) -> BrowserController:
    return BrowserController(sessions)


@pytest.fixture
def scanner_config() -> ScannerConfig:
    return ScannerConfig(
        max_pages=5,
        session_wait_timeout_s=0.2,
        retry_backoff_s=0.5,
        page_delay_min_s=0.0,
        page_delay_max_s=0.0,
    )


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock(return_value=0.0)


@pytest.fixture
def scanner(
    store: db.SqliteStore,
    browser: BrowserController,
    scanner_config: ScannerConfig,
    sleep: AsyncMock,
) -> JobScanner:
    return JobScanner(store, browser, scanner_config, sleep=sleep)
