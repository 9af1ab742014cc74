"""SQLite catalog: sites, links, jobs and the scan settings blob.

Module-level functions take a connection and raise sqlite3 errors as-is.
SqliteStore wraps them into the store contract the scan core consumes,
translating failures into StoreUnavailable.
"""

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from jobscan.core.config import ScanSettings
from jobscan.core.errors import SourceNotFound, StoreUnavailable
from jobscan.core.schemas import Job, JobLabel, JobSortOption, JobStatus, Site, Source

logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement; keep key lookups well below it.
LOOKUP_CHUNK_SIZE = 400

_SITES_TABLE = """
CREATE TABLE IF NOT EXISTS sites (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    key       TEXT NOT NULL UNIQUE,
    name      TEXT NOT NULL,
    logo_url  TEXT NOT NULL DEFAULT ''
);
"""

_LINKS_TABLE = """
CREATE TABLE IF NOT EXISTS links (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          TEXT    NOT NULL DEFAULT 'local',
    site_id          INTEGER NOT NULL REFERENCES sites(id),
    title            TEXT    NOT NULL,
    url              TEXT    NOT NULL,
    enabled          INTEGER NOT NULL DEFAULT 1,
    last_scanned_at  TEXT,
    created_at       TEXT    NOT NULL
);
"""

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    link_id            INTEGER NOT NULL,
    site_id            INTEGER NOT NULL,
    external_id        TEXT    NOT NULL,
    title              TEXT    NOT NULL,
    company            TEXT    NOT NULL DEFAULT '',
    location           TEXT    NOT NULL DEFAULT '',
    salary             TEXT    NOT NULL DEFAULT '',
    job_type           TEXT    NOT NULL DEFAULT '',
    external_url       TEXT    NOT NULL,
    status             TEXT    NOT NULL DEFAULT 'new',
    labels             TEXT    NOT NULL DEFAULT '[]',
    listed_at          TEXT,
    source_updated_at  TEXT,
    description        TEXT,
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL,
    UNIQUE(site_id, external_id)
);
"""

_SCAN_SETTINGS_TABLE = """
CREATE TABLE IF NOT EXISTS scan_settings (
    id       INTEGER PRIMARY KEY CHECK (id = 1),
    payload  TEXT NOT NULL
);
"""

_SORT_COLUMNS: dict[JobSortOption, tuple[str, str]] = {
    JobSortOption.LISTED_AT_DESC: ("COALESCE(listed_at, created_at)", "DESC"),
    JobSortOption.LISTED_AT_ASC: ("COALESCE(listed_at, created_at)", "ASC"),
    JobSortOption.UPDATED_AT_DESC: ("updated_at", "DESC"),
    JobSortOption.UPDATED_AT_ASC: ("updated_at", "ASC"),
}


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_SITES_TABLE)
    conn.execute(_LINKS_TABLE)
    conn.execute(_JOBS_TABLE)
    conn.execute(_SCAN_SETTINGS_TABLE)
    conn.commit()
    return conn


# --- Sites ---


def upsert_site(conn: sqlite3.Connection, site: Site) -> Site:
    """Insert or refresh a site definition by key."""
    with conn:
        conn.execute(
            """
            INSERT INTO sites (key, name, logo_url) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET name = excluded.name, logo_url = excluded.logo_url
            """,
            (site.key, site.name, site.logo_url),
        )
    row = conn.execute("SELECT * FROM sites WHERE key = ?", (site.key,)).fetchone()
    return _row_to_site(row)


def get_site(conn: sqlite3.Connection, site_id: int) -> Site | None:
    row = conn.execute("SELECT * FROM sites WHERE id = ?", (site_id,)).fetchone()
    return _row_to_site(row) if row is not None else None


def get_site_by_key(conn: sqlite3.Connection, key: str) -> Site | None:
    row = conn.execute("SELECT * FROM sites WHERE key = ?", (key,)).fetchone()
    return _row_to_site(row) if row is not None else None


def list_sites(conn: sqlite3.Connection) -> list[Site]:
    rows = conn.execute("SELECT * FROM sites ORDER BY name").fetchall()
    return [_row_to_site(r) for r in rows]


# --- Links ---


def create_link(
    conn: sqlite3.Connection,
    *,
    site_id: int,
    title: str,
    url: str,
    user_id: str = "local",
) -> Source:
    now = datetime.now()
    with conn:
        cursor = conn.execute(
            """
            INSERT INTO links (user_id, site_id, title, url, enabled, created_at)
            VALUES (?, ?, ?, ?, 1, ?)
            """,
            (user_id, site_id, title, url, now.isoformat()),
        )
    return Source(
        id=cursor.lastrowid or 0,
        user_id=user_id,
        site_id=site_id,
        title=title,
        url=url,
        created_at=now,
    )


def update_link(
    conn: sqlite3.Connection,
    link_id: int,
    *,
    title: str | None = None,
    url: str | None = None,
    enabled: bool | None = None,
) -> Source | None:
    """Change user-editable link fields. Returns None if the link is gone."""
    with conn:
        conn.execute(
            """
            UPDATE links SET
                title = COALESCE(?, title),
                url = COALESCE(?, url),
                enabled = COALESCE(?, enabled)
            WHERE id = ?
            """,
            (title, url, None if enabled is None else int(enabled), link_id),
        )
    return get_link(conn, link_id)


def delete_link(conn: sqlite3.Connection, link_id: int) -> bool:
    with conn:
        cursor = conn.execute("DELETE FROM links WHERE id = ?", (link_id,))
    return cursor.rowcount > 0


def get_link(conn: sqlite3.Connection, link_id: int) -> Source | None:
    row = conn.execute("SELECT * FROM links WHERE id = ?", (link_id,)).fetchone()
    return _row_to_source(row) if row is not None else None


def list_links(conn: sqlite3.Connection) -> list[Source]:
    rows = conn.execute("SELECT * FROM links ORDER BY id").fetchall()
    return [_row_to_source(r) for r in rows]


def update_link_last_scanned(conn: sqlite3.Connection, link_id: int, ts: datetime) -> None:
    with conn:
        conn.execute(
            "UPDATE links SET last_scanned_at = ? WHERE id = ?",
            (ts.isoformat(), link_id),
        )


# --- Jobs ---


def lookup_jobs_by_keys(
    conn: sqlite3.Connection,
    keys: Iterable[tuple[int, str]],
) -> list[Job]:
    """Fetch jobs for many (site_id, external_id) keys in a few round-trips."""
    by_site: dict[int, list[str]] = {}
    for site_id, external_id in set(keys):
        by_site.setdefault(site_id, []).append(external_id)

    jobs: list[Job] = []
    for site_id, external_ids in by_site.items():
        for start in range(0, len(external_ids), LOOKUP_CHUNK_SIZE):
            chunk = external_ids[start:start + LOOKUP_CHUNK_SIZE]
            placeholders = ",".join("?" for _ in chunk)
            rows = conn.execute(
                f"SELECT * FROM jobs WHERE site_id = ? AND external_id IN ({placeholders})",
                (site_id, *chunk),
            ).fetchall()
            jobs.extend(_row_to_job(r) for r in rows)
    return jobs


def insert_job(conn: sqlite3.Connection, job: Job) -> Job | None:
    """Insert a job. Returns None if its (site_id, external_id) already exists."""
    with conn:
        cursor = conn.execute(
            """
            INSERT INTO jobs
                (link_id, site_id, external_id, title, company, location, salary,
                 job_type, external_url, status, labels, listed_at, source_updated_at,
                 description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(site_id, external_id) DO NOTHING
            """,
            (
                job.link_id,
                job.site_id,
                job.external_id,
                job.title,
                job.company,
                job.location,
                job.salary,
                job.job_type,
                job.external_url,
                job.status.value,
                _dump_labels(job.labels),
                _iso(job.listed_at),
                _iso(job.source_updated_at),
                job.description,
                job.created_at.isoformat(),
                job.updated_at.isoformat(),
            ),
        )
    if cursor.rowcount == 0:
        return None
    return job.model_copy(update={"id": cursor.lastrowid})


def update_job_content(conn: sqlite3.Connection, job: Job) -> Job:
    """Write scraped fields of an existing job. Status and labels are left alone."""
    with conn:
        conn.execute(
            """
            UPDATE jobs SET
                title = ?, company = ?, location = ?, salary = ?, job_type = ?,
                external_url = ?, listed_at = ?, source_updated_at = ?,
                description = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                job.title,
                job.company,
                job.location,
                job.salary,
                job.job_type,
                job.external_url,
                _iso(job.listed_at),
                _iso(job.source_updated_at),
                job.description,
                job.updated_at.isoformat(),
                job.id,
            ),
        )
    stored = get_job(conn, job.id) if job.id is not None else None
    return stored or job


def get_job(conn: sqlite3.Connection, job_id: int) -> Job | None:
    row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_job(row) if row is not None else None


def list_jobs(
    conn: sqlite3.Connection,
    *,
    status: JobStatus | None = None,
    search: str | None = None,
    site_ids: list[int] | None = None,
    link_ids: list[int] | None = None,
    labels: list[JobLabel] | None = None,
    sort_by: JobSortOption = JobSortOption.LISTED_AT_DESC,
    limit: int = 50,
    after: str | None = None,
) -> tuple[list[Job], str | None]:
    """Filtered, keyset-paginated job listing.

    Returns (jobs, next_page_token). The token is None on the last page.
    """
    column, direction = _SORT_COLUMNS[sort_by]
    where: list[str] = []
    params: list[object] = []

    if status is not None:
        where.append("status = ?")
        params.append(status.value)
    if search:
        where.append("(title LIKE ? OR company LIKE ?)")
        params.extend([f"%{search}%", f"%{search}%"])
    if site_ids:
        where.append(f"site_id IN ({','.join('?' for _ in site_ids)})")
        params.extend(site_ids)
    if link_ids:
        where.append(f"link_id IN ({','.join('?' for _ in link_ids)})")
        params.extend(link_ids)
    if labels:
        where.append(
            "EXISTS (SELECT 1 FROM json_each(jobs.labels) WHERE value IN "
            f"({','.join('?' for _ in labels)}))"
        )
        params.extend(label.value for label in labels)
    if after:
        cursor_value, _, cursor_id = after.rpartition("|")
        op = "<" if direction == "DESC" else ">"
        where.append(f"({column} {op} ? OR ({column} = ? AND id {op} ?))")
        params.extend([cursor_value, cursor_value, int(cursor_id)])

    sql = f"SELECT *, {column} AS sort_value FROM jobs"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += f" ORDER BY {column} {direction}, id {direction} LIMIT ?"
    params.append(limit + 1)

    rows = conn.execute(sql, params).fetchall()
    has_more = len(rows) > limit
    rows = rows[:limit]
    jobs = [_row_to_job(r) for r in rows]
    next_token = f"{rows[-1]['sort_value']}|{rows[-1]['id']}" if has_more and rows else None
    return jobs, next_token


def update_job_status(conn: sqlite3.Connection, job_id: int, status: JobStatus) -> Job | None:
    with conn:
        conn.execute(
            "UPDATE jobs SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, datetime.now().isoformat(), job_id),
        )
    return get_job(conn, job_id)


def update_job_labels(
    conn: sqlite3.Connection,
    job_id: int,
    labels: list[JobLabel],
) -> Job | None:
    with conn:
        conn.execute(
            "UPDATE jobs SET labels = ?, updated_at = ? WHERE id = ?",
            (_dump_labels(labels), datetime.now().isoformat(), job_id),
        )
    return get_job(conn, job_id)


def change_all_job_status(
    conn: sqlite3.Connection,
    from_status: JobStatus,
    to_status: JobStatus,
) -> int:
    """Move every job in one status to another. Returns the number changed."""
    with conn:
        cursor = conn.execute(
            "UPDATE jobs SET status = ?, updated_at = ? WHERE status = ?",
            (to_status.value, datetime.now().isoformat(), from_status.value),
        )
    return cursor.rowcount


# --- Scan settings ---


def load_scan_settings(conn: sqlite3.Connection) -> ScanSettings | None:
    row = conn.execute("SELECT payload FROM scan_settings WHERE id = 1").fetchone()
    if row is None:
        return None
    return ScanSettings.model_validate_json(row["payload"])


def save_scan_settings(conn: sqlite3.Connection, settings: ScanSettings) -> None:
    with conn:
        conn.execute(
            """
            INSERT INTO scan_settings (id, payload) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET payload = excluded.payload
            """,
            (settings.model_dump_json(),),
        )


# --- Store contract ---


class SqliteStore:
    """Catalog and settings store consumed by the scan core.

    Every failure surfaces as StoreUnavailable; each write runs in its own
    transaction so a failed call leaves nothing half-applied.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # catalog

    def lookup_jobs_by_keys(self, keys: Iterable[tuple[int, str]]) -> list[Job]:
        with _store_errors("lookup jobs"):
            return lookup_jobs_by_keys(self._conn, keys)

    def create_job(self, job: Job) -> Job | None:
        with _store_errors("create job"):
            return insert_job(self._conn, job)

    def update_job(self, job: Job) -> Job:
        with _store_errors("update job"):
            return update_job_content(self._conn, job)

    def list_sources(self) -> list[Source]:
        with _store_errors("list links"):
            return list_links(self._conn)

    def get_source(self, link_id: int) -> Source:
        with _store_errors("get link"):
            source = get_link(self._conn, link_id)
        if source is None:
            msg = f"Link {link_id} does not exist"
            raise SourceNotFound(msg)
        return source

    def get_site(self, site_id: int) -> Site | None:
        with _store_errors("get site"):
            return get_site(self._conn, site_id)

    def update_source_last_scanned(self, link_id: int, ts: datetime) -> None:
        with _store_errors("update last scanned"):
            update_link_last_scanned(self._conn, link_id, ts)

    # settings

    def load_scan_settings(self) -> ScanSettings | None:
        with _store_errors("load scan settings"):
            return load_scan_settings(self._conn)

    def save_scan_settings(self, settings: ScanSettings) -> None:
        with _store_errors("save scan settings"):
            save_scan_settings(self._conn, settings)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        logger.error("Store failed to %s: %s", action, e)
        msg = f"Store failed to {action}: {e}"
        raise StoreUnavailable(msg) from e


# --- Row mapping ---


def _row_to_site(row: sqlite3.Row) -> Site:
    return Site(id=row["id"], key=row["key"], name=row["name"], logo_url=row["logo_url"])


def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        user_id=row["user_id"],
        site_id=row["site_id"],
        title=row["title"],
        url=row["url"],
        enabled=bool(row["enabled"]),
        last_scanned_at=_parse_dt(row["last_scanned_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        link_id=row["link_id"],
        site_id=row["site_id"],
        external_id=row["external_id"],
        title=row["title"],
        company=row["company"],
        location=row["location"],
        salary=row["salary"],
        job_type=row["job_type"],
        external_url=row["external_url"],
        status=JobStatus(row["status"]),
        labels=[JobLabel(v) for v in json.loads(row["labels"])],
        listed_at=_parse_dt(row["listed_at"]),
        source_updated_at=_parse_dt(row["source_updated_at"]),
        description=row["description"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _dump_labels(labels: list[JobLabel]) -> str:
    return json.dumps([label.value for label in labels])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
