"""CLI entry point for the job scanner."""

import argparse
import asyncio
import logging
import sqlite3
import sys

from jobscan.browser.controller import BrowserController
from jobscan.browser.session import BrowserSession
from jobscan.core import db
from jobscan.core.config import AppSettings
from jobscan.core.errors import ConfigInvalid, JobScanError
from jobscan.core.schemas import JobStatus, ScanOutcome
from jobscan.pipeline.orchestrator import JobScanner
from jobscan.pipeline.scheduler import ScanScheduler
from jobscan.sites.base import AdapterRegistry, load_all_adapters


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser = argparse.ArgumentParser(
        description="Job scanner - watch saved job-board searches and catalog new postings",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("scan", parents=[common], help="Scan every link once")

    scan_link = subparsers.add_parser("scan-link", parents=[common], help="Scan a single link")
    scan_link.add_argument("link_id", type=int, help="Link id (see list-links)")

    subparsers.add_parser(
        "watch", parents=[common], help="Scan on the configured interval until interrupted",
    )

    settings_parser = subparsers.add_parser(
        "settings", parents=[common], help="Show or change the recurring scan settings",
    )
    settings_parser.add_argument("--interval", type=int, help="Scan interval in minutes")
    toggle = settings_parser.add_mutually_exclusive_group()
    toggle.add_argument("--enable", dest="enabled", action="store_true", default=None)
    toggle.add_argument("--disable", dest="enabled", action="store_false")

    add_link = subparsers.add_parser("add-link", parents=[common], help="Save a new search link")
    add_link.add_argument("--site", required=True, choices=AdapterRegistry.keys() or None)
    add_link.add_argument("--title", required=True)
    add_link.add_argument("--url", required=True)

    subparsers.add_parser("list-links", parents=[common], help="List saved links")

    list_jobs = subparsers.add_parser("list-jobs", parents=[common], help="List catalogued jobs")
    list_jobs.add_argument("--status", choices=[s.value for s in JobStatus])
    list_jobs.add_argument("--limit", type=int, default=50)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def open_catalog(settings: AppSettings) -> sqlite3.Connection:
    """Open the database and make sure every bundled site is registered."""
    conn = db.init_db(settings.database.path)
    for site in AdapterRegistry.sites():
        db.upsert_site(conn, site)
    return conn


def build_scanner(settings: AppSettings, conn: sqlite3.Connection) -> tuple[JobScanner, BrowserController]:
    browser = BrowserController(lambda: BrowserSession(settings.browser))
    scanner = JobScanner(db.SqliteStore(conn), browser, settings.scanner)
    return scanner, browser


def print_outcome(outcome: ScanOutcome, title: str = "") -> None:
    label = f"'{title}'" if title else f"link {outcome.link_id}"
    line = (
        f"  {label}: {outcome.status.value} — {outcome.created} new, "
        f"{outcome.updated} updated, {outcome.unchanged} unchanged, {outcome.pages} pages"
    )
    if outcome.message:
        line += f" ({outcome.message})"
    print(line)


async def cmd_scan(settings: AppSettings, link_id: int | None) -> None:
    conn = open_catalog(settings)
    scanner, browser = build_scanner(settings, conn)
    titles = {link.id: link.title for link in db.list_links(conn)}
    try:
        if link_id is None:
            outcomes = await scanner.scan_all()
            total_new = sum(o.created for o in outcomes.values())
            print(f"\nScan complete: {len(outcomes)} links, {total_new} new jobs.")
            for outcome in outcomes.values():
                print_outcome(outcome, titles.get(outcome.link_id, ""))
        else:
            outcome = await scanner.scan_link(link_id)
            print_outcome(outcome, titles.get(link_id, ""))
    finally:
        await browser.close()
        conn.close()


async def cmd_watch(settings: AppSettings) -> None:
    conn = open_catalog(settings)
    scanner, browser = build_scanner(settings, conn)
    scheduler = ScanScheduler(scanner, db.SqliteStore(conn), defaults=settings.scan_defaults)
    await scheduler.start()
    print("Watching links. Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        scanner.stop()
        await scheduler.stop()
        await browser.close()
        conn.close()


async def cmd_settings(settings: AppSettings, interval: int | None, enabled: bool | None) -> None:
    conn = open_catalog(settings)
    scanner, _ = build_scanner(settings, conn)
    store = db.SqliteStore(conn)
    current = store.load_scan_settings() or settings.scan_defaults
    scheduler = ScanScheduler(scanner, store, defaults=current)
    try:
        if interval is not None or enabled is not None:
            update = current.model_dump()
            if interval is not None:
                update["interval_minutes"] = interval
            if enabled is not None:
                update["enabled"] = enabled
            current = await scheduler.update_settings(update)
            print("Settings saved.")
        print(f"  Interval: {current.interval_minutes} min")
        print(f"  Enabled: {current.enabled}")
    finally:
        conn.close()


def cmd_add_link(settings: AppSettings, site_key: str, title: str, url: str) -> None:
    conn = open_catalog(settings)
    try:
        site = db.get_site_by_key(conn, site_key)
        if site is None or site.id is None:
            msg = f"Unknown site '{site_key}'"
            raise ValueError(msg)
        link = db.create_link(conn, site_id=site.id, title=title, url=url)
        print(f"Link {link.id} saved: '{link.title}' on {site.name}")
    finally:
        conn.close()


def cmd_list_links(settings: AppSettings) -> None:
    conn = open_catalog(settings)
    try:
        sites = {s.id: s.name for s in db.list_sites(conn)}
        for link in db.list_links(conn):
            scanned = link.last_scanned_at.strftime("%Y-%m-%d %H:%M") if link.last_scanned_at else "never"
            state = "" if link.enabled else " [disabled]"
            print(f"  {link.id}: '{link.title}' on {sites.get(link.site_id, '?')}{state} — last scanned {scanned}")
    finally:
        conn.close()


def cmd_list_jobs(settings: AppSettings, status: str | None, limit: int) -> None:
    conn = open_catalog(settings)
    try:
        jobs, _ = db.list_jobs(conn, status=JobStatus(status) if status else None, limit=limit)
        for job in jobs:
            company = f" @ {job.company}" if job.company else ""
            print(f"  [{job.status.value}] {job.title}{company} — {job.external_url}")
        print(f"{len(jobs)} jobs shown.")
    finally:
        conn.close()


def main(argv: list[str] | None = None) -> None:
    load_all_adapters()
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = AppSettings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "scan":
            asyncio.run(cmd_scan(settings, None))
        elif args.command == "scan-link":
            asyncio.run(cmd_scan(settings, args.link_id))
        elif args.command == "watch":
            try:
                asyncio.run(cmd_watch(settings))
            except KeyboardInterrupt:
                print("\nStopped.")
        elif args.command == "settings":
            asyncio.run(cmd_settings(settings, args.interval, args.enabled))
        elif args.command == "add-link":
            cmd_add_link(settings, args.site, args.title, args.url)
        elif args.command == "list-links":
            cmd_list_links(settings)
        elif args.command == "list-jobs":
            cmd_list_jobs(settings, args.status, args.limit)
    except ConfigInvalid as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        sys.exit(1)
    except (JobScanError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
