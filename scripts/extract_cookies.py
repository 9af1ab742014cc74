"""Capture login cookies for a job board so scans run authenticated.

Usage:
    .venv/bin/python scripts/extract_cookies.py --url https://www.linkedin.com/login

Opens a Chromium window. Log in manually, then press Enter in the terminal.
Cookies are written to the path the scanner reads (browser.cookies_path).
"""

import argparse
import json
from pathlib import Path

from patchright.sync_api import sync_playwright


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", required=True, help="Login page to open")
    parser.add_argument(
        "--output",
        default="config/cookies.json",
        help="Where to write cookies (default: config/cookies.json)",
    )
    parser.add_argument(
        "--merge",
        action="store_true",
        help="Keep cookies already in the output file (for several boards)",
    )
    args = parser.parse_args()
    output = Path(args.output)

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=False)
        context = browser.new_context()
        page = context.new_page()
        page.goto(args.url)

        input("\n>>> Log in, then press Enter here to save cookies...")

        cookies = context.cookies()
        if args.merge and output.exists():
            existing = json.loads(output.read_text())
            fresh = {(c["name"], c["domain"], c["path"]) for c in cookies}
            cookies = [
                c for c in existing if (c["name"], c["domain"], c["path"]) not in fresh
            ] + cookies
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(cookies, indent=2))
        print(f"Saved {len(cookies)} cookies to {output}")

        browser.close()


if __name__ == "__main__":
    main()
