"""LinkedIn card parser: converts result-card tags into CandidatePosting objects.

Rules:
  - Every selector lookup uses a fallback tuple.
  - Titles are split on newlines and the first line taken.
  - A missing optional field is None (never crashes); a missing job id drops the card.
"""

import logging
import re
from datetime import datetime
from urllib.parse import urlparse, urlunparse

from bs4 import Tag

from jobscan.core.schemas import CandidatePosting
from jobscan.sites.base import text_of
from jobscan.sites.linkedin.selectors import (
    COMPANY_SELECTORS,
    JOB_ID_ATTR,
    JOB_ID_ATTR_FALLBACK,
    JOB_URN_ATTR,
    LOCATION_SELECTORS,
    POSTED_TIME_SELECTORS,
    SALARY_SELECTORS,
    TITLE_LINK_SELECTORS,
    TITLE_SELECTORS,
)

logger = logging.getLogger(__name__)

LINKEDIN_BASE = "https://www.linkedin.com"

_URN_ID_RE = re.compile(r"(\d+)$")
_VIEW_ID_RE = re.compile(r"/jobs/view/(?:[^/?#]*-)?(\d+)")


class LinkedInParser:
    """Parses LinkedIn search-result cards into candidate postings."""

    def parse_card(self, card: Tag) -> CandidatePosting | None:
        """Parse a single card. Returns None if the job id or title is missing."""
        title_link = self._find_first(card, TITLE_LINK_SELECTORS)
        href = title_link.get("href") if title_link is not None else None
        href = href if isinstance(href, str) else None

        external_id = self._parse_external_id(card, href)
        if external_id is None:
            logger.debug("Card missing job id — skipping")
            return None

        title = self._parse_title(card, title_link)
        if not title:
            logger.debug("Card %s missing title — skipping", external_id)
            return None

        return CandidatePosting(
            external_id=external_id,
            title=title,
            external_url=self._parse_url(href, external_id),
            company=text_of(card, COMPANY_SELECTORS),
            location=text_of(card, LOCATION_SELECTORS),
            salary=text_of(card, SALARY_SELECTORS),
            listed_at=self._parse_listed_at(card),
        )

    # --- Private helpers ---

    def _parse_external_id(self, card: Tag, href: str | None) -> str | None:
        urn = card.get(JOB_URN_ATTR)
        if isinstance(urn, str):
            match = _URN_ID_RE.search(urn.strip())
            if match:
                return match.group(1)
        for attr in (JOB_ID_ATTR, JOB_ID_ATTR_FALLBACK):
            value = card.get(attr)
            if isinstance(value, str) and value.strip():
                return value.strip()
        if href:
            match = _VIEW_ID_RE.search(href)
            if match:
                return match.group(1)
        return None

    def _parse_title(self, card: Tag, title_link: Tag | None) -> str:
        text = text_of(card, TITLE_SELECTORS)
        if text:
            return text
        if title_link is not None:
            aria = title_link.get("aria-label")
            if isinstance(aria, str) and aria.strip():
                return aria.strip().removesuffix(" with verification")
            raw = title_link.get_text()
            if raw:
                return raw.strip().split("\n")[0].strip()
        return ""

    def _parse_url(self, href: str | None, job_id: str) -> str:
        if not href:
            return f"{LINKEDIN_BASE}/jobs/view/{job_id}/"
        return self._clean_url(href)

    def _parse_listed_at(self, card: Tag) -> datetime | None:
        el = self._find_first(card, POSTED_TIME_SELECTORS)
        if el is None:
            return None
        value = el.get("datetime")
        if not isinstance(value, str) or not value.strip():
            return None
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            logger.debug("Unparseable datetime attribute %r", value)
            return None

    @staticmethod
    def _find_first(parent: Tag, selectors: tuple[str, ...]) -> Tag | None:
        for selector in selectors:
            el = parent.select_one(selector)
            if el is not None:
                return el
        return None

    @staticmethod
    def _clean_url(href: str) -> str:
        """Strip tracking params and prepend domain if relative."""
        if href.startswith("/"):
            href = f"{LINKEDIN_BASE}{href}"
        parsed = urlparse(href)
        return urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))
