"""LinkedIn adapter: result pages, pagination by ``start`` offset, detail pages."""

import logging
from collections.abc import Iterator
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

from jobscan.core.schemas import CandidatePosting, JobDetail, PageContent
from jobscan.sites.base import (
    AdapterRegistry,
    ExtractionAdapter,
    contains_any,
    soup_of,
    text_of,
)
from jobscan.sites.linkedin.parser import LinkedInParser
from jobscan.sites.linkedin.selectors import (
    BLOCKED_HTML_MARKERS,
    BLOCKED_URL_MARKERS,
    CARD_SELECTORS,
    CRITERIA_ITEM_SELECTOR,
    DESCRIPTION_SELECTORS,
    DETAIL_COMPANY_SELECTORS,
    DETAIL_LOCATION_SELECTORS,
    SCROLL_CARD_SELECTOR,
)

logger = logging.getLogger(__name__)

RESULTS_PER_PAGE = 25


@AdapterRegistry.register
class LinkedInAdapter(ExtractionAdapter):
    """LinkedIn job search adapter."""

    site_name = "LinkedIn"
    logo_url = "https://www.linkedin.com/favicon.ico"
    card_selector = SCROLL_CARD_SELECTOR

    def __init__(self) -> None:
        self._parser = LinkedInParser()

    @property
    def site_key(self) -> str:
        return "linkedin"

    def extract(self, page: PageContent) -> Iterator[CandidatePosting]:
        for card in find_cards(soup_of(page)):
            candidate = self._parser.parse_card(card)
            if candidate is not None:
                yield candidate

    def next_page_url(self, page: PageContent) -> str | None:
        cards = find_cards(soup_of(page))
        if should_stop_pagination(len(cards)):
            return None
        return with_start_offset(page.url, RESULTS_PER_PAGE)

    def is_blocked(self, page: PageContent) -> bool:
        path = urlparse(page.url).path
        if any(marker in path for marker in BLOCKED_URL_MARKERS):
            return True
        return contains_any(page.html, BLOCKED_HTML_MARKERS)

    def extract_detail(self, page: PageContent) -> JobDetail | None:
        soup = soup_of(page)
        description = _description_text(soup)
        if description is None:
            logger.debug("No description block on %s", page.url)
            return None
        return JobDetail(
            description=description,
            company=text_of(soup, DETAIL_COMPANY_SELECTORS),
            location=text_of(soup, DETAIL_LOCATION_SELECTORS),
            job_type=_criteria(soup).get("employment type"),
        )


def find_cards(soup: BeautifulSoup) -> list[Tag]:
    """Find job cards using fallback selectors."""
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            logger.debug("Found %d cards with selector '%s'", len(cards), selector)
            return cards
    return []


def should_stop_pagination(cards_found: int) -> bool:
    """LinkedIn serves 25 results per page; fewer means this was the last one."""
    return cards_found < RESULTS_PER_PAGE


def with_start_offset(url: str, step: int) -> str:
    """Return ``url`` with its ``start`` query param advanced by ``step``."""
    parsed = urlparse(url)
    params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    try:
        start = int(params.get("start", "0"))
    except ValueError:
        start = 0
    params["start"] = str(start + step)
    return urlunparse(parsed._replace(query=urlencode(params)))


def _description_text(soup: BeautifulSoup) -> str | None:
    for selector in DESCRIPTION_SELECTORS:
        el = soup.select_one(selector)
        if el is not None:
            text = el.get_text("\n", strip=True)
            if text:
                return text
    return None


def _criteria(soup: BeautifulSoup) -> dict[str, str]:
    """Read the "Seniority level / Employment type / ..." criteria list."""
    result: dict[str, str] = {}
    for item in soup.select(CRITERIA_ITEM_SELECTOR):
        header = item.select_one("h3")
        value = item.select_one("span")
        if header is None or value is None:
            continue
        result[header.get_text(strip=True).lower()] = value.get_text(strip=True)
    return result
