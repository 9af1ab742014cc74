"""We Work Remotely adapter. Category pages list everything on one page."""

import logging
from collections.abc import Iterator
from datetime import datetime
from urllib.parse import urljoin

from bs4 import Tag

from jobscan.core.schemas import CandidatePosting, JobDetail, PageContent
from jobscan.sites.base import AdapterRegistry, ExtractionAdapter, contains_any, soup_of, text_of

logger = logging.getLogger(__name__)

BASE_URL = "https://weworkremotely.com"

CARD_SELECTOR = "section.jobs li"
LINK_SELECTOR = 'a[href^="/remote-jobs/"]'
TITLE_SELECTORS: tuple[str, ...] = ("h4.new-listing__header__title", "span.title")
COMPANY_SELECTORS: tuple[str, ...] = ("p.new-listing__company-name", "span.company")
LOCATION_SELECTORS: tuple[str, ...] = ("p.new-listing__company-headquarters", "span.region")
DESCRIPTION_SELECTORS: tuple[str, ...] = ("div.lis-container__job__content__description", "div.listing-container")

BLOCKED_HTML_MARKERS: tuple[str, ...] = ("cf-challenge", "challenge-platform", "<title>just a moment")


@AdapterRegistry.register
class WeWorkRemotelyAdapter(ExtractionAdapter):
    """weworkremotely.com category/search page adapter."""

    site_name = "We Work Remotely"
    logo_url = f"{BASE_URL}/favicon.ico"

    @property
    def site_key(self) -> str:
        return "weworkremotely"

    def extract(self, page: PageContent) -> Iterator[CandidatePosting]:
        for card in soup_of(page).select(CARD_SELECTOR):
            candidate = _parse_card(card)
            if candidate is not None:
                yield candidate

    def next_page_url(self, page: PageContent) -> str | None:
        return None

    def is_blocked(self, page: PageContent) -> bool:
        return contains_any(page.html, BLOCKED_HTML_MARKERS)

    def extract_detail(self, page: PageContent) -> JobDetail | None:
        soup = soup_of(page)
        for selector in DESCRIPTION_SELECTORS:
            el = soup.select_one(selector)
            if el is not None and el.get_text(strip=True):
                return JobDetail(description=el.get_text("\n", strip=True))
        return None


def _parse_card(card: Tag) -> CandidatePosting | None:
    # "view all" and ad rows have no posting link
    link = card.select_one(LINK_SELECTOR)
    if link is None:
        return None
    href = link.get("href")
    if not isinstance(href, str):
        return None
    slug = href.rstrip("/").rsplit("/", 1)[-1]
    title = text_of(card, TITLE_SELECTORS)
    if not slug or not title:
        return None
    return CandidatePosting(
        external_id=slug,
        title=title,
        external_url=urljoin(BASE_URL, href),
        company=text_of(card, COMPANY_SELECTORS),
        location=text_of(card, LOCATION_SELECTORS),
        listed_at=_listed_at(card),
    )


def _listed_at(card: Tag) -> datetime | None:
    el = card.select_one("time[datetime]")
    value = el.get("datetime") if el is not None else None
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
