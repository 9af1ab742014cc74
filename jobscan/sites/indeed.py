"""Indeed adapter.

Indeed fronts its result pages with a Cloudflare challenge when it suspects
automation, so blocked detection matters more here than anywhere else.
"""

import logging
from collections.abc import Iterator
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from jobscan.core.schemas import CandidatePosting, JobDetail, PageContent
from jobscan.sites.base import AdapterRegistry, ExtractionAdapter, contains_any, soup_of, text_of

logger = logging.getLogger(__name__)

CARD_SELECTORS: tuple[str, ...] = ("div.job_seen_beacon", "div.cardOutline", "td.resultContent")
JOB_KEY_SELECTOR = "a[data-jk]"
TITLE_SELECTORS: tuple[str, ...] = ("h2.jobTitle span[title]", "h2.jobTitle", "a.jcs-JobTitle")
COMPANY_SELECTORS: tuple[str, ...] = ('[data-testid="company-name"]', "span.companyName")
LOCATION_SELECTORS: tuple[str, ...] = ('[data-testid="text-location"]', "div.companyLocation")
SALARY_SELECTORS: tuple[str, ...] = (
    "div.salary-snippet-container",
    '[data-testid="attribute_snippet_testid"]',
)
NEXT_PAGE_SELECTORS: tuple[str, ...] = (
    'a[data-testid="pagination-page-next"]',
    'a[aria-label="Next Page"]',
)
DESCRIPTION_SELECTORS: tuple[str, ...] = ("#jobDescriptionText", "div.jobsearch-jobDescriptionText")
DETAIL_SALARY_SELECTORS: tuple[str, ...] = ("#salaryInfoAndJobType span",)
DETAIL_COMPANY_SELECTORS: tuple[str, ...] = ('[data-testid="inlineHeader-companyName"]',)
DETAIL_LOCATION_SELECTORS: tuple[str, ...] = ('[data-testid="inlineHeader-companyLocation"]',)
DETAIL_JOB_TYPE_SELECTORS: tuple[str, ...] = ("#salaryInfoAndJobType span + span",)

BLOCKED_HTML_MARKERS: tuple[str, ...] = (
    "cf-challenge",
    "challenge-platform",
    "additional verification required",
    "verify you are human",
    "<title>just a moment",
)


@AdapterRegistry.register
class IndeedAdapter(ExtractionAdapter):
    """Indeed job search adapter."""

    site_name = "Indeed"
    logo_url = "https://www.indeed.com/favicon.ico"
    card_selector = "div.job_seen_beacon"

    @property
    def site_key(self) -> str:
        return "indeed"

    def extract(self, page: PageContent) -> Iterator[CandidatePosting]:
        soup = soup_of(page)
        cards: list[Tag] = []
        for selector in CARD_SELECTORS:
            cards = soup.select(selector)
            if cards:
                break
        origin = _origin(page.url)
        seen: set[str] = set()
        for card in cards:
            candidate = _parse_card(card, origin)
            # Sponsored cards repeat organic ones on the same page.
            if candidate is not None and candidate.external_id not in seen:
                seen.add(candidate.external_id)
                yield candidate

    def next_page_url(self, page: PageContent) -> str | None:
        soup = soup_of(page)
        for selector in NEXT_PAGE_SELECTORS:
            link = soup.select_one(selector)
            href = link.get("href") if link is not None else None
            if isinstance(href, str) and href.strip():
                return urljoin(page.url, href.strip())
        return None

    def is_blocked(self, page: PageContent) -> bool:
        return contains_any(page.html, BLOCKED_HTML_MARKERS)

    def extract_detail(self, page: PageContent) -> JobDetail | None:
        soup = soup_of(page)
        description = None
        for selector in DESCRIPTION_SELECTORS:
            el = soup.select_one(selector)
            if el is not None and el.get_text(strip=True):
                description = el.get_text("\n", strip=True)
                break
        if description is None:
            return None
        return JobDetail(
            description=description,
            company=text_of(soup, DETAIL_COMPANY_SELECTORS),
            location=text_of(soup, DETAIL_LOCATION_SELECTORS),
            salary=text_of(soup, DETAIL_SALARY_SELECTORS),
            job_type=text_of(soup, DETAIL_JOB_TYPE_SELECTORS),
        )


def _parse_card(card: Tag, origin: str) -> CandidatePosting | None:
    link = card.select_one(JOB_KEY_SELECTOR)
    if link is None:
        return None
    job_key = link.get("data-jk")
    if not isinstance(job_key, str) or not job_key.strip():
        return None
    title = text_of(card, TITLE_SELECTORS)
    if not title:
        return None
    return CandidatePosting(
        external_id=job_key.strip(),
        title=title,
        external_url=f"{origin}/viewjob?jk={job_key.strip()}",
        company=text_of(card, COMPANY_SELECTORS),
        location=text_of(card, LOCATION_SELECTORS),
        salary=text_of(card, SALARY_SELECTORS),
    )


def _origin(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "https://www.indeed.com"
    return f"{parsed.scheme}://{parsed.netloc}"
