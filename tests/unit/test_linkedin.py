"""Tests for the LinkedIn adapter and card parser."""

from datetime import datetime

import pytest
from bs4 import BeautifulSoup, Tag

from jobscan.core.schemas import PageContent
from jobscan.sites.base import AdapterRegistry
from jobscan.sites.linkedin.adapter import (
    RESULTS_PER_PAGE,
    LinkedInAdapter,
    should_stop_pagination,
    with_start_offset,
)
from jobscan.sites.linkedin.parser import LinkedInParser

SEARCH_URL = "https://www.linkedin.com/jobs/search/?keywords=python&f_WT=2"


def _guest_card(
    job_id: str = "3812345678",
    *,
    title: str = "Senior Python Engineer",
    company: str = "Acme Corp",
    location: str = "Berlin, Germany",
    salary: str | None = None,
    listed: str | None = "2026-02-20",
) -> str:
    salary_html = f'<span class="job-search-card__salary-info">{salary}</span>' if salary else ""
    time_html = (
        f'<time class="job-search-card__listdate" datetime="{listed}">3 days ago</time>'
        if listed else ""
    )
    return f"""
    <li>
      <div class="base-card job-search-card" data-entity-urn="urn:li:jobPosting:{job_id}">
        <a class="base-card__full-link"
           href="https://www.linkedin.com/jobs/view/senior-python-engineer-at-acme-{job_id}?refId=abc&trackingId=xyz">
          <span class="sr-only">{title}</span>
        </a>
        <div class="base-search-card__info">
          <h3 class="base-search-card__title">{title}</h3>
          <h4 class="base-search-card__subtitle"><a>{company}</a></h4>
          <div class="base-search-card__metadata">
            <span class="job-search-card__location">{location}</span>
            {salary_html}
            {time_html}
          </div>
        </div>
      </div>
    </li>
    """


def _logged_in_card(job_id: str = "4001", title: str = "Backend Developer") -> str:
    return f"""
    <li data-occludable-job-id="{job_id}">
      <a class="job-card-container__link job-card-list__title" href="/jobs/view/{job_id}/?eBP=xyz"
         aria-label="{title} with verification">
        <span><strong>{title}</strong></span>
      </a>
      <div class="artdeco-entity-lockup__subtitle">Initech</div>
      <div class="artdeco-entity-lockup__caption">Remote</div>
    </li>
    """


def _page(cards: list[str], url: str = SEARCH_URL) -> PageContent:
    return PageContent(url=url, html=f"<html><body><ul>{''.join(cards)}</ul></body></html>", status=200)


def _tag(html: str) -> Tag:
    soup = BeautifulSoup(html, "html.parser")
    tag = soup.select_one("div.base-card, li[data-occludable-job-id]")
    assert tag is not None
    return tag


@pytest.fixture
def adapter() -> LinkedInAdapter:
    adapter = AdapterRegistry.get("linkedin")
    assert isinstance(adapter, LinkedInAdapter)
    return adapter


# ---------------------------------------------------------------------------
# TestLinkedInParser
# ---------------------------------------------------------------------------


class TestLinkedInParser:
    def test_guest_card(self) -> None:
        c = LinkedInParser().parse_card(_tag(_guest_card(salary="$150,000/yr")))
        assert c is not None
        assert c.external_id == "3812345678"
        assert c.title == "Senior Python Engineer"
        assert c.company == "Acme Corp"
        assert c.location == "Berlin, Germany"
        assert c.salary == "$150,000/yr"
        assert c.listed_at == datetime(2026, 2, 20)

    def test_tracking_params_stripped(self) -> None:
        c = LinkedInParser().parse_card(_tag(_guest_card()))
        assert c is not None
        assert c.external_url == (
            "https://www.linkedin.com/jobs/view/senior-python-engineer-at-acme-3812345678"
        )

    def test_logged_in_card(self) -> None:
        c = LinkedInParser().parse_card(_tag(_logged_in_card()))
        assert c is not None
        assert c.external_id == "4001"
        assert c.title == "Backend Developer"
        assert c.company == "Initech"
        assert c.location == "Remote"
        assert c.external_url == "https://www.linkedin.com/jobs/view/4001/"
        assert c.salary is None
        assert c.listed_at is None

    def test_id_from_href_when_attributes_missing(self) -> None:
        html = (
            '<div class="base-card" data-entity-urn="">'
            '<a class="base-card__full-link" href="/jobs/view/data-engineer-777/">Data Engineer</a>'
            "</div>"
        )
        c = LinkedInParser().parse_card(_tag(html))
        assert c is not None
        assert c.external_id == "777"
        assert c.title == "Data Engineer"

    def test_card_without_id_dropped(self) -> None:
        html = '<div class="base-card" data-entity-urn=""><h3 class="base-search-card__title">X</h3></div>'
        assert LinkedInParser().parse_card(_tag(html)) is None

    def test_bad_datetime_is_none(self) -> None:
        c = LinkedInParser().parse_card(_tag(_guest_card(listed="last week")))
        assert c is not None
        assert c.listed_at is None


# ---------------------------------------------------------------------------
# TestLinkedInAdapter
# ---------------------------------------------------------------------------


class TestLinkedInAdapter:
    def test_registered(self, adapter: LinkedInAdapter) -> None:
        assert adapter.site_key == "linkedin"
        assert adapter.card_selector

    def test_extract(self, adapter: LinkedInAdapter) -> None:
        page = _page([_guest_card("1"), _guest_card("2", title="Staff Engineer")])
        titles = [c.title for c in adapter.extract(page)]
        assert titles == ["Senior Python Engineer", "Staff Engineer"]

    def test_extract_skips_cards_without_id(self, adapter: LinkedInAdapter) -> None:
        page = _page([_guest_card("1"), '<div class="base-card" data-entity-urn=""></div>', _guest_card("2")])
        assert [c.external_id for c in adapter.extract(page)] == ["1", "2"]

    def test_extract_unknown_markup_yields_nothing(self, adapter: LinkedInAdapter) -> None:
        page = PageContent(url=SEARCH_URL, html="<html><body><p>Redesigned!</p></body></html>")
        assert list(adapter.extract(page)) == []

    def test_full_page_has_next(self, adapter: LinkedInAdapter) -> None:
        page = _page([_guest_card(str(i)) for i in range(RESULTS_PER_PAGE)])
        next_url = adapter.next_page_url(page)
        assert next_url is not None
        assert "start=25" in next_url
        assert "keywords=python" in next_url

    def test_short_page_is_last(self, adapter: LinkedInAdapter) -> None:
        assert adapter.next_page_url(_page([_guest_card("1")])) is None

    def test_authwall_is_blocked(self, adapter: LinkedInAdapter) -> None:
        page = PageContent(url="https://www.linkedin.com/authwall?trk=x", html="<html></html>")
        assert adapter.is_blocked(page)

    def test_security_check_is_blocked(self, adapter: LinkedInAdapter) -> None:
        page = PageContent(url=SEARCH_URL, html="<h1>Let's do a quick security check</h1>")
        assert adapter.is_blocked(page)

    def test_results_not_blocked(self, adapter: LinkedInAdapter) -> None:
        assert not adapter.is_blocked(_page([_guest_card()]))

    def test_extract_detail(self, adapter: LinkedInAdapter) -> None:
        html = """
        <html><body>
          <a class="topcard__org-name-link">Acme Corp</a>
          <span class="topcard__flavor topcard__flavor--bullet">Berlin, Germany</span>
          <div class="show-more-less-html__markup"><p>Build APIs.</p><p>Use Python.</p></div>
          <ul>
            <li class="description__job-criteria-item">
              <h3>Seniority level</h3><span>Mid-Senior level</span>
            </li>
            <li class="description__job-criteria-item">
              <h3>Employment type</h3><span>Full-time</span>
            </li>
          </ul>
        </body></html>
        """
        detail = adapter.extract_detail(
            PageContent(url="https://www.linkedin.com/jobs/view/1/", html=html),
        )
        assert detail is not None
        assert detail.description == "Build APIs.\nUse Python."
        assert detail.company == "Acme Corp"
        assert detail.location == "Berlin, Germany"
        assert detail.job_type == "Full-time"

    def test_detail_without_description(self, adapter: LinkedInAdapter) -> None:
        page = PageContent(url="https://www.linkedin.com/jobs/view/1/", html="<html></html>")
        assert adapter.extract_detail(page) is None


# ---------------------------------------------------------------------------
# Pagination helpers
# ---------------------------------------------------------------------------


class TestPaginationHelpers:
    @pytest.mark.parametrize(("found", "stop"), [(0, True), (24, True), (25, False)])
    def test_should_stop(self, found: int, stop: bool) -> None:
        assert should_stop_pagination(found) is stop

    def test_offset_added(self) -> None:
        assert with_start_offset("https://x/jobs?keywords=a", 25) == "https://x/jobs?keywords=a&start=25"

    def test_offset_advanced(self) -> None:
        assert with_start_offset("https://x/jobs?start=25&keywords=a", 25) == (
            "https://x/jobs?start=50&keywords=a"
        )

    def test_bad_offset_reset(self) -> None:
        assert with_start_offset("https://x/jobs?start=abc", 25) == "https://x/jobs?start=25"
