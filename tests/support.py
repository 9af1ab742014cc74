"""Fakes shared by unit and integration tests (no real browser)."""

from collections.abc import Iterator
from html import escape

from jobscan.core.errors import ExtractionAnomaly
from jobscan.core.schemas import CandidatePosting, JobDetail, PageContent
from jobscan.sites.base import AdapterRegistry, ExtractionAdapter, soup_of, text_of

BOARD = "https://board.test"

# A route is an HTML string (200), a (status, html) tuple, an exception to
# raise, or a list of those consumed one per visit (the last one repeats).
Route = object


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status


class FakePage:
    """Stands in for a patchright Page."""

    def __init__(self, routes: dict[str, Route] | None = None) -> None:
        self.routes: dict[str, Route] = dict(routes or {})
        self.url = "about:blank"
        self.visits: list[str] = []
        self.back_calls = 0
        self.forward_calls = 0
        self._html = ""

    async def goto(self, url: str) -> FakeResponse:
        self.visits.append(url)
        route = self.routes.get(url, (404, "<html><body>Not found</body></html>"))
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, BaseException):
            raise route
        status, html = route if isinstance(route, tuple) else (200, route)
        self.url = url
        self._html = html
        return FakeResponse(status)

    async def content(self) -> str:
        return self._html

    async def go_back(self) -> None:
        self.back_calls += 1

    async def go_forward(self) -> None:
        self.forward_calls += 1

    async def query_selector_all(self, selector: str) -> list[object]:
        return []

    async def evaluate(self, script: str) -> None:
        return None


class FakeSession:
    """Stands in for BrowserSession; every instance shares one FakePage."""

    def __init__(self, page: FakePage) -> None:
        self._page = page
        self.starts = 0
        self.stops = 0

    @property
    def page(self) -> FakePage:
        return self._page

    async def start(self) -> None:
        self.starts += 1

    async def stop(self) -> None:
        self.stops += 1


class SessionFactory:
    """Session factory that remembers every session it made."""

    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.sessions: list[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession(self.page)
        self.sessions.append(session)
        return session


# ---------------------------------------------------------------------------
# Test board: a minimal site with predictable markup
# ---------------------------------------------------------------------------


@AdapterRegistry.register
class TestBoardAdapter(ExtractionAdapter):
    """Cards are ``div.job``; ``a.next`` paginates; 'captcha' means blocked."""

    __test__ = False
    site_name = "Test Board"

    @property
    def site_key(self) -> str:
        return "testboard"

    def extract(self, page: PageContent) -> Iterator[CandidatePosting]:
        for card in soup_of(page).select("div.job"):
            if card.get("data-broken") is not None:
                msg = "card without id"
                raise ExtractionAnomaly(msg)
            yield CandidatePosting(
                external_id=str(card["data-id"]),
                title=text_of(card, ("h2",)) or "",
                company=text_of(card, (".company",)),
                location=text_of(card, (".location",)),
                salary=text_of(card, (".salary",)),
                external_url=f"{BOARD}/jobs/{card['data-id']}",
            )

    def next_page_url(self, page: PageContent) -> str | None:
        link = soup_of(page).select_one("a.next")
        return str(link["href"]) if link is not None else None

    def is_blocked(self, page: PageContent) -> bool:
        return "captcha" in page.html.lower()

    def extract_detail(self, page: PageContent) -> JobDetail | None:
        soup = soup_of(page)
        description = text_of(soup, ("#description",))
        if description is None:
            return None
        return JobDetail(description=description, salary=text_of(soup, ("#salary",)))


def job_card(
    external_id: str,
    title: str = "Python Engineer",
    company: str = "Acme",
    location: str = "Remote",
    salary: str | None = None,
) -> str:
    salary_html = f'<span class="salary">{escape(salary)}</span>' if salary else ""
    return (
        f'<div class="job" data-id="{escape(external_id)}">'
        f"<h2>{escape(title)}</h2>"
        f'<span class="company">{escape(company)}</span>'
        f'<span class="location">{escape(location)}</span>'
        f"{salary_html}</div>"
    )


def result_page(cards: list[str], next_url: str | None = None) -> str:
    next_html = f'<a class="next" href="{next_url}">Next</a>' if next_url else ""
    return f"<html><body>{''.join(cards)}{next_html}</body></html>"


def detail_page(description: str, salary: str | None = None) -> str:
    salary_html = f'<div id="salary">{escape(salary)}</div>' if salary else ""
    return f'<html><body><div id="description">{escape(description)}</div>{salary_html}</body></html>'
