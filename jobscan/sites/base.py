"""Extraction adapter contract and the site-key registry.

Adapters are pure functions of rendered page content: no network, no browser.
Unexpected structure yields no candidates instead of raising.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator

from bs4 import BeautifulSoup, Tag

from jobscan.core.schemas import CandidatePosting, JobDetail, PageContent, Site

logger = logging.getLogger(__name__)


class ExtractionAdapter(ABC):
    """Base class that every site adapter must implement."""

    #: Display name and logo used when seeding the sites table.
    site_name: str = ""
    logo_url: str = ""
    #: CSS selector for one result card; used to scroll lazy lists until stable.
    card_selector: str | None = None

    @property
    @abstractmethod
    def site_key(self) -> str:
        """Unique identifier for this site (e.g. 'linkedin')."""

    @abstractmethod
    def extract(self, page: PageContent) -> Iterator[CandidatePosting]:
        """Yield candidate postings found on a result page."""

    @abstractmethod
    def next_page_url(self, page: PageContent) -> str | None:
        """URL of the next result page, or None on the last page."""

    @abstractmethod
    def is_blocked(self, page: PageContent) -> bool:
        """True if the page is an anti-bot or login interstitial."""

    def extract_detail(self, page: PageContent) -> JobDetail | None:
        """Read a single posting's detail page. None if nothing usable was found."""
        return None

    def site(self) -> Site:
        return Site(key=self.site_key, name=self.site_name or self.site_key, logo_url=self.logo_url)


class AdapterRegistry:
    """Maps site keys to adapter instances.

    Usage::

        @AdapterRegistry.register
        class MyBoardAdapter(ExtractionAdapter): ...

        adapter = AdapterRegistry.get("myboard")
    """

    _adapters: dict[str, ExtractionAdapter] = {}

    @classmethod
    def register(cls, adapter_cls: type[ExtractionAdapter]) -> type[ExtractionAdapter]:
        adapter = adapter_cls()
        key = adapter.site_key
        if key in cls._adapters and type(cls._adapters[key]) is not adapter_cls:
            msg = f"Duplicate adapter for site '{key}'"
            raise ValueError(msg)
        cls._adapters[key] = adapter
        return adapter_cls

    @classmethod
    def get(cls, site_key: str) -> ExtractionAdapter:
        try:
            return cls._adapters[site_key]
        except KeyError:
            msg = f"No extraction adapter registered for site '{site_key}'"
            raise KeyError(msg) from None

    @classmethod
    def keys(cls) -> list[str]:
        return sorted(cls._adapters)

    @classmethod
    def sites(cls) -> list[Site]:
        return [cls._adapters[k].site() for k in cls.keys()]


# --- Parsing helpers shared by HTML adapters ---


def soup_of(page: PageContent) -> BeautifulSoup:
    return BeautifulSoup(page.html, "html.parser")


def text_of(parent: Tag, selectors: tuple[str, ...]) -> str | None:
    """Stripped text of the first selector that matches, or None."""
    for selector in selectors:
        el = parent.select_one(selector)
        if el is not None:
            text = " ".join(el.get_text(" ", strip=True).split())
            if text:
                return text
    return None


def contains_any(html: str, markers: tuple[str, ...]) -> bool:
    lowered = html.lower()
    return any(marker in lowered for marker in markers)


def load_all_adapters() -> None:
    """Import the bundled adapter modules so their decorators run."""
    import jobscan.sites.indeed  # noqa: F401
    import jobscan.sites.linkedin.adapter  # noqa: F401
    import jobscan.sites.weworkremotely  # noqa: F401

    logger.debug("Registered adapters: %s", ", ".join(AdapterRegistry.keys()))
