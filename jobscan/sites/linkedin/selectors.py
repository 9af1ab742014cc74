"""LinkedIn DOM selector constants with fallbacks.

Ordered by stability: data-* > semantic classes > layout classes.
Each constant is a tuple so callers iterate until a match is found.
Guest (logged-out) markup comes first, logged-in markup second.
"""

# --- Job card container ---
CARD_SELECTORS: tuple[str, ...] = (
    "div.base-card[data-entity-urn]",
    "li[data-occludable-job-id]",
    "div.job-search-card",
)

# Used to scroll the lazy result list until the count settles.
SCROLL_CARD_SELECTOR: str = "div.base-card, li[data-occludable-job-id]"

# --- Job ID attributes on the card element ---
JOB_URN_ATTR: str = "data-entity-urn"
JOB_ID_ATTR: str = "data-occludable-job-id"
JOB_ID_ATTR_FALLBACK: str = "data-job-id"

# --- Title link inside a card ---
TITLE_LINK_SELECTORS: tuple[str, ...] = (
    "a.base-card__full-link",
    'a[href*="/jobs/view/"]',
    "a.job-card-container__link",
)

TITLE_SELECTORS: tuple[str, ...] = (
    "h3.base-search-card__title",
    "a span strong",
    "a.job-card-list__title",
)

# --- Company name ---
COMPANY_SELECTORS: tuple[str, ...] = (
    "h4.base-search-card__subtitle",
    ".artdeco-entity-lockup__subtitle",
    "span.job-card-container__primary-description",
)

# --- Location ---
LOCATION_SELECTORS: tuple[str, ...] = (
    "span.job-search-card__location",
    ".artdeco-entity-lockup__caption",
    "li.job-card-container__metadata-item",
)

# --- Salary ---
SALARY_SELECTORS: tuple[str, ...] = (
    "span.job-search-card__salary-info",
    ".job-card-container__salary-info",
)

# --- Posted time ---
POSTED_TIME_SELECTORS: tuple[str, ...] = (
    "time.job-search-card__listdate--new",
    "time.job-search-card__listdate",
    "time",
)

# --- Detail page ---
DESCRIPTION_SELECTORS: tuple[str, ...] = (
    "div.show-more-less-html__markup",
    "div.description__text",
    "#job-details",
    "div.jobs-description__content",
)
DETAIL_COMPANY_SELECTORS: tuple[str, ...] = (
    "a.topcard__org-name-link",
    ".job-details-jobs-unified-top-card__company-name",
)
DETAIL_LOCATION_SELECTORS: tuple[str, ...] = (
    "span.topcard__flavor--bullet",
    ".job-details-jobs-unified-top-card__bullet",
)
CRITERIA_ITEM_SELECTOR: str = "li.description__job-criteria-item"

# --- Blocked / login-wall markers ---
BLOCKED_URL_MARKERS: tuple[str, ...] = ("/authwall", "/checkpoint/", "/uas/login")
BLOCKED_HTML_MARKERS: tuple[str, ...] = (
    "security verification",
    "let's do a quick security check",
    "captcha-internal",
)
