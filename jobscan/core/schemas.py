"""Core data models for the job scan engine."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    NEW = "new"
    APPLIED = "applied"
    ARCHIVED = "archived"
    DELETED = "deleted"
    PROCESSING = "processing"


class JobLabel(str, Enum):
    CONSIDER = "Consider"
    SUBMITTED = "Submitted"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    REJECTED = "Rejected"
    GHOSTED = "Ghosted"


class JobSortOption(str, Enum):
    LISTED_AT_DESC = "listed_at_desc"
    LISTED_AT_ASC = "listed_at_asc"
    UPDATED_AT_DESC = "updated_at_desc"
    UPDATED_AT_ASC = "updated_at_asc"


class Site(BaseModel):
    """A job board definition. Reference data, never mutated by a scan."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    key: str
    name: str
    logo_url: str = ""


class Source(BaseModel):
    """A saved search ("link") on one site."""

    id: int
    user_id: str = "local"
    site_id: int
    title: str
    url: str
    enabled: bool = True
    last_scanned_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class PageContent(BaseModel):
    """Rendered page snapshot handed to extraction adapters."""

    model_config = ConfigDict(frozen=True)

    url: str
    html: str
    status: int | None = None


class CandidatePosting(BaseModel):
    """A posting as seen on a result page, before dedup/merge.

    Optional fields left as None mean "not shown on this page" and never
    overwrite what the catalog already knows.
    """

    model_config = ConfigDict(frozen=True)

    external_id: str
    title: str
    external_url: str
    company: str | None = None
    location: str | None = None
    salary: str | None = None
    job_type: str | None = None
    listed_at: datetime | None = None
    updated_at: datetime | None = None
    description: str | None = None


class JobDetail(BaseModel):
    """Fields read from a single posting's detail page."""

    model_config = ConfigDict(frozen=True)

    description: str | None = None
    company: str | None = None
    location: str | None = None
    salary: str | None = None
    job_type: str | None = None


class Job(BaseModel):
    """A catalog entry. Unique per (site_id, external_id)."""

    id: int | None = None
    link_id: int
    site_id: int
    external_id: str
    title: str
    company: str = ""
    location: str = ""
    salary: str = ""
    job_type: str = ""
    external_url: str
    status: JobStatus = JobStatus.NEW
    labels: list[JobLabel] = Field(default_factory=list)
    listed_at: datetime | None = None
    source_updated_at: datetime | None = None
    description: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[int, str]:
        return (self.site_id, self.external_id)

    @classmethod
    def from_candidate(cls, candidate: CandidatePosting, source: Source) -> "Job":
        now = datetime.now()
        return cls(
            link_id=source.id,
            site_id=source.site_id,
            external_id=candidate.external_id,
            title=candidate.title,
            company=candidate.company or "",
            location=candidate.location or "",
            salary=candidate.salary or "",
            job_type=candidate.job_type or "",
            external_url=candidate.external_url,
            listed_at=candidate.listed_at,
            source_updated_at=candidate.updated_at,
            description=candidate.description,
            created_at=now,
            updated_at=now,
        )


class MergeResult(BaseModel):
    """What one merge pass did to the catalog."""

    created: list[Job] = Field(default_factory=list)
    updated: list[Job] = Field(default_factory=list)
    unchanged: int = 0
    failed: list[str] = Field(default_factory=list)
    error: str | None = None


class ScanStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    BLOCKED = "blocked"
    ERROR = "error"
    SKIPPED = "skipped"
    ABORTED = "aborted"


class ScanOutcome(BaseModel):
    """Result of scanning one source."""

    link_id: int
    status: ScanStatus
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    pages: int = 0
    message: str = ""
    finished_at: datetime = Field(default_factory=datetime.now)

    @property
    def ok(self) -> bool:
        return self.status not in (ScanStatus.ERROR, ScanStatus.SKIPPED)
