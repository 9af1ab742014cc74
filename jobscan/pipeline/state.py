"""Scan run state: what is being scanned now and how each link last went.

Mutated only by the orchestrator while it holds the scan gate; read freely.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from jobscan.core.schemas import ScanOutcome


class ScanStateSnapshot(BaseModel):
    """Read-only copy handed to status queries."""

    is_scanning: bool
    in_progress: list[int] = Field(default_factory=list)
    last_outcomes: dict[int, ScanOutcome] = Field(default_factory=dict)
    last_run_started_at: datetime | None = None
    last_run_finished_at: datetime | None = None
    last_run_aborted: bool = False


class ScanRunState:
    """Transient per-process scan state. Starts empty."""

    def __init__(self) -> None:
        self.active = False
        self.in_progress: set[int] = set()
        self.last_outcomes: dict[int, ScanOutcome] = {}
        self.run_started_at: datetime | None = None
        self.run_finished_at: datetime | None = None
        self.run_aborted = False

    def begin_run(self) -> None:
        self.active = True
        self.run_started_at = datetime.now()
        self.run_finished_at = None
        self.run_aborted = False

    def end_run(self, *, aborted: bool) -> None:
        self.active = False
        self.in_progress.clear()
        self.run_finished_at = datetime.now()
        self.run_aborted = aborted

    def begin_source(self, link_id: int) -> None:
        self.in_progress.add(link_id)

    def end_source(self, outcome: ScanOutcome) -> None:
        self.in_progress.discard(outcome.link_id)
        self.last_outcomes[outcome.link_id] = outcome

    def snapshot(self) -> ScanStateSnapshot:
        return ScanStateSnapshot(
            is_scanning=self.active,
            in_progress=sorted(self.in_progress),
            last_outcomes=dict(self.last_outcomes),
            last_run_started_at=self.run_started_at,
            last_run_finished_at=self.run_finished_at,
            last_run_aborted=self.run_aborted,
        )
