"""Error taxonomy for the scan core.

Callers above the orchestrator never see these raised for per-source problems;
they arrive folded into ScanOutcome records. They do propagate out of direct
calls (settings updates, store access, browser control).
"""


class JobScanError(Exception):
    """Base class for every error raised by jobscan."""


class NavigationError(JobScanError):
    """A single navigation failed (timeout, network error, HTTP error status)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Navigation to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class SessionClosed(NavigationError):
    """Navigation attempted on a closed session or a revoked scan lease."""


class ExtractionAnomaly(JobScanError):
    """An adapter met page structure it does not understand."""


class SourceBlocked(JobScanError):
    """The page is an anti-bot interstitial and needs a human to clear it."""


class SessionBusy(JobScanError):
    """The browser session is held by someone else."""


class StoreUnavailable(JobScanError):
    """A catalog or settings store operation failed."""


class ConfigInvalid(JobScanError):
    """A settings update was rejected before anything was changed."""


class ScanInProgress(JobScanError):
    """A queued scan request was replaced by a newer one."""


class SourceNotFound(JobScanError):
    """No source (link) exists with the requested id."""
