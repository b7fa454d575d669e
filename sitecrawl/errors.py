"""
Crawler Errors
Exception taxonomy shared by the orchestrator and its collaborators.

Per-URL and per-record failures (RenderError, SinkError, DedupStoreError) are
recoverable inside a domain crawl. OrchestratorFault is job-level and marks
the job FAILED.
"""


class CrawlerError(Exception):
    """Base class for every error raised by this package."""


class RenderError(CrawlerError):
    """The page renderer could not produce HTML for a URL."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to render {url}: {reason}")
        self.url = url
        self.reason = reason


class SinkError(CrawlerError):
    """A record could not be written to the analytical sink."""

    def __init__(self, table: str, reason: str):
        super().__init__(f"Insert into {table} failed: {reason}")
        self.table = table
        self.reason = reason


class DedupStoreError(CrawlerError):
    """The dedup store could not answer or record a URL."""


class OrchestratorFault(CrawlerError):
    """Job-level failure: bad parameters or a broken frontier."""


class InvalidTransition(OrchestratorFault):
    """A job status change that would break the monotonic lifecycle."""


class JobNotFound(CrawlerError):
    """No job is registered under the requested identifier."""

    def __init__(self, job_id: str):
        super().__init__(f"Unknown crawl job: {job_id}")
        self.job_id = job_id
