"""
Crawl Data Model
Jobs, frontier entries, and the immutable fact records produced per page.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Dict, Iterator, List, Optional

from .errors import InvalidTransition

if TYPE_CHECKING:
    from .scope_filter import UrlRestrictions


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Table(str, Enum):
    """Analytical sink tables, one per record kind."""
    PAGES = "pages"
    RESOURCES = "resources"
    ISSUES = "issues"
    LINKS = "links"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed lifecycle moves; terminal states have no exits.
_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


# ---------------------------------------------------------------------------
# Fact records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PageRecord:
    """Page-level metadata for one rendered URL."""
    TABLE: ClassVar[Table] = Table.PAGES

    url: str
    meta_title: str = ""
    meta_description: str = ""
    canonical_url: str = ""
    hreflang_links: str = ""

    def to_row(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ResourceRecord:
    """A stylesheet, script or image referenced by a page."""
    TABLE: ClassVar[Table] = Table.RESOURCES

    page_url: str
    resource_url: str
    resource_type: str

    def to_row(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class IssueRecord:
    """A quality problem found on a page."""
    TABLE: ClassVar[Table] = Table.ISSUES

    page_url: str
    issue_type: str
    issue_description: str

    def to_row(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LinkRecord:
    """One anchor on a page, resolved against that page's URL."""
    TABLE: ClassVar[Table] = Table.LINKS

    source_url: str
    target_url: str
    link_text: str
    is_internal: bool

    def to_row(self) -> dict:
        return asdict(self)


@dataclass
class PageFacts:
    """Everything the extractors produced for a single (html, url) pair."""
    page: PageRecord
    resources: List[ResourceRecord] = field(default_factory=list)
    issues: List[IssueRecord] = field(default_factory=list)
    links: List[LinkRecord] = field(default_factory=list)
    internal_urls: List[str] = field(default_factory=list)

    def records(self) -> Iterator:
        yield self.page
        yield from self.resources
        yield from self.issues
        yield from self.links


# ---------------------------------------------------------------------------
# Frontier and jobs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrontierEntry:
    url: str
    level: int


@dataclass
class CrawlJob:
    """
    A domain crawl request and its live status.

    Only the orchestrator advances ``status`` and ``crawled_count``; every
    status change goes through ``transition`` so the lifecycle stays
    PENDING -> RUNNING -> COMPLETED | FAILED.
    """
    domain: str
    max_urls: int
    max_levels: int
    url_restrictions: Optional["UrlRestrictions"] = None
    obey_robots_txt: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    crawled_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def transition(self, new_status: JobStatus) -> None:
        if new_status not in _TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Job {self.id}: cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
        if new_status is JobStatus.RUNNING:
            self.started_at = utc_now()
        elif new_status.is_terminal:
            self.finished_at = utc_now()

    def mark_running(self) -> None:
        self.transition(JobStatus.RUNNING)

    def mark_completed(self) -> None:
        self.transition(JobStatus.COMPLETED)

    def mark_failed(self, error: Exception) -> None:
        self.error = str(error)
        self.transition(JobStatus.FAILED)

    def to_status(self) -> Dict[str, object]:
        """Status payload served by the job control API."""
        status = {
            "status": self.status.value,
            "crawledCount": self.crawled_count,
            "domain": self.domain,
        }
        if self.error:
            status["error"] = self.error
        return status

    def to_dict(self) -> dict:
        data = self.to_status()
        data.update({
            "crawl_id": self.id,
            "max_urls": self.max_urls,
            "max_levels": self.max_levels,
            "failed_urls_count": self.failed_count,
            "skipped_urls_count": self.skipped_count,
            "obey_robots_txt": self.obey_robots_txt,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        })
        return data


@dataclass
class CrawlResult:
    """Outcome of a single-URL crawl."""
    url: str
    message: str = "Single URL crawl completed"

    def to_dict(self) -> dict:
        return {"message": self.message, "url": self.url}


@dataclass
class CrawlSummary:
    """Outcome of a domain crawl."""
    domain: str
    crawled_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0

    @property
    def message(self) -> str:
        return f"Crawl completed for domain {self.domain}"
