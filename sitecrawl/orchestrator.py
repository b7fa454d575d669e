"""
Crawl Orchestrator
Bounded breadth-first traversal of a site, one URL at a time:
render → extract → persist → mark → enqueue.

The renderer, sink and dedup store are passed in by the caller, so the same
loop runs against Playwright/SQLite/Redis in production and against fakes in
tests.
"""

import logging
from collections import deque
from typing import Deque, Optional, Set

from .dedup import DedupStore
from .errors import DedupStoreError, OrchestratorFault, RenderError, SinkError
from .extractors import run_extractors
from .models import CrawlJob, CrawlResult, CrawlSummary, FrontierEntry, JobStatus, PageFacts
from .robots import RobotsHandler
from .sink import Sink
from .utils import is_valid_url, normalize_url

logger = logging.getLogger(__name__)


def validate_job(job: CrawlJob) -> None:
    """Raise OrchestratorFault if the job cannot be run."""
    if not is_valid_url(job.domain) or normalize_url(job.domain) is None:
        raise OrchestratorFault(f"Invalid seed URL: {job.domain!r}")
    if isinstance(job.max_urls, bool) or not isinstance(job.max_urls, int) or job.max_urls < 1:
        raise OrchestratorFault(f"max_urls must be a positive integer, got {job.max_urls!r}")
    if isinstance(job.max_levels, bool) or not isinstance(job.max_levels, int) or job.max_levels < 0:
        raise OrchestratorFault(f"max_levels must be a non-negative integer, got {job.max_levels!r}")
    if not isinstance(job.obey_robots_txt, bool):
        raise OrchestratorFault(f"obey_robots_txt must be a boolean, got {job.obey_robots_txt!r}")


class CrawlOrchestrator:
    """
    Drives single-URL and domain crawls.

    Args:
        renderer:     object with ``render(url) -> html`` raising RenderError
        sink:         analytical sink receiving every extracted record
        dedup:        cross-job store of already crawled URLs
        robots:       robots.txt policy, consulted only for jobs that ask for it
        max_frontier: optional cap on pending frontier entries (None = unbounded)
    """

    def __init__(
        self,
        renderer,
        sink: Sink,
        dedup: DedupStore,
        robots: Optional[RobotsHandler] = None,
        max_frontier: Optional[int] = None,
    ):
        self.renderer = renderer
        self.sink = sink
        self.dedup = dedup
        self.robots = robots
        self.max_frontier = max_frontier

    # ------------------------------------------------------------------
    # Single-URL mode
    # ------------------------------------------------------------------

    def crawl_single(self, url: str) -> CrawlResult:
        """
        Render one URL and persist its facts. Render and extraction failures
        propagate to the caller; the dedup store is not consulted.
        """
        if not is_valid_url(url):
            raise OrchestratorFault(f"Invalid URL: {url!r}")

        logger.info(f"[SINGLE] Crawling {url}")
        html = self.renderer.render(url)
        facts = run_extractors(html, url)
        self._persist(facts)
        return CrawlResult(url=url)

    # ------------------------------------------------------------------
    # Domain mode
    # ------------------------------------------------------------------

    def crawl_domain(self, job: CrawlJob) -> CrawlSummary:
        """
        Crawl ``job.domain`` breadth-first until the frontier empties or
        ``job.max_urls`` pages have been crawled.

        Per-URL failures are logged and skipped. Anything else marks the job
        FAILED and is raised as an OrchestratorFault. A finished job is
        rejected without rendering anything.
        """
        if job.status.is_terminal:
            raise OrchestratorFault(f"Job {job.id} already finished with status {job.status.value}")

        try:
            validate_job(job)
            if job.status is JobStatus.PENDING:
                job.mark_running()
            summary = self._traverse(job)
        except Exception as e:
            if not job.status.is_terminal:
                job.mark_failed(e)
            logger.error(f"[JOB] {job.id} failed: {e}")
            if isinstance(e, OrchestratorFault):
                raise
            raise OrchestratorFault(f"Crawl of {job.domain} failed: {e}") from e

        job.failed_count = summary.failed_count
        job.skipped_count = summary.skipped_count
        job.mark_completed()
        logger.info(
            f"[JOB] {job.id}: {summary.message} — crawled={summary.crawled_count} "
            f"failed={summary.failed_count} skipped={summary.skipped_count}"
        )
        return summary

    def _traverse(self, job: CrawlJob) -> CrawlSummary:
        seed = normalize_url(job.domain)
        robots = self._robots_for(job)
        restrictions = job.url_restrictions
        summary = CrawlSummary(domain=job.domain)

        frontier: Deque[FrontierEntry] = deque([FrontierEntry(seed, 0)])
        discovered: Set[str] = {seed}
        visited: Set[str] = set()

        logger.info(
            f"[JOB] {job.id} starting at {seed} — max_urls={job.max_urls}, "
            f"max_levels={job.max_levels}, robots={'on' if robots else 'off'}, "
            f"restrictions={restrictions.describe() if restrictions else 'none'}"
        )

        while frontier and job.crawled_count < job.max_urls:
            entry = frontier.popleft()
            url, level = entry.url, entry.level

            if self._already_crawled(url) or url in visited or level > job.max_levels:
                summary.skipped_count += 1
                continue
            if robots is not None and not robots.can_fetch(url):
                logger.info(f"[FRONTIER] Disallowed by robots.txt: {url}")
                summary.skipped_count += 1
                continue

            logger.info(f"[BFS] Level:{level} | Queue:{len(frontier)} | {url[:80]}")
            try:
                html = self.renderer.render(url)
            except RenderError as e:
                logger.warning(f"[RENDER] {e}")
                summary.failed_count += 1
                continue

            try:
                facts = run_extractors(html, url)
            except Exception as e:
                logger.error(f"[EXTRACT] Error extracting {url}: {e}", exc_info=True)
                summary.failed_count += 1
                continue
            self._persist(facts)

            visited.add(url)
            self._mark_crawled(url)
            job.crawled_count += 1

            enqueued = 0
            for link in facts.internal_urls:
                if link in discovered:
                    continue
                if restrictions is not None and not restrictions.accept(link):
                    logger.debug(f"[FRONTIER] Rejected by url_restrictions: {link}")
                    continue
                if self.max_frontier is not None and len(frontier) >= self.max_frontier:
                    logger.debug(f"[FRONTIER] Frontier full ({self.max_frontier}), dropping {link}")
                    continue
                discovered.add(link)
                frontier.append(FrontierEntry(link, level + 1))
                enqueued += 1

            logger.info(
                f"[FRONTIER] {url[:60]} → links={len(facts.internal_urls)} "
                f"enqueued={enqueued} queue_size={len(frontier)}"
            )

        summary.crawled_count = job.crawled_count
        return summary

    # ------------------------------------------------------------------
    # Collaborator calls with per-call failure policy
    # ------------------------------------------------------------------

    def _robots_for(self, job: CrawlJob) -> Optional[RobotsHandler]:
        if not job.obey_robots_txt:
            return None
        if self.robots is None:
            self.robots = RobotsHandler()
        return self.robots

    def _already_crawled(self, url: str) -> bool:
        # Fail open: an unreadable store means re-crawl rather than skip
        try:
            return self.dedup.exists(url)
        except DedupStoreError as e:
            logger.warning(f"[DEDUP] {e} — treating {url} as not crawled")
            return False

    def _mark_crawled(self, url: str) -> None:
        try:
            self.dedup.mark(url)
        except DedupStoreError as e:
            logger.warning(f"[DEDUP] {e} — {url} not marked")

    def _persist(self, facts: PageFacts) -> int:
        """Insert every record, best effort per record. Returns rows written."""
        written = 0
        for record in facts.records():
            try:
                self.sink.insert(record.TABLE, record)
                written += 1
            except SinkError as e:
                logger.error(f"[SINK] {e}")
        return written
