"""
Job Registry and Crawl Service
Keeps track of domain crawl jobs and runs them on a small thread pool.

Each job thread opens its own renderer (Playwright objects are thread-bound)
and gets a fresh orchestrator; the sink and dedup store are shared by all jobs.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from .dedup import DedupStore
from .errors import CrawlerError, JobNotFound, OrchestratorFault
from .models import CrawlJob, CrawlResult
from .orchestrator import CrawlOrchestrator, validate_job
from .robots import RobotsHandler
from .scope_filter import UrlRestrictions
from .sink import Sink

logger = logging.getLogger(__name__)


class JobRegistry:
    """Thread-safe map of job id → CrawlJob."""

    def __init__(self):
        self._jobs: Dict[str, CrawlJob] = {}
        self._lock = threading.Lock()

    def create(
        self,
        domain: str,
        max_urls: int,
        max_levels: int,
        url_restrictions=None,
        obey_robots_txt: bool = False,
    ) -> CrawlJob:
        """Validate the parameters and register a new PENDING job."""
        job = CrawlJob(
            domain=domain,
            max_urls=max_urls,
            max_levels=max_levels,
            url_restrictions=UrlRestrictions.from_value(url_restrictions),
            obey_robots_txt=obey_robots_txt,
        )
        validate_job(job)
        with self._lock:
            self._jobs[job.id] = job
        logger.info(f"[JOB] Registered {job.id} for {domain}")
        return job

    def get(self, job_id: str) -> CrawlJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def get_status(self, job_id: str) -> dict:
        return self.get(job_id).to_status()

    def list_jobs(self) -> List[CrawlJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)


class CrawlService:
    """
    Process-wide entry point used by the HTTP API and the CLI.

    Args:
        renderer_factory:    callable returning a new renderer that supports
                             ``with`` (entered/closed around each crawl)
        sink:                shared analytical sink
        dedup:               shared dedup store
        registry:            job registry (a fresh one by default)
        max_concurrent_jobs: domain crawls allowed to run at once
        max_frontier:        optional frontier cap passed to each orchestrator
        robots_factory:      callable returning a RobotsHandler for a job
    """

    def __init__(
        self,
        renderer_factory: Callable,
        sink: Sink,
        dedup: DedupStore,
        registry: Optional[JobRegistry] = None,
        max_concurrent_jobs: int = 1,
        max_frontier: Optional[int] = None,
        robots_factory: Callable[[], RobotsHandler] = RobotsHandler,
    ):
        self.renderer_factory = renderer_factory
        self.sink = sink
        self.dedup = dedup
        self.registry = registry or JobRegistry()
        self.max_frontier = max_frontier
        self.robots_factory = robots_factory
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent_jobs, thread_name_prefix="crawl-job"
        )
        self._futures: Dict[str, Future] = {}

    def _orchestrator(self, renderer) -> CrawlOrchestrator:
        return CrawlOrchestrator(
            renderer=renderer,
            sink=self.sink,
            dedup=self.dedup,
            robots=self.robots_factory(),
            max_frontier=self.max_frontier,
        )

    def crawl_single(self, url: str) -> CrawlResult:
        """Crawl one URL in the caller's thread."""
        with self.renderer_factory() as renderer:
            return self._orchestrator(renderer).crawl_single(url)

    def submit_domain(
        self,
        domain: str,
        max_urls: int,
        max_levels: int,
        url_restrictions=None,
        obey_robots_txt: bool = False,
    ) -> CrawlJob:
        """
        Register a domain crawl and schedule it. The job is RUNNING on return,
        even if it is still queued behind other jobs.
        """
        job = self.registry.create(domain, max_urls, max_levels, url_restrictions, obey_robots_txt)
        job.mark_running()
        try:
            self._futures[job.id] = self._executor.submit(self._run_job, job)
        except RuntimeError as e:
            # Executor already shut down
            job.mark_failed(OrchestratorFault(f"Crawl service is not accepting jobs: {e}"))
            raise OrchestratorFault(job.error) from e
        return job

    def run_domain(
        self,
        domain: str,
        max_urls: int,
        max_levels: int,
        url_restrictions=None,
        obey_robots_txt: bool = False,
    ) -> CrawlJob:
        """Register a domain crawl and run it to completion in this thread."""
        job = self.registry.create(domain, max_urls, max_levels, url_restrictions, obey_robots_txt)
        self._run_job(job)
        return job

    def _run_job(self, job: CrawlJob) -> None:
        try:
            with self.renderer_factory() as renderer:
                self._orchestrator(renderer).crawl_domain(job)
        except CrawlerError as e:
            logger.error(f"[JOB] {job.id} ended with error: {e}")
            if not job.status.is_terminal:
                job.mark_failed(e)
        except Exception as e:
            # Renderer start-up failures land here before the orchestrator runs
            logger.error(f"[JOB] {job.id} crashed: {e}", exc_info=True)
            if not job.status.is_terminal:
                job.mark_failed(OrchestratorFault(str(e)))

    def wait(self, job_id: str, timeout: Optional[float] = None) -> CrawlJob:
        """Block until a submitted job has finished."""
        job = self.registry.get(job_id)
        future = self._futures.get(job_id)
        if future is not None:
            future.result(timeout=timeout)
        return job

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.sink.close()
        self.dedup.close()
        logger.info("[JOB] Crawl service stopped")
