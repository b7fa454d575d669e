"""
Tests for the job lifecycle, the job registry and the crawl service.
"""

import threading

import pytest

from sitecrawl.errors import InvalidTransition, JobNotFound, OrchestratorFault, RenderError
from sitecrawl.jobs import CrawlService, JobRegistry
from sitecrawl.models import CrawlJob, JobStatus, Table

from .conftest import FakeRenderer, page

SEED = "http://x.test/"
PAGES = {
    SEED: page("Home", ["/a"]),
    "http://x.test/a": page("A", ["/"]),
}


class NoRobots:
    def can_fetch(self, url):
        return True


def make_service(sink, dedup, pages=PAGES, failing=(), **kwargs):
    renderers = []

    def factory():
        renderer = FakeRenderer(pages, failing=failing)
        renderers.append(renderer)
        return renderer

    service = CrawlService(factory, sink, dedup, robots_factory=NoRobots, **kwargs)
    return service, renderers


# ====================================================================
# Job lifecycle
# ====================================================================

class TestJobLifecycle:

    def test_happy_path(self):
        job = CrawlJob(domain=SEED, max_urls=1, max_levels=0)
        assert job.status is JobStatus.PENDING
        job.mark_running()
        assert job.started_at is not None
        job.mark_completed()
        assert job.status is JobStatus.COMPLETED
        assert job.finished_at is not None

    def test_pending_can_fail(self):
        job = CrawlJob(domain=SEED, max_urls=1, max_levels=0)
        job.mark_failed(OrchestratorFault("bad input"))
        assert job.status is JobStatus.FAILED
        assert job.error == "bad input"

    @pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_terminal_states_are_final(self, terminal):
        job = CrawlJob(domain=SEED, max_urls=1, max_levels=0)
        job.mark_running()
        job.transition(terminal)
        for target in JobStatus:
            with pytest.raises(InvalidTransition):
                job.transition(target)

    def test_pending_cannot_complete(self):
        job = CrawlJob(domain=SEED, max_urls=1, max_levels=0)
        with pytest.raises(InvalidTransition):
            job.mark_completed()

    def test_status_payload(self):
        job = CrawlJob(domain=SEED, max_urls=5, max_levels=1)
        assert job.to_status() == {"status": "PENDING", "crawledCount": 0, "domain": SEED}
        job.mark_failed(RenderError(SEED, "boom"))
        assert job.to_status()["error"] == f"Failed to render {SEED}: boom"

    def test_ids_are_unique(self):
        a = CrawlJob(domain=SEED, max_urls=1, max_levels=0)
        b = CrawlJob(domain=SEED, max_urls=1, max_levels=0)
        assert a.id != b.id


# ====================================================================
# Registry
# ====================================================================

class TestJobRegistry:

    def test_create_and_get(self):
        registry = JobRegistry()
        job = registry.create(SEED, 10, 2, url_restrictions="/docs", obey_robots_txt=True)
        assert registry.get(job.id) is job
        assert job.url_restrictions.allow_prefixes == ["/docs"]
        assert job.obey_robots_txt is True
        assert registry.get_status(job.id)["status"] == "PENDING"

    def test_unknown_id(self):
        with pytest.raises(JobNotFound, match="Unknown crawl job: nope"):
            JobRegistry().get("nope")

    @pytest.mark.parametrize("domain, max_urls, max_levels", [
        ("not-a-url", 10, 2),
        (SEED, 0, 2),
        (SEED, "10", 2),
        (SEED, True, 2),
        (SEED, 10, -1),
        (SEED, 10, None),
    ])
    def test_invalid_parameters_rejected(self, domain, max_urls, max_levels):
        registry = JobRegistry()
        with pytest.raises(OrchestratorFault):
            registry.create(domain, max_urls, max_levels)
        assert registry.list_jobs() == []

    @pytest.mark.parametrize("flag", ["false", "true", 0, 1, None])
    def test_robots_flag_must_be_boolean(self, flag):
        registry = JobRegistry()
        with pytest.raises(OrchestratorFault, match="obey_robots_txt must be a boolean"):
            registry.create(SEED, 5, 1, None, flag)
        assert registry.list_jobs() == []

    def test_list_jobs_newest_first(self):
        registry = JobRegistry()
        first = registry.create(SEED, 1, 0)
        second = registry.create(SEED, 1, 0)
        # created_at can tie on coarse clocks; force a distinct order
        first.created_at = second.created_at.replace(year=second.created_at.year - 1)
        assert registry.list_jobs() == [second, first]


# ====================================================================
# Crawl service
# ====================================================================

class TestCrawlService:

    def test_run_domain(self, sink, dedup):
        service, renderers = make_service(sink, dedup)
        job = service.run_domain(SEED, max_urls=10, max_levels=2)
        assert job.status is JobStatus.COMPLETED
        assert job.crawled_count == 2
        assert service.registry.get(job.id) is job
        assert renderers[0].entered == 1
        assert renderers[0].closed == 1

    def test_submit_and_wait(self, sink, dedup):
        service, renderers = make_service(sink, dedup)
        job = service.submit_domain(SEED, max_urls=10, max_levels=2)
        service.wait(job.id, timeout=10)
        assert job.status is JobStatus.COMPLETED
        assert len(sink.rows(Table.PAGES)) == 2
        service.shutdown()

    def test_submit_rejects_invalid_job(self, sink, dedup):
        service, renderers = make_service(sink, dedup)
        with pytest.raises(OrchestratorFault):
            service.submit_domain("ftp://x.test/", max_urls=10, max_levels=2)
        assert renderers == []

    def test_renderer_startup_failure_marks_job_failed(self, sink, dedup):
        def broken_factory():
            raise RuntimeError("chromium missing")

        service = CrawlService(broken_factory, sink, dedup, robots_factory=NoRobots)
        job = service.run_domain(SEED, max_urls=10, max_levels=2)
        assert job.status is JobStatus.FAILED
        assert job.error == "chromium missing"

    def test_orchestrator_fault_recorded(self, sink, dedup):
        class Exploding(FakeRenderer):
            def render(self, url):
                raise RuntimeError("tab crashed")

        service = CrawlService(lambda: Exploding({}), sink, dedup, robots_factory=NoRobots)
        job = service.run_domain(SEED, max_urls=10, max_levels=2)
        assert job.status is JobStatus.FAILED
        assert "tab crashed" in job.error

    def test_crawl_single(self, sink, dedup):
        service, renderers = make_service(sink, dedup)
        result = service.crawl_single(SEED)
        assert result.url == SEED
        assert renderers[0].calls == [SEED]
        assert renderers[0].closed == 1

    def test_crawl_single_error_propagates(self, sink, dedup):
        service, renderers = make_service(sink, dedup, failing={SEED})
        with pytest.raises(RenderError):
            service.crawl_single(SEED)
        assert renderers[0].closed == 1

    def test_dedup_shared_between_jobs(self, sink, dedup):
        service, renderers = make_service(sink, dedup)
        service.run_domain(SEED, max_urls=10, max_levels=2)
        second = service.run_domain(SEED, max_urls=10, max_levels=2)
        assert second.crawled_count == 0
        assert renderers[1].calls == []

    def test_shutdown_closes_storage(self, dedup):
        closed = []

        class TrackingSink:
            def insert(self, table, record):
                pass

            def close(self):
                closed.append("sink")

        service, _ = make_service(TrackingSink(), dedup)
        service.shutdown()
        assert closed == ["sink"]

    def test_queued_job_reports_running(self, sink, dedup):
        """With one worker, a job waiting behind another is already RUNNING."""
        release = threading.Event()

        class Blocking(FakeRenderer):
            def render(self, url):
                release.wait(10)
                return super().render(url)

        service = CrawlService(lambda: Blocking(PAGES), sink, dedup, robots_factory=NoRobots)
        first = service.submit_domain(SEED, max_urls=1, max_levels=0)
        second = service.submit_domain("http://y.test/", max_urls=1, max_levels=0)
        try:
            assert first.status is JobStatus.RUNNING
            assert second.status is JobStatus.RUNNING
            assert second.started_at is not None
        finally:
            release.set()
            service.wait(first.id, timeout=10)
            service.wait(second.id, timeout=10)
            service.shutdown()
        assert first.status is JobStatus.COMPLETED
        assert second.status is JobStatus.COMPLETED
        assert second.failed_count == 1

    def test_submit_after_shutdown(self, sink, dedup):
        service, renderers = make_service(sink, dedup)
        service.shutdown()
        with pytest.raises(OrchestratorFault, match="not accepting jobs"):
            service.submit_domain(SEED, max_urls=10, max_levels=2)
        job = service.registry.list_jobs()[0]
        assert job.status is JobStatus.FAILED
        assert renderers == []
