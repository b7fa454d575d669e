"""
sitecrawl
Renders the pages of a site breadth-first, extracts page metadata, resources,
links and quality issues, and stores them in an analytical sink.

CLI Usage:
    python -m sitecrawl <command> [options]

    Commands:
        serve           Run the HTTP job control API
        single URL      Crawl one URL
        domain URL      Crawl a domain (--max-urls, --max-levels, --allow, --deny, --obey-robots)
        clear-dedup     Forget every crawled URL
"""

from .errors import (
    CrawlerError, RenderError, SinkError, DedupStoreError,
    OrchestratorFault, InvalidTransition, JobNotFound,
)
from .models import (
    CrawlJob, JobStatus, FrontierEntry, Table,
    PageRecord, ResourceRecord, IssueRecord, LinkRecord, PageFacts,
    CrawlResult, CrawlSummary,
)
from .extractors import extract_page, extract_resources, extract_issues, extract_links, run_extractors
from .dedup import DedupStore, MemoryDedupStore, RedisDedupStore
from .sink import Sink, MemorySink, SQLiteSink
from .scope_filter import UrlRestrictions
from .robots import RobotsHandler
from .orchestrator import CrawlOrchestrator
from .jobs import JobRegistry, CrawlService
from .run_config import CrawlerRunConfig

__all__ = [
    # Errors
    'CrawlerError',
    'RenderError',
    'SinkError',
    'DedupStoreError',
    'OrchestratorFault',
    'InvalidTransition',
    'JobNotFound',
    # Model
    'CrawlJob',
    'JobStatus',
    'FrontierEntry',
    'Table',
    'PageRecord',
    'ResourceRecord',
    'IssueRecord',
    'LinkRecord',
    'PageFacts',
    'CrawlResult',
    'CrawlSummary',
    # Extraction
    'extract_page',
    'extract_resources',
    'extract_issues',
    'extract_links',
    'run_extractors',
    # Collaborators
    'DedupStore',
    'MemoryDedupStore',
    'RedisDedupStore',
    'Sink',
    'MemorySink',
    'SQLiteSink',
    'UrlRestrictions',
    'RobotsHandler',
    # Core
    'CrawlOrchestrator',
    'JobRegistry',
    'CrawlService',
    'CrawlerRunConfig',
]

__version__ = '1.0.0'
