"""
Unified Run Configuration
=========================
Single source of truth for crawler defaults, collaborator selection and
server settings.

Values come from ``_DEFAULTS``, then ``CRAWLER_*`` environment variables
(``.env`` is loaded by the CLI), then CLI flags. The factory methods build the
renderer, sink, dedup store and crawl service from the final values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from .dedup import DedupStore, MemoryDedupStore, RedisDedupStore
from .errors import OrchestratorFault
from .sink import MemorySink, Sink, SQLiteSink

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults, the only place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "max_urls": 100,
    "max_levels": 3,
    "render_timeout_ms": 30000,
    "headless": True,
    "wait_until": "networkidle",
    "user_agent": None,               # Chromium's own UA
    "sink": "memory",                 # "memory" | "sqlite"
    "sqlite_path": "crawl.db",
    "dedup": "memory",                # "memory" | "redis"
    "redis_url": "redis://localhost:6379/0",
    "max_frontier": None,             # None = unbounded
    "max_concurrent_jobs": 1,
    "host": "0.0.0.0",
    "port": 4000,
    "log_level": "INFO",
}

_SINKS = ("memory", "sqlite")
_DEDUPS = ("memory", "redis")
_WAIT_STATES = ("load", "domcontentloaded", "networkidle", "commit")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CrawlerRunConfig:
    """
    Unified configuration consumed by the CLI and the HTTP server.

    Populate via:
      - ``CrawlerRunConfig()``                 → all defaults
      - ``CrawlerRunConfig.from_env()``        → defaults + CRAWLER_* variables
      - ``CrawlerRunConfig.from_cli_args(ns)`` → env + argparse overrides
    """

    # ---- Crawl limits ----
    max_urls: int = _DEFAULTS["max_urls"]
    max_levels: int = _DEFAULTS["max_levels"]
    max_frontier: Optional[int] = _DEFAULTS["max_frontier"]

    # ---- Renderer ----
    render_timeout_ms: int = _DEFAULTS["render_timeout_ms"]
    headless: bool = _DEFAULTS["headless"]
    wait_until: str = _DEFAULTS["wait_until"]
    user_agent: Optional[str] = _DEFAULTS["user_agent"]

    # ---- Storage ----
    sink: str = _DEFAULTS["sink"]
    sqlite_path: str = _DEFAULTS["sqlite_path"]
    dedup: str = _DEFAULTS["dedup"]
    redis_url: str = _DEFAULTS["redis_url"]

    # ---- Server ----
    max_concurrent_jobs: int = _DEFAULTS["max_concurrent_jobs"]
    host: str = _DEFAULTS["host"]
    port: int = _DEFAULTS["port"]
    log_level: str = _DEFAULTS["log_level"]

    def __post_init__(self):
        if self.sink not in _SINKS:
            raise OrchestratorFault(f"Unknown sink '{self.sink}' (expected one of {_SINKS})")
        if self.dedup not in _DEDUPS:
            raise OrchestratorFault(f"Unknown dedup store '{self.dedup}' (expected one of {_DEDUPS})")
        if self.wait_until not in _WAIT_STATES:
            raise OrchestratorFault(f"Unknown wait_until '{self.wait_until}'")
        if self.max_frontier is not None and self.max_frontier < 1:
            raise OrchestratorFault("max_frontier must be positive")
        if self.max_concurrent_jobs < 1:
            raise OrchestratorFault("max_concurrent_jobs must be positive")

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "CrawlerRunConfig":
        """Build config from ``CRAWLER_<FIELD>`` variables (e.g. CRAWLER_MAX_URLS)."""
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(f"CRAWLER_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            default = _DEFAULTS[f.name]
            try:
                if isinstance(default, bool):
                    values[f.name] = _parse_bool(raw)
                elif isinstance(default, int) or f.name == "max_frontier":
                    values[f.name] = int(raw)
                else:
                    values[f.name] = raw
            except ValueError as e:
                raise OrchestratorFault(f"Invalid value for CRAWLER_{f.name.upper()}: {raw!r}") from e
        # REDIS_URL is honoured as a fallback, as most deployments already set it
        if "redis_url" not in values and environ.get("REDIS_URL"):
            values["redis_url"] = environ["REDIS_URL"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @classmethod
    def from_cli_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "CrawlerRunConfig":
        """Build config from an argparse Namespace on top of the environment."""
        overrides = {
            f.name: getattr(args, f.name)
            for f in fields(cls)
            if getattr(args, f.name, None) is not None
        }
        return cls.from_env(environ, **overrides)

    # -----------------------------------------------------------------------
    # Collaborators
    # -----------------------------------------------------------------------
    def build_sink(self) -> Sink:
        if self.sink == "sqlite":
            return SQLiteSink(self.sqlite_path)
        return MemorySink()

    def build_dedup_store(self) -> DedupStore:
        if self.dedup == "redis":
            return RedisDedupStore.from_url(self.redis_url)
        return MemoryDedupStore()

    def renderer_factory(self):
        """Return a zero-argument callable creating a fresh renderer."""
        from .renderer import PlaywrightRenderer

        def factory():
            return PlaywrightRenderer(
                headless=self.headless,
                timeout_ms=self.render_timeout_ms,
                user_agent=self.user_agent,
                wait_until=self.wait_until,
            )
        return factory

    def build_service(self):
        from .jobs import CrawlService
        return CrawlService(
            renderer_factory=self.renderer_factory(),
            sink=self.build_sink(),
            dedup=self.build_dedup_store(),
            max_concurrent_jobs=self.max_concurrent_jobs,
            max_frontier=self.max_frontier,
        )

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("CRAWLER RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Max URLs:         {self.max_urls}")
        logger.info(f"  Max Levels:       {self.max_levels}")
        logger.info(f"  Render Timeout:   {self.render_timeout_ms}ms (wait_until={self.wait_until})")
        logger.info(f"  Headless:         {self.headless}")
        if self.sink == "sqlite":
            logger.info(f"  Sink:             sqlite ({self.sqlite_path})")
        else:
            logger.info(f"  Sink:             {self.sink}")
        if self.dedup == "redis":
            logger.info(f"  Dedup Store:      redis ({self.redis_url})")
        else:
            logger.info(f"  Dedup Store:      {self.dedup}")
        if self.max_frontier:
            logger.info(f"  Frontier Cap:     {self.max_frontier}")
        logger.info(f"  Concurrent Jobs:  {self.max_concurrent_jobs}")
        logger.info("=" * 60)
