#!/usr/bin/env python3
"""
Command-line entry point
========================

    python -m sitecrawl serve                       # HTTP job control API
    python -m sitecrawl single https://example.com/
    python -m sitecrawl domain https://example.com/ --max-urls 50 --max-levels 2
    python -m sitecrawl clear-dedup

All configuration flows through ``CrawlerRunConfig``: defaults, then
``CRAWLER_*`` environment variables (``.env`` is loaded first), then flags.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from .api import create_app
from .errors import CrawlerError
from .run_config import CrawlerRunConfig

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )


def print_summary(job) -> None:
    """Print domain crawl summary."""
    print("\n" + "=" * 65)
    print("CRAWL COMPLETE" if job.error is None else "CRAWL FAILED")
    print("=" * 65)
    print(f"  Crawl id:            {job.id}")
    print(f"  Domain:              {job.domain}")
    print(f"  Status:              {job.status.value}")
    print(f"  URLs crawled:        {job.crawled_count} / {job.max_urls}")
    print(f"  URLs failed:         {job.failed_count}")
    print(f"  URLs skipped:        {job.skipped_count}")
    if job.started_at and job.finished_at:
        elapsed = (job.finished_at - job.started_at).total_seconds()
        print(f"  Total time:          {elapsed:.1f}s")
    if job.error:
        print(f"  Error:               {job.error}")
    print("=" * 65)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sitecrawl',
        description='Site crawler - renders pages, extracts SEO facts, stores them for analysis',
    )
    parser.add_argument('--log-level', dest='log_level', help='Logging level (default: INFO)')
    parser.add_argument('--sink', choices=['memory', 'sqlite'], help='Where extracted records go')
    parser.add_argument('--sqlite-path', dest='sqlite_path', help='SQLite database file')
    parser.add_argument('--dedup', choices=['memory', 'redis'], help='Dedup store backend')
    parser.add_argument('--redis-url', dest='redis_url', help='Redis URL for the dedup store')
    parser.add_argument('--render-timeout-ms', dest='render_timeout_ms', type=int,
                        help='Per-page render timeout in milliseconds')
    parser.add_argument('--headed', dest='headless', action='store_false', default=None,
                        help='Show the browser window')

    sub = parser.add_subparsers(dest='command', required=True)

    serve = sub.add_parser('serve', help='Run the HTTP job control API')
    serve.add_argument('--host', help='Bind address (default: 0.0.0.0)')
    serve.add_argument('--port', type=int, help='Port (default: 4000)')
    serve.add_argument('--max-concurrent-jobs', dest='max_concurrent_jobs', type=int,
                       help='Domain crawls allowed to run at once (default: 1)')

    single = sub.add_parser('single', help='Crawl one URL')
    single.add_argument('url')

    domain = sub.add_parser('domain', help='Crawl a domain breadth-first')
    domain.add_argument('url')
    domain.add_argument('--max-urls', dest='max_urls', type=int, help='URL budget (default: 100)')
    domain.add_argument('--max-levels', dest='max_levels', type=int, help='Depth budget (default: 3)')
    domain.add_argument('--max-frontier', dest='max_frontier', type=int,
                        help='Cap on pending frontier entries (default: unbounded)')
    domain.add_argument('--allow', action='append', default=[], metavar='PREFIX',
                        help='Only enqueue URLs under this path prefix (repeatable)')
    domain.add_argument('--deny', action='append', default=[], metavar='REGEX',
                        help='Never enqueue URLs matching this regex (repeatable)')
    domain.add_argument('--obey-robots', dest='obey_robots_txt', action='store_true',
                        help='Skip URLs disallowed by robots.txt')

    sub.add_parser('clear-dedup', help='Forget every URL in the dedup store')
    return parser


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        cfg = CrawlerRunConfig.from_cli_args(args)
    except CrawlerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    _configure_logging(cfg.log_level)

    if args.command == 'clear-dedup':
        store = cfg.build_dedup_store()
        try:
            store.clear()
        finally:
            store.close()
        print("Dedup store cleared.")
        return 0

    cfg.log_summary()
    service = cfg.build_service()
    try:
        if args.command == 'serve':
            app = create_app(service)
            logger.info(f"Crawling service running on {cfg.host}:{cfg.port}")
            app.run(host=cfg.host, port=cfg.port, threaded=True)
            return 0

        if args.command == 'single':
            result = service.crawl_single(args.url)
            print(f"\n{result.message}: {result.url}")
            return 0

        restrictions = None
        if args.allow or args.deny:
            restrictions = {"allow": args.allow, "deny": args.deny}
        job = service.run_domain(
            args.url,
            max_urls=cfg.max_urls,
            max_levels=cfg.max_levels,
            url_restrictions=restrictions,
            obey_robots_txt=args.obey_robots_txt,
        )
        print_summary(job)
        return 0 if job.error is None else 1
    except CrawlerError as e:
        logger.error(f"Crawl failed: {e}")
        return 1
    finally:
        service.shutdown()


if __name__ == '__main__':
    sys.exit(main())
