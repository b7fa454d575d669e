"""
Robots.txt Handler
Responsible for fetching, parsing, and checking robots.txt compliance.
"""

import logging
from typing import Dict, Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests

logger = logging.getLogger(__name__)


class RobotsHandler:
    """
    Handles robots.txt parsing and compliance checking.
    Caches robots.txt files per origin to avoid repeated fetches.

    A missing robots.txt, an unexpected status, or a network failure all mean
    "everything is allowed".
    """

    DEFAULT_USER_AGENT = "sitecrawl/1.0"

    def __init__(self, user_agent: str = None, timeout: int = 10):
        self.user_agent = user_agent or self.DEFAULT_USER_AGENT
        self.timeout = timeout
        self._robots_cache: Dict[str, Optional[RobotFileParser]] = {}

    def _get_origin(self, url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    def _fetch_robots_txt(self, url: str) -> Optional[RobotFileParser]:
        origin = self._get_origin(url)

        if origin in self._robots_cache:
            return self._robots_cache[origin]

        robots_url = f"{origin}/robots.txt"
        parser = None
        try:
            logger.info(f"[ROBOTS] Fetching {robots_url}")
            response = requests.get(
                robots_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                allow_redirects=True
            )

            if response.status_code == 200:
                parser = RobotFileParser()
                parser.set_url(robots_url)
                parser.parse(response.text.splitlines())
                logger.info(f"[ROBOTS] Parsed robots.txt for {origin}")
            elif response.status_code in (404, 410):
                logger.info(f"[ROBOTS] No robots.txt for {origin} (status: {response.status_code})")
            else:
                logger.warning(
                    f"[ROBOTS] Unexpected status {response.status_code} for {robots_url} — allowing all"
                )
        except requests.RequestException as e:
            logger.warning(f"[ROBOTS] Failed to fetch robots.txt for {origin}: {e}")

        self._robots_cache[origin] = parser
        return parser

    def can_fetch(self, url: str) -> bool:
        """Check if the given URL may be crawled according to robots.txt."""
        parser = self._fetch_robots_txt(url)
        if parser is None:
            return True

        allowed = parser.can_fetch(self.user_agent, url)
        if not allowed:
            logger.debug(f"[ROBOTS] Blocked: {url}")
        return allowed

    def clear_cache(self) -> None:
        """Clear the robots.txt cache."""
        self._robots_cache.clear()
        logger.info("[ROBOTS] Cache cleared")
