"""
Dedup Store
Tracks which URLs have already been crawled, across jobs and for the whole
process lifetime (or longer, with Redis).

The orchestrator uses two separate calls, ``exists`` then ``mark``. That is
fine for one sequential crawl per URL set; concurrent crawlers over the same
site would need an atomic claim instead.
"""

import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Set

from redis import Redis
from redis.exceptions import RedisError

from .errors import DedupStoreError

logger = logging.getLogger(__name__)


class DedupStore(ABC):
    """Key-existence contract for crawled URLs."""

    @abstractmethod
    def exists(self, url: str) -> bool:
        """True if *url* has been marked as crawled. Raises DedupStoreError."""

    @abstractmethod
    def mark(self, url: str) -> None:
        """Record *url* as crawled. Raises DedupStoreError."""

    @abstractmethod
    def clear(self) -> None:
        """Forget every crawled URL."""

    def close(self) -> None:
        pass


class MemoryDedupStore(DedupStore):
    """In-process store; shared safely between job threads."""

    def __init__(self):
        self._urls: Set[str] = set()
        self._lock = Lock()

    def exists(self, url: str) -> bool:
        with self._lock:
            return url in self._urls

    def mark(self, url: str) -> None:
        with self._lock:
            self._urls.add(url)

    def clear(self) -> None:
        with self._lock:
            self._urls.clear()
        logger.info("[DEDUP] Cleared all crawled URLs")

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)


class RedisDedupStore(DedupStore):
    """
    Redis-backed store. Each crawled URL is a key ``<prefix><url>`` holding
    ``"true"``.
    """

    def __init__(self, client: Redis, key_prefix: str = "crawled:"):
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "crawled:") -> "RedisDedupStore":
        logger.info(f"[DEDUP] Connecting to Redis at {redis_url}")
        return cls(Redis.from_url(redis_url, decode_responses=True), key_prefix=key_prefix)

    def _key(self, url: str) -> str:
        return f"{self.key_prefix}{url}"

    def exists(self, url: str) -> bool:
        try:
            return self.client.get(self._key(url)) is not None
        except RedisError as e:
            raise DedupStoreError(f"Error checking if URL has been crawled: {e}") from e

    def mark(self, url: str) -> None:
        try:
            self.client.set(self._key(url), "true")
        except RedisError as e:
            raise DedupStoreError(f"Error marking URL as crawled: {e}") from e

    def clear(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=f"{self.key_prefix}*"))
            if keys:
                self.client.delete(*keys)
        except RedisError as e:
            raise DedupStoreError(f"Error clearing crawled URLs: {e}") from e
        logger.info(f"[DEDUP] Cleared {len(keys)} crawled URLs from Redis")

    def close(self) -> None:
        self.client.close()
