"""
Shared fakes for crawler tests: an in-memory site renderer, and sink/dedup
stores that fail on demand. No browser, network or Redis is touched.
"""

import pytest

from sitecrawl.dedup import MemoryDedupStore
from sitecrawl.errors import DedupStoreError, RenderError, SinkError
from sitecrawl.sink import MemorySink


def page(title="Page", links=(), extra=""):
    """Build a small HTML document with a title, description and anchors."""
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        f"<html><head><title>{title}</title>"
        f'<meta name="description" content="{title} description"></head>'
        f"<body>{anchors}{extra}</body></html>"
    )


class FakeRenderer:
    """Serves HTML from a dict; URLs listed in ``failing`` raise RenderError."""

    def __init__(self, pages, failing=()):
        self.pages = dict(pages)
        self.failing = set(failing)
        self.calls = []
        self.entered = 0
        self.closed = 0

    def render(self, url):
        self.calls.append(url)
        if url in self.failing:
            raise RenderError(url, "HTTP status 500")
        if url not in self.pages:
            raise RenderError(url, "HTTP status 404")
        return self.pages[url]

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.closed += 1


class FailingSink(MemorySink):
    """Rejects every record whose table is in ``fail_tables``."""

    def __init__(self, fail_tables=()):
        super().__init__()
        self.fail_tables = set(fail_tables)

    def insert(self, table, record):
        if table in self.fail_tables:
            raise SinkError(table.value, "quota exceeded")
        super().insert(table, record)


class BrokenDedupStore(MemoryDedupStore):
    """exists() and/or mark() raise DedupStoreError."""

    def __init__(self, fail_exists=True, fail_mark=True):
        super().__init__()
        self.fail_exists = fail_exists
        self.fail_mark = fail_mark

    def exists(self, url):
        if self.fail_exists:
            raise DedupStoreError("connection refused")
        return super().exists(url)

    def mark(self, url):
        if self.fail_mark:
            raise DedupStoreError("connection refused")
        super().mark(url)


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def dedup():
    return MemoryDedupStore()
