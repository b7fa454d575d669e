"""
Page Fact Extractors
Pure transforms from one rendered ``(html, url)`` pair to fact records.

The four extractors are independent: each parses the HTML on its own and none
depends on another's output. ``run_extractors`` runs all of them for the
orchestrator.
"""

import logging
from typing import Callable, List, NamedTuple

from bs4 import BeautifulSoup

from .models import IssueRecord, LinkRecord, PageFacts, PageRecord, ResourceRecord
from .utils import extract_domain, is_valid_url, resolve_link, strip_fragment

logger = logging.getLogger(__name__)

_BS_PARSER = "lxml"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", _BS_PARSER)


# ---------------------------------------------------------------------------
# Page metadata
# ---------------------------------------------------------------------------

def extract_page(html: str, url: str) -> PageRecord:
    """Title, meta description, canonical URL and hreflang alternates."""
    soup = _soup(html)

    title_tag = soup.find('title')
    meta_title = title_tag.get_text().strip() if title_tag else ""

    meta = soup.find('meta', attrs={'name': 'description'})
    meta_description = (meta.get('content') or "") if meta else ""

    canonical = soup.select_one('link[rel~="canonical"]')
    canonical_url = (canonical.get('href') or "") if canonical else ""

    hreflang_links = [
        link.get('href', '')
        for link in soup.select('link[rel~="alternate"][hreflang]')
    ]

    return PageRecord(
        url=url,
        meta_title=meta_title,
        meta_description=meta_description,
        canonical_url=canonical_url,
        hreflang_links=", ".join(hreflang_links),
    )


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

def extract_resources(html: str, url: str) -> List[ResourceRecord]:
    """One record per stylesheet, sourced script and sourced image."""
    soup = _soup(html)
    resources = []

    for link in soup.select('link[rel~="stylesheet"][href]'):
        resources.append(ResourceRecord(page_url=url, resource_url=link['href'], resource_type='css'))

    for script in soup.select('script[src]'):
        resources.append(ResourceRecord(page_url=url, resource_url=script['src'], resource_type='javascript'))

    for img in soup.select('img[src]'):
        resources.append(ResourceRecord(page_url=url, resource_url=img['src'], resource_type='image'))

    return resources


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

IssueRule = Callable[[BeautifulSoup, str], List[IssueRecord]]


def _missing_title(soup: BeautifulSoup, url: str) -> List[IssueRecord]:
    if soup.find('title') is None:
        return [IssueRecord(url, 'missing_title', 'Page is missing a title tag')]
    return []


def _missing_meta_description(soup: BeautifulSoup, url: str) -> List[IssueRecord]:
    if soup.find('meta', attrs={'name': 'description'}) is None:
        return [IssueRecord(url, 'missing_meta_description', 'Page is missing a meta description')]
    return []


def _images_without_src(soup: BeautifulSoup, url: str) -> List[IssueRecord]:
    return [
        IssueRecord(url, 'broken_image', 'Image with missing src attribute')
        for img in soup.find_all('img')
        if not img.get('src')
    ]


# New checks are appended here; each rule only sees the soup and the URL.
ISSUE_RULES: List[IssueRule] = [
    _missing_title,
    _missing_meta_description,
    _images_without_src,
]


def extract_issues(html: str, url: str) -> List[IssueRecord]:
    soup = _soup(html)
    issues = []
    for rule in ISSUE_RULES:
        issues.extend(rule(soup, url))
    return issues


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

class LinkExtraction(NamedTuple):
    records: List[LinkRecord]
    internal_urls: List[str]


def extract_links(html: str, url: str) -> LinkExtraction:
    """
    Resolve every anchor against the page URL and classify it.

    A link is internal when its host equals the host of *this page*, not the
    crawl's seed. Every anchor yields a record (duplicates and external links
    included, as are non-http schemes that carry a host); ``internal_urls``
    holds the distinct internal http(s) targets, without fragments, in
    first-seen order.
    """
    soup = _soup(html)
    page_host = extract_domain(url)
    records = []
    internal = {}

    for anchor in soup.find_all('a', href=True):
        target = resolve_link(anchor['href'], url)
        if target is None:
            continue

        is_internal = extract_domain(target) == page_host
        records.append(LinkRecord(
            source_url=url,
            target_url=target,
            link_text=anchor.get_text().strip(),
            is_internal=is_internal,
        ))
        if is_internal and is_valid_url(target):
            internal.setdefault(strip_fragment(target), None)

    return LinkExtraction(records=records, internal_urls=list(internal))


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def run_extractors(html: str, url: str) -> PageFacts:
    """Run all four extractors against the same rendered page."""
    links = extract_links(html, url)
    facts = PageFacts(
        page=extract_page(html, url),
        resources=extract_resources(html, url),
        issues=extract_issues(html, url),
        links=links.records,
        internal_urls=links.internal_urls,
    )
    logger.info(
        f"[EXTRACT] {url[:70]} — title='{facts.page.meta_title[:50]}', "
        f"resources={len(facts.resources)}, issues={len(facts.issues)}, "
        f"links={len(facts.links)} (internal={len(facts.internal_urls)})"
    )
    return facts
