"""
Utility Functions
URL resolution helpers shared by the extractors and the orchestrator.
"""

import logging
from typing import Optional
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

logger = logging.getLogger(__name__)

_SKIP_SCHEMES = ('javascript:', 'mailto:', 'tel:', 'data:')


def extract_domain(url: str) -> str:
    """Extract the hostname from a URL (lower-cased, without port)."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def is_valid_url(url: str) -> bool:
    """Check if URL is an absolute http(s) URL."""
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
        return all([parsed.scheme in ('http', 'https'), parsed.netloc])
    except ValueError:
        return False


def resolve_link(href: str, base_url: str) -> Optional[str]:
    """
    Resolve an anchor reference against the page it was found on.

    Returns the absolute URL with scheme and host lower-cased and an empty
    path spelled ``/``, or None when the result cannot be parsed or has no
    host (``mailto:``, ``javascript:``, malformed references). Other schemes
    with a host, such as ``ftp:``, are kept.
    """
    if href is None:
        return None
    href = href.strip()
    if href.lower().startswith(_SKIP_SCHEMES):
        return None
    try:
        parsed = urlparse(urljoin(base_url, href))
        # Accessing .port validates the netloc
        parsed.port
    except ValueError:
        logger.debug(f"Unresolvable link {href!r} on {base_url}")
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or '/',
        parsed.params,
        parsed.query,
        parsed.fragment,
    ))


def normalize_url(url: str) -> Optional[str]:
    """Absolute, fragment-free form of *url* used for frontier and dedup keys."""
    resolved = resolve_link(url, url)
    if resolved is None or not is_valid_url(resolved):
        return None
    return strip_fragment(resolved)


def strip_fragment(url: str) -> str:
    """Drop the ``#fragment`` part of a URL."""
    return urldefrag(url)[0]

