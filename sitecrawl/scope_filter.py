"""
Scope Filter
=============
URL restrictions for domain crawls.

A job may carry an allow-list of path prefixes and a list of deny regexes.
A discovered URL that does not pass them is never enqueued.

All path comparisons go through ``_canonicalize()`` so that equivalent
spellings of the same path compare equal:

- Fragment removal
- Percent-encoding normalisation (decode unreserved, no double-decode)
- Dot-segment resolution (``/a/../b`` → ``/b``)
- Trailing-slash normalisation
- Host case normalisation + default-port stripping
- Path case is **preserved** (servers are case-sensitive)

Public API
----------
- ``path_within_prefix(path, prefix)`` : strict prefix-boundary check
- ``UrlRestrictions``                   : allow-prefixes + deny-patterns filter
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import List, Mapping, NamedTuple, Optional
from urllib.parse import urlparse, urlunparse

from .errors import OrchestratorFault

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------
# Canonical URL representation
# -----------------------------------------------------------------------

class _CanonURL(NamedTuple):
    """Immutable, fully-normalised URL components for comparison."""
    scheme: str
    host: str        # lower-cased, default-port stripped
    path: str        # dot-segments resolved, trailing-slash stripped, case preserved
    query: str
    raw: str         # reconstructed full URL string


# -----------------------------------------------------------------------
# RFC 3986 §2.3: unreserved characters that should be decoded
# -----------------------------------------------------------------------
_UNRESERVED_RE = re.compile(r"%([0-9A-Fa-f]{2})")

_UNRESERVED_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
    "0123456789-._~"
)


def _decode_unreserved(path: str) -> str:
    """
    Decode percent-encoded *unreserved* characters only (RFC 3986 §2.3).

    Encoded reserved characters (``/``, ``?``, ``&`` ...) stay encoded, with
    their hex digits upper-cased.
    """

    def _replace(m: re.Match) -> str:
        char = chr(int(m.group(1), 16))
        if char in _UNRESERVED_CHARS:
            return char
        return f"%{m.group(1).upper()}"

    return _UNRESERVED_RE.sub(_replace, path)


def _strip_default_port(netloc: str, scheme: str) -> str:
    """Remove ``:80`` for http and ``:443`` for https from *netloc*."""
    if ":" not in netloc:
        return netloc
    host, _, port = netloc.rpartition(":")
    if scheme == "http" and port == "80":
        return host
    if scheme == "https" and port == "443":
        return host
    return netloc


def _canonical_path(raw_path: str) -> str:
    raw_path = _decode_unreserved(raw_path or "/")
    raw_path = posixpath.normpath(raw_path)
    # normpath turns "" into "." and may keep a leading "//"
    raw_path = "/" + raw_path.lstrip("/") if raw_path != "." else "/"
    if raw_path != "/" and raw_path.endswith("/"):
        raw_path = raw_path.rstrip("/")
    return raw_path


def _canonicalize(url: str) -> Optional[_CanonURL]:
    """Produce a ``_CanonURL`` from a raw http(s) URL, or None if invalid."""
    if not url:
        return None
    url = url.strip()
    try:
        p = urlparse(url)
    except ValueError:
        return None

    if p.scheme not in ("http", "https") or not p.netloc:
        return None

    scheme = p.scheme.lower()
    host = _strip_default_port(p.netloc.lower(), scheme)
    path = _canonical_path(p.path)
    raw = urlunparse((scheme, host, path, "", p.query, ""))
    return _CanonURL(scheme=scheme, host=host, path=path, query=p.query, raw=raw)


def path_within_prefix(path: str, prefix: str) -> bool:
    """
    True if *path* equals *prefix* or lies beneath it.

    ``/docs`` admits ``/docs`` and ``/docs/page`` but not ``/docs-archive``.
    """
    prefix = _canonical_path(prefix)
    if prefix == "/":
        return True
    path = _canonical_path(path)
    return path == prefix or path.startswith(prefix + "/")


# -----------------------------------------------------------------------
# UrlRestrictions: per-job enqueue filter
# -----------------------------------------------------------------------

@dataclass
class UrlRestrictions:
    """
    Enqueue filter attached to a crawl job.

    Parameters
    ----------
    allow_prefixes : list[str]
        Path prefixes a URL must fall under. Empty means every path is allowed.
        Full URLs are accepted too; only their path is used.
    deny_patterns : list[str]
        Regex patterns searched (case-insensitively) in the canonical URL;
        any match rejects it. Invalid patterns are logged and dropped.
    """

    allow_prefixes: List[str] = field(default_factory=list)
    deny_patterns: List[str] = field(default_factory=list)

    _compiled_deny: List[re.Pattern] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self):
        self.allow_prefixes = [self._prefix_path(p) for p in self.allow_prefixes if p]
        self._compiled_deny = []
        for pat in self.deny_patterns:
            try:
                self._compiled_deny.append(re.compile(pat, re.IGNORECASE))
            except re.error as exc:
                logger.warning(f"[SCOPE] Invalid deny-pattern '{pat}': {exc}")

    @staticmethod
    def _prefix_path(prefix: str) -> str:
        prefix = prefix.strip()
        if prefix.lower().startswith(("http://", "https://")):
            prefix = urlparse(prefix).path
        return _canonical_path(prefix)

    @classmethod
    def from_value(cls, value) -> Optional["UrlRestrictions"]:
        """
        Build restrictions from an API/CLI value.

        Accepts None, a single prefix string, a list of prefix strings, or a
        mapping with ``allow`` and/or ``deny`` lists.
        """
        if value is None or value == "" or value == []:
            return None
        if isinstance(value, UrlRestrictions):
            return value
        if isinstance(value, str):
            return cls(allow_prefixes=[value])
        if isinstance(value, Mapping):
            unknown = set(value) - {"allow", "deny"}
            if unknown:
                raise OrchestratorFault(f"Unknown url_restrictions keys: {sorted(unknown)}")
            return cls(
                allow_prefixes=_string_list(value.get("allow"), "allow"),
                deny_patterns=_string_list(value.get("deny"), "deny"),
            )
        if isinstance(value, (list, tuple)):
            return cls(allow_prefixes=_string_list(value, "url_restrictions"))
        raise OrchestratorFault(f"Unsupported url_restrictions value: {value!r}")

    @property
    def is_empty(self) -> bool:
        return not self.allow_prefixes and not self._compiled_deny

    def accept(self, url: str) -> bool:
        """Return True if *url* may enter the frontier."""
        canon = _canonicalize(url)
        if canon is None:
            return False

        if self.allow_prefixes and not any(
            path_within_prefix(canon.path, prefix) for prefix in self.allow_prefixes
        ):
            return False

        for rx in self._compiled_deny:
            if rx.search(canon.raw):
                return False

        return True

    def describe(self) -> str:
        parts = []
        if self.allow_prefixes:
            parts.append(f"allow={self.allow_prefixes}")
        if self._compiled_deny:
            parts.append(f"deny={len(self._compiled_deny)} pattern(s)")
        return ", ".join(parts) or "unrestricted"


def _string_list(value, name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    raise OrchestratorFault(f"'{name}' must be a string or a list of strings")
