"""Shared HTTP utilities."""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import quote, urlsplit, urlunsplit

_BASE_URL_ALLOWED_SCHEMES = frozenset({"http", "https"})

# RFC 9110 path segment characters that do not need escaping.
_PCHAR_SAFE = "!$&'()*+,;=:@-._~"

# RFC 9110 token: header field names.
_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Field values: visible ASCII, spaces and tabs; no CR, LF or NUL.
_HEADER_VALUE_RE = re.compile(r"^[\t\x20-\x7e]*$")

HOP_BY_HOP_HEADERS = frozenset(
    {
        "host",
        "content-length",
        "transfer-encoding",
        "connection",
        "keep-alive",
    }
)


def normalize_base_url(value: str) -> str:
    """Validate an upstream base URL and strip a trailing slash."""
    candidate = value.strip()
    if not candidate:
        raise ValueError("base URL must not be empty")

    parsed = urlsplit(candidate)
    if parsed.scheme.lower() not in _BASE_URL_ALLOWED_SCHEMES:
        raise ValueError(f"base URL must use http or https: {value}")
    if not parsed.netloc:
        raise ValueError(f"base URL must include host: {value}")
    if parsed.fragment:
        raise ValueError(f"base URL must not include a fragment: {value}")

    path = parsed.path.rstrip("/")
    return urlunsplit((parsed.scheme.lower(), parsed.netloc, path, parsed.query, ""))


def validate_http_url(value: str) -> str:
    """Check that ``value`` is an absolute http(s) URL and return it stripped."""
    candidate = value.strip()
    parsed = urlsplit(candidate)
    if parsed.scheme.lower() not in _BASE_URL_ALLOWED_SCHEMES or not parsed.netloc:
        raise ValueError(f"not an absolute http(s) URL: {value}")
    return candidate


def construct_url(base: str, segments: Iterable[str]) -> str:
    """Append path segments to ``base``.

    Each segment is percent-encoded on its own, so a ``/`` inside a segment
    cannot introduce extra path levels. Any path already on ``base`` is kept.
    """
    parsed = urlsplit(base)
    path = parsed.path.rstrip("/")
    for segment in segments:
        path += "/" + quote(segment, safe=_PCHAR_SAFE)
    return urlunsplit((parsed.scheme, parsed.netloc, path, parsed.query, parsed.fragment))


def merge_query(url: str, raw_query: str) -> str:
    """Append a raw query string after any query already on ``url``."""
    if not raw_query:
        return url
    parsed = urlsplit(url)
    query = f"{parsed.query}&{raw_query}" if parsed.query else raw_query
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, query, parsed.fragment))


def is_valid_header_name(name: str) -> bool:
    return bool(_HEADER_NAME_RE.fullmatch(name))


def is_valid_header_value(value: str) -> bool:
    return bool(_HEADER_VALUE_RE.fullmatch(value))
