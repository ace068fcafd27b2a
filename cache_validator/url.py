"""URL resolution and origin helpers."""

from __future__ import annotations

import logging
from typing import Sequence
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit


LOGGER = logging.getLogger(__name__)

DEFAULT_ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    try:
        parsed = urlsplit(url)
        has_host = bool(parsed.hostname) and (parsed.port is None or parsed.port > 0)
    except ValueError:
        return False
    if not parsed.scheme or not has_host:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


def _canonical_netloc(parsed: SplitResult) -> str:
    host = (parsed.hostname or "").lower()
    if not host:
        return parsed.netloc

    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if "@" in parsed.netloc:
        userinfo = parsed.netloc.rsplit("@", 1)[0] + "@"

    port = parsed.port
    if port is None or DEFAULT_PORTS.get(parsed.scheme.lower()) == port:
        return f"{userinfo}{host}"
    return f"{userinfo}{host}:{port}"


def canonicalize(url: str) -> str:
    """Canonicalize an absolute URL the way a browser URL parser prints it.

    Lowercases scheme and host, drops default ports, strips the fragment and
    gives bare origins a `/` path. Path and query case is preserved.
    """

    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        return url.split("#", 1)[0]

    scheme = parsed.scheme.lower()
    return urlunsplit(
        (
            scheme,
            _canonical_netloc(parsed),
            parsed.path or "/",
            parsed.query,
            "",
        )
    )


def resolve_url(base_url: str, candidate: str) -> str:
    """Resolve `candidate` against `base_url`; fail soft to the input.

    Absolute candidates are used as they are (modulo canonicalization);
    relative ones are joined onto the base.
    """

    raw = candidate.strip()
    try:
        if is_http_url(raw):
            return canonicalize(raw)
        parsed = urlsplit(raw)
        if parsed.scheme and parsed.scheme.lower() not in DEFAULT_ALLOWED_SCHEMES:
            # mailto:, tel:, javascript: and friends stay as they are.
            return raw
        return canonicalize(urljoin(base_url, raw))
    except ValueError as exc:
        LOGGER.debug("Could not resolve %r against %s: %s", candidate, base_url, exc)
        return candidate


def strip_fragment(href: str) -> str:
    return href.split("#", 1)[0]


def origin_of(url: str) -> tuple[str, str, int | None] | None:
    """Return the (scheme, host, effective port) triple, or None if not http(s)."""

    try:
        parsed = urlsplit(url)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    if scheme not in DEFAULT_ALLOWED_SCHEMES or not host:
        return None
    return scheme, host, port if port is not None else DEFAULT_PORTS.get(scheme)


def origin_url(url: str) -> str:
    """Return `scheme://host[:port]` for URL, used as the image resolution base."""

    parsed = urlsplit(url)
    return urlunsplit((parsed.scheme.lower(), _canonical_netloc(parsed), "/", "", ""))


def same_origin(url: str, other: str) -> bool:
    """Single origin-equality check: scheme + host + effective port."""

    left = origin_of(url)
    return left is not None and left == origin_of(other)


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "canonicalize",
    "is_http_url",
    "origin_of",
    "origin_url",
    "resolve_url",
    "same_origin",
    "strip_fragment",
]
