"""Link and image discovery from HTML pages."""

from __future__ import annotations

from dataclasses import dataclass, field
import re

from bs4 import BeautifulSoup

from .errors import ParseError
from .url import origin_url, resolve_url, strip_fragment


DATA_URI_PREFIX = "data:"
_SRCSET_URL = re.compile(r"[\s,]*(\S+)")


@dataclass(slots=True)
class ExtractedResources:
    """Absolute link and image URLs found on one page."""

    links: set[str] = field(default_factory=set)
    images: set[str] = field(default_factory=set)


def _parse(html: str | bytes) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as exc:
        raise ParseError(f"Could not parse HTML: {exc.__class__.__name__}: {exc}") from exc


def srcset_candidates(srcset: str) -> list[str]:
    """Return the URL token of every candidate in a `srcset` value.

    A URL runs to the next whitespace, so commas inside it (as in a data URI)
    do not end the candidate; the descriptors after it run to the next comma.
    """

    urls: list[str] = []
    pos = 0
    while True:
        match = _SRCSET_URL.match(srcset, pos)
        if match is None:
            break
        url, pos = match.group(1), match.end()
        if url.endswith(","):
            url = url.rstrip(",")
        else:
            comma = srcset.find(",", pos)
            pos = len(srcset) if comma < 0 else comma + 1
        if url:
            urls.append(url)
    return urls


def extract(html: str | bytes, page_url: str) -> ExtractedResources:
    """Collect same-page links and image URLs, resolved to absolute form.

    Links resolve against the page URL with their fragment removed. Images
    (every `srcset` candidate plus `src`) resolve against the page origin;
    inline data URIs are skipped.
    """

    soup = _parse(html)
    base_origin = origin_url(page_url)
    found = ExtractedResources()

    for element in soup.find_all("img"):
        srcset = element.get("srcset")
        if srcset:
            for candidate in srcset_candidates(srcset):
                if candidate.lower().startswith(DATA_URI_PREFIX):
                    continue
                found.images.add(resolve_url(base_origin, candidate))

        src = (element.get("src") or "").strip()
        if src and not src.lower().startswith(DATA_URI_PREFIX):
            found.images.add(resolve_url(base_origin, src))

    for element in soup.find_all("a"):
        href = strip_fragment(element.get("href") or "").strip()
        if not href:
            continue
        found.links.add(resolve_url(page_url, href))

    return found


__all__ = [
    "ExtractedResources",
    "extract",
    "srcset_candidates",
]
