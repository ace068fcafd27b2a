"""Default tunables and provider table data for the validator."""

from __future__ import annotations


DEFAULT_CRAWL_CONCURRENCY = 16
DEFAULT_IMAGE_CONCURRENCY = 50

DEFAULT_FANOUT_THRESHOLD = 800
DEFAULT_FANOUT_CHUNK_SIZE = 500
DEFAULT_FANOUT_ENABLED = True

DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_BACKOFF_INITIAL_SECONDS = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_TIMEOUT_SECONDS = 15.0

DEFAULT_USER_AGENT = "cache-validator/1.0"
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.8",
}

DEFAULT_IMAGE_FORMATS = ("avif", "webp", "png", "jpeg")

# Ordered by lookup priority.
DEFAULT_PROVIDERS: list[dict[str, object]] = [
    {
        "name": "Vercel",
        "cache_header": "x-vercel-cache",
        "cached": ["HIT"],
        "uncached": ["MISS", "BYPASS"],
        "other": ["STALE", "PRERENDER", "REVALIDATED"],
    },
    {
        "name": "Cloudflare",
        "cache_header": "cf-cache-status",
        "cached": ["HIT"],
        "uncached": ["MISS", "EXPIRED", "BYPASS", "DYNAMIC"],
        "other": ["STALE", "UPDATING", "REVALIDATED"],
    },
    {
        "name": "Netlify",
        "cache_header": "x-nf-cache-status",
        "cached": ["HIT"],
        "uncached": ["MISS"],
        "other": ["STALE"],
    },
    {
        "name": "CloudFront",
        "cache_header": "x-cache",
        "cached": ["Hit from cloudfront"],
        "uncached": ["Miss from cloudfront"],
        "other": ["RefreshHit from cloudfront", "Error from cloudfront"],
    },
]

SUMMARY_TEMPLATE = (
    "Done. Visited {pages} pages and checked {checks} images "
    "({images} images/variants x {formats} formats)."
)
WORKER_COMPLETE_MESSAGE = "Image subset validation complete"
NO_CACHE_HEADER_MESSAGE = "No Cache Header"

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
