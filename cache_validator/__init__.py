"""Cache validator package: crawl a site and check CDN cache headers."""

from .config import ValidatorConfig, load_config, save_config
from .crawler import Crawler
from .errors import (
    CacheValidatorError,
    FetchCancelledError,
    FetchError,
    ParseError,
    ProtocolError,
    SinkClosedError,
    TerminalFetchError,
    TransientFetchError,
)
from .executors import (
    HttpWorker,
    InProcessExecutor,
    LocalWorker,
    PartitionedExecutor,
    ValidationExecutor,
    run_image_batch,
)
from .extractor import ExtractedResources, extract
from .fetcher import Fetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .headers import HeaderClassification, classify, detect_provider
from .pipeline import Pipeline, parse_request
from .providers import ProviderRegistry
from .sink import (
    ChannelSink,
    CollectingSink,
    EventSink,
    JSONLinesSink,
    ObservedSink,
    QueueSink,
    encode_event,
    iter_records,
)
from .stats import StatsCollector
from .types import (
    CacheClassification,
    CrawlResult,
    EventKind,
    FetchResult,
    ImageBatchRequest,
    LifecycleStatus,
    ProviderProfile,
    ResourceHead,
    ResourceType,
    Severity,
    ValidationEvent,
    ValidationRequest,
    utc_now_iso,
)
from .url import canonicalize, resolve_url, same_origin
from .validator import ImageValidator

__all__ = [
    "CacheClassification",
    "CacheValidatorError",
    "ChannelSink",
    "CollectingSink",
    "CrawlResult",
    "Crawler",
    "EnqueueResult",
    "EnqueueStatus",
    "EventKind",
    "EventSink",
    "ExtractedResources",
    "FetchCancelledError",
    "FetchError",
    "FetchResult",
    "Fetcher",
    "Frontier",
    "HeaderClassification",
    "HttpWorker",
    "ImageBatchRequest",
    "ImageValidator",
    "InProcessExecutor",
    "JSONLinesSink",
    "LifecycleStatus",
    "LocalWorker",
    "ObservedSink",
    "ParseError",
    "PartitionedExecutor",
    "Pipeline",
    "ProtocolError",
    "ProviderProfile",
    "ProviderRegistry",
    "QueueSink",
    "ResourceHead",
    "ResourceType",
    "Severity",
    "SinkClosedError",
    "StatsCollector",
    "TerminalFetchError",
    "TransientFetchError",
    "ValidationEvent",
    "ValidationExecutor",
    "ValidationRequest",
    "ValidatorConfig",
    "canonicalize",
    "classify",
    "detect_provider",
    "encode_event",
    "extract",
    "iter_records",
    "load_config",
    "parse_request",
    "resolve_url",
    "same_origin",
    "save_config",
    "utc_now_iso",
]
