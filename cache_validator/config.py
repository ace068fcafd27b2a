"""Typed validator configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_BACKOFF_INITIAL_SECONDS,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_CRAWL_CONCURRENCY,
    DEFAULT_FANOUT_CHUNK_SIZE,
    DEFAULT_FANOUT_ENABLED,
    DEFAULT_FANOUT_THRESHOLD,
    DEFAULT_FETCH_ATTEMPTS,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_IMAGE_CONCURRENCY,
    DEFAULT_PROVIDERS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import JSONDict
from .url import is_http_url


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _coerce_providers(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        raise ValueError(f"'providers' must be a list, got {type(value).__name__}")

    providers: list[dict[str, Any]] = []
    for item in value:
        if not isinstance(item, Mapping):
            raise ValueError(f"Provider entry must be a mapping: {item!r}")
        providers.append(dict(item))
    return providers


@dataclass(slots=True)
class ValidatorConfig:
    """Engine tunables and provider registry data."""

    crawl_concurrency: int = DEFAULT_CRAWL_CONCURRENCY
    image_concurrency: int = DEFAULT_IMAGE_CONCURRENCY

    fanout_threshold: int = DEFAULT_FANOUT_THRESHOLD
    fanout_chunk_size: int = DEFAULT_FANOUT_CHUNK_SIZE
    fanout_enabled: bool = DEFAULT_FANOUT_ENABLED
    worker_endpoint: str | None = None

    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    backoff_initial_seconds: float = DEFAULT_BACKOFF_INITIAL_SECONDS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    providers: list[dict[str, Any]] = field(
        default_factory=lambda: [dict(provider) for provider in DEFAULT_PROVIDERS]
    )

    def __post_init__(self) -> None:
        if self.crawl_concurrency <= 0:
            raise ValueError("crawl_concurrency must be > 0")
        if self.image_concurrency <= 0:
            raise ValueError("image_concurrency must be > 0")
        if self.fanout_threshold < 0:
            raise ValueError("fanout_threshold must be >= 0")
        if self.fanout_chunk_size <= 0:
            raise ValueError("fanout_chunk_size must be > 0")
        if self.fetch_attempts <= 0:
            raise ValueError("fetch_attempts must be > 0")
        if self.backoff_initial_seconds < 0:
            raise ValueError("backoff_initial_seconds must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.worker_endpoint is not None and not is_http_url(self.worker_endpoint):
            raise ValueError(f"worker_endpoint must be an http(s) URL: {self.worker_endpoint!r}")
        if not self.providers:
            raise ValueError("At least one cache provider must be configured")

    def headers_for(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return request headers merged from defaults and per-request values."""

        merged: dict[str, str] = dict(self.default_headers)
        if extra:
            merged.update(extra)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for logs and reproducibility."""

        return {
            "crawl_concurrency": self.crawl_concurrency,
            "image_concurrency": self.image_concurrency,
            "fanout_threshold": self.fanout_threshold,
            "fanout_chunk_size": self.fanout_chunk_size,
            "fanout_enabled": self.fanout_enabled,
            "worker_endpoint": self.worker_endpoint,
            "fetch_attempts": self.fetch_attempts,
            "backoff_initial_seconds": self.backoff_initial_seconds,
            "backoff_multiplier": self.backoff_multiplier,
            "timeout_seconds": self.timeout_seconds,
            "user_agent": self.user_agent,
            "default_headers": self.default_headers,
            "providers": self.providers,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ValidatorConfig":
        """Build config from a parsed dictionary."""

        return cls(
            crawl_concurrency=_as_int(
                payload.get("crawl_concurrency", DEFAULT_CRAWL_CONCURRENCY), "crawl_concurrency"
            ),
            image_concurrency=_as_int(
                payload.get("image_concurrency", DEFAULT_IMAGE_CONCURRENCY), "image_concurrency"
            ),
            fanout_threshold=_as_int(
                payload.get("fanout_threshold", DEFAULT_FANOUT_THRESHOLD), "fanout_threshold"
            ),
            fanout_chunk_size=_as_int(
                payload.get("fanout_chunk_size", DEFAULT_FANOUT_CHUNK_SIZE), "fanout_chunk_size"
            ),
            fanout_enabled=_as_bool(
                payload.get("fanout_enabled", DEFAULT_FANOUT_ENABLED), "fanout_enabled"
            ),
            worker_endpoint=_as_optional_str(payload.get("worker_endpoint")),
            fetch_attempts=_as_int(
                payload.get("fetch_attempts", DEFAULT_FETCH_ATTEMPTS), "fetch_attempts"
            ),
            backoff_initial_seconds=_as_float(
                payload.get("backoff_initial_seconds", DEFAULT_BACKOFF_INITIAL_SECONDS),
                "backoff_initial_seconds",
            ),
            backoff_multiplier=_as_float(
                payload.get("backoff_multiplier", DEFAULT_BACKOFF_MULTIPLIER),
                "backoff_multiplier",
            ),
            timeout_seconds=_as_float(
                payload.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS), "timeout_seconds"
            ),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={
                str(k): str(v)
                for k, v in dict(payload.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            providers=_coerce_providers(payload.get("providers", DEFAULT_PROVIDERS)),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> ValidatorConfig:
    """Load ValidatorConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return ValidatorConfig.from_dict(payload)


def save_config(config: ValidatorConfig, path: str | Path) -> None:
    """Save ValidatorConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "ValidatorConfig",
    "load_config",
    "save_config",
]
