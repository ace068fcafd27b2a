"""CLI entrypoint for one cache validation run."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any, TextIO

from .config import ValidatorConfig, load_config
from .constants import DEFAULT_IMAGE_FORMATS, JSON_INDENT
from .errors import FetchError, ProtocolError
from .pipeline import Pipeline
from .sink import JSONLinesSink


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Crawl a site from a seed URL and check the CDN cache status of every "
            "same-origin page and image. Events are written as JSON lines."
        ),
    )

    parser.add_argument("url", help="Seed URL (absolute http or https).")
    parser.add_argument(
        "--format",
        dest="formats",
        action="append",
        default=[],
        help=(
            "Image format to request via the Accept header (repeatable). "
            f"Defaults to {' '.join(DEFAULT_IMAGE_FORMATS)}."
        ),
    )
    parser.add_argument(
        "--provider",
        type=str,
        default=None,
        help="Preferred cache provider, checked before the others.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML validator config.",
    )
    parser.add_argument(
        "--out",
        type=str,
        default="-",
        help="Where to write events: a file path, or - for stdout.",
    )

    parser.add_argument("--crawl_concurrency", type=int, default=None)
    parser.add_argument("--image_concurrency", type=int, default=None)
    parser.add_argument("--fanout_threshold", type=int, default=None)
    parser.add_argument("--fanout_chunk_size", type=int, default=None)
    parser.add_argument(
        "--no_fanout",
        action="store_true",
        help="Always validate images in-process.",
    )
    parser.add_argument(
        "--worker_endpoint",
        type=str,
        default=None,
        help="Remote worker URL for fan-out; in-process workers are used when unset.",
    )

    parser.add_argument("--fetch_attempts", type=int, default=None)
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--user_agent", type=str, default=None)

    parser.add_argument(
        "--check_provider",
        action="store_true",
        help="Only probe the URL once and print the detected provider.",
    )
    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON to stderr after run.",
    )
    parser.add_argument(
        "--log_file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ValidatorConfig:
    payload: dict[str, Any] = load_config(args.config).to_dict() if args.config else {}

    overrides = {
        "crawl_concurrency": args.crawl_concurrency,
        "image_concurrency": args.image_concurrency,
        "fanout_threshold": args.fanout_threshold,
        "fanout_chunk_size": args.fanout_chunk_size,
        "worker_endpoint": args.worker_endpoint,
        "fetch_attempts": args.fetch_attempts,
        "timeout_seconds": args.timeout_seconds,
        "user_agent": args.user_agent,
    }
    for key, value in overrides.items():
        if value is not None:
            payload[key] = value

    if args.no_fanout:
        payload["fanout_enabled"] = False

    return ValidatorConfig.from_dict(payload)


def setup_logging(verbose: bool, log_file: Path | None = None) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    # stdout carries the event stream.
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(result: dict[str, Any], *, print_stats_json: bool, stream: TextIO) -> None:
    stats = result.get("stats", {})

    print("\n=== Validation Complete ===", file=stream)
    for key in ["url", "visited_pages", "images", "formats", "checks", "cancelled"]:
        if key in result:
            print(f"{key}: {result[key]}", file=stream)

    print("\n--- Cache Results ---", file=stream)
    for key, value in sorted(stats.get("cache", {}).items()):
        print(f"{key}: {value}", file=stream)
    for key in ["retry_narrations", "error_messages", "duration_seconds"]:
        if key in stats:
            print(f"{key}: {stats[key]}", file=stream)

    if print_stats_json:
        print("\n--- Full Stats JSON ---", file=stream)
        print(json.dumps(stats, indent=JSON_INDENT, sort_keys=True), file=stream)


def _check_provider(pipeline: Pipeline, url: str) -> int:
    try:
        provider = pipeline.detect_provider(url)
    except ProtocolError as exc:
        logging.error("%s", exc)
        return 2
    except FetchError as exc:
        logging.error("Provider probe failed: %s", exc)
        return 1

    print(provider.name if provider is not None else "No cache header found")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = build_config(args)
        pipeline = Pipeline(config)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    if args.check_provider:
        return _check_provider(pipeline, args.url)

    request = {
        "url": args.url,
        "formats": list(args.formats) or list(DEFAULT_IMAGE_FORMATS),
        "preferred_provider": args.provider,
    }

    out_handle: TextIO | None = None
    if args.out == "-":
        sink = JSONLinesSink(sys.stdout)
    else:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_handle = out_path.open("w", encoding="utf-8")
        sink = JSONLinesSink(out_handle)

    logging.info(
        "Starting validation: url=%s, formats=%s, provider=%s, out=%s",
        args.url,
        ",".join(request["formats"]),
        args.provider or "-",
        args.out,
    )

    try:
        result = pipeline.run(request, sink)
    except ProtocolError as exc:
        logging.error("Invalid request: %s", exc)
        return 2
    except KeyboardInterrupt:
        sink.close()
        logging.error("Interrupted by user")
        return 130
    except Exception:
        sink.close()
        logging.exception("Validation failed")
        return 1
    finally:
        if out_handle is not None:
            out_handle.close()

    print_summary(result, print_stats_json=args.print_stats_json, stream=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
