"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from cache_validator import cli
from cache_validator.sink import decode_event

from conftest import FakeResponse, FakeSession, html_page


SEED = "https://site.test/"


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def fake_site() -> FakeSession:
    return FakeSession(
        {
            ("GET", SEED): html_page('<img src="/hero.png">', x_vercel_cache="HIT"),
            ("HEAD", "https://site.test/hero.png"): FakeResponse(
                200, headers={"x-vercel-cache": "MISS"}
            ),
            ("HEAD", SEED): FakeResponse(200, headers={"cf-cache-status": "HIT"}),
        }
    )


class TestParseArgs:
    def test_defaults(self):
        args = cli.parse_args([SEED])

        assert args.url == SEED
        assert args.formats == []
        assert args.out == "-"
        assert args.provider is None
        assert not args.check_provider

    def test_build_config_overrides(self):
        args = cli.parse_args([SEED, "--crawl_concurrency", "3", "--no_fanout", "--fetch_attempts", "2"])
        config = cli.build_config(args)

        assert config.crawl_concurrency == 3
        assert config.fanout_enabled is False
        assert config.fetch_attempts == 2


class TestMain:
    def test_writes_events_to_file(self, tmp_path, capsys):
        out = tmp_path / "events.jsonl"

        with patch("requests.Session", return_value=fake_site()):
            code = cli.main([SEED, "--format", "webp", "--out", str(out)])

        assert code == 0
        events = [decode_event(line) for line in out.read_text(encoding="utf-8").splitlines()]
        assert events[-1].message == (
            "Done. Visited 1 pages and checked 1 images (1 images/variants x 1 formats)."
        )
        image = [e for e in events if e.is_terminal and e.url.endswith("hero.png")]
        assert image[0].head.accept == "image/webp"
        assert "Validation Complete" in capsys.readouterr().err

    def test_events_default_to_stdout(self, capsys):
        with patch("requests.Session", return_value=fake_site()):
            code = cli.main([SEED, "--format", "png", "--print_stats_json"])

        captured = capsys.readouterr()
        assert code == 0
        lines = [json.loads(line) for line in captured.out.splitlines() if line.strip()]
        assert lines[-1]["type"] == "message"
        assert lines[-1]["message"].startswith("Done. Visited 1 pages")
        assert "Full Stats JSON" in captured.err

    def test_default_formats(self, capsys):
        with patch("requests.Session", return_value=fake_site()):
            code = cli.main([SEED])

        assert code == 0
        last = json.loads(capsys.readouterr().out.splitlines()[-1])
        assert "(1 images/variants x 4 formats)" in last["message"]

    def test_invalid_url_exits_2(self, capsys):
        assert cli.main(["not-a-url"]) == 2
        assert capsys.readouterr().out == ""

    def test_unknown_provider_exits_2(self):
        assert cli.main([SEED, "--provider", "Akamai"]) == 2

    def test_bad_config_exits_2(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"crawl_concurrency": 0}), encoding="utf-8")

        assert cli.main([SEED, "--config", str(path)]) == 2

    def test_check_provider(self, capsys):
        with patch("requests.Session", return_value=fake_site()):
            code = cli.main([SEED, "--check_provider"])

        assert code == 0
        assert capsys.readouterr().out.strip() == "Cloudflare"

    def test_check_provider_without_header(self, capsys):
        session = FakeSession({("HEAD", SEED): FakeResponse(200)})
        with patch("requests.Session", return_value=session):
            code = cli.main([SEED, "--check_provider"])

        assert code == 0
        assert capsys.readouterr().out.strip() == "No cache header found"

    def test_interrupt_exits_130(self):
        with patch.object(cli.Pipeline, "run", side_effect=KeyboardInterrupt):
            assert cli.main([SEED]) == 130

    def test_unexpected_failure_exits_1(self):
        with patch.object(cli.Pipeline, "run", side_effect=RuntimeError("boom")):
            assert cli.main([SEED]) == 1
