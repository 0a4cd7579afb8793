"""Tests for the command-line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from harvester.cli import main
from harvester.models import CrawlSummary


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("harvester.cli.setup_logging") as mock_setup:
        yield mock_setup


class TestClassifyCommand:
    """Tests for `harvester classify`."""

    def test_filters_and_reranks(self, tmp_path, capsys):
        candidates = tmp_path / "candidates.json"
        candidates.write_text(json.dumps([
            {"url": "https://acmeplumbing.com/", "title": "Acme Plumbing - Austin", "rank": 1},
            {"url": "https://www.yelp.com/biz/acme", "title": "Acme - Yelp", "rank": 2},
            {"url": "https://boltelectric.com/", "title": "Bolt Electric", "rank": 3},
        ]))

        main(["classify", str(candidates)])

        output = json.loads(capsys.readouterr().out)
        assert [entry["url"] for entry in output] == ["https://acmeplumbing.com/", "https://boltelectric.com/"]
        assert [entry["rank"] for entry in output] == [1, 2]
        assert [entry["original_rank"] for entry in output] == [1, 3]
        assert output[0]["company_name"] == "Acme Plumbing"

    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit):
            main(["classify", str(tmp_path / "missing.json")])

        assert "Error reading" in capsys.readouterr().err


class TestCrawlCommand:
    """Tests for `harvester crawl`."""

    def test_overrides_and_json_output(self, capsys):
        summary = CrawlSummary(start_url="https://acme.example", pages_scraped=2)

        with patch("harvester.cli._async_crawl", new=AsyncMock(return_value=summary)) as mock_crawl:
            main([
                "crawl", "https://acme.example/",
                "--max-pages", "5",
                "--max-depth", "1",
                "--no-images",
                "--template-id", "acme",
                "--db", "test.db",
                "--output", "json",
            ])

        start_url, template_id, config, db_path, browser_config = mock_crawl.await_args.args
        assert start_url == "https://acme.example/"
        assert template_id == "acme"
        assert config.max_pages == 5
        assert config.max_depth == 1
        assert config.download_images is False
        assert db_path == "test.db"
        assert browser_config.launch_args == []

        output = json.loads(capsys.readouterr().out)
        assert output["pages_scraped"] == 2

    def test_stealth_flag(self):
        summary = CrawlSummary(start_url="https://acme.example")

        with patch("harvester.cli._async_crawl", new=AsyncMock(return_value=summary)) as mock_crawl:
            main(["crawl", "https://acme.example/", "--stealth"])

        browser_config = mock_crawl.await_args.args[4]
        assert "--disable-blink-features=AutomationControlled" in browser_config.launch_args

    def test_text_output(self, capsys):
        summary = CrawlSummary(
            start_url="https://acme.example",
            errors=["https://acme.example/about: Blocked: HTTP 403"],
        )

        with patch("harvester.cli._async_crawl", new=AsyncMock(return_value=summary)):
            main(["crawl", "https://acme.example/"])

        out = capsys.readouterr().out
        assert "Crawl summary for: https://acme.example" in out
        assert "Blocked: HTTP 403" in out


def test_no_command_prints_help(capsys):
    main([])
    assert "usage" in capsys.readouterr().out.lower()
