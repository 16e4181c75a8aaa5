"""Tests for the command-line interface and CSV export."""

import csv
from unittest.mock import patch

import pytest

from feedsync.cli import EXIT_CONFIG_ERROR, main, parse_args
from feedsync.csv_utils import CSV_FIELDS, export_catalog_to_csv
from feedsync.sync import sync_catalog


@pytest.fixture(autouse=True)
def no_log_files():
    """Keep CLI runs from writing JSONL logs into the repository."""
    with patch("feedsync.cli.setup_logging"):
        yield


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.sync is False
        assert args.feed_url is None
        assert args.backend in ("sqlite", "redis")

    def test_sync_flags(self):
        args = parse_args(["--sync", "--feed-url", "https://x.example/feed.xml", "--db", "/tmp/c.db"])
        assert args.sync is True
        assert args.feed_url == "https://x.example/feed.xml"
        assert args.db == "/tmp/c.db"


class TestMain:
    def test_stats(self, store, temp_db, google_feed, capsys):
        sync_catalog(store, document=google_feed)

        assert main(["--stats", "--backend", "sqlite", "--db", temp_db]) == 0
        out = capsys.readouterr().out
        assert "Products (metadata): 3" in out

    def test_list_brands(self, store, temp_db, google_feed, capsys):
        sync_catalog(store, document=google_feed)

        assert main(["--list-brands", "--backend", "sqlite", "--db", temp_db]) == 0
        out = capsys.readouterr().out
        assert out.index("nivea: 2") < out.index("dove: 1")

    def test_list_categories_empty(self, temp_db, capsys):
        assert main(["--list-categories", "--backend", "sqlite", "--db", temp_db]) == 0
        assert "No categories indexed yet" in capsys.readouterr().out

    def test_sync_without_feed_url_is_config_error(self, temp_db, monkeypatch, capsys):
        monkeypatch.delenv("FEED_URL", raising=False)
        monkeypatch.delenv("XML_URL", raising=False)

        assert main(["--sync", "--backend", "sqlite", "--db", temp_db]) == EXIT_CONFIG_ERROR
        assert "Sync failed" in capsys.readouterr().out

    def test_redis_without_url_is_config_error(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.delenv("UPSTASH_REDIS_URL", raising=False)

        assert main(["--stats", "--backend", "redis"]) == EXIT_CONFIG_ERROR


class TestCsvExport:
    def test_export(self, store, google_feed, tmp_path):
        sync_catalog(store, document=google_feed)
        path = tmp_path / "out" / "catalog.csv"

        assert export_catalog_to_csv(store, str(path)) == 3

        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            rows = list(reader)
        assert reader.fieldnames == CSV_FIELDS
        assert [row["id"] for row in rows] == ["1001", "1002", "1003"]
        assert rows[1]["sale_price"] == "5.99"
        assert rows[2]["url"] == ""

    def test_export_category_filter(self, store, google_feed, tmp_path):
        sync_catalog(store, document=google_feed)
        path = tmp_path / "hands.csv"
        assert export_catalog_to_csv(store, str(path), category="Starostlivosť o ruky") == 1

    def test_export_empty_catalog(self, store, tmp_path):
        assert export_catalog_to_csv(store, str(tmp_path / "empty.csv")) == 0
