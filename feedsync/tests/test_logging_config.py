"""Tests for structured sync logging."""

import json
import logging
from datetime import datetime

import pytest

from feedsync.logging_config import get_logger, log_sync_event, setup_logging


@pytest.fixture
def log_dir(tmp_path):
    setup_logging(log_dir=tmp_path)
    return tmp_path


def read_entries(log_dir):
    log_file = log_dir / f"feedsync_{datetime.now():%Y%m%d}.jsonl"
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]


def test_sync_event_fields_are_top_level(log_dir):
    log_sync_event("products_saved", {"count": 3})

    entry = read_entries(log_dir)[-1]
    assert entry["event_type"] == "products_saved"
    assert entry["count"] == 3
    assert entry["logger"] == "feedsync.events"
    assert entry["level"] == "INFO"


def test_failed_sync_logged_as_error(log_dir):
    log_sync_event("sync_failed", {"error": "timeout", "retryable": True}, level=logging.ERROR)

    entry = read_entries(log_dir)[-1]
    assert entry["level"] == "ERROR"
    assert entry["retryable"] is True


def test_plain_messages_have_no_event_type(log_dir):
    get_logger("sync").info("Fetching feed")

    entry = read_entries(log_dir)[-1]
    assert entry["message"] == "Fetching feed"
    assert "event_type" not in entry


def test_setup_replaces_handlers(log_dir):
    setup_logging(log_dir=log_dir)
    assert len(logging.getLogger("feedsync").handlers) == 2


def test_file_logging_optional(tmp_path):
    setup_logging(log_to_file=False, log_dir=tmp_path)

    get_logger("sync").warning("no file")
    assert list(tmp_path.iterdir()) == []
