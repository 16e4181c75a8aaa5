"""Shared test fixtures for the shop assistant test suite."""

import logging
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from feedsync.kv import SQLiteKeyValueStore
from feedsync.store import CatalogStore
from feedsync.sync import sync_catalog

from shopassist import catalog

CATALOG_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:g="http://base.google.com/ns/1.0">
  <channel>
    <item>
      <g:id>1001</g:id>
      <title>Šampón Nivea 400ml</title>
      <description>Jemný šampón pre suché vlasy</description>
      <g:price>5,99 EUR</g:price>
      <g:product_type>Vlasová kozmetika</g:product_type>
      <g:brand>Nivea</g:brand>
      <g:availability>in stock</g:availability>
      <link>https://shop.example.sk/sampon-nivea</link>
    </item>
    <item>
      <g:id>1002</g:id>
      <title>Šampón Dove Repair 250ml</title>
      <description>Šampón pre poškodené vlasy</description>
      <g:price>4.49 EUR</g:price>
      <g:sale_price>3.59 EUR</g:sale_price>
      <g:product_type>Vlasová kozmetika</g:product_type>
      <g:brand>Dove</g:brand>
      <g:availability>in stock</g:availability>
    </item>
    <item>
      <g:id>1003</g:id>
      <title>Kondicionér Nivea Repair</title>
      <description>Kondicionér pre suché vlasy</description>
      <g:price>6.20 EUR</g:price>
      <g:product_type>Vlasová kozmetika</g:product_type>
      <g:brand>Nivea</g:brand>
      <g:availability>out of stock</g:availability>
    </item>
    <item>
      <g:id>2001</g:id>
      <title>Zubná pasta Colgate</title>
      <description>Bieliaca zubná pasta</description>
      <g:price>2.49 EUR</g:price>
      <g:sale_price>1.99 EUR</g:sale_price>
      <g:product_type>Ústna hygiena</g:product_type>
      <g:brand>Colgate</g:brand>
      <g:availability>in stock</g:availability>
    </item>
    <item>
      <g:id>2002</g:id>
      <title>Zubná kefka Colgate</title>
      <description>Mäkká zubná kefka</description>
      <g:price>1.99 EUR</g:price>
      <g:product_type>Ústna hygiena</g:product_type>
      <g:brand>Colgate</g:brand>
      <g:availability>in stock</g:availability>
    </item>
  </channel>
</rss>
"""


@pytest.fixture(autouse=True)
def isolated_loggers(monkeypatch):
    """Drop handlers the module-level app installed when it was imported."""
    for name in ("shopassist", "feedsync"):
        monkeypatch.setattr(logging.getLogger(name), "handlers", [])


@pytest.fixture(autouse=True)
def interaction_log_dir(tmp_path, monkeypatch):
    """Write JSONL interaction logs into the test's temp directory."""
    log_dir = tmp_path / "logs"
    monkeypatch.setattr("shopassist.logging_utils.LOG_DIR", log_dir)
    return log_dir


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def empty_store(temp_db):
    return CatalogStore(SQLiteKeyValueStore(temp_db))


@pytest.fixture
def store(empty_store):
    """Catalog store populated from CATALOG_FEED."""
    sync_catalog(empty_store, document=CATALOG_FEED)
    return empty_store


@pytest.fixture
def shared_store(store):
    """Install ``store`` as the web app's shared store."""
    catalog.set_store(store)
    yield store
    catalog.set_store(None)


@pytest.fixture
def mock_openai_client():
    """Create a mock OpenAI client for testing without API calls."""
    client = MagicMock()
    completion = client.chat.completions.create.return_value
    completion.model_dump.return_value = {
        "id": "chatcmpl-test",
        "model": "deepseek-chat",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": "Šampón Nivea stojí €5.99."}},
        ],
    }
    return client
