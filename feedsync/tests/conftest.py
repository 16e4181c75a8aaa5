"""Shared fixtures for the feedsync test suite."""

import logging
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from feedsync.kv import SQLiteKeyValueStore
from feedsync.store import CatalogStore

GOOGLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:g="http://base.google.com/ns/1.0">
  <channel>
    <title>Drogéria Example</title>
    <link>https://shop.example.sk</link>
    <item>
      <g:id>1001</g:id>
      <title>Šampón Nivea 400ml</title>
      <description>&lt;p&gt;Jemný šampón pre suché vlasy&lt;/p&gt;</description>
      <g:price>5,99 EUR</g:price>
      <g:product_type>Vlasová kozmetika</g:product_type>
      <g:brand>Nivea</g:brand>
      <g:availability>in stock</g:availability>
      <link>https://shop.example.sk/sampon-nivea</link>
      <g:image_link>https://shop.example.sk/img/1001.jpg</g:image_link>
    </item>
    <item>
      <g:id>1002</g:id>
      <title>Kondicionér Nivea Repair</title>
      <description>Kondicionér pre suché a poškodené vlasy</description>
      <g:price>7.49 EUR</g:price>
      <g:sale_price>5.99 EUR</g:sale_price>
      <g:product_type>Vlasová kozmetika</g:product_type>
      <g:brand>Nivea</g:brand>
      <g:availability>out of stock</g:availability>
      <link>https://shop.example.sk/kondicioner-nivea</link>
    </item>
    <item>
      <g:id>1003</g:id>
      <title>Krém Dove na ruky</title>
      <description>Hydratačný krém pre suché ruky</description>
      <g:price>3,20 EUR</g:price>
      <g:product_type>Starostlivosť o ruky</g:product_type>
      <g:brand>Dove</g:brand>
      <g:availability>in stock</g:availability>
    </item>
  </channel>
</rss>
"""

HEUREKA_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<SHOP>
  <SHOPITEM>
    <ITEM_ID>H-1</ITEM_ID>
    <PRODUCTNAME>Zubná pasta Colgate</PRODUCTNAME>
    <DESCRIPTION>Bieliaca zubná pasta</DESCRIPTION>
    <PRICE_VAT>2.49</PRICE_VAT>
    <CATEGORYTEXT>Ústna hygiena</CATEGORYTEXT>
    <MANUFACTURER>Colgate</MANUFACTURER>
    <URL>https://shop.example.sk/colgate</URL>
    <IMGURL>https://shop.example.sk/img/h1.jpg</IMGURL>
    <EAN>8591234567890</EAN>
  </SHOPITEM>
  <SHOPITEM>
    <ITEM_ID>H-2</ITEM_ID>
    <PRODUCTNAME>Zubná kefka Colgate</PRODUCTNAME>
    <PRICE_VAT>1,99</PRICE_VAT>
    <CATEGORYTEXT>Ústna hygiena</CATEGORYTEXT>
    <MANUFACTURER>Colgate</MANUFACTURER>
  </SHOPITEM>
</SHOP>
"""

ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example</title>
  <entry>
    <id>A-1</id>
    <title>Sprchový gél Adidas</title>
    <link href="https://shop.example.sk/adidas-gel"/>
    <price>4.10</price>
  </entry>
</feed>
"""

PRODUCTS_FEED = """<?xml version="1.0"?>
<products>
  <product>
    <id>P-1</id>
    <name>Mydlo Palmolive</name>
    <price>1.20</price>
  </product>
</products>
"""


@pytest.fixture(autouse=True)
def no_log_handlers(monkeypatch):
    """Keep test runs out of the project log files."""
    monkeypatch.setattr(logging.getLogger("feedsync"), "handlers", [])


@pytest.fixture
def google_feed():
    return GOOGLE_RSS_FEED


@pytest.fixture
def heureka_feed():
    return HEUREKA_FEED


@pytest.fixture
def atom_feed():
    return ATOM_FEED


@pytest.fixture
def products_feed():
    return PRODUCTS_FEED


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    # Cleanup
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def kv(temp_db):
    return SQLiteKeyValueStore(temp_db)


@pytest.fixture
def store(kv):
    return CatalogStore(kv)


@pytest.fixture
def make_response():
    """Factory for MagicMocks standing in for a streamed requests.Response."""
    def _make(status_code=200, body=b"", reason="OK", headers=None):
        resp = MagicMock()
        resp.status_code = status_code
        resp.reason = reason
        resp.headers = headers or {}
        resp.iter_content.return_value = [body[i:i + 1024] for i in range(0, len(body), 1024)]
        return resp
    return _make


@pytest.fixture
def mock_session():
    """A requests.Session mock; set ``get.return_value`` or ``side_effect``."""
    return MagicMock()
