"""Tests for feed URL validation and product link cleaning."""

import pytest

from feedsync.url_validation import (
    URLValidationError,
    clean_product_url,
    sanitize_url,
    validate_feed_url,
)


class TestValidateFeedUrl:
    def test_valid_url(self):
        assert validate_feed_url("  https://shop.example.sk/feed.xml\n") == "https://shop.example.sk/feed.xml"

    @pytest.mark.parametrize("url", [
        "",
        "javascript:alert(1)",
        "file:///etc/passwd",
        "ftp://shop.example.sk/feed.xml",
        "shop.example.sk/feed.xml",
        "https://",
    ])
    def test_rejected(self, url):
        with pytest.raises(URLValidationError):
            validate_feed_url(url)


class TestCleanProductUrl:
    def test_plain_link(self):
        assert clean_product_url("https://shop.example.sk/p/1") == "https://shop.example.sk/p/1"

    def test_protocol_relative(self):
        assert clean_product_url("//cdn.example.sk/img.jpg") == "https://cdn.example.sk/img.jpg"

    @pytest.mark.parametrize("url", [None, "", "   ", "javascript:void(0)", "DATA:text/html,x"])
    def test_dropped(self, url):
        assert clean_product_url(url) is None


def test_sanitize_strips_control_characters():
    assert sanitize_url("https://x.sk/a\x00b%00c") == "https://x.sk/abc"
