"""End-to-end sync tests against a temporary SQLite catalog."""

from unittest.mock import MagicMock, patch

import pytest

from feedsync.feed import EmptyFeedError, extract_records, parse_feed
from feedsync.normalize import normalize_text
from feedsync.store import StoreError, SyncInProgressError
from feedsync.sync import run_sync, sync_catalog
from feedsync.transform import transform_records

NIVEA_FEED = """<products>
  <product>
    <title>Šampón Nivea 400ml</title>
    <price>5,99</price>
    <category>Vlasová kozmetika</category>
  </product>
</products>"""


class TestSyncCatalog:
    def test_products_match_transformed_feed(self, store, google_feed):
        result = sync_catalog(store, document=google_feed, source="manual")
        expected = transform_records(extract_records(parse_feed(google_feed)))

        assert result.success is True
        assert result.product_count == 3
        for product in expected:
            assert store.get_product(product.id) == product

    def test_metadata_count_matches_id_set(self, store, google_feed):
        result = sync_catalog(store, document=google_feed)
        metadata = store.get_metadata()

        assert metadata.count == len(store.get_all_ids()) == 3
        assert metadata.last_update == result.timestamp

    def test_indexes_written(self, store, google_feed):
        sync_catalog(store, document=google_feed)

        words = store.get_word_index()
        # "nivea" is in two products, "dove" in one
        assert words["nivea"] == ["1001", "1002"]
        assert "dove" not in words
        assert store.get_category_index()["vlasova kozmetika"] == ["1001", "1002"]
        assert store.get_brand_index()["dove"] == ["1003"]

    def test_idempotent(self, store, google_feed):
        sync_catalog(store, document=google_feed)
        first = (
            store.get_all_ids(),
            store.get_word_index(),
            store.get_category_index(),
            store.get_brand_index(),
        )
        sync_catalog(store, document=google_feed)
        second = (
            store.get_all_ids(),
            store.get_word_index(),
            store.get_category_index(),
            store.get_brand_index(),
        )
        assert first == second

    def test_idempotent_with_generated_ids(self, store):
        sync_catalog(store, document=NIVEA_FEED)
        ids = store.get_all_ids()
        sync_catalog(store, document=NIVEA_FEED)
        assert store.get_all_ids() == ids

    def test_nivea_example(self, store):
        result = sync_catalog(store, document=NIVEA_FEED)
        (product_id,) = store.get_all_ids()
        product = store.get_product(product_id)

        assert result.warnings >= 1
        assert product.price == 5.99
        assert product.category == "Vlasová kozmetika"
        assert {"sampon", "nivea"} <= set(normalize_text(product.title).split())
        assert store.get_category_index() == {"vlasova kozmetika": [product_id]}

    def test_new_generation_replaces_old(self, store, google_feed, heureka_feed):
        sync_catalog(store, document=google_feed)
        sync_catalog(store, document=heureka_feed)

        assert store.get_all_ids() == {"H-1", "H-2"}
        assert store.get_product("1001") is None
        assert "vlasova kozmetika" not in store.get_category_index()

    def test_empty_feed_raises_and_keeps_metadata(self, store, google_feed):
        sync_catalog(store, document=google_feed)
        before = store.get_metadata()

        with pytest.raises(EmptyFeedError):
            sync_catalog(store, document="<catalog><thing/></catalog>")
        assert store.get_metadata() == before

    def test_lock_released_after_failure(self, store):
        with pytest.raises(EmptyFeedError):
            sync_catalog(store, document="<catalog/>")
        # A second run can take the lock again
        store.release_sync_lock(store.acquire_sync_lock())

    def test_metadata_written_last(self, store, google_feed):
        calls = []
        for name in ("replace_products", "replace_indexes", "write_metadata"):
            original = getattr(store, name)

            def recorder(*args, _name=name, _original=original, **kwargs):
                calls.append(_name)
                return _original(*args, **kwargs)

            setattr(store, name, recorder)

        sync_catalog(store, document=google_feed)
        assert calls == ["replace_products", "replace_indexes", "write_metadata"]

    def test_fetches_when_no_document(self, store, google_feed, mock_session, make_response):
        mock_session.get.return_value = make_response(body=google_feed.encode("utf-8"))

        result = sync_catalog(store, feed_url="https://shop.example.sk/feed.xml", session=mock_session)
        assert result.product_count == 3


class TestRunSync:
    def test_success_result(self, store, google_feed):
        result = run_sync(store, document=google_feed, source="cron")
        data = result.to_dict()

        assert data["success"] is True
        assert data["source"] == "cron"
        assert data["count"] == 3
        assert data["message"] == "Synced 3 products"
        assert data["duration"].endswith("s")

    def test_empty_feed_not_retryable(self, store):
        result = run_sync(store, document="<catalog/>")
        assert result.success is False
        assert result.error_type == "EmptyFeedError"
        assert result.retryable is False

    def test_missing_feed_url_is_config_error(self, store, monkeypatch):
        monkeypatch.delenv("FEED_URL", raising=False)
        monkeypatch.delenv("XML_URL", raising=False)

        result = run_sync(store)
        assert result.success is False
        assert result.error_type == "ConfigError"
        assert result.retryable is False

    @patch("feedsync.feed.time.sleep")
    def test_fetch_failure_retryable(self, mock_sleep, store, mock_session, make_response):
        mock_session.get.return_value = make_response(status_code=500, reason="Server Error")

        result = run_sync(store, feed_url="https://shop.example.sk/feed.xml", session=mock_session)
        assert result.success is False
        assert result.error_type == "FetchError"
        assert result.retryable is True

    def test_held_lock_retryable(self, store, google_feed):
        store.acquire_sync_lock()

        result = run_sync(store, document=google_feed)
        assert result.error_type == SyncInProgressError.__name__
        assert result.retryable is True
        assert store.get_metadata().is_empty

    def test_store_failure_retryable(self, store, google_feed):
        store.replace_products = MagicMock(side_effect=StoreError("quota exceeded"))

        result = run_sync(store, document=google_feed)
        assert result.success is False
        assert result.retryable is True
        assert "quota exceeded" in result.error

    def test_lock_release_failure_keeps_original_error(self, store):
        store.release_sync_lock = MagicMock(side_effect=StoreError("connection reset"))

        result = run_sync(store, document="<catalog/>")
        assert result.error_type == "EmptyFeedError"
        assert result.retryable is False
        store.release_sync_lock.assert_called_once()

    def test_lock_release_failure_after_success(self, store, google_feed):
        store.release_sync_lock = MagicMock(side_effect=StoreError("connection reset"))

        result = run_sync(store, document=google_feed)
        assert result.success is True
        assert store.get_metadata().count == 3
