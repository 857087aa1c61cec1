"""Tests for product metadata hint resolution against the Shopify Admin API."""

import httpx
import pytest

from batchtrace.core.exceptions import MetadataResolverUnavailable
from batchtrace.services.metadata_resolver import (
    NullMetadataResolver,
    ProductHints,
    ShopifyMetadataResolver,
    StaticMetadataResolver,
)
from batchtrace.services.tenant_credentials import TenantCredentialStore

SHOP = "test-shop.myshopify.com"


def _metafields(*fields):
    return {"metafields": [
        {"namespace": ns, "key": key, "value": value} for ns, key, value in fields
    ]}


def _resolver(handler, token="shpat_test", **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    kwargs.setdefault("max_attempts", 3)
    kwargs.setdefault("retry_backoff", 0)
    return ShopifyMetadataResolver(lambda shop: token, client=client, **kwargs)


class TestShopifyMetadataResolver:
    def test_reads_hints(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=_metafields(
                ("batch_tracking", "shelf_life_days", "30"),
                ("batch_tracking", "default_batch_quantity", 100),
                ("other", "shelf_life_days", "999"),
            ))

        hints = _resolver(handler, api_version="2024-07").resolve_product_hints(SHOP, "1001")

        assert hints == ProductHints(shelf_life_days=30, default_batch_quantity=100)
        request = requests[0]
        assert request.url.host == SHOP
        assert request.url.path == "/admin/api/2024-07/products/1001/metafields.json"
        assert request.url.params["namespace"] == "batch_tracking"
        assert request.headers["X-Shopify-Access-Token"] == "shpat_test"

    def test_no_metafields_means_no_hints(self):
        hints = _resolver(lambda r: httpx.Response(200, json={"metafields": []})).resolve_product_hints(SHOP, "1")
        assert hints.is_empty

    @pytest.mark.parametrize("value", ["abc", "0", "-5", None, True])
    def test_unusable_values_ignored(self, value):
        handler = lambda r: httpx.Response(200, json=_metafields(("batch_tracking", "shelf_life_days", value)))
        assert _resolver(handler).resolve_product_hints(SHOP, "1").shelf_life_days is None

    def test_not_found_means_no_hints(self):
        hints = _resolver(lambda r: httpx.Response(404, json={"errors": "Not Found"})).resolve_product_hints(SHOP, "1")
        assert hints.is_empty

    def test_malformed_body_means_no_hints(self):
        hints = _resolver(lambda r: httpx.Response(200, content=b"<html>")).resolve_product_hints(SHOP, "1")
        assert hints.is_empty

    def test_server_errors_retried_then_succeed(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=_metafields(("batch_tracking", "shelf_life_days", "7")))

        hints = _resolver(handler).resolve_product_hints(SHOP, "1")

        assert len(attempts) == 3
        assert hints.shelf_life_days == 7

    def test_timeouts_exhaust_into_unavailable(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(MetadataResolverUnavailable):
            _resolver(handler, max_attempts=2).resolve_product_hints(SHOP, "1")
        assert len(attempts) == 2

    def test_backoff_between_attempts(self):
        sleeps = []

        def handler(request):
            return httpx.Response(500)

        resolver = _resolver(handler, max_attempts=3, retry_backoff=0.5, sleep=sleeps.append)
        with pytest.raises(MetadataResolverUnavailable):
            resolver.resolve_product_hints(SHOP, "1")

        assert sleeps == [0.5, 1.0]

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failure_is_unavailable(self, status_code):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(status_code)

        with pytest.raises(MetadataResolverUnavailable):
            _resolver(handler).resolve_product_hints(SHOP, "1")
        assert len(attempts) == 1

    def test_missing_credentials_is_unavailable(self):
        def handler(request):
            raise AssertionError("no request expected without credentials")

        with pytest.raises(MetadataResolverUnavailable):
            _resolver(handler, token=None).resolve_product_hints(SHOP, "1")


class TestCredentialLookup:
    def test_token_read_from_store(self, db_session):
        store = TenantCredentialStore(db_session)
        store.save("Test-Shop.myshopify.com", "shpat_abc")
        db_session.commit()

        assert store.get_access_token(SHOP) == "shpat_abc"
        assert store.get_access_token("other.myshopify.com") is None

    def test_save_replaces_token(self, db_session):
        store = TenantCredentialStore(db_session)
        store.save(SHOP, "old")
        store.save(SHOP, "new")

        assert store.get_access_token(SHOP) == "new"


class TestLocalResolvers:
    def test_null_resolver(self):
        assert NullMetadataResolver().resolve_product_hints(SHOP, "1").is_empty

    def test_static_resolver_records_calls(self):
        resolver = StaticMetadataResolver({"1": ProductHints(shelf_life_days=3)})

        assert resolver.resolve_product_hints(SHOP, "1").shelf_life_days == 3
        assert resolver.resolve_product_hints(SHOP, "2").is_empty
        assert resolver.calls == [(SHOP, "1"), (SHOP, "2")]
