"""API tests for the Shopify order webhook."""

import json
from datetime import date

from sqlalchemy import func, select

from batchtrace.core.alerting import alert_manager
from batchtrace.core.metrics import metrics
from batchtrace.core.security import compute_webhook_hmac
from batchtrace.models.order import Order

TEST_SHOP = "test-shop.myshopify.com"
WEBHOOK_SECRET = "test-webhook-secret"

WEBHOOK_URL = "/api/v1/webhooks/shopify/orders"


def _payload(order_id=5001, quantity=3):
    return {
        "id": order_id,
        "email": "jane@example.com",
        "created_at": "2025-08-04T10:00:00-04:00",
        "customer": {"first_name": "Jane", "last_name": "Doe"},
        "line_items": [{"id": 1, "product_id": 1001, "title": "Honey 500g", "sku": "HON-500", "quantity": quantity}],
    }


def _deliver(client, payload, topic="orders/create", secret=WEBHOOK_SECRET, shop=TEST_SHOP):
    body = json.dumps(payload).encode("utf-8") if not isinstance(payload, bytes) else payload
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": compute_webhook_hmac(body, secret),
        "X-Shopify-Topic": topic,
    }
    if shop:
        headers["X-Shopify-Shop-Domain"] = shop
    return client.post(WEBHOOK_URL, content=body, headers=headers)


class TestShopifyOrderWebhook:
    def test_processes_signed_order(self, client, db_session, make_product, make_batch):
        product = make_product()
        make_batch(product, "B1", 10, date(2025, 9, 1))

        response = _deliver(client, _payload())

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] is True
        assert data["duplicate"] is False
        assert data["allocated_quantity"] == 3
        order = db_session.execute(select(Order)).scalar_one()
        assert order.external_order_id == "5001"
        assert order.tenant == TEST_SHOP
        assert order.customer_label == "Jane Doe"

    def test_redelivery_is_idempotent(self, client, db_session, make_product, make_batch):
        product = make_product()
        make_batch(product, "B1", 10)

        _deliver(client, _payload())
        response = _deliver(client, _payload())

        assert response.json()["duplicate"] is True
        assert db_session.execute(select(func.count(Order.id))).scalar_one() == 1

    def test_bad_signature_rejected(self, client):
        response = _deliver(client, _payload(), secret="wrong-secret")
        assert response.status_code == 401

    def test_missing_shop_domain(self, client):
        response = _deliver(client, _payload(), shop=None)
        assert response.status_code == 400

    def test_unhandled_topic_acknowledged(self, client, db_session):
        response = _deliver(client, _payload(), topic="orders/cancelled")

        assert response.status_code == 200
        assert response.json()["processed"] is False
        assert db_session.execute(select(func.count(Order.id))).scalar_one() == 0

    def test_malformed_payload_acknowledged_and_alerted(self, client):
        response = _deliver(client, b"not json")

        assert response.status_code == 200
        assert response.json() == {"received": True, "processed": False, "error": "invalid_payload"}
        assert metrics.counters["webhook_failures_total"] == 1
        assert alert_manager.get_recent(level="critical")[0]["source"] == "webhook"

    def test_order_without_allocatable_lines_acknowledged(self, client):
        response = _deliver(client, _payload(quantity=0))

        assert response.status_code == 200
        assert response.json()["error"] == "INVALID_INPUT"
        assert metrics.counters["webhook_failures_total"] == 1

    def test_processing_failure_acknowledged(self, client, db_session, make_product, make_batch, monkeypatch):
        from batchtrace.services.allocation_engine import AllocationEngine

        def explode(self, *args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(AllocationEngine, "process_order", explode)

        response = _deliver(client, _payload())

        assert response.status_code == 200
        assert response.json()["error"] == "internal_error"
        assert metrics.counters["webhook_failures_total"] == 1
        alert = alert_manager.get_recent(level="critical")[0]
        assert alert["context"]["order"] == "5001"
