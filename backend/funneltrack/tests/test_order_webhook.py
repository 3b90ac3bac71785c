"""Tests for the order-created webhook.

WHAT: Tests POST /webhooks/{provider}/order-created end to end
WHY: This is the only place orders are joined to search sessions; it must be
     idempotent under redelivery and reject forged or malformed requests

REFERENCES:
  - funneltrack/routers/webhooks.py
  - funneltrack/services/session_correlator.py
"""

import json

import pytest

from funneltrack.models import CheckoutOrder
from funneltrack.security import compute_webhook_signature
from funneltrack.tests.conftest import SHOP_DOMAIN, WEBHOOK_SECRET, make_order_payload, signed_request


class TestOrderCorrelation:
    """Orders pick up the clicks of the session carried through checkout."""

    def test_order_matches_session_clicks(self, test_store, add_clicks, post_order, test_db_session):
        """Order 5001 for sess-1 with two prior clicks gets both attached."""
        add_clicks(test_store, "sess-1", ["111", "222"])

        response = post_order(make_order_payload(order_id="5001", session_id="sess-1"))

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["order_id"] == "5001"
        assert data["session_id"] == "sess-1"
        assert data["saved_to"] == "shopify_orders"
        assert data["matched_clicks"] is True

        order = test_db_session.query(CheckoutOrder).filter_by(order_id="5001").one()
        assert order.click_count == 2
        assert len(order.matched_clicks) == 2
        assert [c["product_id"] for c in order.matched_clicks] == ["111", "222"]
        assert order.processed is True

    def test_session_without_clicks_yields_empty_match(self, test_store, post_order, test_db_session):
        response = post_order(make_order_payload(order_id="5002", session_id="sess-nothing"))

        assert response.status_code == 200
        assert response.json()["matched_clicks"] is False

        order = test_db_session.query(CheckoutOrder).filter_by(order_id="5002").one()
        assert order.session_id == "sess-nothing"
        assert order.matched_clicks == []
        assert order.click_count == 0

    def test_missing_session_id_is_stored_as_null(self, test_store, post_order, test_db_session):
        response = post_order(make_order_payload(order_id="5003"))

        assert response.status_code == 200
        assert response.json()["session_id"] is None

        order = test_db_session.query(CheckoutOrder).filter_by(order_id="5003").one()
        assert order.session_id is None
        assert order.click_count == 0

    def test_clicks_of_other_store_are_not_matched(
        self, test_store, test_store_b, add_clicks, post_order, test_db_session
    ):
        add_clicks(test_store_b, "sess-shared", ["999"])

        post_order(make_order_payload(order_id="5004", session_id="sess-shared"))

        order = test_db_session.query(CheckoutOrder).filter_by(order_id="5004").one()
        assert order.click_count == 0

    def test_order_record_fields(self, test_store, post_order, test_db_session):
        post_order(make_order_payload(order_id="5005", session_id="sess-5", total_price="42.50"))

        order = test_db_session.query(CheckoutOrder).filter_by(order_id="5005").one()
        assert float(order.total_price) == 42.5
        assert order.currency == "USD"
        assert order.store_id == test_store.id
        assert order.shop_domain == SHOP_DOMAIN
        assert order.customer["email"] == "buyer@example.com"
        assert "accepts_marketing" not in order.customer
        assert order.line_items[0]["title"] == "Wine A"
        assert "gift_card" not in order.line_items[0]
        assert order.source["provider"] == "shopify"
        assert order.source["topic"] == "orders/create"
        assert order.source["raw"]["id"] == "5005"


class TestIdempotency:
    """Redelivery of the same order stores it once."""

    def test_duplicate_delivery_stores_one_record(self, test_store, add_clicks, post_order, test_db_session):
        add_clicks(test_store, "sess-1", ["111"])
        payload = make_order_payload(order_id="6001", session_id="sess-1")

        first = post_order(payload)
        second = post_order(payload)

        assert first.json()["status"] == "success"
        assert second.status_code == 200
        assert second.json()["status"] == "duplicate"
        assert second.json()["order_id"] == "6001"
        assert test_db_session.query(CheckoutOrder).filter_by(order_id="6001").count() == 1

    def test_duplicate_leaves_stored_record_untouched(self, test_store, add_clicks, post_order, test_db_session):
        post_order(make_order_payload(order_id="6002", session_id="sess-a", total_price="10.00"))

        # Clicks arriving later and a changed redelivery must not alter the stored order
        add_clicks(test_store, "sess-a", ["111"])
        response = post_order(make_order_payload(order_id="6002", session_id="sess-a", total_price="99.00"))

        assert response.json()["status"] == "duplicate"
        order = test_db_session.query(CheckoutOrder).filter_by(order_id="6002").one()
        assert float(order.total_price) == 10.0
        assert order.click_count == 0


class TestSignature:
    """HMAC-SHA256 verification over the raw body."""

    def test_tampered_body_is_rejected(self, test_store, client, test_db_session):
        body, headers = signed_request(make_order_payload(order_id="7001"))
        tampered = body.replace(b"150.00", b"1.00")

        response = client.post("/webhooks/shopify/order-created", content=tampered, headers=headers)

        assert response.status_code == 401
        assert test_db_session.query(CheckoutOrder).count() == 0

    def test_missing_signature_is_rejected(self, test_store, client):
        body, headers = signed_request(make_order_payload(order_id="7002"))
        del headers["X-Shopify-Hmac-SHA256"]

        response = client.post("/webhooks/shopify/order-created", content=body, headers=headers)

        assert response.status_code == 401

    def test_wrong_secret_is_rejected(self, test_store, client):
        body, headers = signed_request(make_order_payload(order_id="7003"), secret="not-the-secret")

        response = client.post("/webhooks/shopify/order-created", content=body, headers=headers)

        assert response.status_code == 401

    def test_recomputed_signature_is_accepted(self, test_store, client):
        payload = make_order_payload(order_id="7004")
        payload["total_price"] = "1.00"
        body, headers = signed_request(payload)

        response = client.post("/webhooks/shopify/order-created", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "success"

    def test_non_ascii_signature_is_rejected(self, test_store, client, test_db_session):
        body, headers = signed_request(make_order_payload(order_id="7006"))
        headers["X-Shopify-Hmac-SHA256"] = b"\xe9bad"

        response = client.post("/webhooks/shopify/order-created", content=body, headers=headers)

        assert response.status_code == 401
        assert test_db_session.query(CheckoutOrder).count() == 0

    def test_verification_can_be_disabled(self, test_store, client, settings):
        settings.WEBHOOK_VERIFY_SIGNATURE = False
        body = json.dumps(make_order_payload(order_id="7005")).encode("utf-8")

        response = client.post(
            "/webhooks/shopify/order-created",
            content=body,
            headers={"X-Shopify-Shop-Domain": SHOP_DOMAIN},
        )

        assert response.status_code == 200


class TestRejectedRequests:
    """Client errors and acknowledgements that persist nothing."""

    def test_unsupported_provider_returns_404(self, test_store, post_order):
        response = post_order(make_order_payload(), provider="woocommerce")

        assert response.status_code == 404

    def test_invalid_json_returns_400(self, test_store, client):
        body = b"{not json"
        _, headers = signed_request({})
        headers["X-Shopify-Hmac-SHA256"] = compute_webhook_signature(WEBHOOK_SECRET, body)

        response = client.post("/webhooks/shopify/order-created", content=body, headers=headers)

        assert response.status_code == 400

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda p: p.pop("id"),
            lambda p: p.update(id="   "),
            lambda p: p.update(total_price="not-a-number"),
            lambda p: p.update(line_items="nope"),
        ],
    )
    def test_malformed_order_returns_400(self, test_store, post_order, test_db_session, mutate):
        payload = make_order_payload(order_id="8001")
        mutate(payload)

        response = post_order(payload)

        assert response.status_code == 400
        assert test_db_session.query(CheckoutOrder).count() == 0

    def test_non_object_body_returns_400(self, test_store, post_order):
        response = post_order(["not", "an", "order"])

        assert response.status_code == 400

    def test_unknown_shop_is_ignored(self, test_store, post_order, test_db_session):
        response = post_order(make_order_payload(order_id="8002"), shop_domain="unknown.myshopify.com")

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
        assert response.json()["order_id"] == "8002"
        assert test_db_session.query(CheckoutOrder).count() == 0

    def test_shop_domain_header_is_normalized(self, test_store, post_order, test_db_session):
        response = post_order(make_order_payload(order_id="8003"), shop_domain="TEST-STORE.myshopify.com")

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        order = test_db_session.query(CheckoutOrder).filter_by(order_id="8003").one()
        assert order.store_id == test_store.id
        assert order.shop_domain == SHOP_DOMAIN
