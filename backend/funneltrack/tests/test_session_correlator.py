"""Unit tests for order ingestion and session correlation.

WHAT: Tests session id extraction, payload validation and insert-if-absent
WHY: Correlation must tolerate theme differences in where the session id
     lives, and redelivery must never create a second order

REFERENCES:
  - funneltrack/services/session_correlator.py
"""

import pytest

from funneltrack.models import CheckoutOrder
from funneltrack.services.session_correlator import (
    OrderValidationError,
    extract_session_id,
    ingest_order,
    parse_order_payload,
)
from funneltrack.tests.conftest import make_order_payload


class TestExtractSessionId:

    def test_note_attributes(self):
        order = parse_order_payload(make_order_payload(session_id="sess-1"))
        assert extract_session_id(order) == "sess-1"

    def test_search_session_id_attribute_name(self):
        payload = make_order_payload()
        payload["note_attributes"] = [
            {"name": "gift_message", "value": "Cheers"},
            {"name": "search_session_id", "value": "sess-2"},
        ]
        assert extract_session_id(parse_order_payload(payload)) == "sess-2"

    def test_cart_attributes_mapping(self):
        payload = make_order_payload()
        payload["attributes"] = {"session_id": "sess-3"}
        assert extract_session_id(parse_order_payload(payload)) == "sess-3"

    def test_cart_attributes_list(self):
        payload = make_order_payload()
        payload["attributes"] = [{"name": "session_id", "value": "sess-4"}]
        assert extract_session_id(parse_order_payload(payload)) == "sess-4"

    def test_note_attributes_take_precedence(self):
        payload = make_order_payload(session_id="sess-note")
        payload["attributes"] = {"session_id": "sess-cart"}
        assert extract_session_id(parse_order_payload(payload)) == "sess-note"

    def test_absent(self):
        payload = make_order_payload()
        payload["note_attributes"] = None
        assert extract_session_id(parse_order_payload(payload)) is None

    def test_empty_value_is_absent(self):
        payload = make_order_payload()
        payload["note_attributes"] = [{"name": "session_id", "value": ""}]
        assert extract_session_id(parse_order_payload(payload)) is None


class TestParseOrderPayload:

    def test_numeric_id(self):
        payload = make_order_payload()
        payload["id"] = 820982911946154500
        assert str(parse_order_payload(payload).id) == "820982911946154500"

    def test_unknown_fields_are_kept(self):
        payload = make_order_payload()
        payload["tags"] = "vip"
        assert parse_order_payload(payload).model_extra["tags"] == "vip"

    @pytest.mark.parametrize("payload", [None, [], "order", {"total_price": "10.00"}])
    def test_invalid(self, payload):
        with pytest.raises(OrderValidationError):
            parse_order_payload(payload)


class TestIngestOrder:

    def test_insert_then_duplicate(self, test_db_session, test_store, add_clicks):
        add_clicks(test_store, "sess-1", ["111", "222"])
        payload = make_order_payload(order_id="5001", session_id="sess-1")

        first = ingest_order(test_db_session, test_store, payload)
        second = ingest_order(test_db_session, test_store, payload)

        assert first.status == "success"
        assert not first.is_duplicate
        assert first.order.click_count == 2
        assert second.is_duplicate
        assert second.order.id == first.order.id
        assert test_db_session.query(CheckoutOrder).count() == 1

    def test_malformed_payload_persists_nothing(self, test_db_session, test_store):
        with pytest.raises(OrderValidationError):
            ingest_order(test_db_session, test_store, {"id": ""})

        assert test_db_session.query(CheckoutOrder).count() == 0

    def test_name_defaults_from_order_number(self, test_db_session, test_store):
        payload = make_order_payload(order_id="5010")
        del payload["name"]

        result = ingest_order(test_db_session, test_store, payload)

        assert result.order.name == "#1001"

    def test_timezone_aware_created_at_is_stored_as_utc(self, test_db_session, test_store):
        payload = make_order_payload(order_id="5011")
        payload["created_at"] = "2026-10-19T14:00:00+02:00"

        result = ingest_order(test_db_session, test_store, payload)

        assert result.order.order_created_at.hour == 12
        assert result.order.order_created_at.tzinfo is None
