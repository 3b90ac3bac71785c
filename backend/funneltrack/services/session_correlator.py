"""Order ingestion and session correlation.

WHAT:
    Turns an order-created webhook payload into a persisted CheckoutOrder with
    the product clicks of the originating search session attached.

WHY:
    The storefront script tags every click with a session id and checkout
    carries the same id into the order's note attributes. Joining the two
    tells us which searches actually produced revenue.

FLOW:
    1. Validate payload (OrderValidationError on malformed orders)
    2. Extract session_id from note/cart attributes (may be absent)
    3. Load the store's clicks for that session
    4. Insert-if-absent on the unique order_id; redelivery returns the stored row

REFERENCES:
    - funneltrack/routers/webhooks.py (HTTP entrypoint)
    - funneltrack/models.py: CheckoutOrder, ProductClick
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from funneltrack.models import CheckoutOrder, Store
from funneltrack.schemas import NoteAttribute, ShopifyOrderPayload
from funneltrack.services.tracking_service import list_session_clicks

logger = logging.getLogger(__name__)

# Attribute names the checkout may use to carry the session id
SESSION_ATTRIBUTE_NAMES = ("session_id", "search_session_id")

CUSTOMER_FIELDS = ("id", "email", "first_name", "last_name", "phone")
LINE_ITEM_FIELDS = (
    "product_id",
    "variant_id",
    "title",
    "variant_title",
    "quantity",
    "price",
    "sku",
    "vendor",
)


class OrderValidationError(ValueError):
    """Raised when an order payload is missing or has malformed required fields."""


@dataclass
class IngestionResult:
    """Outcome of a single webhook delivery."""
    status: str  # "success" or "duplicate"
    order: CheckoutOrder

    @property
    def is_duplicate(self) -> bool:
        return self.status == "duplicate"


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================


def parse_order_payload(payload: Any) -> ShopifyOrderPayload:
    """Validate a decoded webhook body.

    Raises:
        OrderValidationError: body is not an object or fails validation
    """
    if not isinstance(payload, dict):
        raise OrderValidationError("Order payload must be a JSON object")

    try:
        return ShopifyOrderPayload.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise OrderValidationError(f"Invalid order payload: {fields}") from e


def _attribute_value(attributes: List[NoteAttribute]) -> Optional[str]:
    for attribute in attributes:
        if attribute.name in SESSION_ATTRIBUTE_NAMES and attribute.value:
            return str(attribute.value)
    return None


def extract_session_id(order: ShopifyOrderPayload) -> Optional[str]:
    """Find the search session id carried through checkout.

    WHAT: Looks in note_attributes first, then cart `attributes` (list or mapping)
    WHY: Themes differ in where they persist the id; absence is valid
    """
    session_id = _attribute_value(order.note_attributes)
    if session_id:
        return session_id

    attributes = order.attributes
    if isinstance(attributes, dict):
        for name in SESSION_ATTRIBUTE_NAMES:
            if attributes.get(name):
                return str(attributes[name])
    elif attributes:
        return _attribute_value(attributes)

    return None


def _to_naive_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _customer_record(customer: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not customer:
        return None
    return {field: customer.get(field) for field in CUSTOMER_FIELDS}


def _line_item_records(line_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{field: item.get(field) for field in LINE_ITEM_FIELDS} for item in line_items]


# =============================================================================
# CORRELATION
# =============================================================================


def find_session_clicks(db: Session, store: Store, session_id: Optional[str]) -> List[Dict[str, Any]]:
    """Return the store's clicks for a session as plain dicts, oldest first.

    An absent session id matches nothing.
    """
    if not session_id:
        return []
    return [click.to_dict() for click in list_session_clicks(db, store, session_id)]


def build_order_record(
    store: Store,
    order: ShopifyOrderPayload,
    raw_payload: Dict[str, Any],
    session_id: Optional[str],
    matched_clicks: List[Dict[str, Any]],
    provider: str,
    shop_domain: Optional[str],
    topic: Optional[str],
) -> CheckoutOrder:
    """Map a validated order payload to a CheckoutOrder row."""
    order_number = order.order_number
    return CheckoutOrder(
        order_id=str(order.id),
        order_number=order_number,
        name=order.name or (f"#{order_number}" if order_number else None),
        store_id=store.id,
        shop_domain=shop_domain,
        session_id=session_id,
        total_price=order.total_price,
        subtotal_price=order.subtotal_price,
        total_tax=order.total_tax,
        currency=order.currency or "USD",
        financial_status=order.financial_status,
        fulfillment_status=order.fulfillment_status,
        note=order.note,
        customer=_customer_record(order.customer),
        line_items=_line_item_records(order.line_items),
        source={
            "provider": provider,
            "shop_domain": shop_domain,
            "topic": topic,
            "raw": raw_payload,
        },
        processed=True,
        matched_clicks=matched_clicks,
        click_count=len(matched_clicks),
        order_created_at=_to_naive_utc(order.created_at),
    )


def get_order(db: Session, order_id: str) -> Optional[CheckoutOrder]:
    return db.query(CheckoutOrder).filter(CheckoutOrder.order_id == order_id).first()


def ingest_order(
    db: Session,
    store: Store,
    payload: Any,
    provider: str = "shopify",
    shop_domain: Optional[str] = None,
    topic: Optional[str] = None,
) -> IngestionResult:
    """Persist an order exactly once and attach its session's clicks.

    WHAT:
        Validates the payload, correlates it with stored clicks and inserts it.

    WHY:
        Webhook senders retry on slow or ambiguous responses. The insert relies
        on the unique order_id constraint instead of a read-then-write check, so
        concurrent redeliveries cannot both insert.

    Args:
        db: Database session
        store: Store the order belongs to
        payload: Decoded JSON body of the webhook
        provider: Commerce platform name (path parameter)
        shop_domain: X-Shopify-Shop-Domain header
        topic: X-Shopify-Topic header

    Returns:
        IngestionResult with status "success" or "duplicate"

    Raises:
        OrderValidationError: malformed payload (nothing persisted)
    """
    order = parse_order_payload(payload)
    order_id = str(order.id)
    session_id = extract_session_id(order)
    matched_clicks = find_session_clicks(db, store, session_id)

    record = build_order_record(
        store=store,
        order=order,
        raw_payload=payload,
        session_id=session_id,
        matched_clicks=matched_clicks,
        provider=provider,
        shop_domain=shop_domain,
        topic=topic,
    )

    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_order(db, order_id)
        if existing is None:
            # Constraint violation unrelated to order_id
            raise
        logger.info(
            f"[CORRELATOR] Order already ingested, skipping write",
            extra={"order_id": order_id},
        )
        return IngestionResult(status="duplicate", order=existing)

    db.refresh(record)

    logger.info(
        f"[CORRELATOR] Stored order {order_id}",
        extra={
            "order_id": order_id,
            "session_id": session_id,
            "click_count": record.click_count,
            "store_id": str(store.id),
        },
    )
    if not session_id:
        logger.info(f"[CORRELATOR] Order {order_id} carried no session id")

    return IngestionResult(status="success", order=record)
