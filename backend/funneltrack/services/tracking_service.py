"""Funnel event and product click storage.

WHAT:
    Persists the events the storefront recorder sends: add-to-cart and
    checkout events (POST /search-to-cart) and product clicks
    (POST /product-click).

WHY:
    Clicks are the join key material for order correlation; cart and checkout
    events feed funnel reports and query-complexity feedback.

REFERENCES:
    - funneltrack/routers/tracking.py (HTTP entrypoints)
    - funneltrack/client/recorder.py (producer)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from funneltrack.models import (
    EventStreamEnum,
    EventTypeEnum,
    ProductClick,
    QueryComplexityFeedback,
    Store,
    TrackingEvent,
)
from funneltrack.telemetry import capture_exception

logger = logging.getLogger(__name__)


# event_type -> (stream, conversion_type, funnel_stage)
EVENT_ROUTING = {
    EventTypeEnum.add_to_cart.value: (EventStreamEnum.cart, "add_to_cart", "cart"),
    EventTypeEnum.checkout_initiated.value: (EventStreamEnum.checkout_events, "checkout_initiation", "checkout"),
    EventTypeEnum.checkout_completed.value: (EventStreamEnum.checkout_events, "purchase_completion", "purchase"),
}

# event_type -> (conversion_outcome, confidence_score)
FEEDBACK_OUTCOMES = {
    EventTypeEnum.checkout_completed.value: ("purchase_completed", 0.95),
    EventTypeEnum.checkout_initiated.value: ("checkout_initiated", 0.8),
    EventTypeEnum.add_to_cart.value: ("successful_purchase", 0.9),
}


class TrackingValidationError(ValueError):
    """Raised when a tracking request is missing required fields."""


@dataclass
class RecordedEvent:
    event: TrackingEvent
    feedback_recorded: bool


def route_event(event_type: str):
    """Return (stream, conversion_type, funnel_stage) for an event type.

    Unknown event types go to the generic stream without funnel classification.
    """
    return EVENT_ROUTING.get(event_type, (EventStreamEnum.tracking_events, None, None))


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _pre_classification(document: Dict[str, Any]) -> Optional[str]:
    """Complexity class attached by the search page, if any."""
    if document.get("search_classification"):
        return str(document["search_classification"])
    metadata = document.get("searchMetadata")
    if isinstance(metadata, dict) and metadata.get("classification"):
        return str(metadata["classification"])
    return None


def record_complexity_feedback(db: Session, store: Store, document: Dict[str, Any]) -> bool:
    """Store conversion feedback for a pre-classified search query.

    WHAT: Links the query's simple/complex class to the funnel step reached
    WHY: Feeds query classification tuning on the search side

    Returns:
        True when a feedback row was written. Events without a classification,
        events outside the funnel, and add-to-cart without a product are skipped.
    """
    event_type = document.get("event_type")
    if event_type not in FEEDBACK_OUTCOMES:
        return False
    if event_type == EventTypeEnum.add_to_cart.value and not document.get("product_id"):
        return False

    classification = _pre_classification(document)
    if not classification:
        return False

    outcome, confidence = FEEDBACK_OUTCOMES[event_type]
    feedback = QueryComplexityFeedback(
        store_id=store.id,
        query=document["search_query"],
        original_classification=classification,
        conversion_outcome=outcome,
        event_type=event_type,
        cart_total=_as_decimal(document.get("cart_total") or document.get("order_total")),
        cart_count=_as_int(document.get("cart_count")),
        order_id=str(document["order_id"]) if document.get("order_id") else None,
        product_id=str(document["product_id"]) if document.get("product_id") else None,
        feedback_type="conversion_based",
        confidence_score=confidence,
        context=store.context,
        search_metadata=document.get("searchMetadata"),
        was_pre_classified=True,
    )
    db.add(feedback)

    logger.info(
        f"[COMPLEXITY FEEDBACK] Query \"{document['search_query']}\" ({classification.upper()}) led to {event_type}"
    )
    return True


def record_tracking_event(
    db: Session,
    store: Store,
    document: Optional[Dict[str, Any]],
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> RecordedEvent:
    """Validate, enrich and persist a funnel event document.

    Raises:
        TrackingValidationError: missing event_type or search_query
    """
    if not document or not document.get("search_query") or not document.get("event_type"):
        raise TrackingValidationError("Missing required fields: search_query and event_type")

    event_type = str(document["event_type"])
    stream, conversion_type, funnel_stage = route_event(event_type)

    enriched = dict(document)
    enriched.setdefault("timestamp", datetime.utcnow().isoformat() + "Z")
    enriched["session_id"] = document.get("session_id") or None
    enriched["user_agent"] = user_agent
    enriched["ip_address"] = ip_address
    if conversion_type:
        enriched["conversion_type"] = conversion_type
        enriched["funnel_stage"] = funnel_stage

    event = TrackingEvent(
        store_id=store.id,
        event_type=event_type,
        stream=stream.value,
        session_id=enriched["session_id"],
        search_query=str(document["search_query"]),
        product_id=str(document["product_id"]) if document.get("product_id") is not None else None,
        conversion_type=conversion_type,
        funnel_stage=funnel_stage,
        document=enriched,
        user_agent=user_agent,
        ip_address=ip_address,
        event_timestamp=str(enriched["timestamp"]),
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info(
        f"[TRACKING] Stored {event_type} event",
        extra={
            "event_id": str(event.id),
            "store_id": str(store.id),
            "session_id": event.session_id,
            "stream": event.stream,
        },
    )

    # Feedback is best-effort: the event itself is already committed
    feedback_recorded = False
    try:
        feedback_recorded = record_complexity_feedback(db, store, document)
        if feedback_recorded:
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[COMPLEXITY FEEDBACK] Error recording query complexity feedback: {e}")
        capture_exception(e, extra={"event_id": str(event.id), "event_type": event_type})
        feedback_recorded = False

    return RecordedEvent(event=event, feedback_recorded=feedback_recorded)


def record_product_click(
    db: Session,
    store: Store,
    product_id: Any,
    session_id: Optional[str],
    product_name: Optional[str] = None,
    search_query: Optional[str] = None,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> ProductClick:
    """Persist a product click for later order correlation.

    Raises:
        TrackingValidationError: missing product_id or session_id
    """
    if product_id is None or str(product_id) == "" or not session_id:
        raise TrackingValidationError("Missing required fields: product_id and session_id")

    click = ProductClick(
        store_id=store.id,
        session_id=session_id,
        product_id=str(product_id),
        product_name=product_name,
        search_query=search_query,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    db.add(click)
    db.commit()
    db.refresh(click)

    logger.info(
        f"[TRACKING] Stored product click",
        extra={
            "click_id": str(click.id),
            "product_id": click.product_id,
            "session_id": session_id,
        },
    )
    return click


def list_session_clicks(db: Session, store: Store, session_id: str) -> List[ProductClick]:
    """Return the store's clicks for a session, oldest first."""
    return (
        db.query(ProductClick)
        .filter(
            ProductClick.store_id == store.id,
            ProductClick.session_id == session_id,
        )
        .order_by(ProductClick.created_at.asc())
        .all()
    )
