"""Checkout events read model.

WHAT: Lists a store's correlated orders with a revenue summary
WHY: Analytics consumers read search-attributed revenue from GET /checkout-events
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from funneltrack.models import CheckoutOrder, Store

logger = logging.getLogger(__name__)

MIXED_CURRENCY = "MIXED"


@dataclass
class CheckoutFilter:
    days: int = 30
    limit: int = 100
    session_id: Optional[str] = None


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def serialize_order(order: CheckoutOrder) -> Dict[str, Any]:
    return {
        "order_id": order.order_id,
        "order_number": order.order_number,
        "name": order.name,
        "session_id": order.session_id,
        "shop_domain": order.shop_domain,
        "total_price": _to_float(order.total_price) or 0.0,
        "subtotal_price": _to_float(order.subtotal_price),
        "total_tax": _to_float(order.total_tax),
        "currency": order.currency,
        "financial_status": order.financial_status,
        "fulfillment_status": order.fulfillment_status,
        "customer": order.customer,
        "line_items": order.line_items or [],
        "processed": bool(order.processed),
        "matched_clicks": order.matched_clicks or [],
        "click_count": order.click_count or 0,
        "order_created_at": order.order_created_at,
        "created_at": order.created_at,
    }


def summarize(orders: List[CheckoutOrder]) -> Dict[str, Any]:
    """Count, revenue and average order value over a list of orders.

    Currency is the one shared by all orders, MIXED when they disagree,
    None for an empty list.
    """
    count = len(orders)
    total = sum((order.total_price or Decimal("0") for order in orders), Decimal("0"))
    currencies = {order.currency for order in orders}

    if not currencies:
        currency = None
    elif len(currencies) == 1:
        currency = currencies.pop()
    else:
        currency = MIXED_CURRENCY

    return {
        "count": count,
        "total_revenue": round(float(total), 2),
        "avg_order_value": round(float(total / count), 2) if count else 0.0,
        "currency": currency,
    }


def list_checkouts(db: Session, store: Store, checkout_filter: CheckoutFilter) -> Dict[str, Any]:
    """Return the summary and orders matching a filter, newest first.

    Pure read: no rows are modified.
    """
    since = datetime.utcnow() - timedelta(days=checkout_filter.days)

    query = db.query(CheckoutOrder).filter(
        CheckoutOrder.store_id == store.id,
        CheckoutOrder.order_created_at >= since,
    )
    if checkout_filter.session_id:
        query = query.filter(CheckoutOrder.session_id == checkout_filter.session_id)

    orders = (
        query.order_by(CheckoutOrder.order_created_at.desc())
        .limit(checkout_filter.limit)
        .all()
    )

    logger.debug(
        f"[CHECKOUT_EVENTS] Listed {len(orders)} orders",
        extra={
            "store_id": str(store.id),
            "days": checkout_filter.days,
            "session_id": checkout_filter.session_id,
        },
    )

    return {
        "success": True,
        "summary": summarize(orders),
        "orders": [serialize_order(order) for order in orders],
    }
