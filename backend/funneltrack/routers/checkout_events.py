"""Checkout events read API.

WHAT: Lists correlated orders for the calling store with a revenue summary
WHY: Analytics consumers need search-attributed revenue per session and period
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from funneltrack.database import get_db
from funneltrack.deps import Settings, get_current_store, get_settings
from funneltrack.models import Store
from funneltrack.schemas import CheckoutEventsResponse
from funneltrack.services.checkout_report import CheckoutFilter, list_checkouts

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Checkout Events"])


@router.get("/checkout-events", response_model=CheckoutEventsResponse)
def get_checkout_events(
    session_id: Optional[str] = Query(None, description="Only orders placed by this session"),
    days: Optional[int] = Query(None, ge=1, description="Look-back window in days (default 30)"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of orders (default 100, capped at 1000)"),
    db: Session = Depends(get_db),
    store: Store = Depends(get_current_store),
    settings: Settings = Depends(get_settings),
):
    """Return checkout orders, newest first, with count/revenue/AOV summary."""
    checkout_filter = CheckoutFilter(
        days=days or settings.CHECKOUT_EVENTS_DEFAULT_DAYS,
        limit=min(limit or settings.CHECKOUT_EVENTS_DEFAULT_LIMIT, settings.CHECKOUT_EVENTS_MAX_LIMIT),
        session_id=session_id or None,
    )
    return list_checkouts(db, store, checkout_filter)
