"""Tracking endpoints for the storefront event recorder.

WHAT:
    Receives funnel events (add to cart, checkout initiated/completed) and
    product clicks from the storefront script, and serves a session's clicks
    back to it.

WHY:
    Clicks tagged with a session id are what order webhooks are later joined
    against; funnel events feed conversion reporting.

REFERENCES:
    - funneltrack/client/recorder.py (producer)
    - funneltrack/services/tracking_service.py
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from funneltrack.database import get_db
from funneltrack.deps import get_current_store
from funneltrack.models import Store
from funneltrack.schemas import (
    ProductClickRequest,
    ProductClickResponse,
    SessionClicksResponse,
    TrackEventRequest,
    TrackEventResponse,
)
from funneltrack.services.tracking_service import (
    TrackingValidationError,
    list_session_clicks,
    record_product_click,
    record_tracking_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tracking"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post(
    "/search-to-cart",
    response_model=TrackEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def track_search_to_cart(
    request: Request,
    payload: TrackEventRequest,
    db: Session = Depends(get_db),
    store: Store = Depends(get_current_store),
):
    """Store an add-to-cart or checkout event.

    Raises:
        HTTPException 400: document, event_type or search_query missing
        HTTPException 401: invalid or missing API key
    """
    try:
        recorded = record_tracking_event(
            db=db,
            store=store,
            document=payload.document,
            user_agent=request.headers.get("user-agent"),
            ip_address=_client_ip(request),
        )
    except TrackingValidationError as e:
        logger.warning(f"[TRACKING] Rejected event: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    event = recorded.event
    return TrackEventResponse(
        success=True,
        message=f"{event.event_type} event saved successfully",
        id=str(event.id),
        collection=event.stream,
        complexity_feedback_recorded=recorded.feedback_recorded,
    )


@router.post(
    "/product-click",
    response_model=ProductClickResponse,
    status_code=status.HTTP_201_CREATED,
)
async def track_product_click(
    request: Request,
    payload: ProductClickRequest,
    db: Session = Depends(get_db),
    store: Store = Depends(get_current_store),
):
    """Store a product click from a search results page."""
    try:
        click = record_product_click(
            db=db,
            store=store,
            product_id=payload.product_id,
            session_id=payload.session_id,
            product_name=payload.product_name,
            search_query=payload.search_query,
            user_agent=request.headers.get("user-agent"),
            ip_address=_client_ip(request),
        )
    except TrackingValidationError as e:
        logger.warning(f"[TRACKING] Rejected click: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ProductClickResponse(success=True, id=str(click.id), session_id=click.session_id)


@router.get("/product-clicks/{session_id}", response_model=SessionClicksResponse)
async def get_product_clicks(
    session_id: str,
    db: Session = Depends(get_db),
    store: Store = Depends(get_current_store),
):
    """Return all clicks the calling store recorded for a session."""
    clicks = list_session_clicks(db, store, session_id)
    return SessionClicksResponse(
        session_id=session_id,
        count=len(clicks),
        clicks=[click.to_dict() for click in clicks],
    )
