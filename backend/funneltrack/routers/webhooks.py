"""Commerce platform order webhooks.

WHAT:
    Receives order-created notifications and hands them to the session
    correlator, which joins the order to the search session's product clicks.

WHY:
    The order webhook is the only server-side signal that a tracked session
    converted; it carries the session id through checkout attributes.

WEBHOOKS:
    1. POST /webhooks/shopify/order-created (topic orders/create)

FLOW:
    1. Verify HMAC signature over the raw body (when enabled)
    2. Parse JSON and validate the order
    3. Find store by shop domain
    4. Ingest order (correlation, insert-if-absent)

REFERENCES:
    - https://shopify.dev/docs/apps/build/webhooks/subscribe/https
    - funneltrack/services/session_correlator.py
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from funneltrack.database import get_db
from funneltrack.deps import Settings, get_settings
from funneltrack.models import CheckoutOrder, Store
from funneltrack.schemas import OrderWebhookResponse
from funneltrack.security import verify_webhook_signature
from funneltrack.services.session_correlator import (
    OrderValidationError,
    ingest_order,
    parse_order_payload,
)
from funneltrack.services.stores import normalize_shop_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SUPPORTED_PROVIDERS = {"shopify"}

HMAC_HEADER = "X-Shopify-Hmac-SHA256"
SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"
TOPIC_HEADER = "X-Shopify-Topic"


@router.post("/{provider}/order-created", response_model=OrderWebhookResponse)
async def handle_order_created(
    provider: str,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Handle an order-created webhook.

    WHAT:
        Verifies, validates and stores the order once, attaching the clicks of
        the session id found in its note/cart attributes.

    RESPONSES:
        200 success   - order stored
        200 duplicate - order_id already stored; stored record left untouched
        200 ignored   - shop is not registered; acknowledged so the sender stops retrying
        400           - invalid JSON or malformed order
        401           - signature missing or invalid
        404           - unsupported provider
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unsupported webhook provider: {provider}"
        )

    body = await request.body()
    hmac_header = request.headers.get(HMAC_HEADER)
    shop_domain = normalize_shop_domain(request.headers.get(SHOP_DOMAIN_HEADER))
    topic = request.headers.get(TOPIC_HEADER)

    if settings.WEBHOOK_VERIFY_SIGNATURE:
        if not verify_webhook_signature(settings.SHOPIFY_API_SECRET, body, hmac_header):
            logger.warning(f"[WEBHOOK] {provider} order-created - Invalid signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook signature"
            )
    else:
        logger.debug("[WEBHOOK] Signature verification disabled by configuration")

    try:
        payload = json.loads(body)
    except ValueError as e:
        logger.error(f"[WEBHOOK] Failed to parse JSON: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    try:
        order_id = str(parse_order_payload(payload).id)
    except OrderValidationError as e:
        logger.warning(f"[WEBHOOK] Rejected order payload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        f"[WEBHOOK] {provider} order-created received",
        extra={
            "shop_domain": shop_domain,
            "order_id": order_id,
            "topic": topic,
        }
    )

    store = None
    if shop_domain:
        store = db.query(Store).filter(Store.shop_domain == shop_domain).first()

    if not store:
        logger.warning(f"[WEBHOOK] Shop not found: {shop_domain}")
        return OrderWebhookResponse(status="ignored", order_id=order_id)

    result = ingest_order(
        db=db,
        store=store,
        payload=payload,
        provider=provider,
        shop_domain=shop_domain,
        topic=topic,
    )

    order = result.order
    return OrderWebhookResponse(
        status=result.status,
        order_id=order.order_id,
        session_id=order.session_id,
        saved_to=CheckoutOrder.__tablename__,
        matched_clicks=bool(order.click_count),
    )
