"""Storefront event recorder.

WHAT:
    Sends funnel events (product click, add to cart, checkout initiated,
    checkout completed) tagged with the session id and last search to the
    tracking API.

WHY:
    Search attribution needs every event to carry the search that led to it.
    Tracking is fire-and-forget telemetry: a failed call must never break the
    page flow that triggered it, so transport errors are logged and the call
    resolves to None.

USAGE:
    async with EventRecorder("https://api.example.com/search-to-cart", api_key) as recorder:
        recorder.record_search("red wine dry", ["Wine A", "Wine B"])
        await recorder.track_add_to_cart("12345", quantity=2)

REFERENCES:
    - funneltrack/routers/tracking.py (receiving endpoints)
    - funneltrack/client/session.py (session state)
"""

import asyncio
import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

import httpx

from funneltrack.client.session import SessionContext

logger = logging.getLogger(__name__)

TRACK_PATH = "/search-to-cart"
CLICK_PATH = "/product-click"
SESSION_CLICKS_PATH = "/product-clicks"

PRODUCT_CLICK = "product_click"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode(body: Dict[str, Any]) -> bytes:
    return json.dumps(body, default=_json_default).encode("utf-8")


def _swap_path(endpoint: str, path: str) -> str:
    """Replace the /search-to-cart suffix of the endpoint with another path."""
    if TRACK_PATH in endpoint:
        return endpoint.replace(TRACK_PATH, path, 1)
    return endpoint.rstrip("/") + path


def _normalize_payload(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    data = dict(payload or {})
    # Theme scripts use camelCase
    if "productId" in data:
        data.setdefault("product_id", data.pop("productId"))
    if data.get("product_id") is not None:
        data["product_id"] = str(data["product_id"])
    return data


class EventRecorder:
    """Async tracking client for one browsing session.

    Args:
        endpoint: Full URL of the tracking endpoint (ending in /search-to-cart)
        api_key: Store API key sent as X-API-Key
        context: Session state; a fresh in-memory session when omitted
        client: httpx.AsyncClient to reuse; one is created (and owned) when omitted
        timeout: Request timeout in seconds for an owned client
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        context: Optional[SessionContext] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.context = context if context is not None else SessionContext()
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "EventRecorder":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def session_id(self) -> str:
        return self.context.session_id

    @property
    def _headers(self) -> Dict[str, str]:
        return {"X-API-Key": self.api_key}

    # =========================================================================
    # SEARCH CONTEXT
    # =========================================================================

    def record_search(
        self,
        query: str,
        primary_results: Sequence[Any],
        secondary_results: Sequence[Any] = (),
    ) -> None:
        """Store the current search; later events carry it until the next search."""
        self.context.store_search(query, primary_results, secondary_results)

    # =========================================================================
    # EMISSION
    # =========================================================================

    def _compose(self, event_type: str, payload: Optional[Dict[str, Any]]):
        """Snapshot session state and build (url, body) for an event."""
        search = self.context.search_context()
        session_id = self.context.session_id
        data = _normalize_payload(payload)

        if event_type == PRODUCT_CLICK:
            body = {
                "product_id": data.get("product_id"),
                "product_name": data.get("product_name"),
                "search_query": search.query,
                "session_id": session_id,
            }
            return _swap_path(self.endpoint, CLICK_PATH), body

        document = {
            "event_type": event_type,
            "search_query": search.query,
            "search_results": search.search_results,
            "tier2_results": search.tier2_results,
            "session_id": session_id,
            "timestamp": _timestamp(),
        }
        document.update(data)
        return self.endpoint, {"document": document}

    async def _send(self, event_type: str, url: str, body: Dict[str, Any]) -> Optional[Any]:
        try:
            content = _encode(body)
        except (TypeError, ValueError) as e:
            logger.error(f"[RECORDER] {event_type} payload could not be encoded: {e}")
            return None

        headers = {**self._headers, "Content-Type": "application/json"}
        try:
            response = await self._client.post(url, content=content, headers=headers)
            result = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[RECORDER] {event_type} not delivered: {e}")
            return None
        except ValueError as e:
            logger.error(f"[RECORDER] {event_type} response was not JSON: {e}")
            return None

        if response.status_code >= 400:
            logger.warning(
                f"[RECORDER] {event_type} rejected with HTTP {response.status_code}",
                extra={"event_type": event_type, "response": result},
            )
        else:
            logger.debug(f"[RECORDER] {event_type} tracked", extra={"event_type": event_type})
        return result

    async def emit(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        """Send an event and return the decoded response, or None on failure.

        Never raises for transport or encoding problems.
        """
        url, body = self._compose(event_type, payload)
        return await self._send(event_type, url, body)

    def emit_nowait(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> "asyncio.Task":
        """Schedule an event on the running loop and return its task.

        The search context is captured now, so a later record_search does not
        leak into this event. The task never fails; errors are only logged.
        """
        url, body = self._compose(event_type, payload)
        return asyncio.get_running_loop().create_task(self._send(event_type, url, body))

    # =========================================================================
    # CONVENIENCE WRAPPERS
    # =========================================================================

    async def track_add_to_cart(self, product_id: Any, **extra: Any) -> Optional[Any]:
        return await self.emit("add_to_cart", {"product_id": product_id, **extra})

    async def track_checkout_initiated(self, **checkout_data: Any) -> Optional[Any]:
        payload = {"cart_total": None, "cart_count": None}
        payload.update(checkout_data)
        return await self.emit("checkout_initiated", payload)

    async def track_checkout_completed(self, **order_data: Any) -> Optional[Any]:
        payload = {"order_id": None, "order_total": None}
        payload.update(order_data)
        return await self.emit("checkout_completed", payload)

    async def track_product_click(self, product_id: Any, product_name: Optional[str] = None) -> Optional[Any]:
        return await self.emit(PRODUCT_CLICK, {"product_id": product_id, "product_name": product_name})

    async def get_session_clicks(self) -> Optional[Any]:
        """Fetch the clicks the server recorded for this session."""
        url = _swap_path(self.endpoint, f"{SESSION_CLICKS_PATH}/{self.session_id}")
        try:
            response = await self._client.get(url, headers=self._headers)
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"[RECORDER] Fetching session clicks failed: {e}")
        except ValueError as e:
            logger.error(f"[RECORDER] Session clicks response was not JSON: {e}")
        return None
