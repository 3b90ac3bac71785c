"""SQLAlchemy ORM models and enums.

This module defines the tracking schema using UUID primary keys. Stores are
the tenant boundary: API keys and Shopify shop domains both resolve to a
store, and every event, click and order row is scoped to one.
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Numeric, JSON, Text, Boolean, Float, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class EventTypeEnum(str, enum.Enum):
    """Funnel event types emitted by the client recorder."""
    add_to_cart = "add_to_cart"
    checkout_initiated = "checkout_initiated"
    checkout_completed = "checkout_completed"
    product_click = "product_click"


class EventStreamEnum(str, enum.Enum):
    """Logical collection an event is filed under.

    WHAT: Groups tracking events the way reports read them
    WHY: Checkout events and cart events are queried separately
    """
    cart = "cart"
    checkout_events = "checkout_events"
    tracking_events = "tracking_events"


# Models --------------------------------------------------------

class Store(Base):
    """A storefront using the tracking script.

    WHAT: Tenant record resolving X-API-Key and X-Shopify-Shop-Domain
    WHY: Clicks and orders must only be joined within the same store
    """
    __tablename__ = "stores"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    api_key = Column(String, nullable=False, unique=True)
    shop_domain = Column(String, nullable=True, unique=True)  # e.g., "mystore.myshopify.com"
    context = Column(String, nullable=False, default="online store")  # e.g., "wine store"
    created_at = Column(DateTime, default=datetime.utcnow)

    clicks = relationship("ProductClick", back_populates="store", cascade="all, delete-orphan")
    orders = relationship("CheckoutOrder", back_populates="store")

    def __str__(self):
        return f"{self.name} ({self.shop_domain or 'no shop'})"


class TrackingEvent(Base):
    """Immutable funnel event log (add to cart, checkout initiated/completed).

    WHAT: Stores every event document posted to /search-to-cart
    WHY: Full documents are kept so funnel reports can be recomputed later
    """
    __tablename__ = "tracking_events"
    __table_args__ = (
        Index("ix_tracking_events_store_session", "store_id", "session_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)

    event_type = Column(String, nullable=False)
    stream = Column(String, nullable=False, default=EventStreamEnum.tracking_events.value)
    session_id = Column(String, nullable=True)
    search_query = Column(String, nullable=False)
    product_id = Column(String, nullable=True)

    # Funnel classification (null for unknown event types)
    conversion_type = Column(String, nullable=True)
    funnel_stage = Column(String, nullable=True)

    # Enriched event as received
    document = Column(JSON, default=dict)

    # Request context
    user_agent = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)

    event_timestamp = Column(String, nullable=True)  # Client-side ISO 8601 timestamp
    created_at = Column(DateTime, default=datetime.utcnow)

    def __str__(self):
        return f"{self.event_type} - {self.session_id} - {self.created_at}"


class ProductClick(Base):
    """Product click recorded from a search results page.

    WHAT: One row per click, keyed by the client session id
    WHY: Orders are correlated to the clicks of the session that placed them
    """
    __tablename__ = "product_clicks"
    __table_args__ = (
        Index("ix_product_clicks_store_session", "store_id", "session_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)

    session_id = Column(String, nullable=False)
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=True)
    search_query = Column(String, nullable=True)

    user_agent = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    store = relationship("Store", back_populates="clicks")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "product_id": self.product_id,
            "product_name": self.product_name,
            "search_query": self.search_query,
            "session_id": self.session_id,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }

    def __str__(self):
        return f"{self.product_id} - {self.session_id}"


class QueryComplexityFeedback(Base):
    """Conversion outcome for a search query with a known complexity class.

    WHAT: Links a classified query (simple/complex) to the funnel step it led to
    WHY: Lets the search side learn which query classes actually convert
    """
    __tablename__ = "query_complexity_feedback"
    __table_args__ = (
        Index("ix_query_complexity_feedback_store_created", "store_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)

    query = Column(String, nullable=False)
    original_classification = Column(String, nullable=False)
    conversion_outcome = Column(String, nullable=False)  # purchase_completed, checkout_initiated, successful_purchase
    event_type = Column(String, nullable=False)

    cart_total = Column(Numeric(18, 4), nullable=True)
    cart_count = Column(Integer, nullable=True)
    order_id = Column(String, nullable=True)
    product_id = Column(String, nullable=True)

    feedback_type = Column(String, nullable=False, default="conversion_based")
    confidence_score = Column(Float, nullable=False)
    context = Column(String, nullable=True)
    search_metadata = Column(JSON, nullable=True)
    was_pre_classified = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __str__(self):
        return f"{self.query} ({self.original_classification}) -> {self.conversion_outcome}"


class CheckoutOrder(Base):
    """Order placed on the commerce platform, correlated to a search session.

    WHAT: One row per external order id with the clicks of its session attached
    WHY: Connects storefront search behaviour to realised revenue
    REFERENCES:
        - Shopify orders/create webhook: https://shopify.dev/docs/api/webhooks?reference=toml#list-of-topics-orders/create
    """
    __tablename__ = "shopify_orders"
    __table_args__ = (
        Index("ix_shopify_orders_store_created", "store_id", "order_created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Uniqueness of order_id is what makes webhook redelivery a no-op
    order_id = Column(String, nullable=False, unique=True)
    order_number = Column(Integer, nullable=True)
    name = Column(String, nullable=True)  # Display name (e.g., "#1001")

    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)
    shop_domain = Column(String, nullable=True)

    # Null when checkout did not carry the session id through
    session_id = Column(String, nullable=True, index=True)

    # Order totals (in shop currency)
    total_price = Column(Numeric(18, 4), nullable=False, default=0)
    subtotal_price = Column(Numeric(18, 4), nullable=True)
    total_tax = Column(Numeric(18, 4), nullable=True)
    currency = Column(String, nullable=False, default="USD")

    financial_status = Column(String, nullable=True)
    fulfillment_status = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    # Sub-records kept as JSON, the order is read back whole
    customer = Column(JSON, nullable=True)
    line_items = Column(JSON, default=list)
    source = Column(JSON, nullable=True)  # provider, shop_domain, topic, raw payload

    # Correlation result (derived once, at ingestion time)
    processed = Column(Boolean, default=False)
    matched_clicks = Column(JSON, default=list)
    click_count = Column(Integer, default=0)

    order_created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    store = relationship("Store", back_populates="orders")

    def __str__(self):
        return f"Order {self.name or self.order_id} - {self.total_price} {self.currency}"
