"""Pydantic schemas for request/response payloads."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Union, Any, Dict
from pydantic import BaseModel, Field, field_validator


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service status",
        examples=["ok"]
    )


# =============================================================================
# TRACKING
# =============================================================================


class TrackEventRequest(BaseModel):
    """Body for POST /search-to-cart.

    WHAT: Wraps a free-form funnel event document
    WHY: Events carry arbitrary extra fields (quantity, variant, cart totals)

    Example:
        {
            "document": {
                "event_type": "add_to_cart",
                "product_id": "12345",
                "search_query": "red wine dry",
                "search_results": ["Wine A", "Wine B"],
                "tier2_results": [],
                "session_id": "sess_1760890000000_k3j9x0a1b",
                "timestamp": "2026-10-19T12:00:00Z",
                "quantity": 2
            }
        }
    """
    document: Optional[Dict[str, Any]] = Field(None, description="Event document")


class TrackEventResponse(BaseModel):
    success: bool
    message: str
    id: str
    collection: str = Field(..., description="Stream the event was filed under")
    complexity_feedback_recorded: bool = False


class ProductClickRequest(BaseModel):
    """Body for POST /product-click."""
    product_id: Optional[Union[str, int]] = None
    product_name: Optional[str] = None
    search_query: Optional[str] = None
    session_id: Optional[str] = None


class ProductClickResponse(BaseModel):
    success: bool
    id: str
    session_id: str


class SessionClicksResponse(BaseModel):
    session_id: str
    count: int
    clicks: List[Dict[str, Any]]


# =============================================================================
# ORDER WEBHOOK
# =============================================================================


class NoteAttribute(BaseModel):
    """Key/value attribute attached to a Shopify order at checkout."""
    name: str
    value: Optional[Any] = None


class ShopifyOrderPayload(BaseModel):
    """Subset of the Shopify order object used for correlation.

    WHAT: Validates the fields the correlator relies on; everything else is kept raw
    REFERENCES: https://shopify.dev/docs/api/admin-rest/latest/resources/order
    """
    id: Union[int, str]
    order_number: Optional[int] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    currency: Optional[str] = None
    total_price: Decimal = Decimal("0")
    subtotal_price: Optional[Decimal] = None
    total_tax: Optional[Decimal] = None
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    note: Optional[str] = None
    customer: Optional[Dict[str, Any]] = None
    line_items: List[Dict[str, Any]] = Field(default_factory=list)
    note_attributes: List[NoteAttribute] = Field(default_factory=list)
    attributes: Optional[Union[Dict[str, Any], List[NoteAttribute]]] = None

    model_config = {"extra": "allow"}

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value):
        if isinstance(value, str) and not value.strip():
            raise ValueError("order id must not be blank")
        return value

    @field_validator("line_items", "note_attributes", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


class OrderWebhookResponse(BaseModel):
    status: str = Field(..., description="success, duplicate, or ignored")
    order_id: str
    session_id: Optional[str] = None
    saved_to: Optional[str] = Field(None, description="Table the order lives in")
    matched_clicks: bool = Field(False, description="Whether any session clicks were attached")


# =============================================================================
# CHECKOUT EVENTS (read API)
# =============================================================================


class CheckoutSummary(BaseModel):
    count: int
    total_revenue: float
    avg_order_value: float
    currency: Optional[str] = None


class CheckoutOrderOut(BaseModel):
    order_id: str
    order_number: Optional[int] = None
    name: Optional[str] = None
    session_id: Optional[str] = None
    shop_domain: Optional[str] = None
    total_price: float
    subtotal_price: Optional[float] = None
    total_tax: Optional[float] = None
    currency: str
    financial_status: Optional[str] = None
    fulfillment_status: Optional[str] = None
    customer: Optional[Dict[str, Any]] = None
    line_items: List[Dict[str, Any]] = Field(default_factory=list)
    processed: bool
    matched_clicks: List[Dict[str, Any]] = Field(default_factory=list)
    click_count: int
    order_created_at: datetime
    created_at: Optional[datetime] = None


class CheckoutEventsResponse(BaseModel):
    success: bool = True
    summary: CheckoutSummary
    orders: List[CheckoutOrderOut]


# =============================================================================
# QUERY COMPLEXITY ANALYTICS (read API)
# =============================================================================


class ComplexityDistribution(BaseModel):
    simple_queries: int
    complex_queries: int


class ConversionPatterns(BaseModel):
    total_conversions: int = Field(description="Funnel events in the window, classified or not")
    simple_query_conversions: int
    complex_query_conversions: int
    by_outcome: Dict[str, int] = Field(default_factory=dict, examples=[{"purchase_completed": 3}])


class ComplexityFeedbackOut(BaseModel):
    query: str
    classification: str
    conversion_outcome: str
    event_type: str
    feedback_type: str
    confidence_score: float
    order_id: Optional[str] = None
    product_id: Optional[str] = None
    created_at: Optional[datetime] = None


class QueryComplexityAnalyticsResponse(BaseModel):
    """Aggregated query complexity feedback for one store and window."""
    success: bool = True
    days: int
    total_feedback_records: int
    feedback_types: Dict[str, int] = Field(default_factory=dict)
    complexity_distribution: ComplexityDistribution
    conversion_patterns: ConversionPatterns
    recent_feedback: List[ComplexityFeedbackOut]
