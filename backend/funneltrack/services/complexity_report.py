"""Query complexity analytics read model.

WHAT: Aggregates a store's query complexity feedback over a look-back window
WHY: Shows which query classes (simple/complex) reach which funnel step, so
     the search side can tell whether its classification pays off

REFERENCES:
    - funneltrack/services/tracking_service.py (record_complexity_feedback writes the rows)
    - funneltrack/routers/query_complexity.py
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from funneltrack.models import QueryComplexityFeedback, Store, TrackingEvent

logger = logging.getLogger(__name__)

SIMPLE = "simple"
COMPLEX = "complex"
CONVERSION_BASED = "conversion_based"
RECENT_FEEDBACK_SIZE = 10


@dataclass
class ComplexityFilter:
    days: int = 30
    limit: int = 100


def _classification(feedback: QueryComplexityFeedback) -> str:
    return (feedback.original_classification or "").lower()


def serialize_feedback(feedback: QueryComplexityFeedback) -> Dict[str, Any]:
    return {
        "query": feedback.query,
        "classification": feedback.original_classification,
        "conversion_outcome": feedback.conversion_outcome,
        "event_type": feedback.event_type,
        "feedback_type": feedback.feedback_type,
        "confidence_score": feedback.confidence_score,
        "order_id": feedback.order_id,
        "product_id": feedback.product_id,
        "created_at": feedback.created_at,
    }


def analyze_feedback(records: List[QueryComplexityFeedback], total_conversions: int) -> Dict[str, Any]:
    """Totals, type breakdown, class distribution and conversion patterns.

    Records are expected newest first; the first ten become recent_feedback.
    Classification matching is case-insensitive.
    """
    feedback_types = Counter(record.feedback_type or CONVERSION_BASED for record in records)
    conversion_records = [r for r in records if (r.feedback_type or CONVERSION_BASED) == CONVERSION_BASED]

    return {
        "total_feedback_records": len(records),
        "feedback_types": dict(feedback_types),
        "complexity_distribution": {
            "simple_queries": sum(1 for r in records if _classification(r) == SIMPLE),
            "complex_queries": sum(1 for r in records if _classification(r) == COMPLEX),
        },
        "conversion_patterns": {
            "total_conversions": total_conversions,
            "simple_query_conversions": sum(1 for r in conversion_records if _classification(r) == SIMPLE),
            "complex_query_conversions": sum(1 for r in conversion_records if _classification(r) == COMPLEX),
            "by_outcome": dict(Counter(r.conversion_outcome for r in conversion_records)),
        },
        "recent_feedback": [serialize_feedback(r) for r in records[:RECENT_FEEDBACK_SIZE]],
    }


def query_complexity_analytics(db: Session, store: Store, complexity_filter: ComplexityFilter) -> Dict[str, Any]:
    """Analyze the newest feedback rows of a store within the window.

    total_conversions counts the store's funnel events (add to cart and
    checkout steps) in the same window, classified or not. Pure read.
    """
    since = datetime.utcnow() - timedelta(days=complexity_filter.days)

    records = (
        db.query(QueryComplexityFeedback)
        .filter(
            QueryComplexityFeedback.store_id == store.id,
            QueryComplexityFeedback.created_at >= since,
        )
        .order_by(QueryComplexityFeedback.created_at.desc())
        .limit(complexity_filter.limit)
        .all()
    )

    total_conversions = (
        db.query(TrackingEvent)
        .filter(
            TrackingEvent.store_id == store.id,
            TrackingEvent.created_at >= since,
            TrackingEvent.conversion_type.isnot(None),
        )
        .count()
    )

    logger.debug(
        f"[COMPLEXITY ANALYTICS] Analyzed {len(records)} feedback records",
        extra={"store_id": str(store.id), "days": complexity_filter.days},
    )

    return {
        "success": True,
        "days": complexity_filter.days,
        **analyze_feedback(records, total_conversions),
    }
