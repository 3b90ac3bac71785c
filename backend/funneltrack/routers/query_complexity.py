"""Query complexity analytics read API.

WHAT: Reports how pre-classified search queries convert for the calling store
WHY: Feedback rows are written on every classified funnel event; this is where they are read
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from funneltrack.database import get_db
from funneltrack.deps import Settings, get_current_store, get_settings
from funneltrack.models import Store
from funneltrack.schemas import QueryComplexityAnalyticsResponse
from funneltrack.services.complexity_report import ComplexityFilter, query_complexity_analytics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Query Complexity"])


@router.get("/query-complexity-analytics", response_model=QueryComplexityAnalyticsResponse)
def get_query_complexity_analytics(
    days: Optional[int] = Query(None, ge=1, description="Look-back window in days (default 30)"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum feedback records analyzed (default 100, capped at 1000)"),
    db: Session = Depends(get_db),
    store: Store = Depends(get_current_store),
    settings: Settings = Depends(get_settings),
):
    """Return feedback totals, class distribution and conversion patterns."""
    complexity_filter = ComplexityFilter(
        days=days or settings.QUERY_COMPLEXITY_DEFAULT_DAYS,
        limit=min(limit or settings.QUERY_COMPLEXITY_DEFAULT_LIMIT, settings.QUERY_COMPLEXITY_MAX_LIMIT),
    )
    return query_complexity_analytics(db, store, complexity_filter)
