"""Dependency providers and settings management."""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.orm import Session

from .database import get_db
from .models import Store

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    # Storefront scripts post from arbitrary shop origins
    BACKEND_CORS_ORIGINS: str = "*"

    # Shopify webhook verification
    # On unless explicitly disabled
    SHOPIFY_API_SECRET: Optional[str] = None
    WEBHOOK_VERIFY_SIGNATURE: bool = True

    # Read API defaults
    CHECKOUT_EVENTS_DEFAULT_DAYS: int = 30
    CHECKOUT_EVENTS_DEFAULT_LIMIT: int = 100
    CHECKOUT_EVENTS_MAX_LIMIT: int = 1000
    QUERY_COMPLEXITY_DEFAULT_DAYS: int = 30
    QUERY_COMPLEXITY_DEFAULT_LIMIT: int = 100
    QUERY_COMPLEXITY_MAX_LIMIT: int = 1000

    # Create missing tables on startup; deployments run `alembic upgrade head` instead
    AUTO_CREATE_TABLES: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_current_store(
    db: Session = Depends(get_db),
    api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
) -> Store:
    """Resolve the calling store from the `X-API-Key` header.

    Raises:
        HTTPException 401: header missing or key unknown
    """
    if not api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key")

    store = db.query(Store).filter(Store.api_key == api_key).first()
    if not store:
        logger.warning("[AUTH] Rejected request with unknown API key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key")

    return store
