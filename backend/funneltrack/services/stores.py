"""Store provisioning.

WHAT: Creates tenant stores with a freshly generated API key
WHY: API keys resolve every storefront request; shop domains resolve webhooks
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from funneltrack.models import Store
from funneltrack.security import generate_api_key

logger = logging.getLogger(__name__)


class StoreExistsError(ValueError):
    """Raised when a shop domain is already registered."""


def normalize_shop_domain(shop_domain: Optional[str]) -> Optional[str]:
    """Lower-case a shop domain and strip scheme and trailing slash."""
    if not shop_domain:
        return None
    domain = shop_domain.strip().lower()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    return domain.rstrip("/") or None


def create_store(
    db: Session,
    name: str,
    shop_domain: Optional[str] = None,
    context: Optional[str] = None,
) -> Store:
    """Register a store and return it with its new API key.

    Raises:
        StoreExistsError: shop_domain already belongs to another store
    """
    domain = normalize_shop_domain(shop_domain)
    if domain and db.query(Store).filter(Store.shop_domain == domain).first():
        raise StoreExistsError(f"Shop domain already registered: {domain}")

    store = Store(
        name=name,
        api_key=generate_api_key(),
        shop_domain=domain,
        context=context or "online store",
    )
    db.add(store)
    db.commit()
    db.refresh(store)

    logger.info(f"[STORES] Created store {store.name}", extra={"store_id": str(store.id), "shop_domain": domain})
    return store
