"""Pytest configuration for funneltrack tests

WHAT: Provides shared fixtures for HTTP endpoint and service-level tests
WHY: Ensures consistent test setup, database isolation, and signed webhook helpers
REFERENCES:
    - funneltrack/main.py: FastAPI application
    - funneltrack/database.py: Database configuration
    - funneltrack/deps.py: Settings and API key dependency
"""

import pytest
import os
import json
from datetime import datetime, timedelta
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Ensure backend is in path
import sys
from pathlib import Path
BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Set test environment (funneltrack.database reads DATABASE_URL at import time)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

WEBHOOK_SECRET = "test-secret"
SHOP_DOMAIN = "test-store.myshopify.com"
API_KEY = "ftk_test_key"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine."""
    # StaticPool keeps one connection so TestClient's worker threads see the same database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from funneltrack.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create test database session with rollback."""
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Settings with a known webhook secret and verification on."""
    from funneltrack.deps import Settings

    return Settings(
        SHOPIFY_API_SECRET=WEBHOOK_SECRET,
        WEBHOOK_VERIFY_SIGNATURE=True,
        AUTO_CREATE_TABLES=False,
    )


@pytest.fixture
def app(test_db_session, settings):
    """Create FastAPI test application."""
    from funneltrack.main import create_app
    from funneltrack.database import get_db
    from funneltrack.deps import get_settings

    test_app = create_app()

    def override_get_db():
        yield test_db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_settings] = lambda: settings

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def test_store(test_db_session):
    """Create test store registered for SHOP_DOMAIN."""
    from funneltrack.models import Store

    store = Store(
        name="Test Wine Store",
        api_key=API_KEY,
        shop_domain=SHOP_DOMAIN,
        context="wine store",
    )

    test_db_session.add(store)
    test_db_session.commit()
    test_db_session.refresh(store)

    return store


@pytest.fixture
def test_store_b(test_db_session):
    """Create second test store (for isolation tests)."""
    from funneltrack.models import Store

    store = Store(
        name="Other Store",
        api_key="ftk_other_key",
        shop_domain="other-store.myshopify.com",
    )

    test_db_session.add(store)
    test_db_session.commit()
    test_db_session.refresh(store)

    return store


@pytest.fixture
def api_headers():
    """Standard storefront headers."""
    return {"X-API-Key": API_KEY}


@pytest.fixture
def add_clicks(test_db_session):
    """Factory that stores product clicks for a session."""
    from funneltrack.models import ProductClick

    def _add_clicks(store, session_id, product_ids, search_query="red wine dry"):
        base_time = datetime.utcnow() - timedelta(minutes=len(product_ids))
        clicks = []
        for index, product_id in enumerate(product_ids):
            click = ProductClick(
                store_id=store.id,
                session_id=session_id,
                product_id=str(product_id),
                product_name=f"Product {product_id}",
                search_query=search_query,
                created_at=base_time + timedelta(minutes=index),
            )
            test_db_session.add(click)
            clicks.append(click)
        test_db_session.commit()
        return clicks

    return _add_clicks


# ============================================================================
# Webhook Helpers
# ============================================================================

def make_order_payload(order_id="5001", session_id=None, total_price="150.00", currency="USD", created_at=None):
    """Build a minimal Shopify orders/create payload."""
    payload = {
        "id": order_id,
        "order_number": 1001,
        "name": "#1001",
        "created_at": (created_at or datetime.utcnow()).isoformat() + "Z",
        "currency": currency,
        "total_price": total_price,
        "subtotal_price": total_price,
        "total_tax": "0.00",
        "financial_status": "paid",
        "fulfillment_status": None,
        "customer": {
            "id": 42,
            "email": "buyer@example.com",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "phone": None,
            "accepts_marketing": True,
        },
        "line_items": [
            {
                "product_id": 12345,
                "variant_id": 1,
                "title": "Wine A",
                "variant_title": "Bottle",
                "quantity": 2,
                "price": "75.00",
                "sku": "WA-1",
                "vendor": "Vineyard",
                "gift_card": False,
            }
        ],
        "note_attributes": [],
    }
    if session_id:
        payload["note_attributes"] = [{"name": "session_id", "value": session_id}]
    return payload


def signed_request(payload, secret=WEBHOOK_SECRET, shop_domain=SHOP_DOMAIN):
    """Return (body, headers) for a webhook signed over the exact body bytes."""
    from funneltrack.security import compute_webhook_signature

    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-SHA256": compute_webhook_signature(secret, body),
        "X-Shopify-Shop-Domain": shop_domain,
        "X-Shopify-Topic": "orders/create",
    }
    return body, headers


@pytest.fixture
def post_order(client):
    """Post a signed order-created webhook."""

    def _post_order(payload, shop_domain=SHOP_DOMAIN, provider="shopify"):
        body, headers = signed_request(payload, shop_domain=shop_domain)
        return client.post(f"/webhooks/{provider}/order-created", content=body, headers=headers)

    return _post_order
