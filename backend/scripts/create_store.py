#!/usr/bin/env python3
"""
Store provisioning script.

WHAT:
    Registers a store and prints the API key the storefront script must send
    as X-API-Key.

USAGE:
    python scripts/create_store.py --name "Wine Shop" --shop-domain wine-shop.myshopify.com
    python scripts/create_store.py --name "Wine Shop" --context "wine store" --init-db

REFERENCES:
    - backend/funneltrack/services/stores.py
"""

import argparse
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Register a store and generate its API key")
    parser.add_argument("--name", required=True, help="Store display name")
    parser.add_argument("--shop-domain", help="Shopify domain, e.g. mystore.myshopify.com")
    parser.add_argument("--context", help="Free-text store description (default: online store)")
    parser.add_argument("--init-db", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    from funneltrack.database import get_sync_session, init_db
    from funneltrack.services.stores import StoreExistsError, create_store

    if args.init_db:
        init_db()

    with get_sync_session() as db:
        try:
            store = create_store(db, name=args.name, shop_domain=args.shop_domain, context=args.context)
        except StoreExistsError as e:
            logger.error(str(e))
            sys.exit(1)

    print(f"Store ID:    {store.id}")
    print(f"Shop domain: {store.shop_domain or '-'}")
    print(f"API key:     {store.api_key}")


if __name__ == "__main__":
    main()
