"""funneltrack: search-funnel event capture and Shopify order correlation."""

__version__ = "1.0.0"
