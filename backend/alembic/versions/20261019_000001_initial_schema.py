"""Initial funneltrack schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 09:00:00.000000

WHAT:
    Creates the tracking tables:
    - stores: tenants resolved by API key and shop domain
    - tracking_events: funnel event log
    - product_clicks: clicks on search results, keyed by session
    - query_complexity_feedback: conversion outcome per classified query
    - shopify_orders: orders correlated to search sessions

WHY:
    The unique order_id constraint is what makes webhook redelivery a no-op,
    so it must exist in every deployed database, not only in create_all ones.

REFERENCES:
    - funneltrack/models.py
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '20261019_000001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # stores
    # =========================================================================
    op.create_table(
        'stores',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('api_key', sa.String(), nullable=False),
        sa.Column('shop_domain', sa.String(), nullable=True),
        sa.Column('context', sa.String(), nullable=False, server_default='online store'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('api_key', name='uq_stores_api_key'),
        sa.UniqueConstraint('shop_domain', name='uq_stores_shop_domain'),
    )

    # =========================================================================
    # tracking_events
    # =========================================================================
    op.create_table(
        'tracking_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('stream', sa.String(), nullable=False, server_default='tracking_events'),
        sa.Column('session_id', sa.String(), nullable=True),
        sa.Column('search_query', sa.String(), nullable=False),
        sa.Column('product_id', sa.String(), nullable=True),
        sa.Column('conversion_type', sa.String(), nullable=True),
        sa.Column('funnel_stage', sa.String(), nullable=True),
        sa.Column('document', sa.JSON(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('event_timestamp', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_tracking_events_store_session', 'tracking_events', ['store_id', 'session_id'])

    # =========================================================================
    # product_clicks
    # =========================================================================
    op.create_table(
        'product_clicks',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('session_id', sa.String(), nullable=False),
        sa.Column('product_id', sa.String(), nullable=False),
        sa.Column('product_name', sa.String(), nullable=True),
        sa.Column('search_query', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_product_clicks_store_session', 'product_clicks', ['store_id', 'session_id'])

    # =========================================================================
    # query_complexity_feedback
    # =========================================================================
    op.create_table(
        'query_complexity_feedback',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('query', sa.String(), nullable=False),
        sa.Column('original_classification', sa.String(), nullable=False),
        sa.Column('conversion_outcome', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('cart_total', sa.Numeric(18, 4), nullable=True),
        sa.Column('cart_count', sa.Integer(), nullable=True),
        sa.Column('order_id', sa.String(), nullable=True),
        sa.Column('product_id', sa.String(), nullable=True),
        sa.Column('feedback_type', sa.String(), nullable=False, server_default='conversion_based'),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('context', sa.String(), nullable=True),
        sa.Column('search_metadata', sa.JSON(), nullable=True),
        sa.Column('was_pre_classified', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index(
        'ix_query_complexity_feedback_store_created',
        'query_complexity_feedback',
        ['store_id', 'created_at'],
    )

    # =========================================================================
    # shopify_orders
    # =========================================================================
    op.create_table(
        'shopify_orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', sa.String(), nullable=False),
        sa.Column('order_number', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('shop_domain', sa.String(), nullable=True),
        sa.Column('session_id', sa.String(), nullable=True),
        sa.Column('total_price', sa.Numeric(18, 4), nullable=False, server_default='0'),
        sa.Column('subtotal_price', sa.Numeric(18, 4), nullable=True),
        sa.Column('total_tax', sa.Numeric(18, 4), nullable=True),
        sa.Column('currency', sa.String(), nullable=False, server_default='USD'),
        sa.Column('financial_status', sa.String(), nullable=True),
        sa.Column('fulfillment_status', sa.String(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('customer', sa.JSON(), nullable=True),
        sa.Column('line_items', sa.JSON(), nullable=True),
        sa.Column('source', sa.JSON(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=True),
        sa.Column('matched_clicks', sa.JSON(), nullable=True),
        sa.Column('click_count', sa.Integer(), nullable=True),
        sa.Column('order_created_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        # One row per external order: redelivered webhooks hit this constraint
        sa.UniqueConstraint('order_id', name='uq_shopify_orders_order_id'),
    )
    op.create_index('ix_shopify_orders_session_id', 'shopify_orders', ['session_id'])
    op.create_index('ix_shopify_orders_order_created_at', 'shopify_orders', ['order_created_at'])
    op.create_index('ix_shopify_orders_store_created', 'shopify_orders', ['store_id', 'order_created_at'])


def downgrade() -> None:
    op.drop_index('ix_shopify_orders_store_created', table_name='shopify_orders')
    op.drop_index('ix_shopify_orders_order_created_at', table_name='shopify_orders')
    op.drop_index('ix_shopify_orders_session_id', table_name='shopify_orders')
    op.drop_table('shopify_orders')

    op.drop_index('ix_query_complexity_feedback_store_created', table_name='query_complexity_feedback')
    op.drop_table('query_complexity_feedback')

    op.drop_index('ix_product_clicks_store_session', table_name='product_clicks')
    op.drop_table('product_clicks')

    op.drop_index('ix_tracking_events_store_session', table_name='tracking_events')
    op.drop_table('tracking_events')

    op.drop_table('stores')
