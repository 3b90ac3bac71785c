"""
Telemetry Module
================

Observability for funneltrack.

Components:
- sentry.py: Error tracking (enabled when SENTRY_DSN is set)

Usage:
    from funneltrack.telemetry import init_sentry, capture_exception
"""

from funneltrack.telemetry.sentry import (
    init_sentry,
    capture_exception,
)

__all__ = [
    "init_sentry",
    "capture_exception",
]
