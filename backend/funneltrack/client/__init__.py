"""Storefront-side event recorder.

Usage:
    from funneltrack.client import EventRecorder, SessionContext
"""

from funneltrack.client.recorder import EventRecorder
from funneltrack.client.session import (
    InMemorySessionStorage,
    SearchContext,
    SessionContext,
    SessionStorage,
    generate_session_id,
)

__all__ = [
    "EventRecorder",
    "InMemorySessionStorage",
    "SearchContext",
    "SessionContext",
    "SessionStorage",
    "generate_session_id",
]
