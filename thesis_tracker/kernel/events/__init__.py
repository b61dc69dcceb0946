"""
Audit logging infrastructure.

Provides append-only audit logging with immutable events.
"""

from thesis_tracker.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
