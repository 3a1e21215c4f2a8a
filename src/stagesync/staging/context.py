"""
Per-logical-thread context read by the change tracker.

The active commit id and the sync_now session token live in ContextVars, so
they follow one thread or task of control and never leak into others.
"""
from contextvars import ContextVar
from typing import Optional

current_commit_id: ContextVar[Optional[str]] = ContextVar("current_commit_id", default=None)
current_session: ContextVar[Optional[str]] = ContextVar("current_session", default=None)
