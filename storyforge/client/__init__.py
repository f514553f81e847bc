"""Client-side helpers for talking to the StoryForge API."""

from __future__ import annotations

from .auth import sign_in  # noqa: F401
from .gate import ClientGate, SubscriptionSnapshot  # noqa: F401
from .messages import friendly_message  # noqa: F401
from .rate_limit import LoginLockedError, LoginThrottle  # noqa: F401

__all__ = [
    "ClientGate",
    "LoginLockedError",
    "LoginThrottle",
    "SubscriptionSnapshot",
    "friendly_message",
    "sign_in",
]
