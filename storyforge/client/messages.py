"""Short, user-facing messages for errors shown in the writing UI.

Nothing from the underlying exception text is echoed back.
"""

from __future__ import annotations

from typing import Any, Optional

import requests
from sqlalchemy.exc import NoResultFound

from ..errors import (
    AccessDeniedError,
    AuthenticationError,
    QuotaExceededError,
    ValidationError,
)
from .rate_limit import LoginLockedError

GENERIC_MESSAGE = "An unexpected error occurred. Please try again."


def _error_code(error: Any) -> Optional[str]:
    if isinstance(error, dict):
        code = error.get("code") or error.get("error_code")
    else:
        orig = getattr(error, "orig", None)
        code = getattr(orig, "pgcode", None) or getattr(error, "code", None) or getattr(error, "error_code", None)
    return str(code) if code else None


def friendly_message(error: Any) -> str:
    if isinstance(error, LoginLockedError):
        return f"Too many failed attempts. Try again in {error.retry_after}."
    if isinstance(error, QuotaExceededError):
        return "You've used all your generation credits this month. Upgrade to keep writing!"
    if isinstance(error, ValidationError):
        if "prompt" in error.fields:
            return "Please enter a prompt of up to 2000 characters."
        return "Please check your input and try again."
    if isinstance(error, AuthenticationError):
        return "Authentication failed. Please try logging in again."
    if isinstance(error, (AccessDeniedError, NoResultFound)):
        return "The requested item could not be found."
    if isinstance(error, requests.RequestException):
        return "Connection error. Please check your internet connection."

    code = _error_code(error)
    if code and code.startswith("23"):
        if code == "23505":
            return "This item already exists."
        return "The data you entered is invalid."
    if code and code.startswith("22"):
        return "Please check your input and try again."

    message = str(error.get("message", "") if isinstance(error, dict) else error).lower()
    if "auth" in message or "unauthorized" in message:
        return "Authentication failed. Please try logging in again."
    if "network" in message or "fetch" in message:
        return "Connection error. Please check your internet connection."

    return GENERIC_MESSAGE
