from __future__ import annotations

import logging
from typing import Optional

import requests

from ..errors import AuthenticationError, BackendGenerationError
from .rate_limit import LoginLockedError, LoginThrottle

LOGGER = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
CREDENTIAL_FAILURE_STATUSES = (400, 401)


def sign_in(
    email: str,
    password: str,
    *,
    base_url: str,
    session: Optional[requests.Session] = None,
    throttle: Optional[LoginThrottle] = None,
    timeout: float = 30.0,
) -> str:
    """Exchange credentials for an access token usable by :class:`ClientGate`."""

    if throttle is not None and throttle.is_locked():
        raise LoginLockedError(throttle.format_remaining_time())

    http = session if session is not None else requests.Session()
    try:
        response = http.post(
            f"{(base_url or '').rstrip('/')}{LOGIN_PATH}",
            json={"email": email, "password": password},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise BackendGenerationError("Could not reach the sign-in service.") from exc

    if response.status_code in CREDENTIAL_FAILURE_STATUSES:
        if throttle is not None:
            throttle.record_failed_attempt()
        LOGGER.info("Sign-in rejected with HTTP %s", response.status_code)
        raise AuthenticationError("Invalid email or password.")
    if response.status_code != 200:
        # Outages do not count towards the lockout.
        LOGGER.warning("Sign-in service returned HTTP %s", response.status_code)
        raise BackendGenerationError(f"Sign-in failed with HTTP {response.status_code}")

    if throttle is not None:
        throttle.record_successful_attempt()
    return response.json()["access_token"]
