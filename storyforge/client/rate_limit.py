from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional

from ..errors import AuthenticationError

MAX_ATTEMPTS = 5
LOCKOUT_SECONDS = 15 * 60
ATTEMPT_WINDOW_SECONDS = 5 * 60


class LoginLockedError(AuthenticationError):
    """Raised when sign-in is attempted while the throttle is locked."""

    public_error = "Too many sign-in attempts"

    def __init__(self, retry_after: str) -> None:
        self.retry_after = retry_after
        super().__init__(f"Sign-in locked, retry in {retry_after}")


@dataclass
class ThrottleState:
    attempts: int = 0
    lockout_until: Optional[float] = None
    last_attempt: float = 0.0


class LoginThrottle:
    """Client-side lockout after repeated failed sign-ins.

    Failures more than ``ATTEMPT_WINDOW_SECONDS`` apart restart the count. The
    state round-trips through :meth:`to_dict` / :meth:`from_dict` so callers
    can keep it between sessions.
    """

    def __init__(self, state: Optional[ThrottleState] = None, clock: Callable[[], float] = time.time) -> None:
        self.state = state or ThrottleState()
        self._clock = clock

    def is_locked(self) -> bool:
        return self.remaining_seconds() > 0

    def remaining_seconds(self) -> int:
        lockout_until = self.state.lockout_until
        if lockout_until is None:
            return 0
        remaining = lockout_until - self._clock()
        if remaining <= 0:
            self.state.lockout_until = None
            self.state.attempts = 0
            return 0
        return math.ceil(remaining)

    def record_failed_attempt(self) -> None:
        now = self._clock()
        previous = self.state
        if previous.last_attempt and (now - previous.last_attempt) > ATTEMPT_WINDOW_SECONDS:
            attempts = 1
        else:
            attempts = previous.attempts + 1
        self.state = ThrottleState(
            attempts=attempts,
            last_attempt=now,
            lockout_until=now + LOCKOUT_SECONDS if attempts >= MAX_ATTEMPTS else previous.lockout_until,
        )

    def record_successful_attempt(self) -> None:
        self.state = ThrottleState()

    def attempts_remaining(self) -> int:
        return max(0, MAX_ATTEMPTS - self.state.attempts)

    def format_remaining_time(self) -> str:
        remaining = self.remaining_seconds()
        if remaining <= 0:
            return ""
        minutes, seconds = divmod(remaining, 60)
        return f"{minutes}:{seconds:02d}"

    def to_dict(self) -> Dict:
        return asdict(self.state)

    @classmethod
    def from_dict(cls, data: Optional[Dict], clock: Callable[[], float] = time.time) -> "LoginThrottle":
        try:
            state = ThrottleState(**(data or {}))
        except TypeError:
            state = ThrottleState()
        return cls(state=state, clock=clock)
