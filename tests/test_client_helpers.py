import sys
from pathlib import Path

import pytest
import requests
from sqlalchemy.exc import NoResultFound

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storyforge.client import LoginLockedError, LoginThrottle, friendly_message, sign_in
from storyforge.client.messages import GENERIC_MESSAGE
from storyforge.client.rate_limit import LOCKOUT_SECONDS, MAX_ATTEMPTS
from storyforge.errors import (
    AccessDeniedError,
    AuthenticationError,
    BackendGenerationError,
    QuotaExceededError,
    ValidationError,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class StubResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body


class StubSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append((url, json))
        return self.responses.pop(0)


def _fail(throttle, times):
    for _ in range(times):
        throttle.record_failed_attempt()


def test_throttle_locks_after_five_failures():
    clock = FakeClock()
    throttle = LoginThrottle(clock=clock)

    _fail(throttle, MAX_ATTEMPTS - 1)
    assert not throttle.is_locked()
    assert throttle.attempts_remaining() == 1

    throttle.record_failed_attempt()
    assert throttle.is_locked()
    assert throttle.attempts_remaining() == 0
    assert throttle.format_remaining_time() == "15:00"


def test_throttle_unlocks_after_lockout_expires():
    clock = FakeClock()
    throttle = LoginThrottle(clock=clock)
    _fail(throttle, MAX_ATTEMPTS)

    clock.advance(LOCKOUT_SECONDS - 59.5)
    assert throttle.format_remaining_time() == "1:00"

    clock.advance(60)
    assert not throttle.is_locked()
    assert throttle.attempts_remaining() == MAX_ATTEMPTS
    assert throttle.format_remaining_time() == ""


def test_failures_outside_window_restart_the_count():
    clock = FakeClock()
    throttle = LoginThrottle(clock=clock)
    _fail(throttle, 3)

    clock.advance(301)
    throttle.record_failed_attempt()

    assert throttle.state.attempts == 1


def test_success_clears_failures():
    throttle = LoginThrottle(clock=FakeClock())
    _fail(throttle, 3)

    throttle.record_successful_attempt()

    assert throttle.attempts_remaining() == MAX_ATTEMPTS


def test_throttle_state_round_trips_through_dict():
    clock = FakeClock()
    throttle = LoginThrottle(clock=clock)
    _fail(throttle, MAX_ATTEMPTS)

    restored = LoginThrottle.from_dict(throttle.to_dict(), clock=clock)

    assert restored.is_locked()
    assert LoginThrottle.from_dict({"unexpected": 1}).attempts_remaining() == MAX_ATTEMPTS


def test_sign_in_returns_token_and_resets_throttle():
    throttle = LoginThrottle(clock=FakeClock())
    _fail(throttle, 2)
    session = StubSession(StubResponse(200, {"access_token": "abc.def.ghi"}))

    token = sign_in("a@example.com", "password123", base_url="http://api/", session=session, throttle=throttle)

    assert token == "abc.def.ghi"
    assert session.requests == [("http://api/auth/login", {"email": "a@example.com", "password": "password123"})]
    assert throttle.attempts_remaining() == MAX_ATTEMPTS


def test_rejected_sign_in_counts_towards_lockout():
    throttle = LoginThrottle(clock=FakeClock())
    session = StubSession(*[StubResponse(401, {"error": "Invalid email or password."})] * MAX_ATTEMPTS)

    for _ in range(MAX_ATTEMPTS):
        with pytest.raises(AuthenticationError):
            sign_in("a@example.com", "nope", base_url="http://api", session=session, throttle=throttle)

    with pytest.raises(LoginLockedError) as excinfo:
        sign_in("a@example.com", "nope", base_url="http://api", session=session, throttle=throttle)
    assert excinfo.value.retry_after == "15:00"
    assert len(session.requests) == MAX_ATTEMPTS


def test_sign_in_outage_does_not_count_towards_lockout():
    throttle = LoginThrottle(clock=FakeClock())
    session = StubSession(*[StubResponse(503, {"error": "Service Unavailable"})] * MAX_ATTEMPTS)

    for _ in range(MAX_ATTEMPTS):
        with pytest.raises(BackendGenerationError):
            sign_in("a@example.com", "password123", base_url="http://api", session=session, throttle=throttle)

    assert throttle.state.attempts == 0
    assert not throttle.is_locked()


@pytest.mark.parametrize(
    "error, expected",
    [
        (QuotaExceededError(5), "You've used all your generation credits this month. Upgrade to keep writing!"),
        (ValidationError([{"field": "prompt", "message": "x"}]), "Please enter a prompt of up to 2000 characters."),
        (ValidationError([{"field": "tone", "message": "x"}]), "Please check your input and try again."),
        (AuthenticationError("bad token"), "Authentication failed. Please try logging in again."),
        (AccessDeniedError("nope"), "The requested item could not be found."),
        (requests.ConnectionError("refused"), "Connection error. Please check your internet connection."),
        (NoResultFound("No row was found when one was required"), "The requested item could not be found."),
        ({"code": "23505", "message": "duplicate key"}, "This item already exists."),
        ({"code": "23503"}, "The data you entered is invalid."),
        ({"code": "22P02"}, "Please check your input and try again."),
        (RuntimeError("JWT unauthorized"), "Authentication failed. Please try logging in again."),
        (RuntimeError("Failed to fetch"), "Connection error. Please check your internet connection."),
        (BackendGenerationError("upstream said: secret stack trace"), GENERIC_MESSAGE),
    ],
)
def test_friendly_message(error, expected):
    assert friendly_message(error) == expected


def test_locked_message_includes_retry_time():
    assert friendly_message(LoginLockedError("4:05")) == "Too many failed attempts. Try again in 4:05."
