"""Advisory, client-side gate for story generation.

:class:`ClientGate` keeps a cached copy of the account's subscription counters
so a caller can hide or disable generation controls without a round trip, and
refuses to send requests that are certain to fail. It is a convenience only:
the server re-checks everything and is the sole authority on credits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

from ..errors import (
    AccessDeniedError,
    AuthenticationError,
    BackendGenerationError,
    GenerationGateError,
    QuotaExceededError,
    ValidationError,
)
from ..services.generation_request import validate_generation_payload
from ..services.plans import has_feature

LOGGER = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate-story"
SUBSCRIPTION_PATH = "/api/subscription"


def _int_or(value: Any, default: int) -> int:
    # Mirrors the server defaults for unset counters; zero is a real value.
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class SubscriptionSnapshot:
    tier: str = "free"
    monthly_chapter_credits: int = 5
    monthly_image_credits: int = 30
    credits_used_this_month: int = 0
    images_used_this_month: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SubscriptionSnapshot":
        return cls(
            tier=str(payload.get("tier") or "free"),
            monthly_chapter_credits=_int_or(payload.get("monthlyChapterCredits"), 5),
            monthly_image_credits=_int_or(payload.get("monthlyImageCredits"), 30),
            credits_used_this_month=_int_or(payload.get("creditsUsedThisMonth"), 0),
            images_used_this_month=_int_or(payload.get("imagesUsedThisMonth"), 0),
        )

    @property
    def chapter_credits_remaining(self) -> int:
        return max(0, self.monthly_chapter_credits - self.credits_used_this_month)


class ClientGate:
    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 90.0,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.access_token = access_token
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.snapshot = SubscriptionSnapshot()

    # ---------------- cached checks ----------------
    def can_generate(self) -> bool:
        return self.snapshot.credits_used_this_month < self.snapshot.monthly_chapter_credits

    def can_generate_image(self) -> bool:
        return self.snapshot.images_used_this_month < self.snapshot.monthly_image_credits

    def has_feature(self, feature: str) -> bool:
        return has_feature(self.snapshot.tier, feature)

    # ---------------- network ----------------
    def refresh(self) -> SubscriptionSnapshot:
        """Replace the cached snapshot with the server's current counters.

        A failed refresh keeps the previous snapshot.
        """

        try:
            response = self.session.get(
                self._url(SUBSCRIPTION_PATH),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOGGER.warning("Could not refresh subscription: %s", exc)
            return self.snapshot

        if response.status_code != 200:
            LOGGER.warning("Subscription refresh returned HTTP %s", response.status_code)
            return self.snapshot

        body = _json_body(response)
        if not body:
            LOGGER.warning("Subscription refresh returned no usable body")
            return self.snapshot

        self.snapshot = SubscriptionSnapshot.from_payload(body)
        return self.snapshot

    def submit(self, prompt: str, tone: str, project_id: str, chapter_id: str) -> str:
        """Request generated prose, returning the text on success.

        Raises ``ValidationError`` or ``QuotaExceededError`` without touching
        the network when the request cannot succeed.
        """

        generation_request = validate_generation_payload(
            {"prompt": prompt, "tone": tone, "projectId": project_id, "chapterId": chapter_id}
        )
        if not self.can_generate():
            raise QuotaExceededError(self.snapshot.monthly_chapter_credits)

        try:
            response = self.session.post(
                self._url(GENERATE_PATH),
                json=generation_request.to_payload(),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise BackendGenerationError("Could not reach the generation service.") from exc

        if response.status_code != 200:
            error = self._error_from_response(response)
            if isinstance(error, QuotaExceededError):
                self.refresh()
            raise error

        text = _json_body(response).get("text")
        if not isinstance(text, str):
            raise BackendGenerationError("Generation response did not include text.")
        self.refresh()
        return text

    # ---------------- helpers ----------------
    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _error_from_response(self, response) -> GenerationGateError:
        body = _json_body(response)
        status = response.status_code
        if status == 401:
            return AuthenticationError(body.get("error") or "Unauthorized")
        if status == 400:
            details = [
                {"field": str(item.get("field")), "message": str(item.get("message") or "")}
                for item in body.get("details") or []
                if isinstance(item, dict) and item.get("field")
            ]
            return ValidationError(details or [{"field": "body", "message": "Invalid request data"}])
        if status == 403 and body.get("error") == QuotaExceededError.public_error:
            return QuotaExceededError(self.snapshot.monthly_chapter_credits)
        if status == 403:
            return AccessDeniedError(body.get("error") or "Access denied")
        return BackendGenerationError(f"Generation failed with HTTP {status}")


def _json_body(response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
