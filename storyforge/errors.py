"""Errors raised while gating AI generation requests.

Every error that may cross the HTTP boundary derives from
:class:`GenerationGateError` and knows the status code and the public body it
maps to. The public body never carries exception text from the database or
the generation backend.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GenerationGateError(RuntimeError):
    """Base class for rejections produced by the generation gate."""

    status_code = 500
    public_error = "An error occurred while generating content"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.public_error}


class AuthenticationError(GenerationGateError):
    """Raised when the caller does not present a valid session credential."""

    status_code = 401
    public_error = "Unauthorized"


class ValidationError(GenerationGateError):
    """Raised when a generation request does not match the expected shape."""

    status_code = 400
    public_error = "Invalid request data"

    def __init__(self, details: List[Dict[str, str]]) -> None:
        self.details = list(details)
        fields = ", ".join(sorted({item["field"] for item in self.details}))
        super().__init__(f"Invalid fields: {fields}")

    @property
    def fields(self) -> List[str]:
        return [item["field"] for item in self.details]

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.public_error, "details": self.details}


class QuotaExceededError(GenerationGateError):
    """Raised when the account has no generation credits left this month."""

    status_code = 403
    public_error = "Credit limit reached"

    def __init__(self, quota: Optional[int] = None) -> None:
        self.quota = quota
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.quota is None:
            return "You've used all your credits this month. Upgrade to get more!"
        return f"You've used all {self.quota} credits this month. Upgrade to get more!"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.public_error, "message": self.message}


class AccessDeniedError(GenerationGateError):
    """Raised when the project is missing or belongs to another account."""

    status_code = 403
    public_error = "Project not found or access denied"


class BackendGenerationError(GenerationGateError):
    """Raised when the generation backend fails or returns nothing usable."""

    status_code = 500


class PersistenceWarning(RuntimeWarning):
    """A secondary write failed after the generation already succeeded."""
