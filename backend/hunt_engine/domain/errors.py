# backend/hunt_engine/domain/errors.py
from __future__ import annotations

from typing import Any, Optional


class EngineError(Exception):
    """
    Base for every error the engine raises on purpose.

    code:    stable machine-readable kind (e.g. "WrongDuration")
    message: human-readable text, safe to show to the caller verbatim
    details: extra legal values the caller can use to self-correct
    """

    http_status = 400
    default_code = "EngineError"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.code, "detail": self.message}
        out.update(self.details)
        return out


class ValidationError(EngineError):
    http_status = 422
    default_code = "ValidationError"


class AuthorizationError(EngineError):
    http_status = 403
    default_code = "AuthorizationError"

    def __init__(self, entity: str = "record"):
        # Same text whether the row is missing or belongs to someone else.
        super().__init__(f"{entity} not found or not yours", code="NotYours")


class StateError(EngineError):
    http_status = 409
    default_code = "StateError"


class CollaboratorError(EngineError):
    http_status = 502
    default_code = "CollaboratorError"

    def __init__(self, message: str, *, collaborator: str, retryable: bool = True, code: Optional[str] = None):
        super().__init__(
            message,
            code=code or "CollaboratorError",
            details={"collaborator": collaborator, "retryable": retryable},
        )
        self.collaborator = collaborator
        self.retryable = retryable
