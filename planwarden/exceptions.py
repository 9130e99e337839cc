"""Exception hierarchy for Planwarden."""

from __future__ import annotations

from typing import Any

from planwarden.types import ErrorCode

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.FEATURE_NOT_AVAILABLE: 403,
    ErrorCode.FEATURE_LIMIT_EXCEEDED: 403,
    ErrorCode.NO_SUBSCRIPTION: 404,
    ErrorCode.PLAN_NOT_FOUND: 404,
    ErrorCode.CONCURRENT_PLAN_CHANGE: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}


class PlanwardenError(Exception):
    """Base exception for all Planwarden errors."""


class BusinessError(PlanwardenError):
    """A rejected request, identified by a stable error code.

    Raised before any state is mutated, so callers can surface it as-is.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code or _STATUS_BY_CODE.get(code, 400)
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": str(self.code), "message": self.message, "details": self.details}


class CatalogError(PlanwardenError):
    """Raised when the plan catalog is misconfigured (e.g. no default plan)."""


class StorageError(PlanwardenError):
    """Raised when storage operations fail."""


class NotificationError(PlanwardenError):
    """Raised when a notification cannot be delivered."""


class ConfigError(PlanwardenError):
    """Raised when configuration is invalid."""
