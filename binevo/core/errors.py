"""
Domain error taxonomy.

Services raise these; the server's exception handlers translate them into
JSON responses of the form ``{"detail": ..., "code": ...}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BinevoError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 400
    default_code: Optional[str] = None

    def __init__(self, message: str, *, code: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message}
        if self.code:
            body["code"] = self.code
        body.update(self.extra)
        return body


class InvalidRequestError(BinevoError):
    status_code = 400
    default_code = "INVALID_REQUEST"


class AuthenticationError(BinevoError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class PermissionDeniedError(BinevoError):
    status_code = 403
    default_code = "FORBIDDEN"


class PlanFeatureUnavailableError(PermissionDeniedError):
    default_code = "FEATURE_NOT_AVAILABLE"


class PlanLimitReachedError(PermissionDeniedError):
    default_code = "PLAN_LIMIT_REACHED"


class NotFoundError(BinevoError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(BinevoError):
    status_code = 409
    default_code = "CONFLICT"


class QuotaExceededError(BinevoError):
    status_code = 429
    default_code = "QUOTA_EXCEEDED"


class ServiceNotConfiguredError(BinevoError):
    """An integration (Stripe, email, AI) is not configured for this deployment."""

    status_code = 400
    default_code = "SERVICE_NOT_CONFIGURED"


class PaymentProviderError(BinevoError):
    """The payment provider rejected or failed a request."""

    status_code = 502
    default_code = "PAYMENT_PROVIDER_ERROR"


class EmailDeliveryError(BinevoError):
    status_code = 502
    default_code = "EMAIL_DELIVERY_FAILED"


class AIProviderError(BinevoError):
    status_code = 502
    default_code = "AI_PROVIDER_ERROR"
