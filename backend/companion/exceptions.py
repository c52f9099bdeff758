"""
Companion Backend — Custom Exception Hierarchy
================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Services raise domain errors; global handlers (registered in main.py)
       translate them into structured JSON responses with the right status.
How:   Each exception class carries a message, an optional context dict, and
       the HTTP status / machine-readable code it maps to.
Who:   Raised by services, security dependencies and middleware.

Exception Hierarchy:
    CompanionError (base)                    → 500
    ├── ValidationError                      → 400 Bad Request
    ├── AuthenticationError                  → 401 Unauthorized
    ├── PaymentRequiredError                 → 402 Payment Required (card declined)
    ├── PermissionDeniedError                → 403 Forbidden
    ├── NotFoundError                        → 404 Not Found
    ├── ConflictError                        → 409 Conflict (state transitions, duplicates)
    ├── RateLimitExceededError               → 429 Too Many Requests
    ├── FileStorageError                     → 500 Internal Server Error
    ├── PaymentProviderError                 → 502 Bad Gateway (Stripe failed)
    ├── ServiceNotConfiguredError            → 503 Service Unavailable
    │   └── StorageNotConfiguredError        → 503 Service Unavailable
    └── CircuitBreakerOpenError              → 503 Service Unavailable (circuit open)

Context vs details:
    `context` is logged server-side. Only exceptions that set
    `expose_context = True` return it to the client as `details`.
"""

from typing import Any, Dict, Optional


class CompanionError(Exception):
    """
    Base exception for all Companion application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    status_code: int = 500
    error_code: str = "server_error"
    expose_context: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(CompanionError):
    """
    Raised when client input fails a business rule.

    Schema-level problems (wrong types, missing JSON fields) are still
    rejected by FastAPI with 422; this covers the rules pydantic can't see:
    booking windows, duplicate states, MIME types and the like.
    """

    status_code = 400
    error_code = "validation_error"
    expose_context = True

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(CompanionError):
    """Missing, malformed or expired bearer token, or bad credentials."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(CompanionError):
    """
    Authenticated, but not allowed to perform this action.

    Examples: a client trying to approve a booking, a non-admin opening the
    KYC queue, an unverified creator publishing a post (context carries
    `requires_verification` so the frontend can route to the KYC wizard).
    """

    status_code = 403
    error_code = "forbidden"
    expose_context = True

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(CompanionError):
    """Raised when a requested resource does not exist."""

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        if resource_id:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(CompanionError):
    """
    The request is valid but clashes with current state.

    When: booking already approved, overlapping time slot, second review,
    duplicate subscription, KYC already pending.
    """

    status_code = 409
    error_code = "conflict"
    expose_context = True

    def __init__(
        self,
        message: str = "The request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PaymentRequiredError(CompanionError):
    """Stripe declined the card (CardError)."""

    status_code = 402
    error_code = "payment_declined"
    expose_context = True

    def __init__(
        self,
        message: str = "Your card was declined",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PaymentProviderError(CompanionError):
    """
    Raised when Stripe fails after all retries, or returns a non-card error.

    HTTP 502: the problem is upstream, not in our request handling.
    """

    status_code = 502
    error_code = "payment_provider_error"

    def __init__(
        self,
        message: str = "The payment provider is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ServiceNotConfiguredError(CompanionError):
    """An optional integration (Stripe Connect, S3) has no credentials."""

    status_code = 503
    error_code = "service_not_configured"

    def __init__(
        self,
        message: str = "This feature is not configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageNotConfiguredError(ServiceNotConfiguredError):
    """S3 credentials are missing; presigned uploads are disabled."""

    status_code = 503
    error_code = "storage_not_configured"

    def __init__(
        self,
        message: str = "File storage is not configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(CompanionError):
    """
    Raised when the payments circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for recovery_time seconds)
        → After timeout → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Payment service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class FileStorageError(CompanionError):
    """Raised when local file system operations fail."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(CompanionError):
    """Raised when a client exceeds the per-IP request rate limit."""

    status_code = 429
    error_code = "rate_limit_exceeded"
    expose_context = True

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
