"""Error taxonomy surfaced by the API layer.

Every error carries the HTTP status it maps to so the global exception
handler can render it without a lookup table.
"""

from typing import Any


class FraudMonitorError(Exception):
    status_code: int = 500
    error: str = "internal_server_error"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(FraudMonitorError):
    status_code = 422
    error = "validation_error"


class ConflictError(FraudMonitorError):
    status_code = 409
    error = "conflict"


class InvalidTransitionError(ConflictError):
    error = "invalid_transition"


class NotFoundError(FraudMonitorError):
    status_code = 404
    error = "not_found"


class AuthError(FraudMonitorError):
    status_code = 401
    error = "unauthorized"


class RateLimitError(FraudMonitorError):
    status_code = 429
    error = "rate_limited"

    def __init__(self, message: str, retry_after: int, details: Any = None) -> None:
        super().__init__(message, details)
        self.retry_after = retry_after


class InternalError(FraudMonitorError):
    pass
