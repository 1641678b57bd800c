"""
Domain exceptions.

Services raise these; the handlers in error_handlers.py turn them into
`{"error": ..., "details": ...}` JSON responses.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class ProviderNotConfigured(ValidationError):
    default_message = "Payment provider is not configured"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication required"


class PaymentRequiredError(AppError):
    status_code = 402
    default_message = "Upgrade required"


class JobLimitReached(PaymentRequiredError):
    default_message = "Active job limit reached for your plan"


class InsufficientCredits(PaymentRequiredError):
    default_message = "Insufficient credits"


class PermissionDenied(AppError):
    status_code = 403
    default_message = "You do not have access to this resource"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"
