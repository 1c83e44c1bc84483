"""
Custom exceptions for the CeMAP trainer.

Every domain error carries the HTTP status it maps to and a short type
tag; the application's exception handlers turn them into the standard
error envelope.
"""


class TrainerError(Exception):
    """Base exception for all trainer errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CatalogError(TrainerError):
    """Raised when the question bank data is malformed."""
    error_type = "catalog_error"


class QuizValidationError(TrainerError):
    """Raised when a quiz request is malformed."""
    status_code = 400
    error_type = "validation_error"


class UnknownModeError(QuizValidationError):
    """Raised for a quiz mode the selector does not recognise."""

    def __init__(self, mode: str):
        self.mode = mode
        super().__init__(f"Unknown quiz mode: {mode!r}")


class TopicNotFoundError(TrainerError):
    """Raised when a topic exam slug is not configured."""
    status_code = 404
    error_type = "not_found"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Unknown topic: {slug}")


class UserNotFoundError(TrainerError):
    status_code = 404
    error_type = "not_found"


class AuthenticationError(TrainerError):
    """Raised when a session is missing or credentials are wrong."""
    status_code = 401
    error_type = "authentication_error"


class AccessDeniedError(TrainerError):
    """Raised when an authenticated user lacks a role or entitlement."""
    status_code = 403
    error_type = "access_denied"


class DuplicateEmailError(TrainerError):
    status_code = 409
    error_type = "conflict"

    def __init__(self, email: str):
        self.email = email
        super().__init__("An account with this email already exists")


class PaymentIntegrityError(TrainerError):
    """Raised when a payment does not match the catalog or the caller."""
    status_code = 400
    error_type = "payment_error"

    def __init__(self, message: str, payment_intent_id: str = None):
        self.payment_intent_id = payment_intent_id
        super().__init__(message)


class PaymentGatewayError(TrainerError):
    """Raised when the payment provider call fails."""
    status_code = 502
    error_type = "payment_gateway_error"


class PaymentsUnavailableError(TrainerError):
    """Raised when no payment provider is configured."""
    status_code = 503
    error_type = "payments_unavailable"
