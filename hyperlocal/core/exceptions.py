# hyperlocal/core/exceptions.py
"""
Domain exceptions for the booking workflow.
Each class carries the HTTP status the API answers with.
"""


class HyperlocalError(Exception):
    """Base exception for booking operations."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(HyperlocalError):
    """Raised when input or a requested change is invalid."""

    status_code = 400
    default_message = "Invalid request"


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change booking status from {current} to {target}")


class AlreadyReviewedError(ValidationError):
    default_message = "You have already reviewed this booking"


class PaymentVerificationError(ValidationError):
    default_message = "Payment verification failed"


class PermissionDeniedError(HyperlocalError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(HyperlocalError):
    status_code = 404
    default_message = "Not found"


class BookingNotFoundError(NotFoundError):
    default_message = "Booking not found"


class ServiceNotFoundError(NotFoundError):
    default_message = "Service not found"


class PaymentGatewayError(HyperlocalError):
    """Raised when the payment gateway cannot create an order."""

    default_message = "Payment gateway error"


class QueueUnavailableError(HyperlocalError):
    """Raised when a job cannot be put on a queue."""

    default_message = "Queue unavailable"


class MailTransportUnavailableError(HyperlocalError):
    """Raised when the mail transport is not ready. Retryable."""

    default_message = "Mail transport not ready"
