"""
Error taxonomy for the registration service.

Every failure that can cross a service boundary is one of the classes below.
Each carries a stable machine-readable ``error_type`` tag, a short sentence
that is safe to show to a registrant, and the HTTP status it maps to. The
single exception handler in ``main.py`` renders them, so routes never
string-match on error messages.
"""

from typing import Optional


class SummitError(Exception):
    """
    Base exception for the registration service

    All custom exceptions should inherit from this class for
    consistent error handling.
    """

    error_type = "SERVER_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, error_type: Optional[str] = None):
        """
        Args:
            message: Human-readable error message
            error_type: Override for the machine-readable tag
        """
        self.message = message or self.default_message
        if error_type:
            self.error_type = error_type
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_type}] {self.message}"

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "errorType": self.error_type}


class ValidationError(SummitError):
    """Malformed input, raised before anything is persisted."""

    error_type = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request data"


class InvalidFormatError(ValidationError):
    """An access code that does not match the 8-character alphabet pattern."""

    error_type = "INVALID_FORMAT"
    default_message = "Invalid access code format"


class NotFoundError(SummitError):
    error_type = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class AccessCodeNotFoundError(NotFoundError):
    status_code = 400
    default_message = "Access code not found"


class RegistrationNotFoundError(NotFoundError):
    default_message = "Registration not found"


class AlreadyUsedError(SummitError):
    """
    Raised when an access code has already been redeemed

    A lost reservation race is reported the same way.
    """

    error_type = "ALREADY_USED"
    status_code = 409
    default_message = "This access code has already been used"


class ExpiredError(SummitError):
    error_type = "EXPIRED"
    status_code = 400
    default_message = "Access code has expired"


class DuplicateRegistrationError(SummitError):
    error_type = "DUPLICATE_REGISTRATION"
    status_code = 409
    default_message = "Participant already registered with this email"


class CapacityExhaustedError(SummitError):
    """The participant-ID pool has no numbers left. Needs operator action."""

    error_type = "CAPACITY_EXHAUSTED"
    status_code = 503
    default_message = "Registration capacity has been reached"


class GenerationExhaustedError(SummitError):
    """The code generator ran out of attempts. Safe to retry the batch later."""

    error_type = "GENERATION_EXHAUSTED"
    status_code = 503
    default_message = "Could not generate a unique access code"


class TicketRenderError(SummitError):
    """
    Raised when the QR ticket could not be rendered

    The registration itself has been persisted; the ticket can be
    re-issued by an administrator without registering again.
    """

    error_type = "TICKET_RENDER_ERROR"
    status_code = 502
    default_message = "Registration saved, but the ticket could not be generated"

    def __init__(self, message: Optional[str] = None, registration_id: Optional[int] = None,
                 participant_id: Optional[str] = None):
        super().__init__(message)
        self.registration_id = registration_id
        self.participant_id = participant_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["registrationId"] = self.registration_id
        data["participantId"] = self.participant_id
        return data


class DeliveryFailure(SummitError):
    """Email delivery failed. Only raised on explicit admin resends."""

    error_type = "DELIVERY_FAILURE"
    status_code = 503
    default_message = "Email service temporarily unavailable"


class NotConfirmedError(SummitError):
    error_type = "NOT_CONFIRMED"
    status_code = 400
    default_message = "Registration is not confirmed. Cannot check in."


class CodeInUseError(SummitError):
    """An access code cannot be released while a registration still holds it."""

    error_type = "CODE_IN_USE"
    status_code = 409
    default_message = "Access code is held by an existing registration"
