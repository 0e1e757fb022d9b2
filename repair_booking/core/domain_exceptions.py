"""Domain errors raised by booking services and rendered by the API layer."""

from repair_booking.core.error_codes import ErrorCode


class DomainException(Exception):
    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    status_code: int = 400

    def __init__(self, message: str, code: ErrorCode | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class BookingValidationError(DomainException):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class NotFound(DomainException):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class Forbidden(DomainException):
    code = ErrorCode.FORBIDDEN
    status_code = 403


class SlotAlreadyBooked(DomainException):
    """Another booking won the slot occurrence; the caller should pick another slot."""

    code = ErrorCode.SLOT_ALREADY_BOOKED
    status_code = 409


class QuoteAlreadyBooked(DomainException):
    code = ErrorCode.QUOTE_ALREADY_BOOKED
    status_code = 409


class InvalidStateTransition(DomainException):
    code = ErrorCode.INVALID_STATE_TRANSITION
    status_code = 409


class InvalidConfiguration(DomainException):
    """Shop pricing inputs are malformed; surfaced to shop administrators."""

    code = ErrorCode.INVALID_CONFIGURATION
    status_code = 422


class SlotOverlap(DomainException):
    code = ErrorCode.SLOT_OVERLAP
    status_code = 409


class SlotInUse(DomainException):
    code = ErrorCode.SLOT_IN_USE
    status_code = 409
