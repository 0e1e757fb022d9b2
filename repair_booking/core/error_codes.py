from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    SLOT_ALREADY_BOOKED = "SLOT_ALREADY_BOOKED"
    QUOTE_ALREADY_BOOKED = "QUOTE_ALREADY_BOOKED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    SLOT_OVERLAP = "SLOT_OVERLAP"
    SLOT_IN_USE = "SLOT_IN_USE"
