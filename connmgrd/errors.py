"""
connmgrd Service Errors

Errors reported to RPC callers in the service reply body:

    {"returnValue": false, "errorCode": <int>, "errorText": <str>}

Validation and parsing failures are always raised before any registry
mutation is attempted.
"""

from typing import Optional


class ErrorCode:
    UNKNOWN = -1
    BAD_REQUEST = -2
    INVALID_PARAMS = -3
    NOT_FOUND = -4
    UNAVAILABLE = -5


class ServiceError(Exception):
    """Base class for errors reported to RPC callers."""

    error_code = ErrorCode.UNKNOWN
    default_text = "Unknown error"

    def __init__(self, error_text: Optional[str] = None):
        self.error_text = error_text or self.default_text
        super().__init__(self.error_text)

    def to_reply(self) -> dict:
        return {
            "returnValue": False,
            "errorCode": self.error_code,
            "errorText": self.error_text,
        }


class BadRequestError(ServiceError):
    """Payload is not a JSON object."""
    error_code = ErrorCode.BAD_REQUEST
    default_text = "Malformed json"


class ValidationError(ServiceError):
    """Required field missing or a field has the wrong type/value."""
    error_code = ErrorCode.INVALID_PARAMS
    default_text = "Invalid parameters"


class NotFoundError(ServiceError):
    """Named service or technology does not exist."""
    error_code = ErrorCode.NOT_FOUND
    default_text = "Not found"


class UnavailableError(ServiceError):
    """Technology class or daemon not present on this system."""
    error_code = ErrorCode.UNAVAILABLE
    default_text = "Unavailable"


class UnknownFailure(ServiceError):
    """The daemon refused a call without a reason."""
    error_code = ErrorCode.UNKNOWN
    default_text = "Unknown error"
