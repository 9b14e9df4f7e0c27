import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "NotFound"
    INVALID_STATE_TRANSITION = "InvalidStateTransition"
    INSUFFICIENT_CAPACITY = "InsufficientCapacity"
    OTP_MISMATCH = "OtpMismatch"
    INVALID_DURATION = "InvalidDuration"
    STALE_WRITE = "StaleWrite"
    INVALID_REQUEST = "InvalidRequest"


class BookingError(Exception):
    kind: ErrorKind

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(BookingError):
    kind = ErrorKind.NOT_FOUND


class InvalidStateTransition(BookingError):
    kind = ErrorKind.INVALID_STATE_TRANSITION


class InsufficientCapacity(BookingError):
    kind = ErrorKind.INSUFFICIENT_CAPACITY


class OtpMismatch(BookingError):
    kind = ErrorKind.OTP_MISMATCH


class InvalidDuration(BookingError):
    kind = ErrorKind.INVALID_DURATION


class StaleWrite(BookingError):
    kind = ErrorKind.STALE_WRITE


class InvalidRequest(BookingError):
    kind = ErrorKind.INVALID_REQUEST


# HTTP status used by the transport layer for each failure kind
HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE_TRANSITION: 409,
    ErrorKind.INSUFFICIENT_CAPACITY: 409,
    ErrorKind.STALE_WRITE: 409,
    ErrorKind.OTP_MISMATCH: 422,
    ErrorKind.INVALID_DURATION: 422,
    ErrorKind.INVALID_REQUEST: 422,
}
