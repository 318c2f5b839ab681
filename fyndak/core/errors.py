"""
Error taxonomy

Every failure that leaves a service carries one of a closed set of
kinds so callers can branch on the kind instead of on message text.
"""
import enum


class ErrorKind(str, enum.Enum):
    """Closed set of error kinds"""
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    INVALID_BID = "invalid_bid"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    UPSTREAM_FAILURE = "upstream_failure"


class FyndakError(Exception):
    """Base exception for service errors"""

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "detail": self.message}


class Unauthenticated(FyndakError):
    """No session for an operation requiring one"""
    kind = ErrorKind.UNAUTHENTICATED


class Unauthorized(FyndakError):
    """Non-admin attempting an admin-only operation"""
    kind = ErrorKind.UNAUTHORIZED


class InvalidBid(FyndakError):
    """Bid amount is not acceptable"""
    kind = ErrorKind.INVALID_BID


class NotFound(FyndakError):
    """Referenced entity is missing"""
    kind = ErrorKind.NOT_FOUND


class InvalidState(FyndakError):
    """Operation not allowed in the entity's current state"""
    kind = ErrorKind.INVALID_STATE


class UpstreamFailure(FyndakError):
    """The store rejected or timed out a call"""
    kind = ErrorKind.UPSTREAM_FAILURE


HTTP_STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INVALID_BID: 422,
    ErrorKind.UPSTREAM_FAILURE: 502,
}
