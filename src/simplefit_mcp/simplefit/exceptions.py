"""SimpleFit exceptions.

All user-facing wording lives here so call sites never build messages ad hoc.
"""

NOT_LOGGED_IN = "User not logged in"
RESULT_TIMEOUT = "Timeout waiting for data"


class SimpleFitError(Exception):
    """Base exception for SimpleFit errors."""

    default_message = "SimpleFit operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class AuthenticationError(SimpleFitError):
    """Raised when a user-scoped operation has no current identity."""

    default_message = NOT_LOGGED_IN


class TokenExpiredError(AuthenticationError):
    """Raised when the authentication token could not be refreshed."""

    default_message = "Failed to refresh token"


class NotFoundError(SimpleFitError):
    """Raised when a lookup by id has no matching document."""

    def __init__(self, kind: str, identifier: str | None = None):
        super().__init__(f"{kind.capitalize()} not found")
        self.kind = kind
        self.identifier = identifier


class APIError(SimpleFitError):
    """Raised when a call to the remote document store fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidInputError(SimpleFitError):
    """Raised for structurally invalid arguments."""

    default_message = "Invalid input"

    @classmethod
    def empty(cls, field: str) -> "InvalidInputError":
        return cls(f"{field} cannot be null or empty")

    @classmethod
    def negative(cls, field: str, value) -> "InvalidInputError":
        return cls(f"{field} cannot be negative (got {value})")


class ResultTimeoutError(SimpleFitError):
    """Raised when a bounded wait on an asynchronous result expires."""

    default_message = RESULT_TIMEOUT

    def __init__(self, message: str | None = None, timeout: float | None = None):
        super().__init__(message)
        self.timeout = timeout
