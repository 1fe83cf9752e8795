"""Exception hierarchy shared by the stores, resolver and data-plane service."""

from http import HTTPStatus


class TimingRemoteError(Exception):
    """Base exception for timing_remote."""

    def __init__(
        self,
        message: str,
        status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        code: str = "E5000",
        details: dict = None,
    ):
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(TimingRemoteError):
    """Settings are missing or inconsistent."""

    def __init__(self, message: str):
        super().__init__(message, code="E5001")


class DatabaseConnectionError(TimingRemoteError):
    """The database could not be reached."""

    def __init__(self, message: str = "Database unavailable", details: dict = None):
        super().__init__(
            message,
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            code="E5030",
            details=details,
        )


class StorageError(TimingRemoteError):
    """A statement failed inside the storage layer."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(
            message,
            code="E5100",
            details={"operation": operation} if operation else {},
        )
        self.operation = operation


class StorageTimeout(StorageError):
    """A statement or pool checkout exceeded the configured timeout."""

    def __init__(self, message: str = "Storage call timed out", operation: str = None):
        super().__init__(message, operation=operation)
        self.status_code = int(HTTPStatus.GATEWAY_TIMEOUT)
        self.code = "E5101"


class MigrationError(TimingRemoteError):
    """Schema creation or an upgrade step failed."""

    def __init__(self, message: str, version: int = None):
        super().__init__(
            message,
            code="E5200",
            details={"version": version} if version is not None else {},
        )
        self.version = version


class NotFoundError(TimingRemoteError):
    """Resource not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="E4040")


class ConflictError(TimingRemoteError):
    """A uniqueness or reference constraint rejected the write."""

    def __init__(self, message: str = "Conflict"):
        super().__init__(message, status_code=HTTPStatus.CONFLICT, code="E4090")


class DuplicateEmailError(ConflictError):
    def __init__(self, email: str = None):
        super().__init__("Email already in use")
        if email:
            self.details = {"email": email}


class ValidationError(TimingRemoteError):
    """Input rejected before it reached storage."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message,
            status_code=HTTPStatus.BAD_REQUEST,
            code="E4000",
            details=details,
        )


class RowCountError(ValidationError):
    """A single-row update touched an unexpected number of rows."""

    def __init__(self, expected: int, actual: int, operation: str = None):
        super().__init__(
            f"Expected {expected} row(s) to be affected, got {actual}",
            details={"expected": expected, "actual": actual, "operation": operation},
        )
        self.expected = expected
        self.actual = actual


class AccountNotLockedError(ValidationError):
    def __init__(self):
        super().__init__("Account not locked")


class InvalidRangeError(ValidationError):
    def __init__(self, start: int, end: int):
        super().__init__(
            "End of range precedes start",
            details={"start": start, "end": end},
        )


class UnauthorizedError(TimingRemoteError):
    """Credential missing, unknown, expired or lacking the required scope."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code="E2000")


class AccountLockedError(UnauthorizedError):
    def __init__(self):
        super().__init__("Account locked")
        self.code = "E2001"
