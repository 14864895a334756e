"""Domain errors shared by the repositories, services and HTTP layer."""

from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    CONFLICT = "CONFLICT"


HTTP_STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.CONFLICT: 409,
}


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]


class InvalidInputError(DomainError):
    """Raised when caller-supplied data is malformed or out of range."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_INPUT, message=message)


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, resource: str) -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=f"{resource} not found.")


class UnauthenticatedError(DomainError):
    """Raised when an operation needs a session and none is attached."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.UNAUTHENTICATED,
            message="Authentication required. Please log in to access this resource.",
        )


class ForbiddenError(DomainError):
    """Raised when the session role is not allowed to perform an operation."""

    def __init__(self, role: str) -> None:
        super().__init__(
            code=ErrorCode.FORBIDDEN,
            message=f"This resource is for {role} only.",
        )


class InvalidCredentialsError(DomainError):
    """Raised on login failure.

    The message never says whether the email or the password was wrong.
    """

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_CREDENTIALS,
            message="Invalid email or password.",
        )


class ConflictError(DomainError):
    """Raised when a write collides with an existing unique record."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.CONFLICT, message=message)
