# app/core/exceptions.py
from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base class for every failure the API reports to clients.

    Operational errors are anticipated (bad input, missing auth, unknown id) and
    their message is safe to show. Non-operational errors are bugs and only ever
    reach the client as a generic message in production.
    """

    kind = "AppError"

    def __init__(
            self,
            message: str,
            status_code: int = 500,
            is_operational: bool = True,
            details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.is_operational = is_operational
        self.details = details or {}

    @property
    def status(self) -> str:
        return "fail" if str(self.status_code).startswith("4") else "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message}


class ValidationFailed(AppError):
    kind = "ValidationFailed"

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, 400, details={"errors": errors or []})


class DuplicateResource(AppError):
    kind = "DuplicateResource"

    def __init__(self, message: str):
        super().__init__(message, 400)


class InvalidIdentifier(AppError):
    kind = "InvalidIdentifier"

    def __init__(self, path: str, value: Any):
        super().__init__(f"Invalid {path}: {value}.", 400, details={"path": path, "value": value})


class NotFound(AppError):
    kind = "NotFound"

    def __init__(self, message: str = "No document found with that ID"):
        super().__init__(message, 404)


class Unauthenticated(AppError):
    kind = "Unauthenticated"

    def __init__(self, message: str = "You are not logged in! Please log in to get access."):
        super().__init__(message, 401)


class InvalidToken(Unauthenticated):
    kind = "InvalidToken"

    def __init__(self, message: str = "Invalid token. Please log in again!"):
        super().__init__(message)


class ExpiredToken(Unauthenticated):
    kind = "ExpiredToken"

    def __init__(self, message: str = "Your token has expired! Please log in again."):
        super().__init__(message)


class InvalidCredentials(AppError):
    kind = "InvalidCredentials"

    def __init__(self, message: str = "Incorrect email or password"):
        super().__init__(message, 401)


class Forbidden(AppError):
    kind = "Forbidden"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message, 403)


class InvalidOrExpiredToken(AppError):
    kind = "InvalidOrExpiredToken"

    def __init__(self, message: str = "Token is invalid or has expired"):
        super().__init__(message, 400)


class EmailDeliveryFailed(AppError):
    kind = "EmailDeliveryFailed"

    def __init__(self, message: str = "There was an error sending the email. Try again later!"):
        super().__init__(message, 500)


class TooManyRequests(AppError):
    kind = "TooManyRequests"

    def __init__(self, message: str = "Too many requests from this IP, please try again in an hour!"):
        super().__init__(message, 429)


class ServiceUnavailable(AppError):
    kind = "ServiceUnavailable"

    def __init__(self, message: str = "Service temporarily unavailable. Please try again later."):
        super().__init__(message, 503)


class InternalError(AppError):
    kind = "InternalError"

    def __init__(self, message: str = "Something went very wrong!"):
        super().__init__(message, 500, is_operational=False)


class QueryCastError(ValueError):
    """A query value could not be converted to the type of the field it targets."""

    def __init__(self, path: str, value: Any):
        super().__init__(f"Cast to {path} failed for value {value!r}")
        self.path = path
        self.value = value
