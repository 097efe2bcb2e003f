from fastapi import HTTPException, status
from typing import Optional, Dict


class ClinicError(HTTPException):
    """Base for every error the API reports with a stable machine-readable kind."""
    kind: str = "Internal"
    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail_default: str = "An unexpected error occurred"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=detail or self.detail_default,
            headers=headers,
        )


class AuthenticationError(ClinicError):
    kind = "Unauthenticated"
    status_code_default = status.HTTP_401_UNAUTHORIZED
    detail_default = "Could not validate credentials"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ClinicError):
    kind = "Forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN
    detail_default = "Not enough permissions"


class NotFoundError(ClinicError):
    kind = "NotFound"
    status_code_default = status.HTTP_404_NOT_FOUND
    detail_default = "The requested resource was not found"


class InvalidArgumentError(ClinicError):
    kind = "InvalidArgument"
    status_code_default = status.HTTP_400_BAD_REQUEST
    detail_default = "Invalid request"


class InvalidStateError(ClinicError):
    kind = "InvalidState"
    status_code_default = status.HTTP_400_BAD_REQUEST
    detail_default = "Operation not allowed in the current state"


class InternalError(ClinicError):
    pass


# Kind reported for plain HTTPExceptions raised by FastAPI/Starlette themselves
STATUS_KINDS = {
    status.HTTP_400_BAD_REQUEST: "InvalidArgument",
    status.HTTP_401_UNAUTHORIZED: "Unauthenticated",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "NotFound",
    status.HTTP_405_METHOD_NOT_ALLOWED: "InvalidArgument",
    status.HTTP_429_TOO_MANY_REQUESTS: "RateLimited",
}


def error_kind(exc: HTTPException) -> str:
    return getattr(exc, "kind", None) or STATUS_KINDS.get(exc.status_code, "Internal")
