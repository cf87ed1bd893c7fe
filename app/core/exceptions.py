"""
Application exception hierarchy.
Every HTTP-facing failure is an `AppException` so the global handlers can render
one consistent error envelope.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """
    Base exception class for all application exceptions.
    Carries a machine readable `error_code` alongside the human message.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail={
                "error_code": error_code,
                "message": message,
                "details": self.details,
            },
            headers=headers,
        )


class AuthenticationException(AppException):
    """Raised when the gateway-supplied identity headers are missing or malformed."""

    def __init__(
        self,
        error_code: str = "authentication_failed",
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code,
            message=message,
            details=details,
        )


class MissingIdentityException(AuthenticationException):
    """Raised when a request does not carry the caller's user/org identity."""

    def __init__(self, header: str):
        super().__init__(
            error_code="missing_identity",
            message=f"Missing required identity header: {header}",
            details={"header": header},
        )


class ResourceNotFoundException(AppException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Optional[Any] = None):
        details = {}
        if identifier is not None:
            details["identifier"] = str(identifier)

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="resource_not_found",
            message=f"{resource} not found",
            details=details,
        )


class ValidationException(AppException):
    """Raised when input validation fails outside of pydantic."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {}
        if field:
            details["field"] = field

        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="validation_error",
            message=message,
            details=details,
        )


class ServiceUnavailableException(AppException):
    """Raised when a dependency (database, push provider) is unavailable."""

    def __init__(self, service: str):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="service_unavailable",
            message=f"{service} is currently unavailable",
            details={"service": service},
        )


__all__ = [
    "AppException",
    "AuthenticationException",
    "MissingIdentityException",
    "ResourceNotFoundException",
    "ValidationException",
    "ServiceUnavailableException",
]
