"""Application error taxonomy.

Route handlers and services raise these; the handlers registered in ``main.py``
turn them into the standard ``{success, message, errors}`` envelope. The device
channel catches them and reports an ``error`` event instead.
"""

from typing import Any

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, errors: list[Any] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
