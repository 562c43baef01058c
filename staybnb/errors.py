"""
Typed application errors.

Services raise these; the handlers registered in ``main`` turn them into the
``{success, error, message, field}`` envelope with the matching status code.
"""
from typing import Optional

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.field = field


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InvalidState(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_STATE"


class PaymentFailed(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "PAYMENT_FAILED"

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        if status_code is not None:
            self.status_code = status_code
