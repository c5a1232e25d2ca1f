# app/core/errors.py
from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Error de dominio con un código HTTP fijo."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Error interno del servidor"

    def __init__(self, detail: Any = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else self.default_detail,
            headers=headers,
        )


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "No autenticado"

    def __init__(self, detail: Any = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Acceso denegado"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Recurso no encontrado"


class InvalidInput(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Datos inválidos"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflicto con el estado actual"
