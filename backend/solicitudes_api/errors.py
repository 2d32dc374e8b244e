"""
Taxonomia de errores de la API y handlers globales de FastAPI.

Toda respuesta de error sale con el mismo sobre JSON:

    {
        "success": false,
        "error": {"message": ..., "code": ..., "statusCode": ..., "details": ...}
    }

Tipos y codigo HTTP por defecto:
    ValidationError       -> 400 VALIDATION_ERROR
      InvalidJsonError    -> 400 INVALID_JSON
    AuthenticationError   -> 401 AUTHENTICATION_ERROR
      TokenExpiredError   -> 401 TOKEN_EXPIRED
      InvalidTokenError   -> 401 INVALID_TOKEN
    AuthorizationError    -> 403 AUTHORIZATION_ERROR
    NotFoundError         -> 404 NOT_FOUND
    ConflictError         -> 409 CONFLICT_ERROR
    RateLimitError        -> 429 RATE_LIMIT_EXCEEDED
    DatabaseError         -> 500 DATABASE_ERROR
    ExternalServiceError  -> 502 EXTERNAL_SERVICE_ERROR
    cualquier otra        -> 500 INTERNAL_ERROR

`details` se incluye siempre en errores 4xx; en 5xx solo en desarrollo.
Los stack traces y mensajes originales de los SDKs van unicamente a los
logs del servidor, nunca al cuerpo de la respuesta.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from solicitudes_api.config import settings
from solicitudes_api.logger import get_logger

logger = get_logger(__name__)


# ---------- Excepciones de dominio ----------


class AppError(Exception):
    """Clase base para los errores de la aplicacion."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Error interno del servidor"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Datos invalidos"


class InvalidJsonError(ValidationError):
    code = "INVALID_JSON"
    message = "El cuerpo de la peticion no es un JSON valido"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"
    message = "No autorizado"


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    message = "El token ha expirado"


class InvalidTokenError(AuthenticationError):
    code = "INVALID_TOKEN"
    message = "Token invalido"


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    message = "Acceso prohibido"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Recurso no encontrado"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"
    message = "Conflicto con el estado actual del recurso"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Demasiadas solicitudes"


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"
    message = "Error de base de datos"


class ExternalServiceError(AppError):
    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"
    message = "Servicio externo no disponible"


# ---------- Helpers ----------


def error_body(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> dict:
    error: dict[str, Any] = {
        "message": message,
        "code": code,
        "statusCode": status_code,
    }
    if details and (status_code < 500 or settings.is_development):
        error["details"] = details
    return {"success": False, "error": error}


def _request_info(request: Request) -> dict:
    return {
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else "unknown",
    }


# ---------- Handlers ----------


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "app_error",
            code=exc.code,
            status_code=exc.status_code,
            message=exc.message,
            details=exc.details,
            **_request_info(request),
        )
    else:
        logger.warning(
            "app_error",
            code=exc.code,
            status_code=exc.status_code,
            message=exc.message,
            **_request_info(request),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.status_code, exc.details),
        headers=exc.headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "type": "invalid_format",
            "field": ".".join(str(part) for part in e["loc"] if part not in ("body", "query", "path")),
            "message": e["msg"],
        }
        for e in exc.errors()
    ]
    logger.warning("request_validation_error", errors=errors, **_request_info(request))
    return JSONResponse(
        status_code=400,
        content=error_body(
            "Parametros de la peticion invalidos",
            ValidationError.code,
            400,
            {"errors": errors},
        ),
    )


_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: AuthenticationError.code,
    403: AuthorizationError.code,
    404: NotFoundError.code,
    405: "METHOD_NOT_ALLOWED",
    429: RateLimitError.code,
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Ruta no encontrada: {request.url.path}"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code, exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc), **_request_info(request))
    return JSONResponse(
        status_code=500,
        content=error_body("Error interno del servidor", "INTERNAL_ERROR", 500),
    )


def register_error_handlers(app) -> None:
    """Registra todos los handlers en la instancia FastAPI."""
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
