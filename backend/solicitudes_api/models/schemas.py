"""
Esquemas (DTOs) de entrada y salida de la API, con Pydantic.

El formulario de solicitud NO tiene un modelo Pydantic: su forma depende de
la variante activa (FormSchema) y se valida con services/validator.py para
poder devolver TODOS los errores en el formato propio de la API. Aqui viven
los cuerpos fijos (auth) y los sobres de respuesta que aparecen en /docs.

Todas las respuestas exitosas siguen el sobre:
    {"success": true, "message"?: ..., "data": ..., "pagination"?: ...}
Los handlers devuelven ese sobre como dict; aqui se modelan los listados,
el health check y el sobre de error para la documentacion.
"""

from pydantic import BaseModel


# ---------- Peticiones ----------


class TokenRequest(BaseModel):
    """
    Cuerpo de /auth/login, /auth/verify y /auth/refresh.

    idToken es opcional a nivel de esquema para que su ausencia produzca el
    mensaje de la API ("El campo idToken es requerido") y no el generico.
    """
    idToken: str | None = None


class RegisterRequest(BaseModel):
    """
    Cuerpo de /auth/register.

    Se registra con email + password, o con el idToken de una cuenta que el
    frontend ya creo en Firebase Auth.
    """
    email: str | None = None
    password: str | None = None
    name: str | None = None
    idToken: str | None = None


# ---------- Respuestas ----------


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class ListResponse(BaseModel):
    success: bool = True
    data: list[dict]
    pagination: Pagination


class ErrorDetail(BaseModel):
    message: str
    code: str
    statusCode: int
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Sobre uniforme de error (ver errors.py)."""
    success: bool = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float
    environment: str


def list_response(result: dict) -> ListResponse:
    """Convierte el resultado de paginate() en el sobre de listado."""
    return ListResponse(
        data=result["items"],
        pagination=Pagination(
            page=result["page"],
            limit=result["limit"],
            total=result["total"],
            totalPages=result["totalPages"],
        ),
    )
