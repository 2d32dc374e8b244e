"""
Rutas de solicitudes de credito.

    POST   /solicitudes        -> crear (auth opcional o requerida por config + rate limit)
    GET    /solicitudes        -> listar (admin: todas; usuario: las propias)
    GET    /solicitudes/{id}   -> detalle (propietario o admin)
    PUT    /solicitudes/{id}   -> actualizar (propietario o admin)
    DELETE /solicitudes/{id}   -> eliminar registro y PDF (propietario o admin)

El cuerpo del POST se lee a mano (no con un modelo Pydantic) para poder
distinguir "cuerpo vacio" de "JSON invalido" y devolver todos los errores
del formulario en el formato de la API.
"""

import json

from fastapi import APIRouter, Depends, Query, Request

from solicitudes_api.auth import (
    authenticate,
    ensure_owner_or_admin,
    get_current_principal,
    get_optional_principal,
)
from solicitudes_api.config import settings
from solicitudes_api.dependencies import get_identity_provider, get_solicitudes_service
from solicitudes_api.errors import InvalidJsonError
from solicitudes_api.limiter import solicitud_creation_limit
from solicitudes_api.logger import get_logger
from solicitudes_api.models.records import Principal
from solicitudes_api.models.schemas import ErrorResponse, ListResponse, list_response
from solicitudes_api.services.solicitudes import SolicitudesService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/solicitudes",
    tags=["solicitudes"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


async def read_json_body(request: Request):
    """
    Lee el cuerpo como JSON. Cuerpo vacio -> None.

    Raises:
        InvalidJsonError: el cuerpo no es JSON parseable.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidJsonError() from exc


def creation_principal(
    request: Request,
    optional: Principal | None = Depends(get_optional_principal),
    identity_provider=Depends(get_identity_provider),
) -> Principal | None:
    """Con REQUIRE_AUTH_ON_CREATE el token es obligatorio; si no, opcional."""
    if settings.REQUIRE_AUTH_ON_CREATE and optional is None:
        # Repite la verificacion para devolver el error concreto (401).
        return authenticate(request.headers.get("authorization"), identity_provider)
    return optional


@router.post("", status_code=201)
async def create_solicitud(
    request: Request,
    principal: Principal | None = Depends(creation_principal),
    _: None = Depends(solicitud_creation_limit),
    service: SolicitudesService = Depends(get_solicitudes_service),
):
    body = await read_json_body(request)
    logger.info(
        "solicitud_received",
        fields=len(body) if isinstance(body, dict) else 0,
        user_id=principal.uid if principal else None,
    )
    created = await service.create(body, principal.uid if principal else None)
    return {
        "success": True,
        "message": "Solicitud de crédito creada exitosamente",
        "data": created,
    }


@router.get("", response_model=ListResponse)
async def list_solicitudes(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    search: str | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    service: SolicitudesService = Depends(get_solicitudes_service),
):
    owner_id = None if principal.is_admin else principal.uid
    result = await service.list(owner_id=owner_id, page=page, limit=limit, search=search)
    return list_response(result)


@router.get("/{solicitud_id}")
async def get_solicitud(
    solicitud_id: str,
    principal: Principal = Depends(get_current_principal),
    service: SolicitudesService = Depends(get_solicitudes_service),
):
    record = await service.get(solicitud_id)
    ensure_owner_or_admin(principal, record.get("userId"))
    return {"success": True, "data": record}


@router.put("/{solicitud_id}")
async def update_solicitud(
    solicitud_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    service: SolicitudesService = Depends(get_solicitudes_service),
):
    record = await service.get(solicitud_id)
    ensure_owner_or_admin(principal, record.get("userId"))
    changes = await read_json_body(request)
    updated = await service.update(solicitud_id, changes if changes is not None else {})
    return {
        "success": True,
        "message": "Solicitud actualizada exitosamente",
        "data": updated,
    }


@router.delete("/{solicitud_id}")
async def delete_solicitud(
    solicitud_id: str,
    principal: Principal = Depends(get_current_principal),
    service: SolicitudesService = Depends(get_solicitudes_service),
):
    record = await service.get(solicitud_id)
    ensure_owner_or_admin(principal, record.get("userId"))
    await service.delete(solicitud_id, record)
    return {"success": True, "message": "Solicitud eliminada exitosamente"}
