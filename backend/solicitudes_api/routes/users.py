"""
Rutas de usuarios.

    GET    /users                  -> listado (solo admin)
    GET    /users/me               -> perfil propio (Auth + Firestore)
    GET    /users/uid/{firebase_uid} -> documento por firebaseUid (propietario o admin)
    GET    /users/{id}             -> documento por id (propietario o admin)
    PUT    /users/{id}             -> actualizar (propietario o admin; solo admin cambia roles)
    DELETE /users/{id}             -> eliminar (propietario o admin)

El propietario de un documento de usuario es el de su campo firebaseUid.
"""

from fastapi import APIRouter, Depends, Query, Request

from solicitudes_api.auth import ensure_owner_or_admin, get_current_principal, require_ownership, require_role
from solicitudes_api.config import settings
from solicitudes_api.dependencies import get_auth_service, get_users_service
from solicitudes_api.errors import NotFoundError
from solicitudes_api.models.records import Principal
from solicitudes_api.models.schemas import ErrorResponse, ListResponse, list_response
from solicitudes_api.routes.solicitudes import read_json_body
from solicitudes_api.services.auth import AuthService
from solicitudes_api.services.users import UsersService

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


@router.get("", response_model=ListResponse, dependencies=[Depends(require_role("admin"))])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    search: str | None = Query(None),
    service: UsersService = Depends(get_users_service),
):
    result = await service.list(page=page, limit=limit, search=search)
    return list_response(result)


@router.get("/me")
async def get_me(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    profile = await service.profile(principal.uid)
    return {"success": True, "data": {"user": profile}}


@router.get("/uid/{firebase_uid}")
async def get_user_by_firebase_uid(
    firebase_uid: str,
    _: Principal = Depends(require_ownership("firebase_uid")),
    service: UsersService = Depends(get_users_service),
):
    user = await service.get_by_firebase_uid(firebase_uid)
    if user is None:
        raise NotFoundError(f"Usuario con UID {firebase_uid} no encontrado")
    return {"success": True, "data": user}


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    service: UsersService = Depends(get_users_service),
):
    user = await service.get(user_id)
    ensure_owner_or_admin(principal, user.get("firebaseUid"))
    return {"success": True, "data": user}


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    service: UsersService = Depends(get_users_service),
):
    user = await service.get(user_id)
    ensure_owner_or_admin(principal, user.get("firebaseUid"))
    changes = await read_json_body(request)
    updated = await service.update(
        user_id, changes if changes is not None else {}, allow_role_change=principal.is_admin
    )
    return {"success": True, "message": "Usuario actualizado exitosamente", "data": updated}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    service: UsersService = Depends(get_users_service),
):
    user = await service.get(user_id)
    ensure_owner_or_admin(principal, user.get("firebaseUid"))
    await service.delete(user_id)
    return {"success": True, "message": "Usuario eliminado exitosamente"}
