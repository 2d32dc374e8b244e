"""
Rutas de autenticacion.

    POST /auth/login     -> verifica el ID token y sincroniza el usuario (rate limit)
    POST /auth/register  -> crea la cuenta o sincroniza una existente (rate limit)
    POST /auth/verify    -> valida un token y retorna sus datos basicos
    POST /auth/refresh   -> valida un token y lo devuelve (los tokens los renueva el cliente)
    GET  /auth/me        -> perfil del usuario autenticado

Los tokens nunca se loggean completos: solo mask_token(token).
"""

from fastapi import APIRouter, Depends, Request

from solicitudes_api.auth import get_current_principal
from solicitudes_api.dependencies import get_auth_service
from solicitudes_api.limiter import client_identity, login_limit, register_limit
from solicitudes_api.logger import get_logger, mask_token
from solicitudes_api.models.records import Principal
from solicitudes_api.models.schemas import ErrorResponse, RegisterRequest, TokenRequest
from solicitudes_api.services.auth import AuthService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)


@router.post("/login", dependencies=[Depends(login_limit)])
async def login(
    body: TokenRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    logger.info("login_attempt", token=mask_token(body.idToken), client=client_identity(request))
    try:
        result = await service.login(body.idToken)
    except Exception as exc:
        logger.warning(
            "login_failed",
            error=type(exc).__name__,
            token=mask_token(body.idToken),
            client=client_identity(request),
        )
        raise
    return {"success": True, "message": "Login exitoso", "data": result}


@router.post("/register", status_code=201, dependencies=[Depends(register_limit)])
async def register(
    body: RegisterRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    logger.info(
        "register_attempt",
        email=body.email or "desde-token",
        has_password=bool(body.password),
        token=mask_token(body.idToken) if body.idToken else None,
        client=client_identity(request),
    )
    result = await service.register(
        email=body.email,
        password=body.password,
        name=body.name,
        id_token=body.idToken,
    )
    return {"success": True, "message": result["message"], "data": {"user": result["user"]}}


@router.post("/verify")
async def verify(body: TokenRequest, service: AuthService = Depends(get_auth_service)):
    user = await service.verify(body.idToken)
    return {"success": True, "message": "Token válido", "data": {"user": user}}


@router.post("/refresh")
async def refresh(body: TokenRequest, service: AuthService = Depends(get_auth_service)):
    user = await service.verify(body.idToken)
    return {
        "success": True,
        "message": "Token verificado",
        "data": {"token": body.idToken, "user": user},
    }


@router.get("/me")
async def me(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    profile = await service.profile(principal.uid)
    return {"success": True, "data": {"user": profile}}
