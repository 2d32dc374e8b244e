"""
Autenticacion y autorizacion como dependencias de FastAPI.

Cadena de dependencias:

    Authorization: Bearer <token>
        -> authenticate()            (formato del header + proveedor de identidad)
        -> get_current_principal     (obligatorio: 401 si falla)
        -> get_optional_principal    (opcional: None si falla)
        -> require_role("admin")     (403 si el rol no coincide)
        -> ensure_owner_or_admin()   (403 si no es propietario ni admin)

El proveedor de identidad se inyecta con Depends(get_identity_provider),
asi los tests lo reemplazan con app.dependency_overrides sin tocar Firebase.
"""

from fastapi import Depends, Request

from solicitudes_api.dependencies import get_identity_provider
from solicitudes_api.errors import AuthenticationError, AuthorizationError
from solicitudes_api.logger import get_logger
from solicitudes_api.models.records import Principal

logger = get_logger(__name__)


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("Token de autenticación requerido")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise AuthenticationError("Formato de token inválido. Use: Bearer <token>")
    token = parts[1].strip()
    if not token:
        raise AuthenticationError("Token no proporcionado")
    return token


def authenticate(authorization: str | None, identity_provider) -> Principal:
    """
    Resuelve el Principal de un header Authorization.

    Raises:
        AuthenticationError: header ausente o mal formado.
        TokenExpiredError / InvalidTokenError: el proveedor rechazo el token.
    """
    token = extract_bearer_token(authorization)
    claims = identity_provider.verify(token)
    principal = Principal.from_claims(claims)
    logger.debug("principal_authenticated", uid=principal.uid, role=principal.role)
    return principal


# ---------- Dependencias ----------


def get_current_principal(
    request: Request,
    identity_provider=Depends(get_identity_provider),
) -> Principal:
    principal = authenticate(request.headers.get("authorization"), identity_provider)
    request.state.principal = principal
    return principal


def get_optional_principal(
    request: Request,
    identity_provider=Depends(get_identity_provider),
) -> Principal | None:
    """Como get_current_principal, pero un token ausente o invalido da None."""
    if not request.headers.get("authorization"):
        return None
    try:
        principal = authenticate(request.headers.get("authorization"), identity_provider)
    except AuthenticationError as exc:
        logger.debug("optional_auth_ignored", code=exc.code)
        return None
    request.state.principal = principal
    return principal


def require_role(*roles: str):
    """
    Fabrica de dependencias que exige uno de los roles dados.

    Uso:
        @router.get("/users", dependencies=[Depends(require_role("admin"))])
    """

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            logger.warning(
                "access_denied_role",
                uid=principal.uid,
                role=principal.role,
                required=list(roles),
            )
            raise AuthorizationError(
                f"Acceso denegado. Se requiere uno de los siguientes roles: {', '.join(roles)}"
            )
        return principal

    return dependency


def ensure_owner_or_admin(principal: Principal | None, owner_id: str | None) -> None:
    """
    Verifica que el principal sea el propietario del recurso o admin.

    Un recurso sin propietario (owner_id None) solo lo puede tocar un admin.
    """
    if principal is None:
        raise AuthenticationError("Autenticación requerida")
    if principal.is_admin:
        return
    if owner_id is None or principal.uid != owner_id:
        logger.warning("access_denied_ownership", uid=principal.uid, owner_id=owner_id)
        raise AuthorizationError("No tienes permiso para acceder a este recurso")


def require_ownership(param_name: str = "user_id"):
    """
    Dependencia para rutas cuyo parametro de path ES el uid propietario.

    Ej: /users/{user_id}/... donde user_id es un firebaseUid.
    """

    def dependency(
        request: Request, principal: Principal = Depends(get_current_principal)
    ) -> Principal:
        owner_id = request.path_params.get(param_name)
        if not owner_id:
            raise AuthorizationError("ID de recurso no especificado")
        ensure_owner_or_admin(principal, owner_id)
        return principal

    return dependency
