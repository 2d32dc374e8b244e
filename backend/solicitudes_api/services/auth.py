"""
Servicio de autenticacion: login, registro, verificacion y perfil.

El frontend autentica contra Firebase Auth y envia el ID token; este
servicio lo verifica con el proveedor de identidad y mantiene sincronizado
el documento del usuario en Firestore (via UsersService).
"""

from starlette.concurrency import run_in_threadpool

from solicitudes_api.errors import ValidationError
from solicitudes_api.logger import get_logger
from solicitudes_api.models.records import Principal
from solicitudes_api.services.users import UsersService
from solicitudes_api.services.validator import EMAIL_RE

logger = get_logger(__name__)


class AuthService:
    def __init__(self, identity_provider, users: UsersService):
        self.identity = identity_provider
        self.users = users

    async def _verify(self, id_token: str) -> Principal:
        if not id_token:
            raise ValidationError("El campo idToken es requerido")
        claims = await run_in_threadpool(self.identity.verify, id_token)
        return Principal.from_claims(claims)

    async def login(self, id_token: str) -> dict:
        principal = await self._verify(id_token)
        auth_user = await run_in_threadpool(self.identity.get_user, principal.uid)
        user = await self.users.sync_from_auth(auth_user)
        logger.info("login_succeeded", uid=principal.uid)
        return {
            "user": {**user, "customClaims": auth_user.get("customClaims") or {}},
            "token": id_token,
        }

    async def register(
        self,
        email: str | None = None,
        password: str | None = None,
        name: str | None = None,
        id_token: str | None = None,
    ) -> dict:
        """
        Registra un usuario.

        Dos caminos:
            - idToken: la cuenta ya se creo en el frontend; solo se sincroniza.
            - email + password: se crea la cuenta en Firebase Auth.
        En ambos casos el documento en Firestore queda con rol "user"; los
        roles se asignan con custom claims fuera de la API.
        """
        if not id_token and not email:
            raise ValidationError("El email o idToken es requerido")
        if not id_token and not password:
            raise ValidationError("La contraseña es requerida cuando no se proporciona idToken")
        if email and not EMAIL_RE.fullmatch(email):
            raise ValidationError("El formato del email no es válido")

        if id_token:
            principal = await self._verify(id_token)
            auth_user = await run_in_threadpool(self.identity.get_user, principal.uid)
        else:
            auth_user = await run_in_threadpool(self.identity.create_user, email, password, name)

        existed = await self.users.get_by_firebase_uid(auth_user["uid"]) is not None
        user = await self.users.sync_from_auth(auth_user, extra={"name": name, "email": email})
        message = "Usuario actualizado exitosamente" if existed else "Usuario registrado exitosamente"
        logger.info("register_succeeded", uid=auth_user["uid"], existed=existed)
        return {"user": user, "message": message}

    async def verify(self, id_token: str) -> dict:
        principal = await self._verify(id_token)
        return {
            "uid": principal.uid,
            "email": principal.email,
            "emailVerified": principal.email_verified,
            "customClaims": dict(principal.custom_claims),
        }

    async def profile(self, uid: str) -> dict:
        """Perfil combinado: datos de Firebase Auth + documento de Firestore."""
        auth_user = await run_in_threadpool(self.identity.get_user, uid)
        stored = await self.users.get_by_firebase_uid(uid) or {}
        claims = auth_user.get("customClaims") or {}
        return {
            "uid": auth_user["uid"],
            "email": auth_user.get("email"),
            "emailVerified": auth_user.get("emailVerified", False),
            "name": auth_user.get("displayName") or stored.get("name") or "",
            "photoURL": auth_user.get("photoURL") or stored.get("photoURL"),
            "role": claims.get("role") or stored.get("role") or "user",
            "customClaims": claims,
            "createdAt": stored.get("createdAt"),
            "updatedAt": stored.get("updatedAt"),
            "lastLoginAt": stored.get("lastLoginAt"),
        }
