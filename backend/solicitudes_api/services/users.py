"""
Servicio de usuarios (coleccion `users` de Firestore).

Un documento de usuario refleja una cuenta de Firebase Auth:

    {firebaseUid, email, name, emailVerified, photoURL, role,
     createdAt, updatedAt, lastLoginAt}

El propietario de un documento de usuario es su `firebaseUid`; las rutas
usan ese campo para la regla "propietario o admin".
"""

from starlette.concurrency import run_in_threadpool

from solicitudes_api.config import settings
from solicitudes_api.errors import AppError, ConflictError, DatabaseError, NotFoundError, ValidationError
from solicitudes_api.logger import get_logger
from solicitudes_api.models.records import SERVER_TIMESTAMP
from solicitudes_api.services.solicitudes import matches_search, paginate
from solicitudes_api.services.validator import EMAIL_RE

logger = get_logger(__name__)

# Campos que PUT /users/{id} puede escribir. `role` solo lo cambia un admin.
UPDATABLE_FIELDS = ("name", "email", "photoURL")
SEARCH_FIELDS = ("name", "email")


class UsersService:
    def __init__(self, store, collection: str | None = None):
        self.store = store
        self.collection = collection or settings.USERS_COLLECTION

    async def _db(self, operation: str, fn, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except AppError:
            raise
        except Exception as exc:
            logger.exception("users_db_error", operation=operation)
            raise DatabaseError(f"Error al {operation} usuario") from exc

    async def list(self, page: int = 1, limit: int | None = None, search: str | None = None) -> dict:
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        users = await self._db("listar", self.store.list, self.collection)
        if search:
            users = [u for u in users if matches_search(u, search, SEARCH_FIELDS)]
        users.sort(key=lambda u: u.get("createdAt") or "", reverse=True)
        return paginate(users, page, limit)

    async def get(self, user_id: str) -> dict:
        user = await self._db("obtener", self.store.get, self.collection, user_id)
        if user is None:
            raise NotFoundError(f"Usuario con ID {user_id} no encontrado")
        return user

    async def get_by_firebase_uid(self, firebase_uid: str) -> dict | None:
        users = await self._db(
            "obtener", self.store.query, self.collection, "firebaseUid", firebase_uid
        )
        return users[0] if users else None

    async def sync_from_auth(self, auth_user: dict, extra: dict | None = None) -> dict:
        """
        Crea o refresca el documento de un usuario de Firebase Auth.

        Si no existe se crea con rol del custom claim (o "user"); si existe
        se actualizan email, nombre, verificacion, foto y lastLoginAt.
        `extra` permite al registro fijar el nombre elegido.
        """
        extra = extra or {}
        existing = await self.get_by_firebase_uid(auth_user["uid"])
        name = extra.get("name") or auth_user.get("displayName")

        if existing is None:
            data = {
                "firebaseUid": auth_user["uid"],
                "email": auth_user.get("email") or extra.get("email") or "",
                "name": name or "",
                "emailVerified": bool(auth_user.get("emailVerified")),
                "photoURL": auth_user.get("photoURL"),
                "role": (auth_user.get("customClaims") or {}).get("role") or "user",
                "createdAt": SERVER_TIMESTAMP,
                "updatedAt": SERVER_TIMESTAMP,
                "lastLoginAt": SERVER_TIMESTAMP,
            }
            created = await self._db("crear", self.store.add, self.collection, data)
            logger.info("user_synced", action="created", uid=auth_user["uid"], id=created["id"])
            return created

        changes = {
            "email": auth_user.get("email") or existing.get("email"),
            "name": name or existing.get("name"),
            "emailVerified": bool(auth_user.get("emailVerified", existing.get("emailVerified"))),
            "photoURL": auth_user.get("photoURL") or existing.get("photoURL"),
            "updatedAt": SERVER_TIMESTAMP,
            "lastLoginAt": SERVER_TIMESTAMP,
        }
        updated = await self._db(
            "actualizar", self.store.update, self.collection, existing["id"], changes
        )
        logger.info("user_synced", action="updated", uid=auth_user["uid"], id=existing["id"])
        return updated

    async def update(self, user_id: str, changes: dict, allow_role_change: bool = False) -> dict:
        if not isinstance(changes, dict):
            raise ValidationError("El cuerpo de la actualización debe ser un objeto JSON")

        allowed = UPDATABLE_FIELDS + ("role",) if allow_role_change else UPDATABLE_FIELDS
        payload = {k: v for k, v in changes.items() if k in allowed}

        current = await self.get(user_id)
        new_email = payload.get("email")
        if new_email is not None:
            if not isinstance(new_email, str) or not EMAIL_RE.fullmatch(new_email):
                raise ValidationError(
                    "Datos de actualización inválidos",
                    details={
                        "errors": [
                            {
                                "type": "invalid_format",
                                "field": "email",
                                "message": "El formato del email es inválido",
                            }
                        ]
                    },
                )
            if new_email != current.get("email"):
                taken = await self._db("actualizar", self.store.query, self.collection, "email", new_email)
                if taken:
                    raise ConflictError(
                        "El email ya está registrado", details={"field": "email", "value": new_email}
                    )

        payload["updatedAt"] = SERVER_TIMESTAMP
        updated = await self._db("actualizar", self.store.update, self.collection, user_id, payload)
        if updated is None:
            raise NotFoundError(f"Usuario con ID {user_id} no encontrado")
        logger.info("user_updated", id=user_id, fields=sorted(k for k in payload if k != "updatedAt"))
        return updated

    async def delete(self, user_id: str) -> None:
        deleted = await self._db("eliminar", self.store.delete, self.collection, user_id)
        if not deleted:
            raise NotFoundError(f"Usuario con ID {user_id} no encontrado")
        logger.info("user_deleted", id=user_id)
