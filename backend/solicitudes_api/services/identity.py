"""
Modulo de identidad: Firebase Authentication via firebase-admin.

Encapsula la inicializacion del Admin SDK y las tres operaciones que la API
necesita del proveedor de identidad:
    - verify(token)       -> claims del ID token (o error de la taxonomia)
    - get_user(uid)       -> datos del usuario en Firebase Auth
    - create_user(...)    -> alta de usuario con email y contrasena

La criptografia del token (firma, expiracion, revocacion) la hace el SDK;
aqui solo traducimos sus excepciones a nuestros errores:
    ExpiredIdTokenError                      -> TokenExpiredError
    Revoked/Invalid/UserDisabled/CertificateFetch -> InvalidTokenError
    UserNotFoundError                        -> NotFoundError
    EmailAlreadyExistsError                  -> ConflictError

Credenciales (en orden de preferencia):
    1. GOOGLE_APPLICATION_CREDENTIALS (archivo de cuenta de servicio)
    2. FIREBASE_SERVICE_ACCOUNT (JSON en variable; solo fuera de produccion)
    3. Application Default Credentials (Cloud Run)
"""

import json

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin import exceptions as firebase_exceptions

from solicitudes_api.config import settings
from solicitudes_api.errors import (
    ConflictError,
    ExternalServiceError,
    InvalidTokenError,
    NotFoundError,
    TokenExpiredError,
    ValidationError,
)
from solicitudes_api.logger import get_logger

logger = get_logger(__name__)


def initialize_firebase() -> firebase_admin.App:
    """Inicializa la app por defecto del Admin SDK una sola vez."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None

    if settings.GOOGLE_APPLICATION_CREDENTIALS:
        credential = credentials.Certificate(settings.GOOGLE_APPLICATION_CREDENTIALS)
        method = "service_account_file"
    elif settings.FIREBASE_SERVICE_ACCOUNT and not settings.is_production:
        credential = credentials.Certificate(json.loads(settings.FIREBASE_SERVICE_ACCOUNT))
        method = "service_account_env"
    else:
        credential = credentials.ApplicationDefault()
        method = "application_default"

    app = firebase_admin.initialize_app(credential, options)
    logger.info("firebase_initialized", method=method, project_id=settings.FIREBASE_PROJECT_ID)
    return app


def _user_to_dict(user) -> dict:
    return {
        "uid": user.uid,
        "email": user.email,
        "displayName": user.display_name,
        "emailVerified": bool(user.email_verified),
        "photoURL": user.photo_url,
        "disabled": bool(user.disabled),
        "customClaims": dict(user.custom_claims or {}),
    }


class FirebaseIdentityProvider:
    """Proveedor de identidad sobre firebase_admin.auth."""

    def __init__(self, app: firebase_admin.App | None = None):
        self._app = app

    @property
    def app(self) -> firebase_admin.App:
        if self._app is None:
            self._app = initialize_firebase()
        return self._app

    def verify(self, token: str) -> dict:
        """
        Verifica un ID token y retorna sus claims decodificados.

        check_revoked=True consulta el estado del usuario: un token de un
        usuario deshabilitado o con sesiones revocadas no pasa.
        """
        try:
            return firebase_auth.verify_id_token(token, app=self.app, check_revoked=True)
        except firebase_auth.ExpiredIdTokenError as exc:
            # ExpiredIdTokenError hereda de InvalidIdTokenError: va primero.
            raise TokenExpiredError() from exc
        except firebase_auth.RevokedIdTokenError as exc:
            raise InvalidTokenError("El token ha sido revocado") from exc
        except firebase_auth.UserDisabledError as exc:
            raise InvalidTokenError("La cuenta de usuario esta deshabilitada") from exc
        except (firebase_auth.InvalidIdTokenError, ValueError) as exc:
            raise InvalidTokenError() from exc
        except firebase_auth.CertificateFetchError as exc:
            logger.exception("token_certificate_fetch_failed")
            raise InvalidTokenError("No se pudo verificar el token") from exc

    def get_user(self, uid: str) -> dict:
        try:
            user = firebase_auth.get_user(uid, app=self.app)
        except firebase_auth.UserNotFoundError as exc:
            raise NotFoundError(f"Usuario {uid} no encontrado en Firebase Auth") from exc
        except firebase_exceptions.FirebaseError as exc:
            logger.exception("firebase_get_user_failed", uid=uid)
            raise ExternalServiceError("Error al consultar Firebase Auth") from exc
        return _user_to_dict(user)

    def create_user(self, email: str, password: str, display_name: str | None = None) -> dict:
        try:
            user = firebase_auth.create_user(
                email=email,
                password=password,
                display_name=display_name or None,
                email_verified=False,
                app=self.app,
            )
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise ConflictError("El email ya está registrado", details={"field": "email"}) from exc
        except ValueError as exc:
            # El SDK valida email/password localmente antes de llamar a la API.
            raise ValidationError(str(exc)) from exc
        except firebase_exceptions.FirebaseError as exc:
            logger.exception("firebase_create_user_failed", email=email)
            raise ExternalServiceError("Error al crear usuario en Firebase Auth") from exc
        logger.info("firebase_user_created", uid=user.uid, email=email)
        return _user_to_dict(user)
