"""
Dependencias FastAPI compartidas por todos los routers.

Los colaboradores externos (Firestore, S3, Firebase Auth) se crean una sola
vez y de forma perezosa: importar la app no abre conexiones. En tests se
reemplazan con app.dependency_overrides:

    app.dependency_overrides[get_document_store] = lambda: fake_store
"""

from functools import lru_cache

from fastapi import Depends, Request

from solicitudes_api.config import settings
from solicitudes_api.models.form_schemas import FormSchema
from solicitudes_api.models.form_schemas import get_form_schema as schema_by_name
from solicitudes_api.services.auth import AuthService
from solicitudes_api.services.firestore import FirestoreDocumentStore
from solicitudes_api.services.identity import FirebaseIdentityProvider
from solicitudes_api.services.solicitudes import SolicitudesService
from solicitudes_api.services.storage import S3StorageService
from solicitudes_api.services.users import UsersService


@lru_cache
def get_document_store() -> FirestoreDocumentStore:
    """Inyecta el FirestoreDocumentStore compartido."""
    return FirestoreDocumentStore()


@lru_cache
def get_storage() -> S3StorageService:
    """Inyecta el S3StorageService compartido."""
    return S3StorageService()


@lru_cache
def get_identity_provider() -> FirebaseIdentityProvider:
    """Inyecta el FirebaseIdentityProvider compartido."""
    return FirebaseIdentityProvider()


def get_form_schema() -> FormSchema:
    """Variante del formulario activa segun SOLICITUD_SCHEMA."""
    return schema_by_name(settings.SOLICITUD_SCHEMA)


def get_rate_limiter(request: Request):
    return request.app.state.rate_limiter


def get_solicitudes_service(
    store=Depends(get_document_store),
    storage=Depends(get_storage),
    schema: FormSchema = Depends(get_form_schema),
) -> SolicitudesService:
    return SolicitudesService(store, storage, schema)


def get_users_service(store=Depends(get_document_store)) -> UsersService:
    return UsersService(store)


def get_auth_service(
    identity_provider=Depends(get_identity_provider),
    users: UsersService = Depends(get_users_service),
) -> AuthService:
    return AuthService(identity_provider, users)
