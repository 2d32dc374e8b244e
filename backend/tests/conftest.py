import itertools
from copy import deepcopy
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from solicitudes_api.config import settings
from solicitudes_api.dependencies import get_document_store, get_identity_provider, get_storage
from solicitudes_api.errors import InvalidTokenError, NotFoundError, TokenExpiredError
from solicitudes_api.limiter import RateLimiter
from solicitudes_api.main import app
from solicitudes_api.models.records import SERVER_TIMESTAMP, DocumentReference
from solicitudes_api.services.storage import StorageError

FAKE_PDF = b"%PDF-1.4\n% fake\n%%EOF\n"


@pytest.fixture
def s3_client():
    """Provide a mocked S3 client with a test bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name=settings.AWS_REGION)
        client.create_bucket(Bucket=settings.S3_BUCKET)
        yield client


# ---------- Fakes de colaboradores ----------


class InMemoryDocumentStore:
    """Almacen de documentos en memoria con la misma interfaz que Firestore."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}
        self._ids = itertools.count(1)
        self._ticks = itertools.count()
        self.fail_on: set[str] = set()

    def _now(self) -> str:
        # Cada escritura es un segundo posterior a la anterior.
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=next(self._ticks))
        return moment.isoformat().replace("+00:00", "Z")

    def _resolve(self, data: dict) -> dict:
        now = self._now()
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in data.items()}

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise RuntimeError(f"firestore unavailable during {operation}")

    def _collection(self, name: str) -> dict:
        return self.collections.setdefault(name, {})

    def get(self, collection, doc_id):
        self._check("get")
        doc = self._collection(collection).get(doc_id)
        return deepcopy(doc) if doc else None

    def query(self, collection, field, value):
        self._check("query")
        return [deepcopy(d) for d in self._collection(collection).values() if d.get(field) == value]

    def list(self, collection):
        self._check("list")
        return [deepcopy(d) for d in self._collection(collection).values()]

    def add(self, collection, data):
        self._check("add")
        doc_id = f"doc-{next(self._ids)}"
        self._collection(collection)[doc_id] = {"id": doc_id, **self._resolve(data)}
        return deepcopy(self._collection(collection)[doc_id])

    def update(self, collection, doc_id, changes):
        self._check("update")
        docs = self._collection(collection)
        if doc_id not in docs:
            return None
        docs[doc_id].update(self._resolve(changes))
        return deepcopy(docs[doc_id])

    def delete(self, collection, doc_id):
        self._check("delete")
        return self._collection(collection).pop(doc_id, None) is not None

    def insert(self, collection, doc_id, data):
        """Siembra un documento con id conocido (solo tests)."""
        self._collection(collection)[doc_id] = {"id": doc_id, **data}


class FakeStorage:
    def __init__(self):
        self.uploads: list[dict] = []
        self.deleted: list[str] = []
        self.fail_upload = False
        self.return_url: str | None = None

    def upload_pdf(self, data, logical_name, owner_id):
        if self.fail_upload:
            raise StorageError("S3 no disponible")
        path = f"solicitudes/{owner_id or 'anonimo'}/fake_{logical_name}"
        self.uploads.append({"data": data, "name": logical_name, "owner": owner_id, "path": path})
        url = self.return_url if self.return_url is not None else f"https://cdn.test/{path}"
        return DocumentReference(url=url, path=path, file_name=logical_name, original_name=logical_name)

    def delete(self, path):
        self.deleted.append(path)
        return True


class FakeIdentityProvider:
    """Tokens fijos -> claims, y un directorio de usuarios de Firebase Auth."""

    def __init__(self):
        self.tokens = {
            "user-token": {"uid": "user-1", "email": "ana@example.com", "email_verified": True},
            "other-token": {"uid": "user-2", "email": "luis@example.com", "email_verified": True},
            "admin-token": {
                "uid": "admin-1",
                "email": "admin@example.com",
                "email_verified": True,
                "role": "admin",
            },
        }
        self.users = {
            "user-1": self._user("user-1", "ana@example.com", "Ana Gomez"),
            "user-2": self._user("user-2", "luis@example.com", "Luis Perez"),
            "admin-1": self._user("admin-1", "admin@example.com", "Admin", {"role": "admin"}),
        }
        self.created: list[dict] = []

    @staticmethod
    def _user(uid, email, name, claims=None):
        return {
            "uid": uid,
            "email": email,
            "displayName": name,
            "emailVerified": True,
            "photoURL": None,
            "disabled": False,
            "customClaims": claims or {},
        }

    def verify(self, token):
        if token == "expired-token":
            raise TokenExpiredError()
        if token not in self.tokens:
            raise InvalidTokenError()
        return dict(self.tokens[token])

    def get_user(self, uid):
        if uid not in self.users:
            raise NotFoundError(f"Usuario {uid} no encontrado en Firebase Auth")
        return dict(self.users[uid])

    def create_user(self, email, password, display_name=None):
        uid = f"new-{len(self.created) + 1}"
        user = self._user(uid, email, display_name)
        user["emailVerified"] = False
        self.users[uid] = user
        self.created.append(user)
        return dict(user)


# ---------- Fixtures ----------


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def client(store, storage, identity):
    """TestClient con colaboradores falsos y un limiter nuevo por test."""
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.state.rate_limiter = RateLimiter()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_pdf():
    """Evita WeasyPrint en los tests de rutas."""
    with patch(
        "solicitudes_api.services.solicitudes.generate_solicitud_pdf",
        AsyncMock(return_value=FAKE_PDF),
    ) as mock_generate:
        yield mock_generate


@pytest.fixture
def valid_v2_form():
    return {
        "email": "ana@example.com",
        "autorizacionTratamientoDatos": True,
        "autorizacionContacto": "false",
        "nombreCompleto": "Ana Maria Gomez",
        "tipoDocumento": "CC",
        "numeroDocumento": "1012345678",
        "fechaNacimiento": "1990-05-15",
        "fechaExpedicionDocumento": "2008-06-01",
        "ciudadNegocio": "Bogota",
        "direccionNegocio": "Calle 10 # 20-30",
        "celularNegocio": "3001234567",
    }


@pytest.fixture
def valid_v1_form():
    return {
        "nombreCompleto": "Luis Perez",
        "tipoDocumento": "CC",
        "numeroDocumento": "80123456",
        "fechaNacimiento": "1985-03-20",
        "estadoCivil": "casado",
        "genero": "masculino",
        "telefono": "3109876543",
        "email": "luis@example.com",
        "direccion": "Carrera 7 # 45-12",
        "ciudad": "Medellin",
        "departamento": "Antioquia",
        "ocupacion": "Ingeniero",
        "empresa": "Acme SAS",
        "cargoActual": "Lider tecnico",
        "tipoContrato": "indefinido",
        "ingresosMensuales": "4500000",
        "tiempoEmpleo": "2a5",
        "montoSolicitado": 10000000,
        "plazoMeses": 24,
        "proposito": "Compra de vehiculo",
        "tieneDeudas": "no",
        "refNombre1": "Maria Lopez",
        "refTelefono1": "3201112233",
        "refRelacion1": "Hermana",
        "refNombre2": "Pedro Ruiz",
        "refTelefono2": "3154445566",
        "refRelacion2": "Amigo",
    }
