"""
Adaptador de Firestore (firebase-admin).

Expone un almacen de documentos minimo sobre colecciones de Firestore:

    get(coleccion, id)              -> dict | None
    query(coleccion, campo, valor)  -> list[dict]   (igualdad)
    list(coleccion)                 -> list[dict]
    add(coleccion, datos)           -> dict         (documento ya creado)
    update(coleccion, id, cambios)  -> dict | None
    delete(coleccion, id)           -> bool

Cada dict retornado incluye su `id` y los timestamps convertidos a
strings ISO-8601. En los payloads de escritura el centinela
models.records.SERVER_TIMESTAMP se traduce a firestore.SERVER_TIMESTAMP.

Los metodos son bloqueantes (el SDK hace llamadas gRPC sincronas): los
servicios los invocan con run_in_threadpool. Las excepciones del SDK se
propagan tal cual; la capa de servicios las convierte en DatabaseError.
"""

from datetime import datetime, timezone
from typing import Any

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from solicitudes_api.logger import get_logger
from solicitudes_api.models.records import SERVER_TIMESTAMP
from solicitudes_api.services.identity import initialize_firebase

logger = get_logger(__name__)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _to_plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


def _to_write(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, dict):
        return {k: _to_write(v) for k, v in value.items()}
    return value


def snapshot_to_dict(snapshot) -> dict | None:
    if not snapshot.exists:
        return None
    return {"id": snapshot.id, **_to_plain(snapshot.to_dict() or {})}


class FirestoreDocumentStore:
    """Almacen de documentos sobre un cliente de Firestore."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = firestore.client(app=initialize_firebase())
        return self._client

    def get(self, collection: str, doc_id: str) -> dict | None:
        return snapshot_to_dict(self.client.collection(collection).document(doc_id).get())

    def query(self, collection: str, field: str, value: Any) -> list[dict]:
        query = self.client.collection(collection).where(filter=FieldFilter(field, "==", value))
        return [snapshot_to_dict(snap) for snap in query.stream()]

    def list(self, collection: str) -> list[dict]:
        return [snapshot_to_dict(snap) for snap in self.client.collection(collection).stream()]

    def add(self, collection: str, data: dict) -> dict:
        # add() retorna (update_time, DocumentReference).
        _, ref = self.client.collection(collection).add(_to_write(data))
        logger.debug("firestore_document_added", collection=collection, id=ref.id)
        # Releer para obtener los timestamps resueltos por el servidor.
        return snapshot_to_dict(ref.get())

    def update(self, collection: str, doc_id: str, changes: dict) -> dict | None:
        ref = self.client.collection(collection).document(doc_id)
        if not ref.get().exists:
            return None
        ref.update(_to_write(changes))
        return snapshot_to_dict(ref.get())

    def delete(self, collection: str, doc_id: str) -> bool:
        ref = self.client.collection(collection).document(doc_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True
