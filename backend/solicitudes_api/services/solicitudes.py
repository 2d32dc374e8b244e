"""
Servicio de solicitudes de credito.

Orquesta el pipeline de creacion y el CRUD sobre la coleccion de
solicitudes. Las rutas solo traducen HTTP <-> este servicio; la
autorizacion (propietario o admin) la aplican las rutas con auth.py.

Pipeline de creacion (estrictamente secuencial):

    formulario -> validar -> generar PDF -> subir PDF -> guardar registro

Cada etapa empieza solo cuando la anterior termino bien. Si la generacion
o la subida fallan, la solicitud se rechaza con un ValidationError que
incluye un issue `document_error` y NO se escribe ningun registro.

Los colaboradores (Firestore, S3, WeasyPrint) son bloqueantes y se llaman
con run_in_threadpool para no frenar el event loop.
"""

import math

from starlette.concurrency import run_in_threadpool

from solicitudes_api.config import settings
from solicitudes_api.errors import AppError, DatabaseError, NotFoundError, ValidationError
from solicitudes_api.logger import get_logger
from solicitudes_api.models.form_schemas import FormSchema
from solicitudes_api.models.records import SERVER_TIMESTAMP
from solicitudes_api.services.pdf_generator import DocumentGenerationError, generate_solicitud_pdf
from solicitudes_api.services.storage import StorageError
from solicitudes_api.services.validator import validate_solicitud, validate_update

logger = get_logger(__name__)

INITIAL_ESTADO = "pendiente"


def document_error(message: str) -> ValidationError:
    return ValidationError(
        "No se pudo generar el documento de la solicitud",
        details={"errors": [{"type": "document_error", "message": message}]},
    )


def paginate(items: list, page: int, limit: int) -> dict:
    total = len(items)
    start = (page - 1) * limit
    return {
        "items": items[start:start + limit],
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def matches_search(record: dict, search: str, fields: tuple[str, ...]) -> bool:
    needle = search.lower()
    return any(needle in str(record.get(name) or "").lower() for name in fields)


class SolicitudesService:
    """
    Parametros:
        store: almacen de documentos (FirestoreDocumentStore o un fake).
        storage: almacenamiento de PDFs (S3StorageService o un fake).
        schema: variante del formulario activa.
    """

    def __init__(self, store, storage, schema: FormSchema, collection: str | None = None):
        self.store = store
        self.storage = storage
        self.schema = schema
        self.collection = collection or settings.SOLICITUDES_COLLECTION

    async def _db(self, operation: str, fn, *args):
        try:
            return await run_in_threadpool(fn, *args)
        except AppError:
            raise
        except Exception as exc:
            logger.exception("solicitudes_db_error", operation=operation)
            raise DatabaseError(f"Error al {operation} solicitud") from exc

    # ---------- Creacion ----------

    async def create(self, form, owner_id: str | None) -> dict:
        """
        Ejecuta el pipeline completo y retorna el registro persistido.

        Raises:
            ValidationError: cuerpo vacio, formulario invalido o fallo al
                generar/subir el documento.
            DatabaseError: Firestore rechazo la escritura.
        """
        if not isinstance(form, dict) or not form:
            raise ValidationError(
                "El cuerpo de la solicitud está vacío o no es válido",
                details={
                    "errors": [
                        {
                            "type": "empty_body",
                            "message": "No se recibieron datos en el cuerpo de la solicitud",
                        }
                    ]
                },
            )

        result = validate_solicitud(form, self.schema)
        if not result.is_valid:
            logger.info("solicitud_invalid", issues=len(result.issues))
            raise ValidationError(
                "Datos de solicitud inválidos", details={"errors": result.issues_as_dicts()}
            )
        data = result.data

        try:
            pdf_bytes = await generate_solicitud_pdf(data, self.schema)
        except DocumentGenerationError as exc:
            logger.error("solicitud_pdf_failed", error=str(exc))
            raise document_error(str(exc)) from exc
        except Exception as exc:
            logger.exception("solicitud_pdf_failed")
            raise document_error("Error al generar el documento PDF") from exc

        logical_name = f"solicitud_{data.get('numeroDocumento') or 'sin_documento'}.pdf"
        try:
            reference = await run_in_threadpool(
                self.storage.upload_pdf, pdf_bytes, logical_name, owner_id
            )
        except StorageError as exc:
            raise document_error("Error al subir el documento PDF") from exc
        except Exception as exc:
            logger.exception("solicitud_upload_failed")
            raise document_error("Error al subir el documento PDF") from exc

        if not reference or not reference.url:
            logger.error("solicitud_upload_without_url", path=getattr(reference, "path", None))
            raise document_error("El almacenamiento no retornó una URL para el documento")

        record = {
            **data,
            "documento": reference.to_dict(),
            "estado": INITIAL_ESTADO,
            "userId": owner_id,
            "fechaSolicitud": SERVER_TIMESTAMP,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }

        try:
            created = await self._db("crear", self.store.add, self.collection, record)
        except DatabaseError:
            # El registro no existe: el PDF queda huerfano, se intenta borrar.
            await run_in_threadpool(self.storage.delete, reference.path)
            raise

        logger.info(
            "solicitud_created",
            id=created["id"],
            user_id=owner_id,
            document_path=reference.path,
        )
        return created

    # ---------- Lectura ----------

    async def list(
        self,
        owner_id: str | None = None,
        page: int = 1,
        limit: int | None = None,
        search: str | None = None,
    ) -> dict:
        """
        Lista paginada, mas recientes primero.

        owner_id None lista todas (admin); si no, solo las del propietario.
        La busqueda es en memoria sobre los campos de busqueda del esquema.
        """
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        if owner_id is None:
            records = await self._db("listar", self.store.list, self.collection)
        else:
            records = await self._db("listar", self.store.query, self.collection, "userId", owner_id)

        if search:
            records = [r for r in records if matches_search(r, search, self.schema.search_fields)]

        records.sort(key=lambda r: r.get("createdAt") or "", reverse=True)
        return paginate(records, page, limit)

    async def get(self, solicitud_id: str) -> dict:
        record = await self._db("obtener", self.store.get, self.collection, solicitud_id)
        if record is None:
            raise NotFoundError(f"Solicitud con ID {solicitud_id} no encontrada")
        return record

    # ---------- Escritura ----------

    async def update(self, solicitud_id: str, changes: dict) -> dict:
        """
        Actualizacion parcial validando solo formato.

        Los campos de sistema (id, createdAt, fechaSolicitud, userId,
        documento, updatedAt) no se pueden cambiar: no forman parte del
        esquema y se descartan. updatedAt siempre se refresca.
        """
        if not isinstance(changes, dict):
            raise ValidationError("El cuerpo de la actualización debe ser un objeto JSON")

        result = validate_update(changes, self.schema)
        if not result.is_valid:
            raise ValidationError(
                "Datos de actualización inválidos", details={"errors": result.issues_as_dicts()}
            )

        payload = {**result.data, "updatedAt": SERVER_TIMESTAMP}
        updated = await self._db(
            "actualizar", self.store.update, self.collection, solicitud_id, payload
        )
        if updated is None:
            raise NotFoundError(f"Solicitud con ID {solicitud_id} no encontrada")
        logger.info("solicitud_updated", id=solicitud_id, fields=sorted(result.data))
        return updated

    async def delete(self, solicitud_id: str, record: dict | None = None) -> None:
        """Borra el registro y, despues, su PDF (best effort)."""
        record = record or await self.get(solicitud_id)
        deleted = await self._db("eliminar", self.store.delete, self.collection, solicitud_id)
        if not deleted:
            raise NotFoundError(f"Solicitud con ID {solicitud_id} no encontrada")

        path = (record.get("documento") or {}).get("path")
        if path:
            removed = await run_in_threadpool(self.storage.delete, path)
            if not removed:
                logger.warning("solicitud_document_not_deleted", id=solicitud_id, path=path)
        logger.info("solicitud_deleted", id=solicitud_id)
