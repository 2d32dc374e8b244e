"""
Modulo de almacenamiento de documentos en Amazon S3.

Este modulo encapsula TODA la comunicacion con S3. Ningun otro archivo del
proyecto llama directamente a boto3: los servicios reciben un
S3StorageService (via dependencias de FastAPI) y en tests se reemplaza por
uno construido sobre un cliente de moto.

Estructura de keys:
    {DOCUMENT_PREFIX}/{owner_id}/{uuid}_{nombre_sanitizado}.pdf
    ej: solicitudes/uid-123/6f1c..._solicitud_1012345678.pdf

Las solicitudes anonimas (sin token) usan el owner "anonimo".

URL publica:
    - S3_PUBLIC_BASE_URL/{key} si esta configurada (CDN, CloudFront)
    - https://{bucket}.s3.{region}.amazonaws.com/{key} en otro caso

Contrato con el pipeline de creacion:
    upload_pdf() retorna un DocumentReference con url NO vacia o lanza
    StorageError. Nunca retorna una referencia "a medias".
"""

import re
import uuid

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from solicitudes_api.config import settings
from solicitudes_api.logger import get_logger
from solicitudes_api.models.records import DocumentReference

logger = get_logger(__name__)

ANONYMOUS_OWNER = "anonimo"


class StorageError(Exception):
    """Fallo al subir un documento al almacenamiento."""


def sanitize_file_name(name: str) -> str:
    """Deja solo letras ASCII, digitos, punto y guion: el resto pasa a '_'."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name)


class S3StorageService:
    """
    Servicio que sube y elimina los PDFs de las solicitudes.

    Atributos:
        client: cliente boto3 de S3 (inyectable para tests).
        bucket (str): bucket destino.
        region (str): region usada para construir la URL publica.
    """

    def __init__(self, client=None, bucket: str | None = None, region: str | None = None):
        self.region = region or settings.AWS_REGION
        self.client = client or boto3.client("s3", region_name=self.region)
        self.bucket = bucket or settings.S3_BUCKET
        self.public_base_url = settings.S3_PUBLIC_BASE_URL.rstrip("/")

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload_pdf(self, data: bytes, logical_name: str, owner_id: str | None) -> DocumentReference:
        """
        Sube un PDF y retorna su referencia.

        Parametros:
            data (bytes): contenido del PDF.
            logical_name (str): nombre "humano" del archivo
                (ej: "solicitud_1012345678.pdf"). Se guarda tal cual en
                originalName y sanitizado en la key.
            owner_id (str | None): uid del propietario; None = anonimo.

        Raises:
            StorageError: si S3 rechaza la peticion o no hay conexion.
        """
        owner = sanitize_file_name(owner_id) if owner_id else ANONYMOUS_OWNER
        file_name = sanitize_file_name(logical_name)
        key = f"{settings.DOCUMENT_PREFIX}/{owner}/{uuid.uuid4()}_{file_name}"

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType="application/pdf",
                # Los headers x-amz-meta-* solo admiten ASCII.
                Metadata={"owner-id": owner, "original-name": file_name},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("document_upload_failed", key=key, bucket=self.bucket)
            raise StorageError("No se pudo subir el documento") from exc

        url = self.public_url(key)
        logger.info("document_uploaded", key=key, size=len(data), owner=owner)
        return DocumentReference(
            url=url,
            path=key,
            file_name=file_name,
            original_name=logical_name,
        )

    def delete(self, path: str) -> bool:
        """
        Elimina un documento. Retorna False (y loggea) si S3 falla.

        delete_object no falla si la key no existe, asi que borrar dos
        veces el mismo documento retorna True ambas veces.
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=path)
        except (ClientError, BotoCoreError):
            logger.exception("document_delete_failed", key=path, bucket=self.bucket)
            return False
        logger.info("document_deleted", key=path)
        return True
