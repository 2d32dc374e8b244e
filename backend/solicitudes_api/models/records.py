"""
Objetos de dominio que circulan entre servicios y adaptadores.

No son DTOs HTTP (esos viven en schemas.py): son los valores que el
pipeline de creacion, la capa de auth y el almacenamiento se pasan entre si.
"""

from dataclasses import dataclass, field
from typing import Any


class _ServerTimestamp:
    """
    Centinela "usar la hora del servidor" para payloads de escritura.

    Los servicios lo ponen en createdAt/updatedAt; el adaptador de Firestore
    lo traduce a firestore.SERVER_TIMESTAMP. Asi el nucleo no depende del SDK.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class DocumentReference:
    """Referencia al PDF almacenado, tal como se guarda en la solicitud."""

    url: str
    path: str
    file_name: str
    original_name: str

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "path": self.path,
            "fileName": self.file_name,
            "originalName": self.original_name,
        }


@dataclass(frozen=True)
class Principal:
    """
    Identidad autenticada de la peticion.

    Se construye a partir de los claims verificados del token. El rol sale
    del claim personalizado `role`; sin claim, el usuario es "user".
    """

    uid: str
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    picture: str | None = None
    custom_claims: dict[str, Any] = field(default_factory=dict)

    @property
    def role(self) -> str:
        return self.custom_claims.get("role") or "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Principal":
        # firebase-admin entrega los custom claims como claves de primer nivel.
        custom = dict(claims.get("custom_claims") or {})
        if claims.get("role") and "role" not in custom:
            custom["role"] = claims["role"]
        return cls(
            uid=claims["uid"],
            email=claims.get("email"),
            email_verified=bool(claims.get("email_verified", False)),
            name=claims.get("name") or claims.get("display_name"),
            picture=claims.get("picture"),
            custom_claims=custom,
        )

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "emailVerified": self.email_verified,
            "name": self.name,
            "picture": self.picture,
            "customClaims": dict(self.custom_claims),
            "role": self.role,
        }
