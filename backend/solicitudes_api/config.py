"""
Modulo de configuracion centralizada de la API de solicitudes de credito.

Todas las constantes que el backend necesita viven aqui y se leen desde
variables de entorno (os.getenv), de modo que la misma imagen corre en
desarrollo, staging y produccion sin cambiar codigo.

Grupos de configuracion:
    - Servidor y API (puerto, prefijo, version, timeouts)
    - Esquema del formulario (variante v1 / v2 del formulario de solicitud)
    - Firebase (Auth + Firestore)
    - Almacenamiento de documentos en S3
    - Rate limiting (ventanas y maximos por ruta)
    - Logging

La instancia `settings` se crea UNA sola vez al importar este modulo y
todos los modulos comparten la misma (singleton implicito).
"""

import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "si")


class Settings:
    """
    Configuracion de la aplicacion.

    En tests se puede crear una instancia y sobreescribir atributos
    (o usar monkeypatch sobre `settings`) sin tocar el entorno.
    """

    # ---------- Servidor ----------

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))

    # Cloud Run corta a los 60s; respondemos antes con un 504 propio.
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "50"))

    # Gracia para requests en vuelo al recibir SIGTERM/SIGINT.
    SHUTDOWN_TIMEOUT_SECONDS: int = int(os.getenv("SHUTDOWN_TIMEOUT_SECONDS", "10"))

    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    # ---------- API ----------

    API_PREFIX: str = os.getenv("API_PREFIX", "/api")
    API_VERSION: str = os.getenv("API_VERSION", "v2")

    # Variante del formulario. Por defecto coincide con la version de la API:
    #   v1 -> formulario completo (laboral, credito, referencias)
    #   v2 -> formulario de negocio con autorizaciones
    SOLICITUD_SCHEMA: str = os.getenv("SOLICITUD_SCHEMA", API_VERSION)

    # Si es True, crear una solicitud exige token; si no, el token es opcional
    # y la solicitud queda sin propietario (userId = None).
    REQUIRE_AUTH_ON_CREATE: bool = _env_bool("REQUIRE_AUTH_ON_CREATE")

    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # ---------- Firebase ----------

    FIREBASE_PROJECT_ID: str | None = os.getenv("FIREBASE_PROJECT_ID")
    # Ruta a un JSON de cuenta de servicio (opcional; en Cloud Run se usan ADC).
    GOOGLE_APPLICATION_CREDENTIALS: str | None = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    # JSON de cuenta de servicio en una variable (solo desarrollo).
    FIREBASE_SERVICE_ACCOUNT: str | None = os.getenv("FIREBASE_SERVICE_ACCOUNT")

    SOLICITUDES_COLLECTION: str = "solicitudes"
    USERS_COLLECTION: str = "users"

    # ---------- Almacenamiento de documentos (S3) ----------

    S3_BUCKET: str = os.getenv("S3_BUCKET", "solicitudes-documentos")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")

    # Base publica para construir la URL del documento. Si esta vacia se usa
    # la URL virtual-hosted de S3: https://{bucket}.s3.{region}.amazonaws.com
    S3_PUBLIC_BASE_URL: str = os.getenv("S3_PUBLIC_BASE_URL", "")

    # Prefijo (carpeta logica) de los PDFs generados.
    DOCUMENT_PREFIX: str = "solicitudes"

    # ---------- Rate limiting ----------

    # Un maximo <= 0 desactiva la regla.
    SOLICITUD_RATE_LIMIT_MAX: int = int(os.getenv("SOLICITUD_RATE_LIMIT_MAX", "3"))
    SOLICITUD_RATE_LIMIT_WINDOW_MS: int = int(os.getenv("SOLICITUD_RATE_LIMIT_WINDOW_MS", "60000"))

    LOGIN_RATE_LIMIT_MAX: int = int(os.getenv("LOGIN_RATE_LIMIT_MAX", "5"))
    LOGIN_RATE_LIMIT_WINDOW_MS: int = int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_MS", "60000"))

    REGISTER_RATE_LIMIT_MAX: int = int(os.getenv("REGISTER_RATE_LIMIT_MAX", "20"))
    REGISTER_RATE_LIMIT_WINDOW_MS: int = int(os.getenv("REGISTER_RATE_LIMIT_WINDOW_MS", "3600000"))

    # Cada cuanto se purgan los contadores vencidos.
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = float(
        os.getenv("RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "300")
    )

    # ---------- Logging ----------

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ---------- Propiedades derivadas ----------

    @property
    def api_base_path(self) -> str:
        return f"{self.API_PREFIX}/{self.API_VERSION}"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
