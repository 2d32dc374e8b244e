"""
Punto de entrada principal de la API de solicitudes de credito.

Aqui se:
1. Crea la instancia de FastAPI y su RateLimiter (app.state.rate_limiter).
2. Configura los middlewares (CORS, headers de seguridad, logging, timeout).
3. Registra los handlers de error y las rutas bajo /api/{version}.
4. Define el health check y el banner de la raiz.

Arquitectura:
    main.py
        +-- routes/       (solicitudes, auth, users)
        +-- services/     (validacion, PDF, S3, Firestore, Firebase Auth)
        +-- models/       (variantes del formulario, registros, DTOs)
        +-- auth.py       (dependencias de autenticacion/autorizacion)
        +-- limiter.py    (rate limiting en memoria)
        +-- middleware.py, errors.py, logger.py, config.py

Flujo de una peticion:
    CORS -> SecurityHeaders -> Logging -> Timeout -> Router -> Endpoint
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solicitudes_api.config import settings
from solicitudes_api.errors import register_error_handlers
from solicitudes_api.limiter import RateLimiter
from solicitudes_api.logger import get_logger
from solicitudes_api.middleware import (
    LoggingMiddleware,
    SecurityHeadersMiddleware,
    TimeoutMiddleware,
)
from solicitudes_api.models.schemas import HealthResponse
from solicitudes_api.routes.auth import router as auth_router
from solicitudes_api.routes.solicitudes import router as solicitudes_router
from solicitudes_api.routes.users import router as users_router

logger = get_logger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.rate_limiter.start()
    logger.info(
        "server_started",
        environment=settings.ENVIRONMENT,
        base_path=settings.api_base_path,
        schema=settings.SOLICITUD_SCHEMA,
    )
    yield
    await app.state.rate_limiter.shutdown()
    logger.info("server_stopped")


app = FastAPI(
    title="Bancamia DataExpress API",
    version=settings.API_VERSION,
    lifespan=lifespan,
)
app.state.rate_limiter = RateLimiter()

register_error_handlers(app)

# add_middleware apila hacia afuera: el ultimo agregado es el primero en correr.
app.add_middleware(TimeoutMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# SEGURIDAD: en produccion CORS_ORIGINS debe listar los dominios reales.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
    expose_headers=["X-Request-Id", "Retry-After"],
)


# ---------- Health Check ----------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Usado por Cloud Run y el balanceador para saber si el proceso vive."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        uptime=round(time.monotonic() - STARTED_AT, 3),
        environment=settings.ENVIRONMENT,
    )


@app.get("/")
async def root():
    base = settings.api_base_path
    return {
        "success": True,
        "message": "Bienvenido a Bancamia DataExpress API",
        "version": settings.API_VERSION,
        "endpoints": {
            "health": "/health",
            "solicitudes": f"{base}/solicitudes",
            "auth": f"{base}/auth",
            "users": f"{base}/users",
            "docs": "/docs",
        },
    }


# ---------- Registro de rutas ----------

app.include_router(solicitudes_router, prefix=settings.api_base_path)
app.include_router(auth_router, prefix=settings.api_base_path)
app.include_router(users_router, prefix=settings.api_base_path)


if __name__ == "__main__":
    uvicorn.run(
        "solicitudes_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        timeout_graceful_shutdown=settings.SHUTDOWN_TIMEOUT_SECONDS,
    )
