"""
Middlewares HTTP de la API.

Orden de ejecucion (de afuera hacia adentro):

    CORS -> SecurityHeaders -> Logging -> Timeout -> router

- LoggingMiddleware: genera un request_id, lo enlaza en los contextvars de
  structlog, registra un evento `http_request` por peticion y devuelve el
  header X-Request-Id. Las excepciones no controladas se convierten aqui en
  un 500 con el sobre de error estandar (sin stack trace).
- TimeoutMiddleware: corta el handler a los REQUEST_TIMEOUT_SECONDS y
  responde UNA sola vez con 504 TIMEOUT. El handler cancelado ya no puede
  escribir la respuesta.
- SecurityHeadersMiddleware: headers basicos de endurecimiento.
"""

import asyncio
import time
import uuid

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from solicitudes_api.config import settings
from solicitudes_api.errors import error_body
from solicitudes_api.logger import get_logger

logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "unhandled_exception",
                method=request.method,
                path=request.url.path,
                error=str(exc),
            )
            response = JSONResponse(
                status_code=500,
                content=error_body("Error interno del servidor", "INTERNAL_ERROR", 500),
            )
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            client=request.client.host if request.client else "unknown",
        )

        response.headers["X-Request-Id"] = request_id
        return response


class TimeoutMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        timeout = settings.REQUEST_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout_seconds=timeout,
            )
            return JSONResponse(
                status_code=504,
                content=error_body(
                    "La solicitud excedió el tiempo máximo de procesamiento", "TIMEOUT", 504
                ),
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "no-referrer",
    }

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        if settings.is_production:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response
