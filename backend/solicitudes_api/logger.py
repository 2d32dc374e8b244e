"""
Configuracion de logging estructurado con structlog.

Cada evento sale como una linea JSON con timestamp ISO, nivel, nombre del
logger y el `request_id` que LoggingMiddleware enlaza en contextvars.

Uso:
    from solicitudes_api.logger import get_logger
    logger = get_logger(__name__)
    logger.info("solicitud_creada", id=solicitud_id)
"""

import logging
import sys

import structlog

from solicitudes_api.config import settings

_configured = False


def configure_logging() -> None:
    """Configura structlog + logging estandar. Idempotente."""
    global _configured
    if _configured:
        return

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str):
    configure_logging()
    return structlog.get_logger(name)


def mask_token(token: str | None) -> str:
    """Oculta un token para poder loggearlo: 'abcd...wxyz'."""
    if not token or not isinstance(token, str) or len(token) < 10:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
