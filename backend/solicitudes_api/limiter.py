"""
Modulo de limitacion de tasa de peticiones (Rate Limiting).

Restringe cuantas peticiones puede hacer un mismo cliente (identificado
por su IP) sobre una ruta en una ventana de tiempo. Protege sobre todo la
creacion de solicitudes (cada una genera un PDF y lo sube) y el login.

Algoritmo: ventana fija por (cliente, ruta)
-------------------------------------------
    - Sin registro o registro vencido -> nuevo registro (count=1), se permite.
    - count >= max                    -> se rechaza SIN incrementar y se
                                         informa cuanto falta para que venza.
    - en otro caso                    -> count += 1, se permite.

Los contadores viven en un dict en memoria de ESTE proceso. Con varias
replicas cada una lleva sus propios contadores (limitacion aceptada).

Ciclo de vida
-------------
Una instancia RateLimiter por aplicacion, guardada en app.state. El
lifespan de main.py llama start() (tarea asyncio que purga registros
vencidos cada RATE_LIMIT_SWEEP_INTERVAL_SECONDS) y shutdown() al apagar.

check_and_increment() no tiene ningun `await` dentro: en el event loop
de asyncio la lectura y la escritura del contador son atomicas.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, Request

from solicitudes_api.config import settings
from solicitudes_api.dependencies import get_rate_limiter
from solicitudes_api.errors import RateLimitError
from solicitudes_api.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitRecord:
    count: int
    expires_at: float


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter:
    """
    Limitador de ventana fija en memoria.

    Parametros:
        clock: funcion que retorna segundos monotonicos. Inyectable para
            tests (por defecto time.monotonic).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: dict[tuple[str, str], RateLimitRecord] = {}
        self._sweeper: asyncio.Task | None = None

    def check_and_increment(
        self, identity: str, route_key: str, window_ms: int, max_requests: int
    ) -> RateLimitDecision:
        """
        Registra un intento y decide si se permite.

        Un max_requests <= 0 desactiva la regla (siempre permitido, sin
        crear registros).
        """
        if max_requests <= 0:
            return RateLimitDecision(allowed=True)

        now = self._clock()
        key = (identity, route_key)
        record = self._records.get(key)

        if record is None or now >= record.expires_at:
            self._records[key] = RateLimitRecord(count=1, expires_at=now + window_ms / 1000)
            return RateLimitDecision(allowed=True)

        if record.count >= max_requests:
            retry_after = max(1, math.ceil(record.expires_at - now))
            return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

        record.count += 1
        return RateLimitDecision(allowed=True)

    def sweep(self) -> int:
        """Elimina los registros vencidos. Retorna cuantos se borraron."""
        now = self._clock()
        expired = [key for key, record in self._records.items() if now >= record.expires_at]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("rate_limit_sweep", removed=len(expired), remaining=len(self._records))
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)

    # ---------- Ciclo de vida ----------

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def start(self, interval: float | None = None) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return
        interval = interval or settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(interval))

    async def shutdown(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


def client_identity(request: Request) -> str:
    """
    IP del cliente para los contadores.

    Detras del balanceador de Cloud Run la IP real es la primera entrada de
    X-Forwarded-For; si no hay header se usa el peer de la conexion.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimit:
    """
    Dependencia de FastAPI que aplica una regla de rate limiting.

    Uso:
        creation_limit = RateLimit(window_ms=60000, max_requests=3, message="...")

        @router.post("/solicitudes", dependencies=[Depends(creation_limit)])

    Los valores se pueden pasar como callables para leerlos de settings en
    cada peticion (asi los tests pueden cambiarlos con monkeypatch).
    """

    def __init__(
        self,
        window_ms: int | Callable[[], int],
        max_requests: int | Callable[[], int],
        message: str = "Demasiadas solicitudes, intente de nuevo mas tarde",
    ):
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.message = message

    @staticmethod
    def _resolve(value):
        return value() if callable(value) else value

    def __call__(self, request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        identity = client_identity(request)
        route_key = request.url.path
        decision = limiter.check_and_increment(
            identity,
            route_key,
            self._resolve(self.window_ms),
            self._resolve(self.max_requests),
        )
        if decision.allowed:
            return

        logger.warning(
            "rate_limit_exceeded",
            client=identity,
            path=route_key,
            retry_after=decision.retry_after_seconds,
        )
        raise RateLimitError(
            self.message,
            details={"retryAfter": decision.retry_after_seconds},
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )


# ---------- Reglas configuradas ----------

solicitud_creation_limit = RateLimit(
    window_ms=lambda: settings.SOLICITUD_RATE_LIMIT_WINDOW_MS,
    max_requests=lambda: settings.SOLICITUD_RATE_LIMIT_MAX,
    message="Demasiadas solicitudes de crédito, intente de nuevo en un minuto",
)

login_limit = RateLimit(
    window_ms=lambda: settings.LOGIN_RATE_LIMIT_WINDOW_MS,
    max_requests=lambda: settings.LOGIN_RATE_LIMIT_MAX,
    message="Demasiados intentos de inicio de sesión, intente de nuevo más tarde",
)

register_limit = RateLimit(
    window_ms=lambda: settings.REGISTER_RATE_LIMIT_WINDOW_MS,
    max_requests=lambda: settings.REGISTER_RATE_LIMIT_MAX,
    message="Demasiados registros desde esta IP, intente de nuevo más tarde",
)
