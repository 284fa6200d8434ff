"""Política de reintentos para conexiones.

Un único primitivo de reintento con número fijo de intentos y espera fija,
compartido por la conexión al broker local y la renovación de GCP.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Intentos totales y espera fija entre intentos.

    Attributes:
        max_attempts: Número total de intentos
        delay: Segundos entre intentos
        sleep: Corrutina de espera
    """
    max_attempts: int = 3
    delay: float = 5.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)


DEFAULT_RETRY_POLICY = RetryPolicy()


class RetryExhaustedError(Exception):
    """Se agotaron los intentos de una operación."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"{description} falló después de {attempts} intentos: {last_error}")
        self.description = description
        self.attempts = attempts
        self.last_error = last_error


async def run_with_retry(
    operation: Callable[[], Awaitable[Any]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    description: str = "operación",
    exceptions: tuple = (Exception,)
) -> Any:
    """Ejecuta una corrutina con reintentos de espera fija.

    Args:
        operation: Corrutina sin argumentos a ejecutar
        policy: Política de reintentos
        description: Nombre de la operación para los logs
        exceptions: Excepciones que provocan un nuevo intento

    Returns:
        Resultado de la operación

    Raises:
        RetryExhaustedError: Si todos los intentos fallan
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.delay),
        retry=retry_if_exception_type(exceptions),
        sleep=policy.sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )

    try:
        return await retrying(operation)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.error(f"{description} falló después de {policy.max_attempts} intentos")
        raise RetryExhaustedError(description, policy.max_attempts, last_error) from last_error
