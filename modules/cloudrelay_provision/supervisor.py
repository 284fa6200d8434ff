"""Cliente del supervisor del host.

Pide al supervisor que vuelva a aplicar el estado objetivo del dispositivo,
lo que recarga las variables de entorno que dejó el aprovisionamiento.
"""

import logging
from typing import Optional

import httpx


logger = logging.getLogger(__name__)


class SupervisorClient:
    """Cliente HTTP mínimo para el endpoint de actualización del supervisor."""

    UPDATE_PATH = "/v1/update"

    def __init__(
        self,
        address: Optional[str],
        api_key: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Inicializa el cliente.

        Args:
            address: URL base del supervisor (BALENA_SUPERVISOR_ADDRESS)
            api_key: Clave de API del supervisor
            timeout: Timeout en segundos
            transport: Transporte httpx alternativo
        """
        self.address = address
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def refresh(self) -> bool:
        """Solicita el refresco del entorno.

        Nunca lanza: los fallos se registran y se devuelve False.

        Returns:
            True si el supervisor aceptó la petición
        """
        if not self.address or not self.api_key:
            logger.warning("Supervisor no configurado, no se puede refrescar el entorno")
            return False

        url = f"{self.address.rstrip('/')}{self.UPDATE_PATH}"

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport
            ) as client:
                response = await client.post(
                    url,
                    params={"apikey": self.api_key},
                    json={"force": True}
                )
        except httpx.RequestError as e:
            logger.error(f"Error de conexión con el supervisor: {e}")
            return False

        if response.is_success:
            logger.info("Supervisor notificado para refrescar el entorno")
            return True

        logger.error(f"El supervisor respondió {response.status_code}: {response.text}")
        return False
