"""Aprovisionamiento del dispositivo.

Registra el dispositivo contra el endpoint HTTP de aprovisionamiento del
proveedor. Cada proveedor usa un cuerpo de petición distinto y una forma
distinta de responder "el dispositivo ya existe".
"""

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from modules.cloudrelay_config.errors import AlreadyRegistered, ConfigError, ProvisioningError
from modules.cloudrelay_config.settings import Provider, RelayConfig
from modules.cloudrelay_provision.supervisor import SupervisorClient


logger = logging.getLogger(__name__)


AWS_ALREADY_EXISTS = "ResourceAlreadyExistsException"
AZURE_ALREADY_EXISTS_PREFIX = "DeviceAlreadyExists"
GCP_ALREADY_EXISTS_CODE = 6  # gRPC ALREADY_EXISTS

REQUEST_HEADERS = {
    "Cache-Control": "no-cache",
    "Content-Type": "application/json",
}


class ProvisionOutcome(Enum):
    """Resultado de un intento de aprovisionamiento.

    Sólo REGISTERED es verdadero en contexto booleano: el dispositivo ya
    registrado también termina sin credenciales en este proceso.
    """
    REGISTERED = "registered"
    ALREADY_REGISTERED = "already_registered"
    FAILED = "failed"

    def __bool__(self) -> bool:
        return self is ProvisionOutcome.REGISTERED


def _aws_already_exists(body: str) -> bool:
    return body == AWS_ALREADY_EXISTS


def _azure_already_exists(body: str) -> bool:
    return body.startswith(AZURE_ALREADY_EXISTS_PREFIX)


def _gcp_already_exists(body: str) -> bool:
    try:
        data = json.loads(body)
    except ValueError:
        return False

    return isinstance(data, dict) and data.get("code") == GCP_ALREADY_EXISTS_CODE


ALREADY_EXISTS_RULES: Dict[Provider, Callable[[str], bool]] = {
    Provider.AWS: _aws_already_exists,
    Provider.AZURE: _azure_already_exists,
    Provider.GCP: _gcp_already_exists,
}


class Provisioner:
    """Registra el dispositivo en el proveedor de nube seleccionado."""

    def __init__(
        self,
        config: RelayConfig,
        provider: Provider,
        supervisor: Optional[SupervisorClient] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Inicializa el aprovisionador.

        Args:
            config: Configuración del gateway
            provider: Proveedor seleccionado
            supervisor: Cliente del supervisor para refrescar el entorno
            timeout: Timeout en segundos de la petición
            transport: Transporte httpx alternativo
        """
        self.config = config
        self.provider = provider
        self.supervisor = supervisor or SupervisorClient(
            config.supervisor_address,
            config.supervisor_api_key
        )
        self.timeout = timeout
        self._transport = transport

    def build_body(self, device_uuid: str) -> Dict[str, Any]:
        """Construye el cuerpo JSON de la petición para el proveedor."""
        body: Dict[str, Any] = {"uuid": device_uuid}

        if self.provider is Provider.AZURE:
            extra = {"hub_host": self.config.azure_hub_host}
        elif self.provider is Provider.GCP:
            extra = {
                "region": self.config.gcp_region,
                "registry_id": self.config.gcp_registry_id,
            }
        else:
            extra = {}

        body.update({key: value for key, value in extra.items() if value})
        return body

    def is_already_registered(self, body: str) -> bool:
        """Aplica la regla de "ya existe" del proveedor al cuerpo de error."""
        return ALREADY_EXISTS_RULES[self.provider](body)

    async def provision(self, device_uuid: str) -> ProvisionOutcome:
        """Registra el dispositivo.

        Args:
            device_uuid: UUID del dispositivo

        Returns:
            Resultado del aprovisionamiento

        Raises:
            ConfigError: Si no hay URL de aprovisionamiento
        """
        if not self.config.provision_url:
            raise ConfigError("PROVISION_URL no definida, no se puede aprovisionar")

        try:
            self._check_response(await self._post(device_uuid))
        except AlreadyRegistered as e:
            logger.info(f"Dispositivo {device_uuid} ya registrado en {self.provider.value}: {e.body}")
            await self.supervisor.refresh()
            return ProvisionOutcome.ALREADY_REGISTERED
        except ProvisioningError as e:
            logger.error(f"Aprovisionamiento fallido: {e}")
            return ProvisionOutcome.FAILED

        logger.info(f"Dispositivo {device_uuid} aprovisionado en {self.provider.value}")
        return ProvisionOutcome.REGISTERED

    async def _post(self, device_uuid: str) -> httpx.Response:
        body = self.build_body(device_uuid)
        logger.info(f"Aprovisionando dispositivo {device_uuid} en {self.config.provision_url}")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport
            ) as client:
                return await client.post(
                    self.config.provision_url,
                    content=json.dumps(body),
                    headers=REQUEST_HEADERS
                )
        except httpx.RequestError as e:
            raise ProvisioningError(f"Error de conexión con {self.config.provision_url}", original_error=e) from e

    def _check_response(self, response: httpx.Response) -> None:
        if response.is_success:
            return

        body = response.text
        if self.is_already_registered(body):
            raise AlreadyRegistered(
                "Dispositivo ya registrado",
                status_code=response.status_code,
                body=body
            )

        raise ProvisioningError(
            f"Error HTTP {response.status_code}: {body}",
            status_code=response.status_code,
            body=body
        )
