"""Selección del mensajero según el proveedor configurado."""

from typing import Dict, Optional, Type

from modules.cloudrelay_config.settings import Provider, RelayConfig, select_provider
from modules.cloudrelay_mqtt.aws_messenger import AwsMessenger
from modules.cloudrelay_mqtt.azure_messenger import AzureMessenger
from modules.cloudrelay_mqtt.gcp_messenger import GcpMessenger
from modules.cloudrelay_mqtt.messenger import CloudMessenger


MESSENGERS: Dict[Provider, Type[CloudMessenger]] = {
    Provider.AWS: AwsMessenger,
    Provider.GCP: GcpMessenger,
    Provider.AZURE: AzureMessenger,
}


def create_messenger(config: RelayConfig, provider: Optional[Provider] = None) -> CloudMessenger:
    """Crea el mensajero del proveedor.

    Args:
        config: Configuración del gateway
        provider: Proveedor ya seleccionado (si no, se resuelve de la configuración)

    Returns:
        Instancia de la variante del proveedor

    Raises:
        ConfigError: Si el proveedor falta o no es reconocido
    """
    if provider is None:
        provider = select_provider(config)
    return MESSENGERS[provider](config)
