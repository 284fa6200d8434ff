"""Módulo de configuración del Cloud Relay.

Carga la configuración inmutable del gateway desde el entorno y define la
taxonomía de errores compartida por el resto de módulos.
"""

from modules.cloudrelay_config.errors import (
    CloudRelayError,
    ConfigError,
    ProvisioningError,
    AlreadyRegistered,
    CloudConnectionError,
    LocalBrokerError,
    RenewalExhaustedError,
)
from modules.cloudrelay_config.settings import Provider, RelayConfig, select_provider

__all__ = [
    "CloudRelayError",
    "ConfigError",
    "ProvisioningError",
    "AlreadyRegistered",
    "CloudConnectionError",
    "LocalBrokerError",
    "RenewalExhaustedError",
    "Provider",
    "RelayConfig",
    "select_provider",
]

__version__ = "1.0.0"
