"""Configuración del Cloud Relay.

Este módulo construye, una única vez al arrancar, la configuración inmutable
del gateway a partir del entorno del proceso. Los valores por defecto que
dependen de otros campos (proveedor detectado, margen de renovación) se
calculan aquí y no se vuelven a escribir en el entorno.
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from modules.cloudrelay_config.errors import ConfigError


class Provider(str, Enum):
    """Proveedores de nube soportados."""
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


# Variable de entorno -> campo de RelayConfig. La primera variable presente gana.
ENV_FIELDS: Dict[str, tuple] = {
    "device_uuid": ("BALENA_DEVICE_UUID", "RESIN_DEVICE_UUID"),
    "provider": ("CLOUD_PROVIDER",),
    "provision_url": ("PROVISION_URL",),
    "producer_topic": ("PRODUCER_TOPIC",),
    "consumer_topic": ("CLOUD_CONSUMER_TOPIC",),
    "local_broker_host": ("LOCAL_BROKER_HOST",),
    "local_broker_port": ("LOCAL_BROKER_PORT",),
    "aws_private_key": ("AWS_PRIVATE_KEY",),
    "aws_cert": ("AWS_CERT",),
    "aws_root_ca": ("AWS_ROOT_CA",),
    "aws_data_endpoint": ("AWS_DATA_ENDPOINT",),
    "azure_private_key": ("AZURE_PRIVATE_KEY",),
    "azure_cert": ("AZURE_CERT",),
    "azure_root_ca": ("AZURE_ROOT_CA",),
    "azure_hub_host": ("AZURE_HUB_HOST",),
    "gcp_private_key": ("GCP_PRIVATE_KEY",),
    "gcp_project_id": ("GCP_PROJECT_ID",),
    "gcp_region": ("GCP_REGION",),
    "gcp_registry_id": ("GCP_REGISTRY_ID",),
    "gcp_client_path": ("GCP_CLIENT_PATH",),
    "gcp_root_certs": ("GCP_ROOT_CERTS",),
    "gcp_mqtt_host": ("GCP_MQTT_HOST",),
    "gcp_mqtt_port": ("GCP_MQTT_PORT",),
    "gcp_token_lifetime": ("GCP_TOKEN_LIFETIME",),
    "gcp_renewal_margin": ("GCP_RENEWAL_MARGIN",),
    "supervisor_address": ("BALENA_SUPERVISOR_ADDRESS",),
    "supervisor_api_key": ("BALENA_SUPERVISOR_API_KEY",),
    "app_id": ("BALENA_APP_ID",),
    "pubsub_onboarding_key": ("GCP_PUBSUB_ONBOARDING_KEY",),
    "log_level": ("LOG_LEVEL",),
}

# Campo de identidad que delata a cada proveedor cuando CLOUD_PROVIDER no está definido
PROVIDER_HINTS = (
    ("aws_data_endpoint", Provider.AWS),
    ("gcp_project_id", Provider.GCP),
    ("azure_hub_host", Provider.AZURE),
)

DEFAULT_RENEWAL_MARGIN = 5  # minutos
SHORT_LIFETIME_RENEWAL_MARGIN = 1  # minutos
SHORT_LIFETIME_THRESHOLD = 10  # minutos


def default_renewal_margin(lifetime: int) -> int:
    """Margen de renovación por defecto para una vida de token dada (minutos)."""
    if lifetime <= SHORT_LIFETIME_THRESHOLD:
        return SHORT_LIFETIME_RENEWAL_MARGIN
    return DEFAULT_RENEWAL_MARGIN


class RelayConfig(BaseModel):
    """Configuración inmutable del gateway.

    Se construye una vez por proceso con `from_env()` y se pasa
    explícitamente a cada componente.
    """

    model_config = ConfigDict(frozen=True)

    device_uuid: str = Field(..., min_length=1, description="UUID del dispositivo")
    provider: Optional[str] = Field(
        default=None,
        description="Selector de proveedor (aws, gcp, azure); se detecta si falta"
    )
    provision_url: Optional[str] = None

    producer_topic: str = Field(default="sensors", min_length=1)
    consumer_topic: Optional[str] = None

    local_broker_host: str = "127.0.0.1"
    local_broker_port: int = Field(default=1883, gt=0, le=65535)

    aws_private_key: Optional[str] = None
    aws_cert: Optional[str] = None
    aws_root_ca: Optional[str] = None
    aws_data_endpoint: Optional[str] = None

    azure_private_key: Optional[str] = None
    azure_cert: Optional[str] = None
    azure_root_ca: Optional[str] = None
    azure_hub_host: Optional[str] = None

    gcp_private_key: Optional[str] = None
    gcp_project_id: Optional[str] = None
    gcp_region: Optional[str] = None
    gcp_registry_id: Optional[str] = None
    gcp_client_path: Optional[str] = None
    gcp_root_certs: Optional[str] = None
    gcp_mqtt_host: str = "mqtt.googleapis.com"
    gcp_mqtt_port: int = Field(default=8883, gt=0, le=65535)
    gcp_token_lifetime: int = Field(default=60, ge=2, description="Vida del token en minutos")
    gcp_renewal_margin: Optional[int] = Field(
        default=None,
        ge=1,
        validate_default=True,
        description="Minutos antes de expirar en que se renueva el token"
    )

    supervisor_address: Optional[str] = None
    supervisor_api_key: Optional[str] = None
    app_id: Optional[str] = None
    pubsub_onboarding_key: Optional[str] = None

    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def detect_provider(cls, data: Any) -> Any:
        """Detecta el proveedor por sus campos de identidad si no se indicó."""
        if not isinstance(data, dict) or data.get("provider"):
            return data

        for field_name, provider in PROVIDER_HINTS:
            if data.get(field_name):
                return {**data, "provider": provider.value}

        return data

    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, v):
        """Normaliza el selector a minúsculas sin validarlo.

        Un selector desconocido se rechaza al seleccionar el mensajero.
        """
        if v is None:
            return v
        return v.strip().lower() or None

    @field_validator("gcp_renewal_margin")
    @classmethod
    def validate_renewal_margin(cls, v, info):
        """Aplica el margen por defecto y exige que sea menor que la vida del token."""
        lifetime = info.data.get("gcp_token_lifetime")
        if lifetime is None:
            # La vida del token ya falló su propia validación
            return v

        if v is None:
            v = default_renewal_margin(lifetime)

        if v >= lifetime:
            raise ValueError(
                f"El margen de renovación ({v} min) debe ser menor que la vida del token ({lifetime} min)"
            )

        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Nivel de log inválido: {v}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """Crea la configuración desde variables de entorno.

        Las variables vacías se tratan como ausentes.

        Args:
            environ: Entorno a leer (por defecto os.environ)

        Returns:
            Configuración validada

        Raises:
            ConfigError: Si falta un valor requerido o alguno es inválido
        """
        if environ is None:
            environ = os.environ

        values: Dict[str, Any] = {}
        for field_name, env_names in ENV_FIELDS.items():
            for env_name in env_names:
                value = environ.get(env_name)
                if value:
                    values[field_name] = value
                    break

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError("Configuración inválida", e) from e

    def credentials(self, provider: Provider) -> Dict[str, Optional[str]]:
        """Campos de credenciales que el registro debe rellenar para un proveedor.

        Args:
            provider: Proveedor de nube

        Returns:
            Diccionario campo -> valor (None si falta)
        """
        if provider is Provider.AWS:
            return {
                "private_key": self.aws_private_key,
                "cert": self.aws_cert,
                "root_ca": self.aws_root_ca,
            }
        if provider is Provider.AZURE:
            return {
                "private_key": self.azure_private_key,
                "cert": self.azure_cert,
                "root_ca": self.azure_root_ca,
            }
        if provider is Provider.GCP:
            return {
                "private_key": self.gcp_private_key,
                "root_certs": self.gcp_root_certs,
            }
        raise ConfigError(f"Proveedor sin credenciales definidas: {provider}")


def select_provider(config: RelayConfig) -> Provider:
    """Resuelve el selector de proveedor de la configuración.

    Raises:
        ConfigError: Si no hay proveedor o no es reconocido
    """
    if not config.provider:
        raise ConfigError(
            "No hay proveedor de nube: define CLOUD_PROVIDER o las variables de identidad del proveedor"
        )

    try:
        return Provider(config.provider)
    except ValueError as e:
        raise ConfigError(f"Proveedor de nube no reconocido: {config.provider}", e) from e
