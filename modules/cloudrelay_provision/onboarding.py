"""Onboarding del tópico de telemetría en GCP Pub/Sub.

Se asegura de que exista el tópico de telemetría del dispositivo antes de su
primer uso. La clave de la cuenta de servicio llega en base64 por el entorno
y se usa sólo en memoria.
"""

import base64
import json
import logging

from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import pubsub_v1

from modules.cloudrelay_config.errors import ConfigError
from modules.cloudrelay_config.settings import RelayConfig


logger = logging.getLogger(__name__)


def telemetry_topic_path(project_id: str, app_id: str, device_uuid: str) -> str:
    """Ruta completa del tópico de telemetría de un dispositivo."""
    return f"projects/{project_id}/topics/fleet-{app_id}_device_{device_uuid}_telemetry"


def load_service_account(encoded_key: str) -> dict:
    """Decodifica la clave de cuenta de servicio (JSON en base64)."""
    try:
        return json.loads(base64.b64decode(encoded_key))
    except ValueError as e:
        raise ConfigError("GCP_PUBSUB_ONBOARDING_KEY no es un JSON en base64 válido", e) from e


def ensure_telemetry_topic(config: RelayConfig) -> bool:
    """Crea el tópico de telemetría del dispositivo si no existe.

    Args:
        config: Configuración del gateway

    Returns:
        True si el tópico se creó, False si ya existía o no hay clave

    Raises:
        ConfigError: Si falta BALENA_APP_ID o la clave es inválida
    """
    if not config.pubsub_onboarding_key:
        logger.info(
            "El dispositivo no tiene clave de onboarding: ya se usó y se borró, o falta definirla"
        )
        return False

    if not config.app_id:
        raise ConfigError("BALENA_APP_ID no definida, no se puede nombrar el tópico")

    service_account = load_service_account(config.pubsub_onboarding_key)
    project_id = service_account.get("project_id")
    if not project_id:
        raise ConfigError("La clave de onboarding no incluye project_id")

    topic = telemetry_topic_path(project_id, config.app_id, config.device_uuid)
    publisher = pubsub_v1.PublisherClient.from_service_account_info(service_account)

    try:
        publisher.get_topic(request={"topic": topic})
        logger.info(f"Tópico {topic} ya existe")
        return False
    except NotFound:
        pass

    try:
        publisher.create_topic(request={"name": topic})
    except AlreadyExists:
        logger.info(f"Tópico {topic} creado por otro proceso")
        return False

    logger.info(f"Tópico {topic} creado")
    return True
