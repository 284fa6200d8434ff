"""Cloud Messenger

Contrato común de mensajería hacia la nube. Cada proveedor implementa su
propia conexión MQTT + TLS detrás de la misma interfaz: registro, tópicos,
conexión y publicación.
"""

import asyncio
import base64
import binascii
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from awscrt import mqtt

from modules.cloudrelay_config.errors import CloudConnectionError, ConfigError
from modules.cloudrelay_config.settings import Provider, RelayConfig
from modules.cloudrelay_provision.registration import RegistrationStatus, classify


logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Estados de conexión del mensajero."""
    STOPPED = "stopped"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


def decode_credential(value: Optional[str], name: str) -> bytes:
    """Decodifica una credencial en base64 del entorno.

    Raises:
        ConfigError: Si falta o no es base64 válido
    """
    if not value:
        raise ConfigError(f"{name} no definida")

    try:
        return base64.b64decode(value)
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"{name} no es base64 válido", e) from e


class CloudMessenger(ABC):
    """Mensajero abstracto hacia un proveedor de nube.

    Usar `create_messenger()` para obtener la variante del proveedor
    configurado. La conexión pertenece sólo al mensajero; el relay usa
    únicamente `publish()`.
    """

    provider: ClassVar[Provider]

    QOS = mqtt.QoS.AT_LEAST_ONCE
    KEEP_ALIVE_SECS = 30

    def __init__(self, config: RelayConfig):
        """Inicializa el mensajero.

        Args:
            config: Configuración del gateway
        """
        self.config = config

        self._status = ConnectionStatus.STOPPED
        self._connection: Optional[mqtt.Connection] = None
        self._last_publish_ts: Optional[float] = None

        self._fatal_error: Optional[BaseException] = None
        self._fatal_event: Optional[asyncio.Event] = None

    # Registro

    def credentials(self) -> Dict[str, Optional[str]]:
        """Credenciales del proveedor presentes en la configuración."""
        return self.config.credentials(self.provider)

    def registration_status(self) -> RegistrationStatus:
        return classify(self.credentials())

    def is_unregistered(self) -> bool:
        """True si no hay ninguna credencial del proveedor."""
        return self.registration_status() is RegistrationStatus.UNREGISTERED

    def is_registration_complete(self) -> bool:
        """True si están todas las credenciales del proveedor."""
        return self.registration_status() is RegistrationStatus.COMPLETE

    # Tópicos

    @property
    @abstractmethod
    def default_consumer_topic(self) -> str:
        """Tópico de nube usado cuando CLOUD_CONSUMER_TOPIC no está definido."""

    def create_consumer_topic(self) -> str:
        """Resuelve el tópico final de publicación en la nube."""
        if self.config.consumer_topic:
            return self.finalize_consumer_topic(self.config.consumer_topic)
        return self.default_consumer_topic

    def finalize_consumer_topic(self, topic: str) -> str:
        """Aplica el prefijo propio del proveedor a un tópico configurado."""
        return topic

    # Conexión

    @abstractmethod
    def _build_connection(self) -> mqtt.Connection:
        """Crea una conexión MQTT nueva, sin conectar."""

    async def connect(self) -> None:
        """Conecta con el broker MQTT del proveedor.

        Raises:
            ConfigError: Si falta configuración de conexión
            CloudConnectionError: Si la conexión falla
        """
        if self._status == ConnectionStatus.CONNECTED:
            logger.warning(f"Mensajero {self.provider.value} ya conectado")
            return

        self._status = ConnectionStatus.CONNECTING
        logger.info(f"Conectando con {self.provider.value} como {self.config.device_uuid}...")

        try:
            await self._open_connection()
        except ConfigError:
            self._status = ConnectionStatus.STOPPED
            raise
        except Exception as e:
            self._status = ConnectionStatus.STOPPED
            raise CloudConnectionError(f"No se pudo conectar con {self.provider.value}", e) from e

        self._status = ConnectionStatus.CONNECTED
        logger.info(f"Conectado con {self.provider.value}")

        await self._on_connected()

    async def _open_connection(self) -> None:
        connection = self._build_connection()
        await asyncio.wrap_future(connection.connect())
        self._connection = connection

    async def _on_connected(self) -> None:
        """Hook tras cada conexión exitosa."""

    async def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return

        try:
            await asyncio.wrap_future(connection.disconnect())
        except Exception as e:
            logger.warning(f"Error cerrando la conexión con {self.provider.value}: {e}")

    async def disconnect(self) -> None:
        """Cierra la conexión con el proveedor."""
        if self._status == ConnectionStatus.STOPPED and self._connection is None:
            return

        logger.info(f"Desconectando de {self.provider.value}...")
        await self._close_connection()
        self._status = ConnectionStatus.STOPPED

    def _on_connection_interrupted(self, connection, error, **kwargs):
        """Callback cuando la conexión se interrumpe."""
        if connection is not self._connection:
            return
        logger.warning(f"Conexión con {self.provider.value} interrumpida: {error}")
        self._status = ConnectionStatus.DISCONNECTED

    def _on_connection_resumed(self, connection, return_code, session_present, **kwargs):
        """Callback cuando la conexión se restablece."""
        if connection is not self._connection:
            return
        logger.info(f"Conexión con {self.provider.value} restablecida: {return_code}")
        self._status = ConnectionStatus.CONNECTED

    # Publicación

    async def publish(self, topic: str, payload: bytes) -> bool:
        """Publica el payload sin transformarlo.

        Sin conexión el mensaje se descarta y se registra; nunca lanza.

        Args:
            topic: Tópico de nube
            payload: Bytes recibidos del broker local

        Returns:
            True si el broker confirmó la publicación
        """
        if self._status != ConnectionStatus.CONNECTED or self._connection is None:
            logger.warning(f"Mensaje descartado para {topic}: estado {self._status.value}")
            return False

        try:
            publish_future, _ = self._connection.publish(
                topic=topic,
                payload=payload,
                qos=self.QOS
            )
            await asyncio.wrap_future(publish_future)
        except Exception as e:
            logger.error(f"Error publicando en {topic}: {e}")
            return False

        self._last_publish_ts = time.time()
        logger.debug(f"Mensaje publicado en {topic}: {len(payload)} bytes")
        return True

    # Fallo fatal

    def _fatal_signal(self) -> asyncio.Event:
        if self._fatal_event is None:
            self._fatal_event = asyncio.Event()
        return self._fatal_event

    def _mark_fatal(self, error: BaseException) -> None:
        self._fatal_error = error
        self._fatal_signal().set()

    async def wait_fatal(self) -> None:
        """Espera a que el mensajero falle sin remedio y relanza el error.

        Las variantes sin renovación nunca terminan esta espera.
        """
        await self._fatal_signal().wait()
        raise self._fatal_error

    # Estado

    @property
    def connection_status(self) -> ConnectionStatus:
        """Estado de conexión actual."""
        return self._status

    @property
    def is_connected(self) -> bool:
        """True si está conectado."""
        return self._status == ConnectionStatus.CONNECTED

    def status(self) -> Dict[str, Any]:
        """Obtiene el estado actual del mensajero.

        Returns:
            Diccionario con métricas de estado
        """
        return {
            "provider": self.provider.value,
            "connection_status": self._status.value,
            "connected": self.is_connected,
            "last_publish_ts": self._last_publish_ts,
            "device_id": self.config.device_uuid,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(device_id={self.config.device_uuid}, status={self._status.value})"
