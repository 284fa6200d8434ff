"""Cliente del broker MQTT local.

Conecta al bus de mensajes del dispositivo y se suscribe al tópico de los
productores. La conexión es idempotente y usa la política de reintentos
compartida.
"""

import logging
from contextlib import AsyncExitStack
from typing import AsyncIterator, Callable, Optional

import aiomqtt

from modules.cloudrelay_config.errors import LocalBrokerError
from modules.cloudrelay_config.settings import RelayConfig
from modules.cloudrelay_mqtt.retry import DEFAULT_RETRY_POLICY, RetryExhaustedError, RetryPolicy, run_with_retry


logger = logging.getLogger(__name__)


class LocalLink:
    """Enlace con el broker local: cliente conectado y tópico suscrito."""

    def __init__(
        self,
        client: Optional[aiomqtt.Client] = None,
        topic: Optional[str] = None,
        stack: Optional[AsyncExitStack] = None
    ):
        self.client = client
        self.topic = topic
        self._stack = stack
        self._closed = client is None

    @property
    def is_connected(self) -> bool:
        return not self._closed

    async def messages(self) -> AsyncIterator[bytes]:
        """Payloads recibidos, en el orden en que los entrega el broker."""
        if not self.is_connected:
            return

        async for message in self.client.messages:
            yield message.payload

    async def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        if self._stack is not None:
            await self._stack.aclose()
        logger.info("Desconectado del broker local")

    def __repr__(self) -> str:
        return f"LocalLink(topic={self.topic}, connected={self.is_connected})"


# Enlace explícitamente desconectado
DISCONNECTED = LocalLink()


class LocalBrokerClient:
    """Cliente del broker local con reintentos acotados."""

    QOS = 1  # AT_LEAST_ONCE

    def __init__(
        self,
        config: RelayConfig,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        client_factory: Callable[..., aiomqtt.Client] = aiomqtt.Client
    ):
        """Inicializa el cliente.

        Args:
            config: Configuración del gateway
            retry_policy: Política de reintentos de la conexión
            client_factory: Constructor del cliente MQTT
        """
        self.config = config
        self.retry_policy = retry_policy
        self._client_factory = client_factory
        self._link = DISCONNECTED

    @property
    def link(self) -> LocalLink:
        return self._link

    async def connect_and_subscribe(self) -> LocalLink:
        """Conecta y se suscribe al tópico de productores.

        Si ya hay un enlace conectado se devuelve sin reintentar.

        Returns:
            Enlace conectado, o DISCONNECTED si se agotaron los intentos
        """
        if self._link.is_connected:
            logger.debug("Broker local ya conectado")
            return self._link

        try:
            self._link = await run_with_retry(
                self._connect_once,
                self.retry_policy,
                description="Conexión al broker local"
            )
        except RetryExhaustedError as e:
            logger.error(f"Broker local no disponible: {e.last_error}")
            self._link = DISCONNECTED

        return self._link

    async def _connect_once(self) -> LocalLink:
        host = self.config.local_broker_host
        port = self.config.local_broker_port
        topic = self.config.producer_topic

        stack = AsyncExitStack()
        client = self._client_factory(
            hostname=host,
            port=port,
            identifier=f"cloud-relay-{self.config.device_uuid}"
        )

        try:
            await stack.enter_async_context(client)
            await client.subscribe(topic, qos=self.QOS)
        except Exception as e:
            await stack.aclose()
            raise LocalBrokerError(f"No se pudo conectar a {host}:{port}", e) from e

        logger.info(f"Suscrito a {topic} en {host}:{port}")
        return LocalLink(client, topic, stack)

    async def close(self) -> None:
        """Cierra el enlace actual."""
        link, self._link = self._link, DISCONNECTED
        await link.close()
