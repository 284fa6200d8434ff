"""Relay service: orquesta un ciclo completo del gateway.

Evalúa el registro, aprovisiona si hace falta, conecta el broker local y el
mensajero de nube y reenvía cada mensaje local a la nube sin modificarlo.
"""

import asyncio
import logging
from typing import Callable, Optional

from modules.cloudrelay_config.errors import RenewalExhaustedError
from modules.cloudrelay_config.settings import Provider, RelayConfig, select_provider
from modules.cloudrelay_mqtt.factory import create_messenger
from modules.cloudrelay_mqtt.local_broker import LocalBrokerClient, LocalLink
from modules.cloudrelay_mqtt.messenger import CloudMessenger
from modules.cloudrelay_provision.provisioner import Provisioner
from modules.cloudrelay_provision.registration import RegistrationStatus, evaluate

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_RENEWAL_FAILED = 1


class RelayOrchestrator:
    """Servicio que secuencia registro, conexiones y relay."""

    def __init__(
        self,
        config: RelayConfig,
        local_client: Optional[LocalBrokerClient] = None,
        messenger_factory: Callable[[RelayConfig, Provider], CloudMessenger] = create_messenger,
        provisioner_factory: Callable[[RelayConfig, Provider], Provisioner] = Provisioner
    ):
        """Inicializar el orquestador.

        Args:
            config: Configuración del gateway
            local_client: Cliente del broker local
            messenger_factory: Crea el mensajero del proveedor
            provisioner_factory: Crea el aprovisionador del proveedor
        """
        self.config = config
        self.local_client = local_client or LocalBrokerClient(config)
        self._messenger_factory = messenger_factory
        self._provisioner_factory = provisioner_factory
        self.messenger: Optional[CloudMessenger] = None

    async def run(self) -> int:
        """Ejecuta un ciclo del gateway.

        Cualquier error se registra y termina el ciclo con código 0, salvo
        el agotamiento de la renovación de credenciales.

        Returns:
            Código de salida del proceso
        """
        try:
            await self._run_cycle()
        except RenewalExhaustedError as e:
            logger.critical(f"Relay detenido: {e}")
            return EXIT_RENEWAL_FAILED
        except Exception as e:
            logger.exception(f"Ciclo de relay interrumpido: {e}")
        finally:
            await self._shutdown()

        return EXIT_OK

    async def _run_cycle(self) -> None:
        provider = select_provider(self.config)
        status = evaluate(self.config, provider)
        logger.info(f"Estado de registro en {provider.value}: {status.value}")

        if status is RegistrationStatus.UNREGISTERED:
            provisioner = self._provisioner_factory(self.config, provider)
            outcome = await provisioner.provision(self.config.device_uuid)
            logger.info(f"Aprovisionamiento terminado: {outcome.value}")
            return

        if status is RegistrationStatus.PARTIAL:
            logger.warning("Registro parcial, se volverá a evaluar en el próximo arranque")
            return

        link = await self.local_client.connect_and_subscribe()
        if not link.is_connected:
            logger.error("Sin conexión con el broker local, no se inicia el relay")
            return

        self.messenger = self._messenger_factory(self.config, provider)
        cloud_topic = self.messenger.create_consumer_topic()
        await self.messenger.connect()

        logger.info(f"Relay {self.config.producer_topic} -> {cloud_topic}")
        await self._relay(link, self.messenger, cloud_topic)

    async def _relay(self, link: LocalLink, messenger: CloudMessenger, cloud_topic: str) -> None:
        """Reenvía mensajes hasta que se cierra el enlace local o el mensajero falla."""
        tasks = []

        try:
            fatal_task = asyncio.create_task(messenger.wait_fatal())
            tasks.append(fatal_task)
            relay_task = asyncio.create_task(self._forward_messages(link, messenger, cloud_topic))
            tasks.append(relay_task)

            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if fatal_task in done:
            fatal_task.result()

        relay_task.result()
        logger.warning("El broker local cerró la suscripción")

    async def _forward_messages(self, link: LocalLink, messenger: CloudMessenger, cloud_topic: str) -> None:
        async for payload in link.messages():
            await messenger.publish(cloud_topic, payload)

    async def _shutdown(self) -> None:
        try:
            await self.local_client.close()
        except Exception as e:
            logger.error(f"Error cerrando el broker local: {e}")

        if self.messenger is not None:
            try:
                await self.messenger.disconnect()
            except Exception as e:
                logger.error(f"Error desconectando el mensajero: {e}")
