"""GCP IoT Messenger

Mensajero para el puente MQTT de Google Cloud IoT. La contraseña de la
conexión es un JWT firmado con la clave EC del dispositivo y con vida
limitada, así que la conexión se renueva antes de que expire el token.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from awscrt import io, mqtt
from jose import jwt

from modules.cloudrelay_config.errors import ConfigError, RenewalExhaustedError
from modules.cloudrelay_config.settings import Provider, RelayConfig
from modules.cloudrelay_mqtt.messenger import CloudMessenger, ConnectionStatus, decode_credential
from modules.cloudrelay_mqtt.retry import DEFAULT_RETRY_POLICY, RetryExhaustedError, RetryPolicy, run_with_retry


logger = logging.getLogger(__name__)


class GcpMessenger(CloudMessenger):
    """Mensajero GCP IoT con token JWT y renovación periódica.

    Tras cada conexión exitosa se programa una renovación a
    `(vida del token - margen)` minutos. La renovación cierra la conexión,
    vuelve a conectar con un token nuevo y se reprograma. Si todos los
    reintentos fallan el mensajero queda en fallo fatal (ver `wait_fatal()`).
    """

    provider = Provider.GCP

    JWT_ALGORITHM = "ES256"
    MQTT_USERNAME = "unused"  # el puente ignora el usuario
    KEEP_ALIVE_SECS = 60

    def __init__(
        self,
        config: RelayConfig,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time
    ):
        """Inicializa el mensajero GCP.

        Args:
            config: Configuración del gateway
            retry_policy: Política de reintentos de la renovación
            sleep: Corrutina de espera hasta la renovación
            clock: Reloj para los claims del token
        """
        super().__init__(config)
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._clock = clock

        self._renewal_task: Optional[asyncio.Task] = None

        self.token: Optional[str] = None
        self.issued_at: Optional[int] = None
        self.expires_at: Optional[int] = None

    @property
    def client_path(self) -> str:
        """Identificador MQTT completo del dispositivo."""
        if self.config.gcp_client_path:
            return self.config.gcp_client_path

        return (
            f"projects/{self.config.gcp_project_id}"
            f"/locations/{self.config.gcp_region}"
            f"/registries/{self.config.gcp_registry_id}"
            f"/devices/{self.config.device_uuid}"
        )

    @property
    def default_consumer_topic(self) -> str:
        return f"/devices/{self.config.device_uuid}/events"

    def finalize_consumer_topic(self, topic: str) -> str:
        """Convierte un nombre simple en subcarpeta de los eventos del dispositivo."""
        if topic.startswith("/devices/"):
            return topic
        return f"{self.default_consumer_topic}/{topic.strip('/')}"

    @property
    def token_lifetime(self) -> int:
        """Vida del token en segundos."""
        return self.config.gcp_token_lifetime * 60

    @property
    def renewal_delay(self) -> int:
        """Segundos desde la conexión hasta la renovación."""
        return (self.config.gcp_token_lifetime - self.config.gcp_renewal_margin) * 60

    def create_token(self) -> str:
        """Firma un JWT nuevo para la conexión.

        Returns:
            Token firmado con claims iat, exp y aud (proyecto)

        Raises:
            ConfigError: Si falta el proyecto o la clave privada
        """
        if not self.config.gcp_project_id:
            raise ConfigError("GCP_PROJECT_ID no definida")

        private_key = decode_credential(self.config.gcp_private_key, "GCP_PRIVATE_KEY").decode("utf-8")

        issued_at = int(self._clock())
        claims = {
            "iat": issued_at,
            "exp": issued_at + self.token_lifetime,
            "aud": self.config.gcp_project_id,
        }

        self.token = jwt.encode(claims, private_key, algorithm=self.JWT_ALGORITHM)
        self.issued_at = claims["iat"]
        self.expires_at = claims["exp"]
        return self.token

    def _build_connection(self) -> mqtt.Connection:
        token = self.create_token()

        tls_options = io.TlsContextOptions()
        if self.config.gcp_root_certs:
            tls_options.override_default_trust_store(
                decode_credential(self.config.gcp_root_certs, "GCP_ROOT_CERTS")
            )

        client = mqtt.Client(None, io.ClientTlsContext(tls_options))

        return mqtt.Connection(
            client=client,
            host_name=self.config.gcp_mqtt_host,
            port=self.config.gcp_mqtt_port,
            client_id=self.client_path,
            username=self.MQTT_USERNAME,
            password=token,
            clean_session=True,
            keep_alive_secs=self.KEEP_ALIVE_SECS,
            on_connection_interrupted=self._on_connection_interrupted,
            on_connection_resumed=self._on_connection_resumed
        )

    async def _on_connected(self) -> None:
        self._arm_renewal()

    def _arm_renewal(self) -> None:
        logger.info(f"Renovación del token programada en {self.renewal_delay}s")
        self._renewal_task = asyncio.create_task(self._renew_after(self.renewal_delay))

    async def _renew_after(self, delay: float) -> None:
        await self._sleep(delay)
        await self.renew()

    async def renew(self) -> bool:
        """Reconecta con un token nuevo.

        Returns:
            True si la renovación tuvo éxito; si no, el mensajero queda en
            fallo fatal
        """
        logger.info("Renovando token de GCP...")
        self._status = ConnectionStatus.RECONNECTING
        await self._close_connection()

        try:
            await run_with_retry(
                self._open_connection,
                self.retry_policy,
                description="Reconexión con GCP"
            )
        except RetryExhaustedError as e:
            self._status = ConnectionStatus.STOPPED
            error = RenewalExhaustedError(e.attempts, e.last_error)
            logger.critical(str(error))
            self._mark_fatal(error)
            return False

        self._status = ConnectionStatus.CONNECTED
        logger.info("Token de GCP renovado")
        self._arm_renewal()
        return True

    async def disconnect(self) -> None:
        """Cancela la renovación pendiente y cierra la conexión."""
        task, self._renewal_task = self._renewal_task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await super().disconnect()

    def status(self):
        status = super().status()
        status.update({
            "client_path": self.client_path,
            "token_issued_at": self.issued_at,
            "token_expires_at": self.expires_at,
        })
        return status
