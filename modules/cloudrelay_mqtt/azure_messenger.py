"""Azure IoT Hub Messenger

Mensajero para Azure IoT Hub usando el endpoint MQTT del hub con
autenticación X.509.
"""

from awscrt import mqtt
from awsiot import mqtt_connection_builder

from modules.cloudrelay_config.errors import ConfigError
from modules.cloudrelay_config.settings import Provider
from modules.cloudrelay_mqtt.messenger import CloudMessenger, decode_credential


class AzureMessenger(CloudMessenger):
    """Mensajero Azure IoT Hub con certificado de dispositivo."""

    provider = Provider.AZURE

    PORT = 8883
    API_VERSION = "2021-04-12"

    @property
    def default_consumer_topic(self) -> str:
        return f"devices/{self.config.device_uuid}/messages/events/"

    @property
    def username(self) -> str:
        """Usuario MQTT que exige IoT Hub."""
        return f"{self.config.azure_hub_host}/{self.config.device_uuid}/?api-version={self.API_VERSION}"

    def _build_connection(self) -> mqtt.Connection:
        if not self.config.azure_hub_host:
            raise ConfigError("AZURE_HUB_HOST no definida")

        return mqtt_connection_builder.mtls_from_bytes(
            endpoint=self.config.azure_hub_host,
            port=self.PORT,
            cert_bytes=decode_credential(self.config.azure_cert, "AZURE_CERT"),
            pri_key_bytes=decode_credential(self.config.azure_private_key, "AZURE_PRIVATE_KEY"),
            ca_bytes=decode_credential(self.config.azure_root_ca, "AZURE_ROOT_CA"),
            client_id=self.config.device_uuid,
            username=self.username,
            enable_metrics_collection=False,
            clean_session=False,
            keep_alive_secs=self.KEEP_ALIVE_SECS,
            on_connection_interrupted=self._on_connection_interrupted,
            on_connection_resumed=self._on_connection_resumed
        )
