"""AWS IoT Messenger

Mensajero para AWS IoT Core sobre MQTT + TLS mutuo. La sesión la mantiene
el propio SDK; no hay renovación de credenciales.
"""

from awscrt import mqtt
from awsiot import mqtt_connection_builder

from modules.cloudrelay_config.errors import ConfigError
from modules.cloudrelay_config.settings import Provider
from modules.cloudrelay_mqtt.messenger import CloudMessenger, decode_credential


class AwsMessenger(CloudMessenger):
    """Mensajero AWS IoT Core con certificado de dispositivo."""

    provider = Provider.AWS

    DEFAULT_TOPIC = "sensors"

    @property
    def default_consumer_topic(self) -> str:
        return self.DEFAULT_TOPIC

    def _build_connection(self) -> mqtt.Connection:
        if not self.config.aws_data_endpoint:
            raise ConfigError("AWS_DATA_ENDPOINT no definida")

        return mqtt_connection_builder.mtls_from_bytes(
            endpoint=self.config.aws_data_endpoint,
            cert_bytes=decode_credential(self.config.aws_cert, "AWS_CERT"),
            pri_key_bytes=decode_credential(self.config.aws_private_key, "AWS_PRIVATE_KEY"),
            ca_bytes=decode_credential(self.config.aws_root_ca, "AWS_ROOT_CA"),
            client_id=self.config.device_uuid,
            clean_session=False,
            keep_alive_secs=self.KEEP_ALIVE_SECS,
            on_connection_interrupted=self._on_connection_interrupted,
            on_connection_resumed=self._on_connection_resumed
        )
