"""Cloud Relay MQTT

Mensajería MQTT del gateway: broker local, mensajeros de nube para AWS IoT
Core, Azure IoT Hub y GCP IoT, y la política de reintentos compartida.
"""

from modules.cloudrelay_mqtt.messenger import CloudMessenger, ConnectionStatus
from modules.cloudrelay_mqtt.aws_messenger import AwsMessenger
from modules.cloudrelay_mqtt.azure_messenger import AzureMessenger
from modules.cloudrelay_mqtt.gcp_messenger import GcpMessenger
from modules.cloudrelay_mqtt.factory import create_messenger
from modules.cloudrelay_mqtt.local_broker import DISCONNECTED, LocalBrokerClient, LocalLink
from modules.cloudrelay_mqtt.retry import DEFAULT_RETRY_POLICY, RetryExhaustedError, RetryPolicy, run_with_retry

__version__ = "1.0.0"
__all__ = [
    "CloudMessenger",
    "ConnectionStatus",
    "AwsMessenger",
    "AzureMessenger",
    "GcpMessenger",
    "create_messenger",
    "DISCONNECTED",
    "LocalBrokerClient",
    "LocalLink",
    "DEFAULT_RETRY_POLICY",
    "RetryExhaustedError",
    "RetryPolicy",
    "run_with_retry",
]
