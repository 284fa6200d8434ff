"""Tests para la configuración del Cloud Relay.

Pruebas de carga desde entorno, valores por defecto, detección de
proveedor y reglas del margen de renovación.
"""

import pytest
from pydantic import ValidationError

from modules.cloudrelay_config.errors import ConfigError
from modules.cloudrelay_config.settings import Provider, RelayConfig, default_renewal_margin, select_provider


BASE_ENV = {"BALENA_DEVICE_UUID": "device-123"}


class TestRelayConfigFromEnv:
    """Tests para RelayConfig.from_env."""

    def test_defaults(self):
        """Test valores por defecto con el entorno mínimo."""
        config = RelayConfig.from_env(BASE_ENV)

        assert config.device_uuid == "device-123"
        assert config.provider is None
        assert config.provision_url is None
        assert config.producer_topic == "sensors"
        assert config.consumer_topic is None
        assert config.local_broker_host == "127.0.0.1"
        assert config.local_broker_port == 1883
        assert config.gcp_token_lifetime == 60
        assert config.gcp_renewal_margin == 5
        assert config.log_level == "INFO"

    def test_legacy_uuid_variable(self):
        """Test UUID desde RESIN_DEVICE_UUID."""
        config = RelayConfig.from_env({"RESIN_DEVICE_UUID": "legacy-uuid"})
        assert config.device_uuid == "legacy-uuid"

    def test_missing_uuid(self):
        """Test error si falta el UUID."""
        with pytest.raises(ConfigError, match="Configuración inválida"):
            RelayConfig.from_env({})

    def test_empty_values_are_absent(self):
        """Test que las variables vacías usan el valor por defecto."""
        config = RelayConfig.from_env({**BASE_ENV, "PRODUCER_TOPIC": "", "AWS_CERT": ""})

        assert config.producer_topic == "sensors"
        assert config.aws_cert is None

    def test_topics_and_broker(self):
        config = RelayConfig.from_env({
            **BASE_ENV,
            "PRODUCER_TOPIC": "readings",
            "CLOUD_CONSUMER_TOPIC": "telemetry",
            "LOCAL_BROKER_HOST": "mqtt",
            "LOCAL_BROKER_PORT": "1884",
        })

        assert config.producer_topic == "readings"
        assert config.consumer_topic == "telemetry"
        assert config.local_broker_host == "mqtt"
        assert config.local_broker_port == 1884

    def test_invalid_port(self):
        with pytest.raises(ConfigError):
            RelayConfig.from_env({**BASE_ENV, "LOCAL_BROKER_PORT": "70000"})

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError):
            RelayConfig.from_env({**BASE_ENV, "LOG_LEVEL": "chatty"})

    def test_log_level_normalized(self):
        config = RelayConfig.from_env({**BASE_ENV, "LOG_LEVEL": "debug"})
        assert config.log_level == "DEBUG"

    def test_config_is_immutable(self):
        """Test que la configuración no se puede modificar."""
        config = RelayConfig.from_env(BASE_ENV)

        with pytest.raises(ValidationError):
            config.producer_topic = "other"


class TestProviderDetection:
    """Tests para la detección y selección de proveedor."""

    @pytest.mark.parametrize("variable,expected", [
        ("AWS_DATA_ENDPOINT", "aws"),
        ("GCP_PROJECT_ID", "gcp"),
        ("AZURE_HUB_HOST", "azure"),
    ])
    def test_detected_from_identity_fields(self, variable, expected):
        """Test detección por campos de identidad."""
        config = RelayConfig.from_env({**BASE_ENV, variable: "value"})
        assert config.provider == expected

    def test_explicit_selector_wins(self):
        """Test que CLOUD_PROVIDER tiene prioridad sobre la detección."""
        config = RelayConfig.from_env({
            **BASE_ENV,
            "CLOUD_PROVIDER": "GCP",
            "AWS_DATA_ENDPOINT": "endpoint",
        })

        assert config.provider == "gcp"
        assert select_provider(config) is Provider.GCP

    def test_unknown_selector_fails_at_selection(self):
        """Test que un selector desconocido falla al seleccionar, no al cargar."""
        config = RelayConfig.from_env({**BASE_ENV, "CLOUD_PROVIDER": "ibm"})

        assert config.provider == "ibm"
        with pytest.raises(ConfigError, match="no reconocido"):
            select_provider(config)

    def test_no_provider(self):
        config = RelayConfig.from_env(BASE_ENV)

        with pytest.raises(ConfigError, match="No hay proveedor"):
            select_provider(config)


class TestRenewalMargin:
    """Tests para el margen de renovación del token GCP."""

    @pytest.mark.parametrize("lifetime,margin", [
        (60, 5),
        (11, 5),
        (10, 1),
        (2, 1),
    ])
    def test_default_margin(self, lifetime, margin):
        """Test margen por defecto según la vida del token."""
        assert default_renewal_margin(lifetime) == margin

        config = RelayConfig.from_env({**BASE_ENV, "GCP_TOKEN_LIFETIME": str(lifetime)})
        assert config.gcp_renewal_margin == margin

    def test_explicit_margin(self):
        config = RelayConfig.from_env({
            **BASE_ENV,
            "GCP_TOKEN_LIFETIME": "30",
            "GCP_RENEWAL_MARGIN": "10",
        })

        assert config.gcp_renewal_margin == 10

    def test_margin_must_be_shorter_than_lifetime(self):
        """Test error si el margen no deja tiempo antes de expirar."""
        with pytest.raises(ConfigError):
            RelayConfig.from_env({
                **BASE_ENV,
                "GCP_TOKEN_LIFETIME": "5",
                "GCP_RENEWAL_MARGIN": "5",
            })

    def test_lifetime_too_short(self):
        with pytest.raises(ConfigError):
            RelayConfig.from_env({**BASE_ENV, "GCP_TOKEN_LIFETIME": "1"})


class TestCredentials:
    """Tests para los campos de credenciales por proveedor."""

    def test_aws_fields(self, aws_config):
        assert aws_config.credentials(Provider.AWS) == {
            "private_key": aws_config.aws_private_key,
            "cert": aws_config.aws_cert,
            "root_ca": aws_config.aws_root_ca,
        }

    def test_azure_fields(self, make_config):
        config = make_config(azure_cert="cert")
        assert config.credentials(Provider.AZURE) == {"private_key": None, "cert": "cert", "root_ca": None}

    def test_gcp_fields(self, make_config):
        config = make_config(gcp_project_id="my-project", gcp_region="europe-west1", gcp_root_certs="Y2E=")
        assert config.credentials(Provider.GCP) == {"private_key": None, "root_certs": "Y2E="}
