"""Tests para la evaluación del estado de registro."""

import itertools

import pytest

from modules.cloudrelay_config.settings import Provider
from modules.cloudrelay_provision.registration import RegistrationStatus, classify, evaluate, required_fields


class TestClassify:
    """Tests para classify."""

    @pytest.mark.parametrize("values", list(itertools.product([None, "value"], repeat=3)))
    def test_every_subset(self, values):
        """Test que cada combinación da exactamente un estado."""
        credentials = dict(zip(("private_key", "cert", "root_ca"), values))

        status = classify(credentials)

        if all(values):
            assert status is RegistrationStatus.COMPLETE
        elif not any(values):
            assert status is RegistrationStatus.UNREGISTERED
        else:
            assert status is RegistrationStatus.PARTIAL

    def test_empty_string_is_absent(self):
        """Test que un valor vacío cuenta como ausente."""
        assert classify({"private_key": "", "cert": ""}) is RegistrationStatus.UNREGISTERED
        assert classify({"private_key": "key", "cert": ""}) is RegistrationStatus.PARTIAL


class TestEvaluate:
    """Tests para evaluate sobre la configuración."""

    @pytest.mark.parametrize("provider,fields", [
        (Provider.AWS, ("private_key", "cert", "root_ca")),
        (Provider.AZURE, ("private_key", "cert", "root_ca")),
        (Provider.GCP, ("private_key", "root_certs")),
    ])
    def test_required_fields(self, make_config, provider, fields):
        assert required_fields(provider) == fields
        assert tuple(make_config().credentials(provider)) == fields

    def test_aws_complete(self, aws_config):
        assert evaluate(aws_config, Provider.AWS) is RegistrationStatus.COMPLETE

    def test_gcp_partial(self, make_config):
        config = make_config(gcp_private_key="a2V5", gcp_project_id="my-project")
        assert evaluate(config, Provider.GCP) is RegistrationStatus.PARTIAL

    def test_unregistered(self, make_config):
        config = make_config(aws_data_endpoint="endpoint")
        assert evaluate(config, Provider.AWS) is RegistrationStatus.UNREGISTERED

    def test_azure_without_root_ca(self, make_config):
        """Test que Azure sin CA raíz queda en registro parcial."""
        config = make_config(azure_private_key="a2V5", azure_cert="Y2VydA==")
        assert evaluate(config, Provider.AZURE) is RegistrationStatus.PARTIAL

    def test_gcp_fresh_device(self, make_config):
        """Test que un dispositivo GCP recién configurado está sin registrar."""
        config = make_config(
            gcp_project_id="my-project",
            gcp_region="europe-west1",
            gcp_registry_id="relays"
        )
        assert config.provider == "gcp"
        assert evaluate(config, Provider.GCP) is RegistrationStatus.UNREGISTERED

    def test_gcp_complete(self, make_config):
        config = make_config(gcp_project_id="my-project", gcp_private_key="a2V5", gcp_root_certs="Y2E=")
        assert evaluate(config, Provider.GCP) is RegistrationStatus.COMPLETE
