"""Fixtures compartidas por los tests del Cloud Relay."""

import asyncio
import base64
import concurrent.futures
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from modules.cloudrelay_config.settings import RelayConfig


DEVICE_UUID = "device-123"


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


AWS_CREDENTIALS = {
    "aws_private_key": b64("aws-private-key"),
    "aws_cert": b64("aws-cert"),
    "aws_root_ca": b64("aws-root-ca"),
    "aws_data_endpoint": "abc123-ats.iot.eu-west-1.amazonaws.com",
}

AZURE_CREDENTIALS = {
    "azure_private_key": b64("azure-private-key"),
    "azure_cert": b64("azure-cert"),
    "azure_root_ca": b64("azure-root-ca"),
    "azure_hub_host": "relay-hub.azure-devices.net",
}


def done_future(result=None) -> concurrent.futures.Future:
    future = concurrent.futures.Future()
    future.set_result(result)
    return future


def failed_future(error: BaseException) -> concurrent.futures.Future:
    future = concurrent.futures.Future()
    future.set_exception(error)
    return future


class FakeMqttClient:
    """Cliente aiomqtt en memoria."""

    def __init__(self, payloads=(), fail=None, block=False):
        self.payloads = list(payloads)
        self.fail = fail
        self.block = block
        self.subscriptions = []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        if self.fail is not None:
            raise self.fail
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True

    async def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))

    @property
    def messages(self):
        return self._iterate()

    async def _iterate(self):
        for payload in self.payloads:
            yield SimpleNamespace(topic="sensors", payload=payload)
        if self.block:
            await asyncio.Event().wait()


class ControlledSleep:
    """Sleep que vuelve enseguida las primeras `release` veces y luego se bloquea."""

    def __init__(self, release: int = 1):
        self.release = release
        self.calls = []

    async def __call__(self, delay):
        self.calls.append(delay)
        if len(self.calls) > self.release:
            await asyncio.Event().wait()


@pytest.fixture
def make_config():
    """Fábrica de configuraciones con UUID de prueba."""
    def _make(**overrides) -> RelayConfig:
        values = {"device_uuid": DEVICE_UUID}
        values.update(overrides)
        return RelayConfig(**values)
    return _make


@pytest.fixture
def aws_config(make_config):
    return make_config(**AWS_CREDENTIALS)


@pytest.fixture
def azure_config(make_config):
    return make_config(**AZURE_CREDENTIALS)


def connection_mock() -> Mock:
    """Conexión awscrt mockeada que siempre tiene éxito."""
    connection = Mock()
    connection.connect.side_effect = lambda: done_future({"session_present": False})
    connection.disconnect.side_effect = lambda: done_future({})
    connection.publish.side_effect = lambda **kwargs: (done_future({"packet_id": 1}), 1)
    return connection


async def wait_until(predicate, rounds: int = 200):
    """Cede el loop hasta que se cumple la condición."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("La condición no se cumplió")


@pytest.fixture
def mock_connection():
    return connection_mock()


@pytest.fixture
def failing_connection():
    """Conexión awscrt mockeada cuyo connect siempre falla."""
    connection = Mock()
    connection.connect.side_effect = lambda: failed_future(ConnectionError("TLS handshake failed"))
    connection.disconnect.side_effect = lambda: done_future({})
    return connection
