#!/usr/bin/env python3
"""Cloud Relay

Punto de entrada del gateway. `run` ejecuta un ciclo de registro y relay;
`onboard` asegura el tópico de telemetría del dispositivo en GCP Pub/Sub.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from modules.cloudrelay_config.errors import ConfigError
from modules.cloudrelay_config.settings import RelayConfig
from services.relay_service import EXIT_OK, RelayOrchestrator

logger = logging.getLogger("cloud_relay")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Configura el logging del proceso."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloud-relay",
        description="Reenvía mensajes del broker MQTT local a AWS IoT, Azure IoT Hub o GCP IoT"
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Registra el dispositivo o inicia el relay (por defecto)")
    subparsers.add_parser("onboard", help="Crea el tópico de telemetría en GCP Pub/Sub si no existe")
    return parser


def onboard(config: RelayConfig) -> int:
    # google-cloud-pubsub sólo se carga para este comando
    from modules.cloudrelay_provision.onboarding import ensure_telemetry_topic

    try:
        ensure_telemetry_topic(config)
    except ConfigError as e:
        logger.error(f"Onboarding cancelado: {e}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Ejecuta el comando pedido.

    Returns:
        Código de salida: 0 salvo agotamiento de la renovación de GCP
    """
    args = build_parser().parse_args(argv)

    try:
        config = RelayConfig.from_env()
    except ConfigError as e:
        configure_logging()
        logger.error(f"Configuración inválida: {e}")
        return EXIT_OK

    configure_logging(config.log_level)

    if args.command == "onboard":
        return onboard(config)

    return asyncio.run(RelayOrchestrator(config).run())


if __name__ == "__main__":
    sys.exit(main())
