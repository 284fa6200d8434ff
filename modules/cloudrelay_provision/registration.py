"""Evaluación del estado de registro del dispositivo.

El estado se deriva de la presencia de las credenciales que deja el
aprovisionamiento y se evalúa en cada arranque, nunca se guarda.
"""

from enum import Enum
from typing import Mapping, Optional, Tuple

from modules.cloudrelay_config.settings import Provider, RelayConfig


class RegistrationStatus(Enum):
    """Estados de registro del dispositivo."""
    UNREGISTERED = "unregistered"
    PARTIAL = "partial"
    COMPLETE = "complete"


REQUIRED_FIELDS = {
    Provider.AWS: ("private_key", "cert", "root_ca"),
    Provider.AZURE: ("private_key", "cert", "root_ca"),
    # Proyecto, región y registro identifican al dispositivo; no los escribe el registro
    Provider.GCP: ("private_key", "root_certs"),
}


def required_fields(provider: Provider) -> Tuple[str, ...]:
    """Campos de credenciales que exige un proveedor."""
    return REQUIRED_FIELDS[provider]


def classify(credentials: Mapping[str, Optional[str]]) -> RegistrationStatus:
    """Clasifica un conjunto de credenciales.

    COMPLETE si todos los campos tienen valor, UNREGISTERED si ninguno lo
    tiene y PARTIAL en cualquier otra combinación.

    Args:
        credentials: Campo -> valor (None o vacío significa ausente)

    Returns:
        Estado de registro
    """
    present = [bool(value) for value in credentials.values()]

    if present and all(present):
        return RegistrationStatus.COMPLETE
    if not any(present):
        return RegistrationStatus.UNREGISTERED
    return RegistrationStatus.PARTIAL


def evaluate(config: RelayConfig, provider: Provider) -> RegistrationStatus:
    """Estado de registro actual para el proveedor seleccionado."""
    return classify(config.credentials(provider))
