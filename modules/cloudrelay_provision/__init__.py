"""Registro y aprovisionamiento del dispositivo.

Clasifica el estado de registro, registra el dispositivo contra el endpoint
de aprovisionamiento y coordina el refresco del entorno con el supervisor.
"""

from modules.cloudrelay_provision.registration import RegistrationStatus, classify, evaluate, required_fields
from modules.cloudrelay_provision.provisioner import Provisioner, ProvisionOutcome
from modules.cloudrelay_provision.supervisor import SupervisorClient

__all__ = [
    "RegistrationStatus",
    "classify",
    "evaluate",
    "required_fields",
    "Provisioner",
    "ProvisionOutcome",
    "SupervisorClient",
]
