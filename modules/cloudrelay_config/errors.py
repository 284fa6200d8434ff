"""Excepciones específicas del Cloud Relay.

Este módulo define la taxonomía de errores del gateway: configuración,
aprovisionamiento, conexión local y de nube, y renovación de credenciales.
"""

from typing import Optional


class CloudRelayError(Exception):
    """Excepción base del Cloud Relay.

    Todas las excepciones específicas del gateway heredan de esta clase.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        """Inicializa la excepción base.

        Args:
            message: Mensaje de error legible
            original_error: Excepción original que causó este error
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Retorna representación string del error."""
        if self.original_error:
            return f"{self.message} (Causa: {self.original_error})"
        return self.message


class ConfigError(CloudRelayError):
    """Falta configuración requerida o es inválida.

    Se lanza cuando:
    - No hay URL de aprovisionamiento
    - El proveedor de nube no es reconocido
    - Un valor de entorno no pasa la validación
    """


class ProvisioningError(CloudRelayError):
    """El endpoint de aprovisionamiento rechazó el registro."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, original_error)
        self.status_code = status_code
        self.body = body


class AlreadyRegistered(ProvisioningError):
    """El proveedor indica que el dispositivo ya estaba registrado.

    No es un error visible para el usuario: dispara el refresco del
    entorno por parte del supervisor.
    """


class CloudConnectionError(CloudRelayError):
    """No se pudo conectar con el broker MQTT del proveedor de nube."""


class LocalBrokerError(CloudRelayError):
    """No se pudo conectar o suscribir al broker MQTT local."""


class RenewalExhaustedError(CloudRelayError):
    """La renovación del token agotó todos los reintentos.

    Es el único error fatal del proceso.
    """

    def __init__(self, attempts: int, original_error: Optional[Exception] = None):
        message = f"Renovación de credenciales fallida tras {attempts} intentos"
        super().__init__(message, original_error)
        self.attempts = attempts
