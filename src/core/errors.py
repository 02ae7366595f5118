"""Taxonomía de errores del cliente ADT.

Reglas:
- Todo error lleva el recurso afectado y la fase para diagnóstico.
- Los fallos de validación del pipeline se devuelven como datos
  (`MutationOutcome`), no como excepción; `ValidationError` queda para
  descriptores rechazados localmente antes de cualquier llamada.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from core.domain.models import StatusMessage


class AdtError(Exception):
    """Base de todos los errores del cliente."""

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        phase: str | None = None,
        status: int | None = None,
    ) -> None:
        self.message = message
        self.resource = resource
        self.phase = str(getattr(phase, "value", phase)) if phase is not None else None
        self.status = status
        super().__init__(self._render())

    def _render(self) -> str:
        prefix = []
        if self.phase:
            prefix.append(f"[{self.phase}]")
        if self.resource:
            prefix.append(f"{self.resource}:")
        if self.status is not None:
            prefix.append(f"HTTP {self.status}")
        return " ".join([*prefix, self.message]) if prefix else self.message


class AuthError(AdtError):
    """Credenciales inválidas o sesión expirada."""


class ValidationError(AdtError):
    """Atributos del descriptor rechazados; siempre lleva la lista completa."""

    def __init__(
        self,
        message: str,
        *,
        messages: Sequence["StatusMessage"] = (),
        resource: str | None = None,
        phase: str | None = None,
        status: int | None = None,
    ) -> None:
        self.messages = list(messages)
        super().__init__(message, resource=resource, phase=phase, status=status)

    def _render(self) -> str:
        base = super()._render()
        if not self.messages:
            return base
        details = "; ".join(f"{m.severity.value}: {m.text}" for m in self.messages)
        return f"{base} ({details})"


class ConflictError(AdtError):
    """Recurso bloqueado por otra sesión/usuario, o ya existente."""


class NotFoundError(AdtError):
    """Recurso o contenedor padre inexistente."""


class CreationError(AdtError):
    """Creación ambigua: el backend no devolvió `Location`."""


class VerificationError(AdtError):
    """La relectura tras una creación exitosa no confirma el recurso."""


class ProtocolError(AdtError):
    """Uso incorrecto del cliente (modo de sesión, liberación de lock ajena)."""


class RequestError(AdtError):
    """Cualquier otra respuesta no exitosa del backend."""


class TransportError(AdtError):
    """Fallo de red o timeout: el resultado en el servidor es desconocido."""


class ConfigError(AdtError):
    """Configuración de conexión incompleta."""
