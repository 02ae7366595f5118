"""Contrato del transporte HTTP.

Por qué Protocol:
- El Core solo depende de la forma `request(path, …) -> {status, headers, body}`.
- Permite sustituir el adaptador httpx por un fake en tests sin herencia.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from core.domain.models import Credentials, SessionMode


@dataclass(frozen=True)
class TransportResponse:
    """Respuesta cruda; las cabeceras se guardan en minúsculas."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", {str(k).lower(): str(v) for k, v in self.headers.items()})

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class AdtTransport(Protocol):
    """Contrato mínimo del transporte.

    Reglas de diseño:
    - Asíncrono: la única suspensión del cliente ocurre aquí.
    - Devuelve cualquier status; mapear status a errores es tarea del llamante.
    - Fallos de red/timeout se lanzan como `core.errors.TransportError`.
    """

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        body: str | None = None,
    ) -> TransportResponse:
        ...

    async def aclose(self) -> None:
        ...


TransportFactory = Callable[[Credentials, SessionMode], AdtTransport]
