"""Contrato por tipo de recurso (paquete, programa, clase).

El pipeline de mutación es el mismo para todos los tipos; lo que cambia
(endpoint de validación, documento de creación, URI, relectura) vive detrás
de este Protocol y lo implementan los adaptadores en `adapters.adt_api`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import (
    CheckMode,
    ObjectType,
    ResourceDescriptor,
    ResourceRead,
    ValidationResult,
)
from core.interfaces.transport import AdtTransport, TransportResponse


@runtime_checkable
class ResourceEndpoint(Protocol):
    object_type: ObjectType

    def object_uri(self, name: str) -> str:
        ...

    def source_uri(self, name: str) -> str | None:
        """URI del código fuente principal, o None si el tipo no tiene fuente."""

        ...

    async def validate(
        self,
        h: AdtTransport,
        descriptor: ResourceDescriptor,
        check_mode: CheckMode = CheckMode.BASIC,
    ) -> ValidationResult:
        ...

    async def create(
        self,
        session: AdtTransport,
        descriptor: ResourceDescriptor,
        *,
        responsible: str,
        transport_request: str | None = None,
    ) -> TransportResponse:
        ...

    async def read(
        self,
        h: AdtTransport,
        name: str,
        *,
        if_none_match: str | None = None,
    ) -> ResourceRead:
        ...
