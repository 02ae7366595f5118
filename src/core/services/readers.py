"""Lecturas de solo consulta, siempre sobre el clon stateless.

Ninguna operación de este módulo toca el `LockCoordinator` ni la sesión
stateful: una lectura nunca libera ni altera locks.
"""

from __future__ import annotations

from datetime import datetime

from adapters.adt_api import endpoint_for
from adapters.adt_api import objects as objects_api
from adapters.adt_api import packages as packages_api
from adapters.adt_api import runtime as runtime_api
from adapters.adt_api.discovery import get_discovery
from core.domain.models import (
    DiscoveryCollection,
    DumpsFeed,
    NamedItem,
    ObjectReference,
    ObjectType,
    ResourceRead,
    SystemMessagesFeed,
)
from core.errors import ProtocolError
from core.services.session_manager import SessionManager, StatelessSession


class ResourceReaders:
    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions

    async def _clone(self) -> StatelessSession:
        return await self.sessions.stateless_clone()

    async def get_package(self, name: str, *, if_none_match: str | None = None) -> ResourceRead:
        """Lectura condicional; el token se pasa sin modificar."""

        return await packages_api.get_package(await self._clone(), name, if_none_match=if_none_match)

    async def get_object(
        self,
        object_type: ObjectType,
        name: str,
        *,
        if_none_match: str | None = None,
    ) -> ResourceRead:
        return await endpoint_for(object_type).read(await self._clone(), name, if_none_match=if_none_match)

    async def read_source(self, object_type: ObjectType, name: str) -> str:
        source_uri = endpoint_for(object_type).source_uri(name)
        if source_uri is None:
            raise ProtocolError(f"{object_type.value} has no source", resource=name, phase="read")
        return await objects_api.read_source(await self._clone(), source_uri, resource=name.upper())

    async def search(
        self,
        pattern: str,
        *,
        object_type: ObjectType | None = None,
        max_results: int = 50,
    ) -> list[ObjectReference]:
        return await objects_api.search_objects(
            await self._clone(),
            pattern,
            object_type=object_type,
            max_results=max_results,
        )

    async def transport_layers(self, name: str = "*") -> list[NamedItem]:
        return await packages_api.get_transport_layers(await self._clone(), name)

    async def software_components(self, name: str = "*") -> list[NamedItem]:
        return await packages_api.get_software_components(await self._clone(), name)

    async def translation_relevances(self, max_item_count: int = 50) -> list[NamedItem]:
        return await packages_api.get_translation_relevances(await self._clone(), max_item_count)

    async def package_properties(self, name: str) -> dict[str, str]:
        return await packages_api.get_package_properties(await self._clone(), name)

    async def dumps(
        self,
        *,
        query: str | None = None,
        top: int | None = None,
        skip: int | None = None,
        inline_count: bool = False,
        since: datetime | str | None = None,
        responsible: str | None = None,
        user: str | None = None,
    ) -> DumpsFeed:
        return await runtime_api.get_dumps(
            await self._clone(),
            query=query,
            top=top,
            skip=skip,
            inline_count=inline_count,
            since=since,
            responsible=responsible,
            user=user,
        )

    async def dump(self, dump_id: str) -> str:
        return await runtime_api.get_dump(await self._clone(), dump_id)

    async def system_messages(self) -> SystemMessagesFeed:
        return await runtime_api.get_system_messages(await self._clone())

    async def discovery(self) -> list[DiscoveryCollection]:
        return await get_discovery(await self._clone())
