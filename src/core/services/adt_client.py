"""Fachada del cliente ADT.

Compone `SessionManager`, `LockCoordinator`, `ResourceReaders` y los
pipelines de mutación. Es el punto de entrada para la CLI y para scripts:

    async with AdtClient(credentials, factory) as client:
        outcome = await client.create_package(descriptor)
"""

from __future__ import annotations

from adapters.adt_api import endpoint_for
from core.domain.models import (
    CheckMode,
    Credentials,
    LockHandle,
    MutationOutcome,
    ObjectType,
    ResourceDescriptor,
    ResourceKey,
    ValidationResult,
)
from core.errors import ProtocolError, ValidationError
from core.interfaces.transport import TransportFactory
from core.services.lock_coordinator import LockCoordinator
from core.services.mutation_pipeline import MutationPipeline, edit_source
from core.services.readers import ResourceReaders
from core.services.session_manager import SessionManager, StatefulSession


class AdtClient:
    def __init__(self, credentials: Credentials, transport_factory: TransportFactory) -> None:
        self.sessions = SessionManager(credentials, transport_factory)
        self.readers = ResourceReaders(self.sessions)
        self._locks: LockCoordinator | None = None

    @property
    def locks(self) -> LockCoordinator:
        if self._locks is None:
            raise ProtocolError("not logged in", phase="session")
        return self._locks

    async def login(self) -> StatefulSession:
        session = await self.sessions.login()
        self._locks = LockCoordinator(session)
        return session

    async def logout(self) -> None:
        """Libera locks (best-effort) y cierra ambas sesiones."""

        await self.sessions.logout()
        self._locks = None

    async def __aenter__(self) -> "AdtClient":
        await self.login()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.logout()

    def pipeline(self) -> MutationPipeline:
        return MutationPipeline(self.sessions, self.locks)

    async def create_package(
        self,
        descriptor: ResourceDescriptor,
        *,
        transport_request: str | None = None,
        check_mode: CheckMode = CheckMode.BASIC,
    ) -> MutationOutcome:
        if descriptor.object_type is not ObjectType.PACKAGE:
            raise ProtocolError("descriptor is not a package", resource=descriptor.name, phase="pending")
        return await self.pipeline().run(
            descriptor,
            transport_request=transport_request,
            check_mode=check_mode,
        )

    async def create_object(
        self,
        descriptor: ResourceDescriptor,
        *,
        source: str | None = None,
        transport_request: str | None = None,
        check_mode: CheckMode = CheckMode.BASIC,
    ) -> MutationOutcome:
        return await self.pipeline().run(
            descriptor,
            transport_request=transport_request,
            check_mode=check_mode,
            source=source,
        )

    async def write_source(
        self,
        object_type: ObjectType,
        name: str,
        source: str,
        *,
        transport_request: str | None = None,
    ) -> LockHandle:
        """Edita la fuente de un objeto existente: lock → write → unlock."""

        return await edit_source(self.locks, object_type, name, source, transport_request=transport_request)

    async def lock(self, object_type: ObjectType, name: str) -> LockHandle:
        return await self.locks.lock(object_type, name)

    async def unlock(self, handle: LockHandle) -> None:
        await self.locks.release(handle)

    def resolve(self, object_type: ObjectType, name: str) -> bool:
        """Libera un reclamo en estado desconocido, tras verificar con los lectores."""

        return self.locks.resolve(ResourceKey.of(object_type, name))

    async def validate(
        self,
        descriptor: ResourceDescriptor,
        *,
        check_mode: CheckMode = CheckMode.BASIC,
    ) -> ValidationResult:
        """Solo la fase de validación (checks locales + endpoint, en el clon)."""

        try:
            descriptor.check()
        except ValidationError as exc:
            return ValidationResult(messages=exc.messages)
        clone = await self.sessions.stateless_clone()
        return await endpoint_for(descriptor.object_type).validate(clone, descriptor, check_mode)
