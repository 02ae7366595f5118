"""Protocolo de mutación: validate → acquire/create → confirm → (write) → verify.

Máquina de estados explícita (`PipelinePhase` + tabla de transiciones):
- Una validación con errores termina en REJECTED y se devuelve como dato;
  no se emite ninguna llamada de creación.
- Sin cabecera `Location` la creación es ambigua: `CreationError`, FAILED y
  sin relectura.
- Una relectura que no confirma el recurso es `VerificationError`, distinta
  de un fallo de creación.
- Cancelación o fallo de transporte → UNKNOWN; locks y reservas se quedan
  como están (verificar antes de reintentar). No hay reintentos automáticos.
"""

from __future__ import annotations

import asyncio
import logging

from adapters.adt_api import endpoint_for
from adapters.adt_api.objects import write_source
from core.domain.models import (
    CheckMode,
    LockHandle,
    MutationOutcome,
    ObjectType,
    PipelinePhase,
    ResourceDescriptor,
    ResourceSnapshot,
    ValidationResult,
)
from core.errors import (
    AdtError,
    CreationError,
    NotFoundError,
    ProtocolError,
    TransportError,
    ValidationError,
    VerificationError,
)
from core.interfaces.resources import ResourceEndpoint
from core.services.lock_coordinator import LockCoordinator
from core.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[PipelinePhase, frozenset[PipelinePhase]] = {
    PipelinePhase.PENDING: frozenset({PipelinePhase.VALIDATING}),
    PipelinePhase.VALIDATING: frozenset({PipelinePhase.ACQUIRING, PipelinePhase.REJECTED}),
    PipelinePhase.ACQUIRING: frozenset({PipelinePhase.CONFIRMING}),
    PipelinePhase.CONFIRMING: frozenset({PipelinePhase.WRITING, PipelinePhase.VERIFYING}),
    PipelinePhase.WRITING: frozenset({PipelinePhase.VERIFYING}),
    PipelinePhase.VERIFYING: frozenset({PipelinePhase.DONE}),
}
_FAILURE_PHASES = frozenset({PipelinePhase.FAILED, PipelinePhase.UNKNOWN})


class MutationPipeline:
    """Pipeline de un solo uso para crear un recurso."""

    def __init__(
        self,
        sessions: SessionManager,
        locks: LockCoordinator,
        endpoint: ResourceEndpoint | None = None,
    ) -> None:
        self.sessions = sessions
        self.locks = locks
        self._endpoint = endpoint
        self._phase = PipelinePhase.PENDING
        self.history: list[PipelinePhase] = [PipelinePhase.PENDING]

    @property
    def phase(self) -> PipelinePhase:
        return self._phase

    def _advance(self, target: PipelinePhase) -> None:
        allowed = _TRANSITIONS.get(self._phase, frozenset())
        if self._phase.terminal or (target not in allowed and target not in _FAILURE_PHASES):
            raise ProtocolError(
                f"illegal pipeline transition {self._phase.value} -> {target.value}",
                phase=self._phase,
            )
        logger.debug("pipeline %s -> %s", self._phase.value, target.value)
        self._phase = target
        self.history.append(target)

    async def run(
        self,
        descriptor: ResourceDescriptor,
        *,
        transport_request: str | None = None,
        check_mode: CheckMode = CheckMode.BASIC,
        source: str | None = None,
    ) -> MutationOutcome:
        if self._phase is not PipelinePhase.PENDING:
            raise ProtocolError("pipeline instances are single-use", resource=descriptor.name, phase=self._phase)
        if source is not None and not descriptor.object_type.has_source:
            raise ProtocolError(
                f"{descriptor.object_type.value} has no source to write",
                resource=descriptor.name,
                phase=self._phase,
            )

        endpoint = self._endpoint or endpoint_for(descriptor.object_type)
        outcome = MutationOutcome(descriptor=descriptor)
        try:
            self._advance(PipelinePhase.VALIDATING)
            outcome.validation = await self._validate(endpoint, descriptor, check_mode)
            if not outcome.validation.success:
                self._advance(PipelinePhase.REJECTED)
                outcome.phase = self._phase
                logger.info("%s rejected by validation", descriptor.key)
                return outcome

            self._advance(PipelinePhase.ACQUIRING)
            handle, location = await self._acquire(endpoint, descriptor, transport_request)

            self._advance(PipelinePhase.CONFIRMING)
            await self.locks.release(handle)
            if not location:
                raise CreationError("no location returned", resource=descriptor.name, phase=self._phase)
            outcome.location = location

            if source is not None:
                self._advance(PipelinePhase.WRITING)
                await edit_source(
                    self.locks,
                    descriptor.object_type,
                    descriptor.name,
                    source,
                    transport_request=descriptor.transport_for(transport_request),
                    endpoint=endpoint,
                )

            self._advance(PipelinePhase.VERIFYING)
            outcome.resource = await self._verify(endpoint, descriptor)
            self._advance(PipelinePhase.DONE)
        except (TransportError, asyncio.CancelledError):
            if not self._phase.terminal:
                self._advance(PipelinePhase.UNKNOWN)
            outcome.phase = self._phase
            logger.warning("%s mutation interrupted; state unknown, verify before retrying", descriptor.key)
            raise
        except AdtError:
            if not self._phase.terminal:
                self._advance(PipelinePhase.FAILED)
            raise
        outcome.phase = self._phase
        return outcome

    async def _validate(
        self,
        endpoint: ResourceEndpoint,
        descriptor: ResourceDescriptor,
        check_mode: CheckMode,
    ) -> ValidationResult:
        try:
            descriptor.check()
        except ValidationError as exc:
            return ValidationResult(messages=exc.messages)
        clone = await self.sessions.stateless_clone()
        return await endpoint.validate(clone, descriptor, check_mode)

    async def _acquire(
        self,
        endpoint: ResourceEndpoint,
        descriptor: ResourceDescriptor,
        transport_request: str | None,
    ) -> tuple[LockHandle, str | None]:
        session = self.locks.session
        location: str | None = None

        async def create() -> LockHandle:
            nonlocal location
            response = await endpoint.create(
                session,
                descriptor,
                responsible=descriptor.responsible or session.username,
                transport_request=transport_request,
            )
            location = response.header("location")
            return LockHandle(
                resource=descriptor.key,
                uri=location or endpoint.object_uri(descriptor.name),
                token=None,
                session_id=session.session_id,
                transport=descriptor.transport_for(transport_request),
                is_local=descriptor.is_local,
            )

        handle = await self.locks.acquire_or_create(descriptor, create)
        return handle, location

    async def _verify(self, endpoint: ResourceEndpoint, descriptor: ResourceDescriptor) -> ResourceSnapshot:
        clone = await self.sessions.stateless_clone()
        try:
            read = await endpoint.read(clone, descriptor.name)
        except NotFoundError as exc:
            raise VerificationError(
                "created resource is not visible yet",
                resource=descriptor.name,
                phase=self._phase,
                status=exc.status,
            ) from exc
        snapshot = read.resource
        if snapshot is None or snapshot.name.strip().upper() != descriptor.name.strip().upper():
            raise VerificationError(
                "re-read does not match the created resource",
                resource=descriptor.name,
                phase=self._phase,
            )
        return snapshot


async def edit_source(
    locks: LockCoordinator,
    object_type: ObjectType,
    name: str,
    source: str,
    *,
    transport_request: str | None = None,
    endpoint: ResourceEndpoint | None = None,
) -> LockHandle:
    """lock → PUT `source/main` → unlock. Si el backend rechaza la escritura se libera el lock."""

    endpoint = endpoint or endpoint_for(object_type)
    source_uri = endpoint.source_uri(name)
    if source_uri is None:
        raise ProtocolError(f"{object_type.value} has no source", resource=name, phase="writing")

    handle = await locks.lock(object_type, name)
    if handle.token is None:
        await locks.release(handle)
        raise ProtocolError("lock granted without a lock handle", resource=handle.resource.name, phase="writing")
    try:
        await write_source(
            locks.session,
            source_uri,
            source,
            handle.token,
            transport_request=transport_request or (None if handle.is_local else handle.transport),
            resource=handle.resource.name,
        )
    except (TransportError, asyncio.CancelledError):
        raise
    except AdtError:
        await locks.release(handle)
        raise
    await locks.release(handle)
    return handle
