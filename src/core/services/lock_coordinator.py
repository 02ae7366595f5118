"""Coordinador de locks de la sesión stateful.

Reglas:
- Es el único dueño del mapa `ResourceKey → LockHandle`.
- La reserva de una clave es atómica (sin `await` entre comprobar y marcar):
  dos creaciones concurrentes del mismo nombre dan un éxito y un
  `ConflictError`.
- `release` es idempotente; un handle de otra sesión es un `ProtocolError`.
- Tras una cancelación o fallo de transporte la reserva se conserva: el lock
  puede existir en el servidor y hay que verificar antes de reintentar;
  `resolve` la libera después de esa verificación.
- Un `release` en vuelo mantiene la clave reclamada hasta que el UNLOCK
  termina.
"""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

from adapters.adt_api import endpoint_for
from adapters.adt_api.objects import lock_object, unlock_object
from core.domain.models import LockHandle, ObjectType, ResourceDescriptor, ResourceKey
from core.errors import AdtError, ConflictError, NotFoundError, ProtocolError, TransportError
from core.services.session_manager import StatefulSession, require_stateful

logger = logging.getLogger(__name__)

CreateCallback = Callable[[], Awaitable[LockHandle]]


class LockCoordinator:
    def __init__(self, session: StatefulSession) -> None:
        self.session = require_stateful(session, "lock coordinator")
        self._held: dict[ResourceKey, LockHandle] = {}
        self._pending: set[ResourceKey] = set()
        session.add_close_hook(self._on_session_close)

    def held(self) -> Mapping[ResourceKey, LockHandle]:
        """Vista de solo lectura de los locks activos."""

        return MappingProxyType(dict(self._held))

    def is_held(self, key: ResourceKey) -> bool:
        return key in self._held

    def _claim(self, key: ResourceKey) -> None:
        if key in self._held or key in self._pending:
            raise ConflictError("resource already locked by this client", resource=str(key), phase="acquiring")
        self._pending.add(key)

    async def lock(self, object_type: ObjectType, name: str) -> LockHandle:
        """Lock de edición sobre un recurso existente."""

        key = ResourceKey.of(object_type, name)
        uri = endpoint_for(object_type).object_uri(name)
        self._claim(key)
        try:
            result = await lock_object(self.session, uri, resource=key.name)
        except (TransportError, asyncio.CancelledError):
            logger.warning("lock of %s ended in unknown state; claim kept", key)
            raise
        except AdtError:
            self._pending.discard(key)
            raise
        handle = LockHandle(
            resource=key,
            uri=uri,
            token=result.lock_handle,
            session_id=self.session.session_id,
            transport=result.corr_nr or None,
            is_local=result.is_local,
        )
        self._pending.discard(key)
        self._held[key] = handle
        logger.info("locked %s", key)
        return handle

    async def acquire_or_create(
        self,
        descriptor: ResourceDescriptor,
        create: CreateCallback | None = None,
    ) -> LockHandle:
        """Lock si el recurso existe; con `create`, la creación otorga la propiedad.

        Lanza `ValidationError` (atributos), `ConflictError` (bloqueado o ya
        existente) o `NotFoundError` (contenedor inexistente).
        """

        descriptor.check()
        if create is None:
            return await self.lock(descriptor.object_type, descriptor.name)

        key = descriptor.key
        self._claim(key)
        try:
            handle = await create()
        except (TransportError, asyncio.CancelledError):
            logger.warning("create of %s ended in unknown state; claim kept", key)
            raise
        except NotFoundError as exc:
            self._pending.discard(key)
            raise NotFoundError(
                f"parent {descriptor.parent} not found: {exc.message}",
                resource=descriptor.name,
                phase="acquiring",
                status=exc.status,
            ) from exc
        except AdtError:
            self._pending.discard(key)
            raise
        if handle.resource != key or handle.session_id != self.session.session_id:
            self._pending.discard(key)
            raise ProtocolError("create returned a foreign handle", resource=str(key), phase="acquiring")
        self._pending.discard(key)
        self._held[key] = handle
        logger.info("created %s (owned by creation)", key)
        return handle

    async def release(self, handle: LockHandle) -> None:
        """Unlock idempotente: un handle ya inactivo es un no-op."""

        if handle.session_id != self.session.session_id:
            raise ProtocolError(
                "lock handle belongs to another session",
                resource=str(handle.resource),
                phase="releasing",
            )
        key = handle.resource
        current = self._held.get(key)
        if current is None or current.token != handle.token:
            logger.debug("release of inactive handle %s ignored", key)
            return
        del self._held[key]
        if handle.token is None:
            logger.info("released creation ownership of %s", key)
            return
        # Mientras el UNLOCK está en vuelo la clave sigue reclamada.
        self._pending.add(key)
        try:
            await unlock_object(self.session, handle.uri, handle.token, resource=key.name)
        except (ConflictError, NotFoundError) as exc:
            logger.warning("unlock of %s rejected, treated as released: %s", key, exc)
            return
        except (AdtError, asyncio.CancelledError):
            if key not in self._held:
                self._held[key] = handle
            raise
        finally:
            self._pending.discard(key)
        logger.info("unlocked %s", key)

    def resolve(self, key: ResourceKey) -> bool:
        """Libera un reclamo cuyo resultado quedó desconocido.

        Por qué:
        - Tras un TransportError o una cancelación la clave queda reclamada
          para no duplicar efectos en el backend.
        - Quien llama verifica el estado real (lectores) y luego resuelve.

        Devuelve True si había un reclamo pendiente.
        """

        if key in self._held:
            raise ProtocolError(
                "resource is locked by this client, release it instead",
                resource=str(key),
                phase="resolving",
            )
        if key not in self._pending:
            return False
        self._pending.discard(key)
        logger.info("claim on %s resolved", key)
        return True

    async def release_all(self) -> None:
        """Best-effort: usado en el logout."""

        for handle in list(self._held.values()):
            try:
                await self.release(handle)
            except AdtError as exc:
                logger.warning("release of %s failed during teardown: %s", handle.resource, exc)

    def forget_all(self) -> None:
        """Vacía la contabilidad local (el teardown de sesión invalida los locks)."""

        self._held.clear()
        self._pending.clear()

    async def _on_session_close(self) -> None:
        await self.release_all()
        self.forget_all()
