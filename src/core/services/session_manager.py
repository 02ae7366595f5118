"""Gestión de sesiones ADT: una sesión stateful y su clon stateless.

Por qué dos clases y no un flag:
- `StatefulSession` acumula locks y estado de edición en el servidor.
- `StatelessSession` sirve lecturas (búsqueda, value-help, relecturas) sin
  tocar ese estado.
- Los endpoints que mutan exigen `StatefulSession` vía `require_stateful`, así
  el mal uso falla en el borde y no a mitad de un pipeline.

Cada sesión tiene su propio transporte (cookies y token CSRF propios) creado a
partir de las mismas credenciales.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Mapping, TypeVar

from core.domain.models import Credentials, SessionMode
from core.errors import AdtError, AuthError, ProtocolError, TransportError
from core.interfaces.transport import AdtTransport, TransportFactory, TransportResponse

logger = logging.getLogger(__name__)

HANDSHAKE_PATH = "/sap/bc/adt/compatibility/graph"
LOGOFF_PATH = "/sap/public/bc/icf/logoff"

CloseHook = Callable[[], Awaitable[None]]
S = TypeVar("S", bound="AdtSession")


class SessionState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    CLOSED = "closed"


class AdtSession:
    """Handle autenticado sobre un transporte propio.

    Implementa la forma de `AdtTransport`, de modo que los endpoints aceptan
    indistintamente una sesión o un transporte crudo.
    """

    mode: ClassVar[SessionMode]

    def __init__(self, credentials: Credentials, transport: AdtTransport) -> None:
        self.credentials = credentials
        self.session_id = f"{self.mode.value}-{uuid.uuid4().hex[:12]}"
        self.state = SessionState.CREATED
        self._transport = transport
        self._close_hooks: list[CloseHook] = []

    @property
    def username(self) -> str:
        return self.credentials.username.upper()

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def add_close_hook(self, hook: CloseHook) -> None:
        """Registra una corrutina a ejecutar antes del logoff (p. ej. liberar locks)."""

        self._close_hooks.append(hook)

    async def authenticate(self) -> None:
        """Handshake inicial: valida credenciales y obtiene cookie + token CSRF."""

        if self.state is SessionState.CLOSED:
            raise ProtocolError("session already closed", resource=self.session_id, phase="login")
        try:
            response = await self._transport.request(
                HANDSHAKE_PATH,
                headers={"x-csrf-token": "fetch", "Accept": "application/xml"},
            )
        except TransportError as exc:
            raise AuthError(f"login failed: {exc.message}", resource=self.username, phase="login") from exc
        if response.status in (401, 403):
            raise AuthError("invalid credentials", resource=self.username, phase="login", status=response.status)
        if not response.ok:
            raise AuthError("login handshake rejected", resource=self.username, phase="login", status=response.status)
        self.state = SessionState.ACTIVE
        logger.info("%s session %s logged in as %s", self.mode.value, self.session_id, self.username)

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        body: str | None = None,
    ) -> TransportResponse:
        if not self.active:
            raise ProtocolError(
                f"{self.mode.value} session is {self.state.value}",
                resource=path,
                phase=method.lower(),
            )
        return await self._transport.request(path, method=method, headers=headers, params=params, body=body)

    async def close(self) -> None:
        """Cierre best-effort: hooks, logoff en el servidor y cierre del transporte."""

        if self.state is SessionState.CLOSED:
            return
        try:
            for hook in self._close_hooks:
                try:
                    await hook()
                except AdtError as exc:
                    logger.warning("close hook failed for %s: %s", self.session_id, exc)
            if self.active:
                try:
                    await self._transport.request(LOGOFF_PATH)
                except AdtError as exc:
                    logger.warning("logoff failed for %s: %s", self.session_id, exc)
        finally:
            self.state = SessionState.CLOSED
            self._close_hooks.clear()
            await self.aclose()
            logger.info("%s session %s closed", self.mode.value, self.session_id)

    async def aclose(self) -> None:
        await self._transport.aclose()


class StatefulSession(AdtSession):
    """Sesión que acumula locks; única habilitada para mutar."""

    mode = SessionMode.STATEFUL


class StatelessSession(AdtSession):
    """Clon de solo lectura, aislado del estado de locks."""

    mode = SessionMode.STATELESS


def require_stateful(session: object, action: str) -> StatefulSession:
    """Guard de los endpoints que mutan (crear, lock, unlock, escribir fuente)."""

    if not isinstance(session, StatefulSession):
        raise ProtocolError("mutation requires stateful session", phase=action)
    return session


class SessionManager:
    """Dueño de la sesión stateful y de su clon stateless."""

    def __init__(self, credentials: Credentials, transport_factory: TransportFactory) -> None:
        self.credentials = credentials
        self._factory = transport_factory
        self._clone_lock = asyncio.Lock()
        self._stateful: StatefulSession | None = None
        self._stateless: StatelessSession | None = None

    @property
    def stateful(self) -> StatefulSession:
        if self._stateful is None or not self._stateful.active:
            raise ProtocolError("not logged in", phase="session")
        return self._stateful

    @property
    def logged_in(self) -> bool:
        return self._stateful is not None and self._stateful.active

    async def _open(self, session_cls: type[S]) -> S:
        session = session_cls(self.credentials, self._factory(self.credentials, session_cls.mode))
        try:
            await session.authenticate()
        except (AdtError, asyncio.CancelledError):
            await session.aclose()
            raise
        return session

    async def login(self) -> StatefulSession:
        """Autentica la sesión stateful. Un re-login reemplaza el estado anterior."""

        if self._stateful is not None or self._stateless is not None:
            await self.logout()
        session = await self._open(StatefulSession)
        self._stateful = session
        return session

    async def stateless_clone(self) -> StatelessSession:
        """Clon perezoso: autentica por su cuenta y se cachea hasta el logout.

        Por qué el lock:
        - Dos llamadas concurrentes comparten un único clon; sin él cada una
          abriría el suyo y uno quedaría sin cerrar.
        """

        if not self.logged_in:
            raise ProtocolError("stateless clone requires a prior login", phase="session")
        async with self._clone_lock:
            if self._stateless is not None and self._stateless.active:
                return self._stateless
            owner = self._stateful
            session = await self._open(StatelessSession)
            if owner is None or self._stateful is not owner or not owner.active:
                await session.aclose()
                raise ProtocolError("logged out while opening the stateless clone", phase="session")
            self._stateless = session
            return session

    async def logout(self) -> None:
        """Best-effort: nunca lanza; los fallos se registran."""

        stateful, stateless = self._stateful, self._stateless
        self._stateful = None
        self._stateless = None
        for session in (stateful, stateless):
            if session is None:
                continue
            try:
                await session.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("logout of %s failed: %s", session.session_id, exc)

    async def __aenter__(self) -> "SessionManager":
        await self.login()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.logout()
