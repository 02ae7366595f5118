"""Wrapper de httpx para ADT.

Por qué un wrapper:
- Estandariza timeouts, headers, TLS y logging para todas las sesiones.
- Encapsula el ritual de ADT: `sap-client`/`sap-language`, token CSRF, cookie
  de sesión y cabecera `X-sap-adt-sessiontype`.
- Facilita testeo: se puede sustituir por un fake que cumpla `AdtTransport`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from core.config import AdtSettings
from core.domain.models import Credentials, SessionMode
from core.errors import TransportError
from core.interfaces.transport import AdtTransport, TransportResponse

logger = logging.getLogger(__name__)

CSRF_HEADER = "x-csrf-token"
SESSION_TYPE_HEADER = "X-sap-adt-sessiontype"

_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def build_async_client(
    settings: AdtSettings | None = None,
    *,
    base_url: str = "",
    auth: httpx.Auth | None = None,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que ambas sesiones se comporten igual.
    - `transport` permite inyectar `httpx.MockTransport` en tests.
    """

    settings = settings or AdtSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/xml",
    }
    if extra_headers:
        headers.update(extra_headers)
    kwargs: dict[str, Any] = {
        "base_url": base_url,
        "timeout": httpx.Timeout(settings.http_timeout_seconds),
        "follow_redirects": True,
        "headers": headers,
        "verify": settings.verify_tls,
    }
    if auth is not None:
        kwargs["auth"] = auth
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.AsyncClient(**kwargs)


class HttpxTransport:
    """`AdtTransport` sobre httpx; una instancia por sesión (cookies propias)."""

    def __init__(
        self,
        credentials: Credentials,
        mode: SessionMode,
        *,
        settings: AdtSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.mode = mode
        self._credentials = credentials
        self._client = client or build_async_client(
            settings,
            base_url=credentials.base_url,
            auth=httpx.BasicAuth(credentials.username, credentials.password.get_secret_value()),
            extra_headers={SESSION_TYPE_HEADER: mode.value},
        )
        self._csrf_token: str | None = None

    @property
    def csrf_token(self) -> str | None:
        return self._csrf_token

    def _params(self, params: Mapping[str, Any] | None) -> dict[str, Any]:
        merged: dict[str, Any] = {
            "sap-client": self._credentials.client,
            "sap-language": self._credentials.language,
        }
        for key, value in (params or {}).items():
            if value is None:
                continue
            merged[key] = str(value).lower() if isinstance(value, bool) else value
        return merged

    def _headers(self, method: str, headers: Mapping[str, str] | None) -> dict[str, str]:
        merged = {SESSION_TYPE_HEADER: self.mode.value}
        merged.update(headers or {})
        if not any(k.lower() == CSRF_HEADER for k in merged):
            if self._csrf_token:
                merged[CSRF_HEADER] = self._csrf_token
            elif method in _SAFE_METHODS:
                merged[CSRF_HEADER] = "fetch"
        return merged

    async def _send(
        self,
        path: str,
        method: str,
        headers: dict[str, str],
        params: dict[str, Any],
        body: str | None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                path,
                headers=headers,
                params=params,
                content=body.encode("utf-8") if body is not None else None,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"timeout: {exc}", resource=path, phase=method) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"connection failed: {exc}", resource=path, phase=method) from exc

        token = response.headers.get(CSRF_HEADER)
        if token and token.lower() not in ("required", "fetch"):
            self._csrf_token = token
        return response

    async def fetch_csrf_token(self) -> str | None:
        await self._send(
            "/sap/bc/adt/discovery",
            "GET",
            {SESSION_TYPE_HEADER: self.mode.value, CSRF_HEADER: "fetch", "Accept": "application/atomsvc+xml"},
            self._params(None),
            None,
        )
        return self._csrf_token

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        body: str | None = None,
    ) -> TransportResponse:
        method = method.upper()
        if method not in _SAFE_METHODS and not self._csrf_token:
            await self.fetch_csrf_token()

        merged_params = self._params(params)
        response = await self._send(path, method, self._headers(method, headers), merged_params, body)

        # Token CSRF expirado: se re-obtiene y se reintenta exactamente una vez.
        if response.status_code == 403 and (response.headers.get(CSRF_HEADER) or "").lower() == "required":
            logger.debug("CSRF token rejected for %s %s, refetching", method, path)
            self._csrf_token = None
            await self.fetch_csrf_token()
            response = await self._send(path, method, self._headers(method, headers), merged_params, body)

        logger.debug("%s %s -> %s (%s)", method, path, response.status_code, self.mode.value)
        return TransportResponse(status=response.status_code, headers=dict(response.headers), body=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()


def httpx_transport_factory(settings: AdtSettings | None = None):
    """Factoría `TransportFactory` para `SessionManager`."""

    def factory(credentials: Credentials, mode: SessionMode) -> AdtTransport:
        return HttpxTransport(credentials, mode, settings=settings)

    return factory
