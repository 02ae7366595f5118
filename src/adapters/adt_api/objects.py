"""Endpoints ADT de objetos con código fuente (programas y clases).

Por qué un único endpoint parametrizado:
- Programa y clase comparten la forma: colección + validación + documento
  con atributos `adtcore:*` + `source/main`.
- Solo cambian rutas, tipos MIME y el elemento raíz.

Aquí viven también las operaciones genéricas por URI: lock/unlock, lectura y
escritura de fuente, y búsqueda en el information system.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from adapters.adt_api.responses import parse_validation_result, raise_for_response
from adapters.xml_codec import escape_xml, find_all, node_attr, node_text, parse_document, xml_node
from core.domain.models import (
    CheckMode,
    LOCAL_PACKAGE,
    LockResult,
    ObjectReference,
    ObjectType,
    ResourceDescriptor,
    ResourceRead,
    ResourceSnapshot,
    ValidationResult,
)
from core.errors import ProtocolError
from core.interfaces.transport import AdtTransport, TransportResponse
from core.services.session_manager import require_stateful

logger = logging.getLogger(__name__)

SEARCH_PATH = "/sap/bc/adt/repository/informationsystem/search"
LOCK_ACCEPT = (
    "application/*,application/vnd.sap.as+xml;charset=UTF-8;dataname=com.sap.adt.lock.result"
)
VALIDATION_ACCEPT = "application/vnd.sap.as+xml"
SOURCE_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class SourceObjectEndpoint:
    """`ResourceEndpoint` para un tipo con `source/main`."""

    object_type: ObjectType
    collection_path: str
    validation_path: str
    content_type: str
    accept: str
    root_tag: str
    namespace: str
    root_attributes: str = ""

    def object_uri(self, name: str) -> str:
        return f"{self.collection_path}/{quote(name.strip().lower(), safe='')}"

    def source_uri(self, name: str) -> str | None:
        return f"{self.object_uri(name)}/source/main"

    def build_document(self, descriptor: ResourceDescriptor, *, responsible: str) -> str:
        prefix = self.root_tag.split(":", 1)[0]
        extra = f" {self.root_attributes}" if self.root_attributes else ""
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<{self.root_tag} xmlns:{prefix}="{self.namespace}" '
            'xmlns:adtcore="http://www.sap.com/adt/core" '
            f'adtcore:description="{escape_xml(descriptor.description)}" '
            f'adtcore:name="{escape_xml(descriptor.name.strip().upper())}" '
            f'adtcore:type="{self.object_type.value}" '
            f'adtcore:responsible="{escape_xml(responsible.upper())}"{extra}>'
            f'<adtcore:packageRef adtcore:name="{escape_xml(descriptor.parent.strip().upper() or LOCAL_PACKAGE)}"/>'
            f"</{self.root_tag}>"
        )

    async def validate(
        self,
        h: AdtTransport,
        descriptor: ResourceDescriptor,
        check_mode: CheckMode = CheckMode.BASIC,
    ) -> ValidationResult:
        response = await h.request(
            self.validation_path,
            method="POST",
            headers={"Accept": VALIDATION_ACCEPT},
            params={
                "objtype": self.object_type.value,
                "objname": descriptor.name.strip().upper(),
                "packagename": descriptor.parent.strip().upper(),
                "description": descriptor.description,
            },
        )
        raise_for_response(response, resource=descriptor.name, phase="validating")
        return parse_validation_result(response.body)

    async def create(
        self,
        session: AdtTransport,
        descriptor: ResourceDescriptor,
        *,
        responsible: str,
        transport_request: str | None = None,
    ) -> TransportResponse:
        require_stateful(session, f"create {self.object_type.value}")
        params: dict[str, Any] = {}
        corr_nr = descriptor.transport_for(transport_request)
        if corr_nr:
            params["corrNr"] = corr_nr
        response = await session.request(
            self.collection_path,
            method="POST",
            headers={"Content-Type": self.content_type, "Accept": self.accept},
            params=params,
            body=self.build_document(descriptor, responsible=responsible),
        )
        raise_for_response(response, resource=descriptor.name, phase="acquiring")
        return response

    async def read(self, h: AdtTransport, name: str, *, if_none_match: str | None = None) -> ResourceRead:
        headers = {"Accept": self.accept}
        if if_none_match:
            headers["If-None-Match"] = if_none_match
        response = await h.request(self.object_uri(name), headers=headers)
        if response.status == 304:
            return ResourceRead(resource=None, etag=if_none_match, not_modified=True)
        raise_for_response(response, resource=name.upper(), phase="read")
        etag = response.header("etag")
        return ResourceRead(resource=parse_object(response.body, self.object_type, etag=etag), etag=etag)


PROGRAM_ENDPOINT = SourceObjectEndpoint(
    object_type=ObjectType.PROGRAM,
    collection_path="/sap/bc/adt/programs/programs",
    validation_path="/sap/bc/adt/programs/validation",
    content_type="application/vnd.sap.adt.programs.programs.v2+xml",
    accept="application/vnd.sap.adt.programs.programs.v2+xml, application/vnd.sap.adt.programs.programs.v1+xml",
    root_tag="program:abapProgram",
    namespace="http://www.sap.com/adt/programs/programs",
)

CLASS_ENDPOINT = SourceObjectEndpoint(
    object_type=ObjectType.CLASS,
    collection_path="/sap/bc/adt/oo/classes",
    validation_path="/sap/bc/adt/oo/validation/objectname",
    content_type="application/vnd.sap.adt.oo.classes.v1+xml",
    accept="application/vnd.sap.adt.oo.classes.v4+xml, application/vnd.sap.adt.oo.classes.v1+xml",
    root_tag="class:abapClass",
    namespace="http://www.sap.com/adt/oo/classes",
    root_attributes='class:final="true" class:visibility="public"',
)


def parse_object(body: str, object_type: ObjectType, *, etag: str | None = None) -> ResourceSnapshot:
    tree = parse_document(body)
    root = next(iter(tree.values()), {}) if tree else {}
    return ResourceSnapshot(
        name=node_attr(root, "name"),
        object_type=node_attr(root, "type") or object_type,
        description=node_attr(root, "description"),
        responsible=node_attr(root, "responsible") or None,
        package_name=node_attr(xml_node(root, "packageRef"), "name") or None,
        uri=node_attr(root, "uri") or None,
        version=node_attr(root, "version") or None,
        etag=etag,
    )


def _flag(value: str) -> bool:
    return value.strip().upper() in ("X", "TRUE")


def parse_lock_result(body: str) -> LockResult:
    tree = parse_document(body)
    data = next(iter(find_all(tree, "DATA")), None)
    if not isinstance(data, dict) or not node_text(data.get("LOCK_HANDLE")):
        raise ProtocolError("lock response carries no lock handle", phase="acquiring")
    return LockResult(
        lock_handle=node_text(data.get("LOCK_HANDLE")),
        corr_nr=node_text(data.get("CORRNR")),
        corr_user=node_text(data.get("CORRUSER")),
        corr_text=node_text(data.get("CORRTEXT")),
        is_local=_flag(node_text(data.get("IS_LOCAL"))),
        is_link_up=_flag(node_text(data.get("IS_LINK_UP"))),
        modification_support=node_text(data.get("MODIFICATION_SUPPORT")),
    )


async def lock_object(h: AdtTransport, uri: str, *, resource: str | None = None) -> LockResult:
    require_stateful(h, "lock")
    response = await h.request(
        uri,
        method="POST",
        headers={"Accept": LOCK_ACCEPT},
        params={"_action": "LOCK", "accessMode": "MODIFY"},
    )
    raise_for_response(response, resource=resource or uri, phase="acquiring")
    return parse_lock_result(response.body)


async def unlock_object(h: AdtTransport, uri: str, lock_handle: str, *, resource: str | None = None) -> None:
    require_stateful(h, "unlock")
    response = await h.request(
        uri,
        method="POST",
        params={"_action": "UNLOCK", "lockHandle": lock_handle},
    )
    raise_for_response(response, resource=resource or uri, phase="releasing")


async def write_source(
    h: AdtTransport,
    source_uri: str,
    source: str,
    lock_handle: str,
    *,
    transport_request: str | None = None,
    resource: str | None = None,
) -> None:
    require_stateful(h, "write source")
    params: dict[str, Any] = {"lockHandle": lock_handle}
    if transport_request:
        params["corrNr"] = transport_request
    response = await h.request(
        source_uri,
        method="PUT",
        headers={"Content-Type": SOURCE_CONTENT_TYPE, "Accept": "text/plain"},
        params=params,
        body=source,
    )
    raise_for_response(response, resource=resource or source_uri, phase="writing")


async def read_source(h: AdtTransport, source_uri: str, *, resource: str | None = None) -> str:
    response = await h.request(source_uri, headers={"Accept": "text/plain"})
    raise_for_response(response, resource=resource or source_uri, phase="read")
    return response.body


def parse_search_results(body: str) -> list[ObjectReference]:
    tree = parse_document(body)
    results: list[ObjectReference] = []
    for ref in find_all(tree, "objectReference"):
        uri = node_attr(ref, "uri")
        name = node_attr(ref, "name")
        if not uri or not name:
            continue
        results.append(
            ObjectReference(
                uri=uri,
                object_type=node_attr(ref, "type"),
                name=name,
                package_name=node_attr(ref, "packageName"),
                description=node_attr(ref, "description"),
            )
        )
    return results


async def search_objects(
    h: AdtTransport,
    query: str,
    *,
    object_type: ObjectType | str | None = None,
    max_results: int = 50,
) -> list[ObjectReference]:
    params: dict[str, Any] = {"operation": "quickSearch", "query": query, "maxResults": max_results}
    if object_type:
        params["objectType"] = getattr(object_type, "value", object_type)
    response = await h.request(SEARCH_PATH, params=params)
    raise_for_response(response, resource=query, phase="read")
    return parse_search_results(response.body)
