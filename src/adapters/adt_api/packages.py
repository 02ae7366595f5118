"""Endpoints ADT de paquetes (`/sap/bc/adt/packages`).

Incluye lectura condicional (ETag), validación previa, creación y los
value-helps que alimentan el formulario de creación.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from adapters.adt_api.responses import parse_named_items, parse_validation_result, raise_for_response
from adapters.xml_codec import escape_xml, find_all, node_attr, node_text, parse_document, xml_node
from core.domain.models import (
    CheckMode,
    LOCAL_PACKAGE,
    NamedItem,
    ObjectType,
    Package,
    PackageType,
    ResourceDescriptor,
    ResourceRead,
    ValidationResult,
)
from core.interfaces.transport import AdtTransport, TransportResponse
from core.services.session_manager import require_stateful

logger = logging.getLogger(__name__)

PACKAGES_PATH = "/sap/bc/adt/packages"
VALIDATION_PATH = "/sap/bc/adt/packages/validation"
VALUEHELPS_PATH = "/sap/bc/adt/packages/valuehelps"
PROPERTIES_PATH = "/sap/bc/adt/repository/informationsystem/objectproperties/values"

PACKAGE_CONTENT_TYPE = "application/vnd.sap.adt.packages.v1+xml"
PACKAGE_ACCEPT = "application/vnd.sap.adt.packages.v2+xml, application/vnd.sap.adt.packages.v1+xml"
NAMED_ITEMS_ACCEPT = "application/xml, application/vnd.sap.adt.nameditems.v1+xml"
PROPERTIES_ACCEPT = "application/vnd.sap.adt.repository.objproperties.result.v1+xml"
VALIDATION_ACCEPT = "application/vnd.sap.as+xml"

_PROFILING = {"X-sap-adt-profiling": "server-time"}


def package_uri(name: str) -> str:
    return f"{PACKAGES_PATH}/{quote(name.strip().lower(), safe='')}"


def build_package_document(descriptor: ResourceDescriptor, *, responsible: str) -> str:
    """Documento `pak:package` para POST de creación.

    Los metadatos van en atributos (`adtcore:*`); transporte, componente de
    aplicación y traducción van como elementos hijos. Todo texto de usuario
    se escapa.
    """

    name = escape_xml(descriptor.name.strip().upper())
    parent = escape_xml(descriptor.parent.strip().upper() or LOCAL_PACKAGE)
    transport_layer = LOCAL_PACKAGE if descriptor.is_local else escape_xml(descriptor.transport_layer.strip())
    app_component = descriptor.application_component
    app_component_xml = (
        f'<pak:applicationComponent adtcore:name="{escape_xml(app_component)}"/>'
        if app_component
        else "<pak:applicationComponent/>"
    )
    translation_xml = (
        f'<pak:translation pak:relevance="{escape_xml(descriptor.translation_relevance)}"/>'
        if descriptor.translation_relevance
        else "<pak:translation/>"
    )

    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<pak:package xmlns:pak="http://www.sap.com/adt/packages" '
        'xmlns:adtcore="http://www.sap.com/adt/core" '
        f'adtcore:description="{escape_xml(descriptor.description)}" '
        f'adtcore:name="{name}" adtcore:type="{ObjectType.PACKAGE.value}" '
        f'adtcore:version="active" adtcore:responsible="{escape_xml(responsible.upper())}">'
        f'<adtcore:packageRef adtcore:name="{name}"/>'
        f'<pak:attributes pak:packageType="{descriptor.package_type.value}"/>'
        f'<pak:superPackage adtcore:name="{parent}"/>'
        f"{app_component_xml}"
        "<pak:transport>"
        f'<pak:softwareComponent adtcore:name="{escape_xml(descriptor.software_component.strip())}"/>'
        f'<pak:transportLayer pak:name="{transport_layer}"/>'
        "</pak:transport>"
        f"{translation_xml}"
        "<pak:useAccesses/>"
        "<pak:packageInterfaces/>"
        "<pak:subPackages/>"
        "</pak:package>"
    )


def _value(node: Any, key: str) -> str:
    """Lee `key` como atributo, texto de hijo o atributo `name` del hijo."""

    direct = node_attr(node, key)
    if direct:
        return direct
    child = xml_node(node, key)
    if child is None:
        return ""
    return node_text(child) or node_attr(child, "name") or node_attr(child, "relevance")


def parse_package(body: str, *, etag: str | None = None) -> Package:
    tree = parse_document(body)
    pkg = tree.get("package", tree)
    transport = xml_node(pkg, "transport") or {}
    attributes = xml_node(pkg, "attributes") or {}
    return Package(
        name=_value(pkg, "name"),
        description=_value(pkg, "description"),
        responsible=_value(pkg, "responsible") or None,
        package_name=_value(pkg, "superPackage") or None,
        uri=node_attr(pkg, "uri") or None,
        version=_value(pkg, "version") or None,
        etag=etag,
        package_type=_value(attributes, "packageType") or _value(pkg, "packageType") or PackageType.DEVELOPMENT.value,
        software_component=_value(transport, "softwareComponent") or _value(pkg, "softwareComponent"),
        transport_layer=_value(transport, "transportLayer") or _value(pkg, "transportLayer"),
        application_component=_value(pkg, "applicationComponent"),
        translation_relevance=_value(pkg, "translation") or _value(pkg, "translationRelevance"),
    )


async def get_package(h: AdtTransport, name: str, *, if_none_match: str | None = None) -> ResourceRead:
    """Lectura condicional: el token se envía tal cual; 304 → `not_modified`."""

    headers = {"Accept": PACKAGE_ACCEPT, **_PROFILING}
    if if_none_match:
        headers["If-None-Match"] = if_none_match
    response = await h.request(package_uri(name), headers=headers)
    if response.status == 304:
        return ResourceRead(resource=None, etag=if_none_match, not_modified=True)
    raise_for_response(response, resource=name.upper(), phase="read")
    etag = response.header("etag")
    return ResourceRead(resource=parse_package(response.body, etag=etag), etag=etag)


async def validate_package(
    h: AdtTransport,
    descriptor: ResourceDescriptor,
    check_mode: CheckMode = CheckMode.BASIC,
) -> ValidationResult:
    params: dict[str, Any] = {
        "objname": descriptor.name.strip().upper(),
        "description": descriptor.description,
        "packagetype": descriptor.package_type.value,
        "checkmode": check_mode.value,
    }
    if descriptor.software_component:
        params["swcomp"] = descriptor.software_component
    if descriptor.application_component:
        params["appcomp"] = descriptor.application_component
    response = await h.request(
        VALIDATION_PATH,
        method="POST",
        headers={"Accept": VALIDATION_ACCEPT, **_PROFILING},
        params=params,
    )
    raise_for_response(response, resource=descriptor.name, phase="validating")
    return parse_validation_result(response.body)


async def create_package(
    h: AdtTransport,
    descriptor: ResourceDescriptor,
    *,
    responsible: str,
    transport_request: str | None = None,
) -> TransportResponse:
    """POST del documento de paquete. Devuelve la respuesta cruda (con `Location`)."""

    require_stateful(h, "create package")
    params: dict[str, Any] = {}
    corr_nr = descriptor.transport_for(transport_request)
    if corr_nr:
        params["corrNr"] = corr_nr
    response = await h.request(
        PACKAGES_PATH,
        method="POST",
        headers={"Content-Type": PACKAGE_CONTENT_TYPE, "Accept": PACKAGE_ACCEPT, **_PROFILING},
        params=params,
        body=build_package_document(descriptor, responsible=responsible),
    )
    raise_for_response(response, resource=descriptor.name, phase="acquiring")
    logger.debug("package %s create -> %s", descriptor.name, response.header("location"))
    return response


async def _named_items(h: AdtTransport, helper: str, params: dict[str, Any]) -> list[NamedItem]:
    response = await h.request(
        f"{VALUEHELPS_PATH}/{helper}",
        headers={"Accept": NAMED_ITEMS_ACCEPT, **_PROFILING},
        params=params,
    )
    raise_for_response(response, resource=helper, phase="read")
    return parse_named_items(response.body)


async def get_transport_layers(h: AdtTransport, name: str = "*") -> list[NamedItem]:
    return await _named_items(h, "transportlayers", {"name": name})


async def get_software_components(h: AdtTransport, name: str = "*") -> list[NamedItem]:
    return await _named_items(h, "softwarecomponents", {"name": name})


async def get_translation_relevances(h: AdtTransport, max_item_count: int = 50) -> list[NamedItem]:
    return await _named_items(h, "translationrelevances", {"maxItemCount": max_item_count})


async def get_object_properties(h: AdtTransport, uri: str) -> dict[str, str]:
    response = await h.request(
        PROPERTIES_PATH,
        headers={"Accept": PROPERTIES_ACCEPT, **_PROFILING},
        params={"uri": uri},
    )
    raise_for_response(response, resource=uri, phase="read")
    tree = parse_document(response.body)
    properties: dict[str, str] = {}
    for prop in find_all(tree, "property"):
        name = node_attr(prop, "name") or node_text(xml_node(prop, "name"))
        if name:
            properties[name] = node_attr(prop, "value") or node_text(xml_node(prop, "value")) or node_text(prop)
    return properties


async def get_package_properties(h: AdtTransport, name: str) -> dict[str, str]:
    return await get_object_properties(h, package_uri(name))


class PackageEndpoint:
    """`ResourceEndpoint` para paquetes (`DEVC/K`)."""

    object_type = ObjectType.PACKAGE

    def object_uri(self, name: str) -> str:
        return package_uri(name)

    def source_uri(self, name: str) -> str | None:
        return None

    async def validate(
        self,
        h: AdtTransport,
        descriptor: ResourceDescriptor,
        check_mode: CheckMode = CheckMode.BASIC,
    ) -> ValidationResult:
        return await validate_package(h, descriptor, check_mode)

    async def create(
        self,
        session: AdtTransport,
        descriptor: ResourceDescriptor,
        *,
        responsible: str,
        transport_request: str | None = None,
    ) -> TransportResponse:
        return await create_package(
            session,
            descriptor,
            responsible=responsible,
            transport_request=transport_request,
        )

    async def read(self, h: AdtTransport, name: str, *, if_none_match: str | None = None) -> ResourceRead:
        return await get_package(h, name, if_none_match=if_none_match)
