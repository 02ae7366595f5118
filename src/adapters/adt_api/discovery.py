"""Documento de servicio ADT (`/sap/bc/adt/discovery`)."""

from __future__ import annotations

from adapters.adt_api.responses import raise_for_response
from adapters.xml_codec import node_attr, node_text, parse_document, xml_array, xml_node
from core.domain.models import DiscoveryCollection
from core.interfaces.transport import AdtTransport

DISCOVERY_PATH = "/sap/bc/adt/discovery"


def parse_discovery(body: str) -> list[DiscoveryCollection]:
    tree = parse_document(body)
    collections: list[DiscoveryCollection] = []
    for workspace in xml_array(tree, "service", "workspace"):
        workspace_title = node_text(xml_node(workspace, "title"))
        for collection in xml_array(workspace, "collection"):
            href = node_attr(collection, "href")
            if not href:
                continue
            collections.append(
                DiscoveryCollection(
                    title=node_text(xml_node(collection, "title")),
                    href=href,
                    accept=[node_text(a) for a in xml_array(collection, "accept") if node_text(a)],
                    workspace=workspace_title,
                )
            )
    return collections


async def get_discovery(h: AdtTransport) -> list[DiscoveryCollection]:
    response = await h.request(DISCOVERY_PATH, headers={"Accept": "application/atomsvc+xml"})
    raise_for_response(response, resource="discovery", phase="read")
    return parse_discovery(response.body)
