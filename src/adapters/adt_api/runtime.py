"""Feeds de runtime ADT: dumps (ST22) y mensajes de sistema (SM02).

Ambos son Atom; el parser comparte la lectura de enlaces y fechas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import quote

from adapters.adt_api.responses import raise_for_response
from adapters.xml_codec import find_all, node_attr, node_text, parse_document, xml_array, xml_node
from core.domain.models import (
    AdtLink,
    DumpCategory,
    DumpEntry,
    DumpsFeed,
    SystemMessage,
    SystemMessagesFeed,
)
from core.domain.query import QueryBuilder
from core.domain.timestamps import format_timestamp
from core.errors import ProtocolError
from core.interfaces.transport import AdtTransport

DUMPS_PATH = "/sap/bc/adt/runtime/dumps"
DUMP_PATH = "/sap/bc/adt/runtime/dump"
SYSTEM_MESSAGES_PATH = "/sap/bc/adt/runtime/systemmessages"

_FEED_HEADERS = {
    "Accept": "application/atom+xml;type=feed",
    "X-sap-adt-feed": "",
    "X-sap-adt-profiling": "server-time",
}


def _links(node: Any) -> list[AdtLink]:
    return [
        AdtLink(href=node_attr(link, "href"), rel=node_attr(link, "rel"), type=node_attr(link, "type") or None)
        for link in xml_array(node, "link")
    ]


def _date(node: Any) -> str | None:
    # pydantic convierte ISO 8601 a datetime; vacío → None.
    text = node_text(node).strip()
    return text or None


def _feed(body: str) -> dict[str, Any]:
    tree = parse_document(body)
    feed = tree.get("feed")
    if not isinstance(feed, dict):
        raise ProtocolError("invalid feed format", phase="read")
    return feed


def parse_dumps_feed(body: str) -> DumpsFeed:
    feed = _feed(body)
    dumps = [
        DumpEntry(
            id=node_text(xml_node(entry, "id")),
            author=node_text(xml_node(entry, "author", "name")),
            categories=[
                DumpCategory(term=node_attr(c, "term"), label=node_attr(c, "label"))
                for c in xml_array(entry, "category")
            ],
            title=node_text(xml_node(entry, "title")),
            summary=node_text(xml_node(entry, "summary")),
            published=_date(xml_node(entry, "published")),
            updated=_date(xml_node(entry, "updated")),
            links=_links(entry),
        )
        for entry in xml_array(feed, "entry")
    ]
    count_nodes = find_all(feed, "count") or find_all(feed, "totalResults")
    count_text = node_text(count_nodes[0]) if count_nodes else ""
    return DumpsFeed(
        dumps=dumps,
        count=int(count_text) if count_text.isdigit() else None,
        title=node_text(xml_node(feed, "title")),
        updated=_date(xml_node(feed, "updated")),
        href=node_attr(xml_node(feed, "link"), "href"),
    )


def parse_system_messages_feed(body: str) -> SystemMessagesFeed:
    feed = _feed(body)
    messages = [
        SystemMessage(
            id=node_text(xml_node(entry, "id")),
            title=node_text(xml_node(entry, "title")),
            updated=_date(xml_node(entry, "updated")),
            published=_date(xml_node(entry, "published")),
            content=node_text(xml_node(entry, "content")),
            links=_links(entry),
        )
        for entry in xml_array(feed, "entry")
    ]
    return SystemMessagesFeed(
        messages=messages,
        title=node_text(xml_node(feed, "title")),
        updated=_date(xml_node(feed, "updated")),
    )


def build_dumps_params(
    *,
    query: str | None = None,
    top: int | None = None,
    skip: int | None = None,
    inline_count: bool = False,
    since: datetime | str | None = None,
    responsible: str | None = None,
    user: str | None = None,
) -> dict[str, Any]:
    """Query string del feed de dumps.

    Sin `query` explícita, `responsible`/`user` se combinan con `QueryBuilder`.
    """

    params: dict[str, Any] = {}
    if query:
        params["$query"] = query
    else:
        builder = QueryBuilder()
        if responsible:
            builder.where(QueryBuilder.equals("responsible", responsible))
        if user:
            builder.where(QueryBuilder.equals("user", user))
        built = builder.build()
        if built:
            params["$query"] = built
    if top:
        params["$top"] = top
    if skip:
        params["$skip"] = skip
    if inline_count:
        params["$inlinecount"] = "allpages"
    if since:
        params["from"] = format_timestamp(since) if isinstance(since, datetime) else since
    return params


async def get_dumps(h: AdtTransport, **options: Any) -> DumpsFeed:
    response = await h.request(DUMPS_PATH, headers=_FEED_HEADERS, params=build_dumps_params(**options))
    raise_for_response(response, resource="dumps", phase="read")
    return parse_dumps_feed(response.body)


async def get_dump(h: AdtTransport, dump_id: str) -> str:
    response = await h.request(f"{DUMP_PATH}/{quote(dump_id, safe='')}", headers={"Accept": "text/plain"})
    raise_for_response(response, resource=dump_id, phase="read")
    return response.body


async def get_system_messages(h: AdtTransport) -> SystemMessagesFeed:
    response = await h.request(SYSTEM_MESSAGES_PATH, headers=_FEED_HEADERS)
    raise_for_response(response, resource="systemmessages", phase="read")
    return parse_system_messages_feed(response.body)
