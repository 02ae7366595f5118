"""Codec XML ↔ mapping para payloads ADT.

Por qué BeautifulSoup:
- Ya lo usamos para markup; en modo `xml` (lxml) conserva mayúsculas/minúsculas
  de tags y atributos (`softwareComponent`, `packageType`).
- Los prefijos de namespace (`adtcore:`, `pak:`, `atom:`…) varían según release;
  se eliminan para que los parsers lean nombres locales.

Forma del árbol:
- atributos como `@nombre`, texto como `#text`;
- un nodo sin atributos ni hijos colapsa a su texto;
- hijos repetidos se agrupan en listas (usar `xml_array` para leerlos).
"""

from __future__ import annotations

from typing import Any
from xml.sax.saxutils import escape

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}
_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def escape_xml(value: str | None) -> str:
    """Escapa `& < > " '` para texto y valores de atributo."""

    if not value:
        return ""
    return escape(value, _XML_ENTITIES)


def _local(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def _convert(tag: Tag) -> Any:
    node: dict[str, Any] = {}
    for key, value in tag.attrs.items():
        key = str(key)
        if key == "xmlns" or key.startswith("xmlns:"):
            continue
        node["@" + _local(key)] = value if isinstance(value, str) else " ".join(value)

    texts: list[str] = []
    has_children = False
    for child in tag.children:
        if isinstance(child, Tag):
            has_children = True
            name = _local(child.name)
            value = _convert(child)
            if name not in node:
                node[name] = value
            elif isinstance(node[name], list):
                node[name].append(value)
            else:
                node[name] = [node[name], value]
        elif isinstance(child, NavigableString) and not isinstance(child, _SKIPPED_STRINGS):
            texts.append(str(child))

    text = "".join(texts).strip()
    if not node and not has_children:
        return text
    if text:
        node["#text"] = text
    return node


def parse_document(body: str | bytes | None) -> dict[str, Any]:
    """Parsea un documento XML a `{raiz: nodo}` sin prefijos de namespace."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", "replace")
    if not body or not body.strip():
        return {}
    soup = BeautifulSoup(body, "xml")
    root = next((c for c in soup.contents if isinstance(c, Tag)), None)
    if root is None:
        return {}
    return {_local(root.name): _convert(root)}


def xml_node(tree: Any, *path: str) -> Any:
    """Recorre `path`; en listas toma el primer elemento. None si falta algo."""

    node = tree
    for key in path:
        if isinstance(node, list):
            node = node[0] if node else None
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def xml_array(tree: Any, *path: str) -> list[Any]:
    node = xml_node(tree, *path) if path else tree
    if node is None:
        return []
    if isinstance(node, list):
        return node
    return [node]


def node_text(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return node_text(node[0]) if node else ""
    if isinstance(node, dict):
        return str(node.get("#text", ""))
    return str(node)


def node_attr(node: Any, name: str, default: str = "") -> str:
    if isinstance(node, list):
        node = node[0] if node else None
    if isinstance(node, dict):
        value = node.get("@" + name)
        if value is not None:
            return str(value)
    return default


def find_all(tree: Any, name: str) -> list[Any]:
    """Todos los nodos `name` a cualquier profundidad (hermanos del mismo nombre, juntos)."""

    found: list[Any] = []

    def walk(node: Any) -> None:
        if isinstance(node, list):
            for item in node:
                walk(item)
            return
        if not isinstance(node, dict):
            return
        for key, value in node.items():
            if key.startswith(("@", "#")):
                continue
            if key == name:
                found.extend(xml_array(value))
            walk(value)

    walk(tree)
    return found
