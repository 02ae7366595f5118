"""Interpretación de respuestas ADT comunes a todos los endpoints.

- `raise_for_response`: status + cuerpo `exc:exception` → taxonomía de errores.
- `parse_validation_result`: mensajes de validación (formato `message` o asx `DATA`).
- `parse_named_items`: listas de value-help.
"""

from __future__ import annotations

import re
from typing import Iterable

from adapters.xml_codec import find_all, node_attr, node_text, parse_document, xml_node
from core.domain.models import NamedItem, Severity, StatusMessage, ValidationResult
from core.errors import AuthError, ConflictError, NotFoundError, RequestError
from core.interfaces.transport import TransportResponse

_CONFLICT_TYPES = ("AlreadyExists", "Locked", "ForeignLock", "Enqueue")
_NOT_FOUND_TYPES = ("NotFound", "DoesNotExist", "NotExist")
_CONFLICT_TEXT = re.compile(r"currently editing|locked by|is locked|already exists", re.IGNORECASE)

_SEVERITY_CODES = {
    "S": Severity.SUCCESS,
    "I": Severity.INFO,
    "W": Severity.WARNING,
    "E": Severity.ERROR,
    "A": Severity.ERROR,
    "X": Severity.ERROR,
}


def parse_exception(body: str) -> tuple[str, str]:
    """Extrae `(type id, mensaje)` de un cuerpo `exc:exception`; vacíos si no aplica."""

    if not body or not body.lstrip().startswith("<"):
        return "", (body or "").strip()[:500]
    tree = parse_document(body)
    exc = tree.get("exception")
    if exc is None:
        return "", ""
    exc_type = node_attr(xml_node(exc, "type"), "id")
    message = node_text(xml_node(exc, "localizedMessage")) or node_text(xml_node(exc, "message"))
    return exc_type, message


def raise_for_response(
    response: TransportResponse,
    *,
    resource: str | None = None,
    phase: str | None = None,
    expected: Iterable[int] | None = None,
) -> TransportResponse:
    """Devuelve la respuesta si es aceptable; si no, lanza el error tipado."""

    accepted = response.status in set(expected) if expected is not None else response.ok
    if accepted:
        return response

    exc_type, message = parse_exception(response.body)
    status = response.status
    kwargs = {"resource": resource, "phase": phase, "status": status}
    if status == 401:
        raise AuthError(message or "authentication required", **kwargs)
    if status == 404 or any(t in exc_type for t in _NOT_FOUND_TYPES):
        raise NotFoundError(message or "resource not found", **kwargs)
    if status == 409 or any(t in exc_type for t in _CONFLICT_TYPES) or _CONFLICT_TEXT.search(message):
        raise ConflictError(message or "resource conflict", **kwargs)
    raise RequestError(message or exc_type or "unexpected response", **kwargs)


def normalize_severity(raw: str | None) -> Severity:
    value = (raw or "").strip()
    if not value:
        return Severity.INFO
    try:
        return Severity(value.lower())
    except ValueError:
        pass
    if value.upper() in _SEVERITY_CODES:
        return _SEVERITY_CODES[value.upper()]
    if value.lower() in ("fatal", "abort", "failure"):
        return Severity.ERROR
    return Severity.INFO


def parse_validation_result(body: str) -> ValidationResult:
    tree = parse_document(body)
    messages: list[StatusMessage] = []

    for msg in find_all(tree, "message"):
        if isinstance(msg, dict):
            severity = node_attr(msg, "severity") or node_text(msg.get("severity"))
            text = node_text(msg.get("text")) or node_attr(msg, "text") or node_text(msg)
            code = node_attr(msg, "code") or node_text(msg.get("code")) or None
        else:
            severity, text, code = "", str(msg), None
        messages.append(StatusMessage(severity=normalize_severity(severity), text=text, code=code))

    if not messages:
        # asx:abap/asx:values/DATA {SEVERITY, SHORT_TEXT, CHECK_RESULT}
        for data in find_all(tree, "DATA"):
            if not isinstance(data, dict):
                continue
            severity = node_text(data.get("SEVERITY"))
            text = node_text(data.get("SHORT_TEXT")) or node_text(data.get("TEXT"))
            if not severity and node_text(data.get("CHECK_RESULT")) == "X":
                severity = Severity.SUCCESS.value
            if severity or text:
                messages.append(StatusMessage(severity=normalize_severity(severity), text=text))

    return ValidationResult(messages=messages)


def parse_named_items(body: str) -> list[NamedItem]:
    tree = parse_document(body)
    items = find_all(tree, "namedItem") or find_all(tree, "item")
    out: list[NamedItem] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = node_text(item.get("name")) or node_attr(item, "name")
        if not name:
            continue
        description = node_text(item.get("description")) or node_attr(item, "description")
        out.append(NamedItem(name=name, description=description))
    return out
