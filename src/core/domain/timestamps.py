"""Timestamps ADT de ancho fijo: `YYYYMMDDHHMMSS` en UTC."""

from __future__ import annotations

from datetime import datetime, timezone

TIMESTAMP_LENGTH = 14


def format_timestamp(value: datetime) -> str:
    """Formatea un instante como 14 dígitos UTC sin separadores.

    Un `datetime` naive se interpreta como UTC.
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return (
        f"{utc.year:04d}{utc.month:02d}{utc.day:02d}"
        f"{utc.hour:02d}{utc.minute:02d}{utc.second:02d}"
    )


def parse_timestamp(value: str) -> datetime:
    """Inversa exacta de `format_timestamp` (lectura posicional)."""

    text = value.strip()
    if len(text) != TIMESTAMP_LENGTH or not (text.isascii() and text.isdigit()):
        raise ValueError(f"expected {TIMESTAMP_LENGTH} digits (YYYYMMDDHHMMSS), got {value!r}")
    return datetime(
        int(text[0:4]),
        int(text[4:6]),
        int(text[6:8]),
        int(text[8:10]),
        int(text[10:12]),
        int(text[12:14]),
        tzinfo=timezone.utc,
    )
