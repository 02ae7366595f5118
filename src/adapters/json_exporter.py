"""Exportación JSON de resultados.

Por qué JSON:
- Interoperabilidad con scripts y pipelines de automatización.
- Formato estable (claves ordenadas) para diffs y tests.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel


def to_jsonable(value: Any) -> Any:
    """Convierte modelos (o listas/dicts de modelos) a estructuras JSON."""

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def dumps_json(value: Any) -> str:
    return json.dumps(to_jsonable(value), ensure_ascii=False, indent=2, sort_keys=True)


def export_json(value: Any, *, output_path: Path) -> Path:
    """Exporta un resultado a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dumps_json(value) + "\n", encoding="utf-8")
    return output_path
