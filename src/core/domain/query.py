"""Builder de expresiones `$query` para endpoints de lectura ADT.

Gramática mínima: `equals`, `and`, `or`, `not`. Puro, sin I/O.

Limitación conocida:
- No escapa valores. Quien llama debe sanear los valores antes de insertarlos;
  el backend no documenta reglas de escape y no las adivinamos aquí.
"""

from __future__ import annotations


class QueryBuilder:
    """Acumula condiciones con `where` y las combina en `build`.

    `build()` devuelve "" sin condiciones, la condición tal cual si hay una, y
    `and( c1 c2 … )` en orden de inserción si hay varias. Nunca usa `or`
    implícitamente.
    """

    def __init__(self) -> None:
        self._conditions: list[str] = []

    @staticmethod
    def equals(field: str, value: str) -> str:
        return f"equals( {field}, {value} )"

    @staticmethod
    def and_(*conditions: str) -> str:
        return f"and( {' '.join(conditions)} )"

    @staticmethod
    def or_(*conditions: str) -> str:
        return f"or( {' '.join(conditions)} )"

    @staticmethod
    def not_(condition: str) -> str:
        return f"not( {condition} )"

    def where(self, condition: str) -> "QueryBuilder":
        self._conditions.append(condition)
        return self

    @property
    def conditions(self) -> tuple[str, ...]:
        return tuple(self._conditions)

    def build(self) -> str:
        if not self._conditions:
            return ""
        if len(self._conditions) == 1:
            return self._conditions[0]
        return self.and_(*self._conditions)
