"""Modelos y entidades del dominio.

Por qué:
- Aquí viven las estructuras de datos puras y estrictas (Pydantic v2), el
  builder de `$query` y el formato de timestamps.
- El dominio no conoce HTTP, CLI, ni XML: solo conceptos de ADT.
"""
