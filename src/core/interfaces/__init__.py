"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos
  (transporte httpx, endpoints ADT por tipo de objeto).
- Permite invertir dependencias: el Core depende de abstracciones.
"""
