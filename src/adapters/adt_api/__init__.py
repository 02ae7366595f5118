"""Adaptadores de los endpoints REST de ADT.

Cada módulo traduce una familia de endpoints (paquetes, objetos con fuente,
runtime, discovery) a modelos del dominio. `endpoint_for` resuelve el
`ResourceEndpoint` de un tipo para el pipeline de mutación.
"""

from adapters.adt_api.objects import CLASS_ENDPOINT, PROGRAM_ENDPOINT, SourceObjectEndpoint
from adapters.adt_api.packages import PackageEndpoint
from core.domain.models import ObjectType
from core.interfaces.resources import ResourceEndpoint

_ENDPOINTS: dict[ObjectType, ResourceEndpoint] = {
    ObjectType.PACKAGE: PackageEndpoint(),
    ObjectType.PROGRAM: PROGRAM_ENDPOINT,
    ObjectType.CLASS: CLASS_ENDPOINT,
}


def endpoint_for(object_type: ObjectType) -> ResourceEndpoint:
    return _ENDPOINTS[object_type]


__all__ = [
    "CLASS_ENDPOINT",
    "PROGRAM_ENDPOINT",
    "PackageEndpoint",
    "SourceObjectEndpoint",
    "endpoint_for",
]
