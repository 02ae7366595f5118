"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- Normaliza lo que devuelve ADT (XML heterogéneo según release) en estructuras
  estables para CLI, servicios y tests.

Nota:
- Estos modelos describen *qué* es un recurso ADT, no *cómo* se transporta.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, SecretStr, computed_field
from pydantic.config import ConfigDict

from core.errors import ValidationError

LOCAL_PACKAGE = "$TMP"


class SessionMode(str, Enum):
    """Modo de sesión ADT (cabecera `X-sap-adt-sessiontype`)."""

    STATEFUL = "stateful"
    STATELESS = "stateless"


class ObjectType(str, Enum):
    """Tipos de objeto soportados (código ADT `TYPE/SUBTYPE`)."""

    PACKAGE = "DEVC/K"
    PROGRAM = "PROG/P"
    CLASS = "CLAS/OC"

    @classmethod
    def parse(cls, value: str) -> "ObjectType":
        """Acepta el código ADT o un alias corto (`package`, `program`, `class`)."""

        aliases = {
            "package": cls.PACKAGE,
            "devc": cls.PACKAGE,
            "program": cls.PROGRAM,
            "prog": cls.PROGRAM,
            "report": cls.PROGRAM,
            "class": cls.CLASS,
            "clas": cls.CLASS,
        }
        key = value.strip()
        if key.lower() in aliases:
            return aliases[key.lower()]
        return cls(key.upper())

    @property
    def has_source(self) -> bool:
        return self is not ObjectType.PACKAGE


class PackageType(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


class CheckMode(str, Enum):
    BASIC = "basic"
    FULL = "full"


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class PipelinePhase(str, Enum):
    """Estados del pipeline de mutación (ver `core.services.mutation_pipeline`)."""

    PENDING = "pending"
    VALIDATING = "validating"
    ACQUIRING = "acquiring"
    CONFIRMING = "confirming"
    WRITING = "writing"
    VERIFYING = "verifying"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def terminal(self) -> bool:
        return self in (
            PipelinePhase.DONE,
            PipelinePhase.REJECTED,
            PipelinePhase.FAILED,
            PipelinePhase.UNKNOWN,
        )


class Credentials(BaseModel):
    """Contexto de autenticación compartido por la sesión stateful y su clon."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(..., min_length=8, description="URL base del sistema (http[s]://host:port).")
    username: str = Field(..., min_length=1, description="Usuario SAP.")
    password: SecretStr = Field(..., description="Password SAP.")
    client: str = Field(default="100", min_length=1, max_length=3, description="Mandante (sap-client).")
    language: str = Field(default="EN", min_length=1, max_length=2, description="Idioma (sap-language).")


@dataclass(frozen=True)
class ResourceKey:
    """Identidad de un recurso para la contabilidad de locks."""

    object_type: ObjectType
    name: str

    @classmethod
    def of(cls, object_type: ObjectType, name: str) -> "ResourceKey":
        return cls(object_type=object_type, name=name.strip().upper())

    def __str__(self) -> str:
        return f"{self.object_type.value} {self.name}"


class StatusMessage(BaseModel):
    """Mensaje de validación/estado devuelto por el backend."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(default=Severity.INFO)
    text: str = Field(default="")
    code: str | None = Field(default=None)

    @property
    def blocking(self) -> bool:
        return self.severity is Severity.ERROR


class ValidationResult(BaseModel):
    """Resultado de un chequeo previo (no muta nada en el backend).

    `success` es derivado: solo un mensaje `error` bloquea; success/info/warning no.
    """

    messages: list[StatusMessage] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return not any(m.blocking for m in self.messages)

    @property
    def errors(self) -> list[StatusMessage]:
        return [m for m in self.messages if m.blocking]


class ResourceDescriptor(BaseModel):
    """Vista cliente de un recurso a crear o editar.

    Reglas:
    - Inmutable (frozen): el nombre no cambia tras la creación.
    - `check()` valida atributos específicos del tipo antes de tocar el backend.
    """

    model_config = ConfigDict(frozen=True)

    object_type: ObjectType
    name: str = Field(..., description="Nombre único dentro de tipo+namespace.")
    parent: str = Field(default=LOCAL_PACKAGE, description="Paquete contenedor.")
    description: str = Field(default="")
    responsible: str | None = Field(default=None, description="Usuario responsable; por defecto el de la sesión.")
    package_type: PackageType = Field(default=PackageType.DEVELOPMENT)
    software_component: str = Field(default="")
    transport_layer: str = Field(default="")
    application_component: str | None = Field(default=None)
    translation_relevance: str | None = Field(default=None)

    @property
    def is_local(self) -> bool:
        """Objeto local ($TMP): sin capa de transporte."""

        return not self.transport_layer.strip()

    @property
    def key(self) -> ResourceKey:
        return ResourceKey.of(self.object_type, self.name)

    def transport_for(self, requested: str | None) -> str | None:
        """Número de orden a enviar como `corrNr` (nunca para objetos locales)."""

        if self.is_local:
            return None
        return requested or None

    def check(self) -> ValidationResult:
        """Validación local; lanza `ValidationError` con todos los mensajes."""

        messages: list[StatusMessage] = []
        name = self.name.strip()
        if not name:
            messages.append(StatusMessage(severity=Severity.ERROR, text="Name is required", code="NAME"))
        elif len(name) > 30:
            messages.append(
                StatusMessage(severity=Severity.ERROR, text="Name exceeds 30 characters", code="NAME")
            )
        if not self.description.strip():
            messages.append(
                StatusMessage(severity=Severity.ERROR, text="Description is required", code="DESCRIPTION")
            )
        elif len(self.description) > 60:
            messages.append(
                StatusMessage(severity=Severity.ERROR, text="Description exceeds 60 characters", code="DESCRIPTION")
            )
        if self.object_type is ObjectType.PACKAGE and not self.software_component.strip():
            messages.append(
                StatusMessage(
                    severity=Severity.ERROR,
                    text="Packages require a software component",
                    code="SWCOMP",
                )
            )

        result = ValidationResult(messages=messages)
        if not result.success:
            raise ValidationError(
                "descriptor rejected before any server call",
                messages=result.messages,
                resource=self.name,
                phase="validating",
            )
        return result


class NamedItem(BaseModel):
    """Entrada de value-help (capas de transporte, componentes, etc.)."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class LockResult(BaseModel):
    """Respuesta del backend a `_action=LOCK` (asx:values/DATA)."""

    lock_handle: str = Field(..., min_length=1)
    corr_nr: str = Field(default="")
    corr_user: str = Field(default="")
    corr_text: str = Field(default="")
    is_local: bool = Field(default=False)
    is_link_up: bool = Field(default=False)
    modification_support: str = Field(default="")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LockHandle(BaseModel):
    """Registro cliente de un lock concedido (o de la propiedad por creación).

    `token=None` significa que el recurso se acaba de crear en esta sesión y no
    hay lock de servidor que liberar.
    """

    model_config = ConfigDict(frozen=True)

    resource: ResourceKey
    uri: str
    token: str | None = None
    session_id: str
    transport: str | None = None
    is_local: bool = True
    acquired_at: datetime = Field(default_factory=_utcnow)

    @property
    def by_creation(self) -> bool:
        return self.token is None


class ResourceSnapshot(BaseModel):
    """Representación confirmada por el servidor (lectura)."""

    model_config = ConfigDict(extra="ignore")

    name: str
    object_type: ObjectType | str
    description: str = ""
    responsible: str | None = None
    package_name: str | None = None
    uri: str | None = None
    etag: str | None = None
    version: str | None = None


class Package(ResourceSnapshot):
    object_type: ObjectType | str = ObjectType.PACKAGE
    package_type: str = PackageType.DEVELOPMENT.value
    software_component: str = ""
    transport_layer: str = ""
    application_component: str = ""
    translation_relevance: str = ""


class ResourceRead(BaseModel):
    """Resultado de una lectura condicional (If-None-Match)."""

    resource: Package | ResourceSnapshot | None = None
    etag: str | None = None
    not_modified: bool = False


class ObjectReference(BaseModel):
    """Resultado de búsqueda del information system."""

    uri: str
    object_type: str = ""
    name: str
    package_name: str = ""
    description: str = ""


class MutationOutcome(BaseModel):
    """Salida del pipeline validate → acquire → confirm → (write) → verify."""

    descriptor: ResourceDescriptor
    phase: PipelinePhase = PipelinePhase.PENDING
    validation: ValidationResult | None = None
    location: str | None = None
    resource: Package | ResourceSnapshot | None = None

    @property
    def succeeded(self) -> bool:
        return self.phase is PipelinePhase.DONE

    @property
    def etag(self) -> str | None:
        return self.resource.etag if self.resource else None


class AdtLink(BaseModel):
    href: str = ""
    rel: str = ""
    type: str | None = None


class DumpCategory(BaseModel):
    term: str = ""
    label: str = ""


class DumpEntry(BaseModel):
    id: str
    author: str = ""
    categories: list[DumpCategory] = Field(default_factory=list)
    title: str = ""
    summary: str = Field(default="", description="HTML formateado por el backend.")
    published: datetime | None = None
    updated: datetime | None = None
    links: list[AdtLink] = Field(default_factory=list)


class DumpsFeed(BaseModel):
    dumps: list[DumpEntry] = Field(default_factory=list)
    count: int | None = None
    title: str = ""
    updated: datetime | None = None
    href: str = ""


class SystemMessage(BaseModel):
    id: str
    title: str = ""
    updated: datetime | None = None
    published: datetime | None = None
    content: str = ""
    links: list[AdtLink] = Field(default_factory=list)


class SystemMessagesFeed(BaseModel):
    messages: list[SystemMessage] = Field(default_factory=list)
    title: str = ""
    updated: datetime | None = None


class DiscoveryCollection(BaseModel):
    """Colección del documento de servicio ADT (`/sap/bc/adt/discovery`)."""

    title: str = ""
    href: str
    accept: list[str] = Field(default_factory=list)
    workspace: str = ""
