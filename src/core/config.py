"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Usa el mismo contrato `.env` que los scripts de ADT (`SAP_URL`, `SAP_USER`,
  `SAP_PASSWORD`, `SAP_CLIENT`, `SAP_LANGUAGE`).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.models import Credentials
from core.errors import ConfigError


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "adtctl"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "adtctl"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "adtctl"
    return Path.home() / ".config" / "adtctl"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# adtctl user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AdtSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="SAP_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    url: str | None = Field(default=None, description="URL base del sistema ADT (http[s]://host:port).")
    user: str | None = Field(default=None, description="Usuario SAP.")
    password: SecretStr | None = Field(default=None, description="Password SAP.")
    client: str = Field(default="100", min_length=1, max_length=3, description="Mandante (sap-client).")
    language: str = Field(default="EN", min_length=1, max_length=2, description="Idioma de logon.")

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request (segundos).",
    )
    verify_tls: bool = Field(
        default=True,
        description="Verificar certificados TLS (desactivar solo con certificados autofirmados).",
    )
    user_agent: str = Field(
        default="adtctl/0.1",
        min_length=1,
        description="User-Agent para las peticiones ADT.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging por defecto (DEBUG, INFO, WARNING…).",
    )

    def credentials(self) -> Credentials:
        """Construye `Credentials` o falla nombrando las variables ausentes."""

        url, user, password = self.url, self.user, self.password
        if not url or not user or not password:
            missing = [
                f"SAP_{name.upper()}"
                for name, value in (("url", url), ("user", user), ("password", password))
                if not value
            ]
            raise ConfigError(f"missing connection settings: {', '.join(missing)}", phase="config")
        return Credentials(
            base_url=url.rstrip("/"),
            username=user,
            password=password,
            client=self.client,
            language=self.language,
        )
