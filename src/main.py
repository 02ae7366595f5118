"""Script de ejecución dentro de `src/`.

- `python -m main ...` con `src/` como directorio de trabajo.
- Mismo comportamiento que el script `adtctl` instalado.
"""

from __future__ import annotations

import sys

# Terminales Windows con cp1252: la salida de Rich necesita utf-8.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run  # noqa: E402


def main() -> None:
    run()


if __name__ == "__main__":
    main()
