"""Process exit codes for the ``dscmeta`` command line.

The numbers live in ``schemas/error-registry.json`` rather than here so that CI
wrappers and documentation can read the same table the CLI returns from. Each
code is looked up by its ``DSCMETA_*`` name; a registry missing one of them fails
at import instead of at the first error.
"""

from __future__ import annotations

import json
from pathlib import Path

ERROR_REGISTRY = Path(__file__).resolve().parents[1] / "schemas" / "error-registry.json"


def _load_registry() -> dict[str, int]:
    payload = json.loads(ERROR_REGISTRY.read_text(encoding="utf-8"))
    return {str(row["name"]): int(row["code"]) for row in payload.get("codes", [])}


_CODES = _load_registry()


def _code(name: str) -> int:
    try:
        return _CODES[f"DSCMETA_{name}"]
    except KeyError:
        raise RuntimeError(f"{ERROR_REGISTRY.name} has no DSCMETA_{name} entry") from None


OK = _code("OK")
ERR_CHECKS = _code("ERR_CHECKS")
ERR_USAGE = _code("ERR_USAGE")
ERR_CONFIG = _code("ERR_CONFIG")
ERR_PREREQ = _code("ERR_PREREQ")
ERR_VALIDATION = _code("ERR_VALIDATION")
ERR_INTERNAL = _code("ERR_INTERNAL")
ERR_TIMEOUT = _code("ERR_TIMEOUT")
