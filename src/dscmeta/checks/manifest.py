from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Any

from ..powershell.data_file import DataFileSyntaxError, lookup, parse_data_file
from .model import CheckContext, CheckOutcome
from .violations import v

_VERSION = re.compile(r"^\d+(?:\.\d+){1,3}$")
_CACHE_KEY = "manifest"


def parse_version(raw: str) -> tuple[int, ...] | None:
    text = str(raw).strip()
    if not _VERSION.fullmatch(text):
        return None
    return tuple(int(part) for part in text.split("."))


def _padded(version: tuple[int, ...]) -> tuple[int, ...]:
    return version + (0,) * (4 - len(version))


def find_manifest(module_root: Path) -> tuple[Path | None, list[Path]]:
    candidates = sorted(p for p in module_root.iterdir() if p.is_file() and p.suffix.lower() == ".psd1")
    for path in candidates:
        if path.stem.lower() == module_root.name.lower():
            return path, candidates
    if len(candidates) == 1:
        return candidates[0], candidates
    return None, candidates


def load_manifest(ctx: CheckContext) -> tuple[Path | None, dict[str, Any] | None, str]:
    if _CACHE_KEY not in ctx.cache:
        path, _ = find_manifest(ctx.module_root)
        data: dict[str, Any] | None = None
        error = ""
        if path is not None:
            try:
                data = parse_data_file(path.read_text(encoding="utf-8-sig"))
            except DataFileSyntaxError as exc:
                error = str(exc)
            except UnicodeDecodeError as exc:
                error = f"manifest is not valid UTF-8: {exc}"
        ctx.cache[_CACHE_KEY] = (path, data, error)
    return ctx.cache[_CACHE_KEY]


def check_manifest_present(ctx: CheckContext) -> CheckOutcome:
    path, candidates = find_manifest(ctx.module_root)
    if path is not None:
        return CheckOutcome(metrics={"manifest": path.name})
    if candidates:
        names = ", ".join(p.name for p in candidates)
        message = f"cannot choose a module manifest among {names}; expected {ctx.module_root.name}.psd1"
    else:
        message = f"module manifest {ctx.module_root.name}.psd1 not found in the module root"
    return CheckOutcome(violations=(v("MANIFEST_MISSING", message),))


def check_manifest_valid(ctx: CheckContext) -> CheckOutcome:
    path, data, error = load_manifest(ctx)
    if path is None:
        return CheckOutcome(skipped_reason="no module manifest")
    rel = path.name
    if data is None:
        return CheckOutcome(violations=(v("MANIFEST_PARSE_ERROR", f"manifest cannot be read: {error}", path=rel),))
    violations = []
    module_version = lookup(data, "ModuleVersion")
    if module_version is None:
        violations.append(v("MANIFEST_FIELD_MISSING", "ModuleVersion is missing", path=rel))
    elif parse_version(str(module_version)) is None:
        violations.append(v("MANIFEST_FIELD_INVALID", f"ModuleVersion `{module_version}` is not a valid version", path=rel))
    guid = lookup(data, "GUID")
    if guid is None:
        violations.append(v("MANIFEST_FIELD_MISSING", "GUID is missing", path=rel))
    else:
        try:
            uuid.UUID(str(guid))
        except ValueError:
            violations.append(v("MANIFEST_FIELD_INVALID", f"GUID `{guid}` is not a valid GUID", path=rel))
    for key in ("Author", "Description"):
        value = lookup(data, key)
        if not isinstance(value, str) or not value.strip():
            violations.append(v("MANIFEST_FIELD_MISSING", f"{key} is missing or empty", path=rel))
    return CheckOutcome(violations=tuple(violations))


def check_powershell_version(ctx: CheckContext) -> CheckOutcome:
    path, data, _ = load_manifest(ctx)
    if path is None or data is None:
        return CheckOutcome(skipped_reason="no readable module manifest")
    rel = path.name
    minimum_raw = ctx.config.manifest.min_powershell_version
    minimum = parse_version(minimum_raw) or (0, 0)
    raw = lookup(data, "PowerShellVersion")
    if raw is None:
        return CheckOutcome(violations=(v("MANIFEST_PSVERSION_MISSING", "PowerShellVersion is missing", path=rel),))
    version = parse_version(str(raw))
    if version is None:
        return CheckOutcome(
            violations=(v("MANIFEST_PSVERSION_INVALID", f"PowerShellVersion `{raw}` is not a valid version", path=rel),)
        )
    if _padded(version) < _padded(minimum):
        return CheckOutcome(
            violations=(
                v(
                    "MANIFEST_PSVERSION_TOO_LOW",
                    f"PowerShellVersion {raw} is lower than the required {minimum_raw}",
                    path=rel,
                ),
            )
        )
    return CheckOutcome(metrics={"powershell_version": str(raw)})
