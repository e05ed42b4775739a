from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator

from .context import RunContext
from .errors import ScriptError
from .exit_codes import ERR_VALIDATION


def is_excluded(rel: Path, exclude_dirs: Iterable[str]) -> bool:
    excluded = set(exclude_dirs)
    return any(part in excluded for part in rel.parts[:-1])


def iter_module_files(root: Path, exclude_dirs: Iterable[str]) -> Iterator[Path]:
    excluded = tuple(exclude_dirs)
    found = [p for p in root.rglob("*") if p.is_file() and not is_excluded(p.relative_to(root), excluded)]
    yield from sorted(found, key=lambda p: p.relative_to(root).as_posix())


def files_with_suffix(root: Path, exclude_dirs: Iterable[str], *suffixes: str) -> list[Path]:
    wanted = {s.lower() for s in suffixes}
    return [p for p in iter_module_files(root, exclude_dirs) if p.suffix.lower() in wanted]


def text_files(root: Path, exclude_dirs: Iterable[str], extensions: Iterable[str]) -> list[Path]:
    wanted = {e.lower() for e in extensions}
    return [
        p
        for p in iter_module_files(root, exclude_dirs)
        if p.suffix.lower() in wanted or p.name.lower() in wanted
    ]


def rel_posix(root: Path, path: Path) -> str:
    return path.relative_to(root).as_posix()


def ensure_evidence_path(ctx: RunContext, path: Path) -> Path:
    resolved = path.resolve() if path.is_absolute() else (ctx.module_root / path).resolve()
    root = ctx.evidence_root.resolve()
    if resolved == root or root in resolved.parents:
        resolved.parent.mkdir(parents=True, exist_ok=True)
        return resolved
    raise ScriptError(f"forbidden write path outside evidence root: {resolved}", ERR_VALIDATION, kind="forbidden_write_path")


def write_json(ctx: RunContext, path: Path, payload: dict[str, object]) -> Path:
    out = ensure_evidence_path(ctx, path)
    out.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return out


UTF8_BOM = b"\xef\xbb\xbf"
UNICODE_BOMS = (b"\xff\xfe\x00\x00", b"\x00\x00\xfe\xff", b"\xff\xfe", b"\xfe\xff")


def read_text_any(path: Path) -> str:
    raw = path.read_bytes()
    if raw.startswith(UNICODE_BOMS[:2]):
        return raw.decode("utf-32", errors="replace")
    if raw.startswith(UNICODE_BOMS[2:]):
        return raw.decode("utf-16", errors="replace")
    return raw.decode("utf-8-sig", errors="replace")
