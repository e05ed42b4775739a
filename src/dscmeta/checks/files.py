from __future__ import annotations

from pathlib import Path

from ..core.fs import UNICODE_BOMS, UTF8_BOM, files_with_suffix, rel_posix, text_files
from .model import CheckContext, CheckOutcome
from .violations import v


def _text_files(ctx: CheckContext) -> list[Path]:
    cfg = ctx.config
    return text_files(ctx.module_root, cfg.exclude_dirs, cfg.text_extensions)


def check_no_unicode_encoding(ctx: CheckContext) -> CheckOutcome:
    violations = []
    files = _text_files(ctx)
    for path in files:
        raw = path.read_bytes()
        if raw.startswith(UNICODE_BOMS) or b"\x00" in raw:
            violations.append(
                v("FILE_UNICODE_ENCODING", "file is encoded as Unicode (UTF-16/UTF-32); use UTF-8 or ASCII", path=rel_posix(ctx.module_root, path))
            )
    return CheckOutcome(violations=tuple(violations), metrics={"files": len(files)})


def check_no_tab_characters(ctx: CheckContext) -> CheckOutcome:
    violations = []
    files = _text_files(ctx)
    for path in files:
        text = path.read_bytes().decode("utf-8-sig", errors="replace")
        for lineno, line in enumerate(text.splitlines(), start=1):
            if "\t" in line:
                violations.append(
                    v(
                        "FILE_TAB_CHARACTER",
                        "line contains a tab character; indent with spaces",
                        path=rel_posix(ctx.module_root, path),
                        line=lineno,
                        column=line.index("\t") + 1,
                    )
                )
    return CheckOutcome(violations=tuple(violations), metrics={"files": len(files)})


def check_final_newline(ctx: CheckContext) -> CheckOutcome:
    violations = []
    files = _text_files(ctx)
    for path in files:
        raw = path.read_bytes()
        if raw and not raw.endswith(b"\n"):
            violations.append(v("FILE_NO_FINAL_NEWLINE", "file does not end with a newline", path=rel_posix(ctx.module_root, path)))
    return CheckOutcome(violations=tuple(violations), metrics={"files": len(files)})


def check_markdown_no_bom(ctx: CheckContext) -> CheckOutcome:
    files = files_with_suffix(ctx.module_root, ctx.config.exclude_dirs, ".md")
    violations = tuple(
        v("MARKDOWN_BOM", "markdown file starts with a byte order mark", path=rel_posix(ctx.module_root, path))
        for path in files
        if path.read_bytes().startswith(UTF8_BOM)
    )
    return CheckOutcome(violations=violations, metrics={"files": len(files)})
