from __future__ import annotations

from pathlib import Path

from ..core.fs import files_with_suffix, rel_posix
from ..tools.pwsh import find_pwsh, parse_files
from .model import CheckContext, CheckOutcome
from .violations import v


def _parse_check(ctx: CheckContext, files: list[Path], kind: str) -> CheckOutcome:
    if not files:
        return CheckOutcome(skipped_reason=f"no {kind} files")
    pwsh = find_pwsh(ctx.config)
    if pwsh is None:
        return CheckOutcome(skipped_reason=f"{ctx.config.powershell.executable} not found on PATH")
    results = parse_files(pwsh, files, ctx.module_root, ctx.config.powershell.timeout_seconds, ctx.run)
    by_path = {str(Path(raw).resolve()): errors for raw, errors in results.items()}
    violations = []
    for path in files:
        rel = rel_posix(ctx.module_root, path)
        for error in by_path.get(str(path.resolve()), []):
            violations.append(v("PARSE_ERROR", error.message, path=rel, line=error.line, column=error.column))
    return CheckOutcome(violations=tuple(violations), metrics={"files": len(files)})


def check_module_files_parse(ctx: CheckContext) -> CheckOutcome:
    files = files_with_suffix(ctx.module_root, ctx.config.exclude_dirs, ".psm1")
    return _parse_check(ctx, files, "module")


def check_script_files_parse(ctx: CheckContext) -> CheckOutcome:
    examples = ctx.config.examples.directory.lower()
    files = [
        p
        for p in files_with_suffix(ctx.module_root, ctx.config.exclude_dirs, ".ps1")
        if p.relative_to(ctx.module_root).parts[0].lower() != examples
    ]
    return _parse_check(ctx, files, "script")
