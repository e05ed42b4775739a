from __future__ import annotations

from pathlib import Path

from ..core.fs import files_with_suffix, rel_posix
from ..tools.pwsh import compile_examples, find_pwsh
from .model import CheckContext, CheckOutcome
from .violations import v


def example_files(ctx: CheckContext) -> list[Path]:
    directory = ctx.module_root / ctx.config.examples.directory
    if not directory.is_dir():
        return []
    return files_with_suffix(directory, ctx.config.exclude_dirs, ".ps1")


def check_examples_compile(ctx: CheckContext) -> CheckOutcome:
    files = example_files(ctx)
    if not files:
        return CheckOutcome(skipped_reason=f"no examples under {ctx.config.examples.directory}/")
    pwsh = find_pwsh(ctx.config)
    if pwsh is None:
        return CheckOutcome(skipped_reason=f"{ctx.config.powershell.executable} not found on PATH")
    output_dir = ctx.evidence_root / "examples"
    results = compile_examples(pwsh, ctx.module_root, files, output_dir, ctx.config.powershell.timeout_seconds, ctx.run)
    by_path = {str(Path(r.path).resolve()): r for r in results}
    violations = []
    compiled = 0
    for path in files:
        rel = rel_posix(ctx.module_root, path)
        result = by_path.get(str(path.resolve()))
        if result is None:
            violations.append(v("EXAMPLE_NOT_COMPILED", "example produced no compile result", path=rel))
        elif not result.passed:
            violations.append(v("EXAMPLE_COMPILE_FAILED", result.error or "example failed to compile", path=rel))
        else:
            compiled += len(result.configurations)
    return CheckOutcome(violations=tuple(violations), metrics={"examples": len(files), "configurations": compiled})
