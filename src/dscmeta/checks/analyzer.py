from __future__ import annotations

from pathlib import Path
from typing import Callable

from ..core.fs import files_with_suffix, is_excluded, rel_posix
from ..rules import DiagnosticSeverity, analyze_file
from ..tools.pwsh import AnalyzerRecord, find_pwsh, invoke_script_analyzer
from .model import CheckContext, CheckOutcome, Severity, Violation
from .violations import v

_CACHE_KEY = "analyzer"
ERROR_SEVERITIES = {"error", "parseerror"}


def analyzer_records(ctx: CheckContext) -> tuple[list[AnalyzerRecord], str]:
    """Run PSScriptAnalyzer once per check run; returns (records, skip reason)."""
    if _CACHE_KEY not in ctx.cache:
        pwsh = find_pwsh(ctx.config)
        if pwsh is None:
            ctx.cache[_CACHE_KEY] = ([], f"{ctx.config.powershell.executable} not found on PATH")
        else:
            records = invoke_script_analyzer(pwsh, ctx.module_root, ctx.config.powershell.timeout_seconds, ctx.run)
            if records is None:
                ctx.cache[_CACHE_KEY] = ([], "PSScriptAnalyzer module is not installed")
            else:
                ctx.cache[_CACHE_KEY] = (_in_scope(ctx, records), "")
    return ctx.cache[_CACHE_KEY]


def _in_scope(ctx: CheckContext, records: list[AnalyzerRecord]) -> list[AnalyzerRecord]:
    root = ctx.module_root.resolve()
    kept: list[AnalyzerRecord] = []
    for record in records:
        if not record.script_path:
            kept.append(record)
            continue
        try:
            rel = Path(record.script_path).resolve().relative_to(root)
        except ValueError:
            continue
        if not is_excluded(rel, ctx.config.exclude_dirs):
            kept.append(record)
    return kept


def _record_violation(ctx: CheckContext, record: AnalyzerRecord, severity: Severity = Severity.ERROR) -> Violation:
    path = ""
    if record.script_path:
        path = rel_posix(ctx.module_root.resolve(), Path(record.script_path).resolve())
    return v(
        record.rule_name,
        f"{record.rule_name}: {record.message}",
        path=path,
        line=record.line,
        column=record.column,
        severity=severity,
    )


def _select(ctx: CheckContext, predicate: Callable[[AnalyzerRecord], bool]) -> CheckOutcome:
    records, skipped = analyzer_records(ctx)
    if skipped:
        return CheckOutcome(skipped_reason=skipped)
    selected = [r for r in records if predicate(r)]
    return CheckOutcome(
        violations=tuple(_record_violation(ctx, r) for r in selected),
        metrics={"records": len(records), "selected": len(selected)},
    )


def check_required_rules(ctx: CheckContext) -> CheckOutcome:
    required = set(ctx.config.analyzer.required_rules)
    return _select(ctx, lambda r: r.rule_name in required)


def check_flagged_rules(ctx: CheckContext) -> CheckOutcome:
    flagged = set(ctx.config.analyzer.flagged_rules)
    return _select(ctx, lambda r: r.rule_name in flagged)


def check_new_error_rules(ctx: CheckContext) -> CheckOutcome:
    cfg = ctx.config.analyzer
    known = set(cfg.required_rules) | set(cfg.flagged_rules) | set(cfg.ignore_rules)
    return _select(ctx, lambda r: r.severity.lower() in ERROR_SEVERITIES and r.rule_name not in known)


def check_custom_rules(ctx: CheckContext) -> CheckOutcome:
    files = files_with_suffix(ctx.module_root, ctx.config.exclude_dirs, ".ps1", ".psm1")
    violations = []
    for path in files:
        rel = rel_posix(ctx.module_root, path)
        for item in analyze_file(path, rel):
            d = item.diagnostic
            violations.append(
                v(
                    d.rule_name,
                    f"{d.rule_name}: {d.message}",
                    path=rel,
                    line=item.line,
                    column=item.column,
                    severity=Severity.ERROR if d.severity is not DiagnosticSeverity.INFORMATION else Severity.INFO,
                )
            )
    return CheckOutcome(violations=tuple(violations), metrics={"files": len(files)})
