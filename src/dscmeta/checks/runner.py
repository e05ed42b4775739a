from __future__ import annotations

import time
from typing import Iterable

from ..core.logging import log_event
from .model import CheckContext, CheckDef, CheckOutcome, CheckResult, CheckRunReport, CheckStatus, Severity


def _status(outcome: CheckOutcome) -> CheckStatus:
    if outcome.skipped_reason:
        return CheckStatus.SKIP
    if any(item.severity == Severity.ERROR for item in outcome.violations):
        return CheckStatus.FAIL
    return CheckStatus.PASS


def run_check(ctx: CheckContext, check: CheckDef, opt_in: frozenset[str] = frozenset()) -> CheckResult:
    opted_in = check.is_opted_in(opt_in)
    start = time.perf_counter()
    try:
        outcome = check.fn(ctx)
        status = _status(outcome)
        error = ""
    except Exception as exc:  # noqa: BLE001
        outcome = CheckOutcome()
        status = CheckStatus.ERROR
        error = f"{type(exc).__name__}: {exc}"
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    violations = tuple(sorted(outcome.violations, key=lambda item: item.canonical_key))
    warnings = list(outcome.warnings)
    if error:
        warnings.append(error)
    elif status == CheckStatus.FAIL and check.opt_in and not opted_in:
        warnings.extend(item.render() for item in violations if item.severity == Severity.ERROR)
        violations = tuple(item for item in violations if item.severity != Severity.ERROR)
        status = CheckStatus.PASS
    return CheckResult(
        check_id=check.check_id,
        domain=check.domain,
        title=check.title,
        status=status,
        violations=violations,
        warnings=tuple(warnings),
        duration_ms=elapsed_ms,
        budget_ms=check.budget_ms,
        opt_in=check.opt_in,
        opted_in=opted_in,
        skipped_reason=outcome.skipped_reason,
        fix_hint=check.fix_hint,
        metrics=dict(outcome.metrics),
    )


def run_checks(
    ctx: CheckContext,
    checks: Iterable[CheckDef],
    opt_in: frozenset[str] = frozenset(),
    fail_fast: bool = False,
) -> CheckRunReport:
    started = time.perf_counter()
    rows: list[CheckResult] = []
    for check in checks:
        if ctx.run is not None:
            log_event(ctx.run, "debug", "checks", "start", check=check.check_id)
        result = run_check(ctx, check, opt_in)
        rows.append(result)
        if ctx.run is not None:
            level = "warn" if result.status in (CheckStatus.FAIL, CheckStatus.ERROR) else "info"
            log_event(
                ctx.run,
                level,
                "checks",
                "finish",
                check=check.check_id,
                status=str(result.status),
                duration_ms=result.duration_ms,
                violations=len(result.violations),
            )
        if fail_fast and result.status in (CheckStatus.FAIL, CheckStatus.ERROR):
            break
    return CheckRunReport(rows=tuple(rows), duration_ms=int((time.perf_counter() - started) * 1000))
