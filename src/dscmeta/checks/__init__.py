"""Module quality checks, their registry, runner and report."""

from __future__ import annotations

from .model import CheckContext, CheckDef, CheckOutcome, CheckResult, CheckRunReport, CheckStatus, Severity, Violation
from .registry import CHECKS, domains, get_check, select_checks
from .runner import run_check, run_checks

__all__ = [
    "CHECKS",
    "CheckContext",
    "CheckDef",
    "CheckOutcome",
    "CheckResult",
    "CheckRunReport",
    "CheckStatus",
    "Severity",
    "Violation",
    "domains",
    "get_check",
    "run_check",
    "run_checks",
    "select_checks",
]
