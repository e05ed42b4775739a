from __future__ import annotations

from .model import Severity, Violation


def v(
    code: str,
    message: str,
    *,
    path: str = "",
    line: int = 0,
    column: int = 0,
    severity: Severity = Severity.ERROR,
) -> Violation:
    return Violation(
        code=code,
        message=message,
        path=path,
        line=line,
        column=column,
        severity=severity,
    )


__all__ = ["v"]
