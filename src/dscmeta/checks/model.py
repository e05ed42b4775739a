from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping

from ..core.config import DscMetaConfig

if TYPE_CHECKING:
    from ..core.context import RunContext


class Severity(str, Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"

    def __str__(self) -> str:
        return self.value


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Violation:
    code: str
    message: str
    path: str = ""
    line: int = 0
    column: int = 0
    severity: Severity = Severity.ERROR

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", str(self.code).strip() or "CHECK_GENERIC")
        object.__setattr__(self, "message", str(self.message).strip())
        object.__setattr__(self, "path", str(self.path).strip())
        object.__setattr__(self, "line", int(self.line or 0))
        object.__setattr__(self, "column", int(self.column or 0))

    @property
    def canonical_key(self) -> tuple[str, str, str, int, int]:
        return (self.path, self.code, self.message, self.line, self.column)

    def render(self) -> str:
        where = self.path
        if where and self.line:
            where = f"{where}:{self.line}"
        return f"{where}: {self.message}" if where else self.message


@dataclass(frozen=True)
class CheckOutcome:
    violations: tuple[Violation, ...] = ()
    warnings: tuple[str, ...] = ()
    skipped_reason: str = ""
    metrics: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckContext:
    module_root: Path
    config: DscMetaConfig = field(default_factory=DscMetaConfig)
    run: RunContext | None = None
    cache: dict[str, Any] = field(default_factory=dict)

    @property
    def evidence_root(self) -> Path:
        if self.run is not None:
            return self.run.evidence_root
        return self.module_root / "output" / "dscmeta"


CheckFunc = Callable[[CheckContext], CheckOutcome]


@dataclass(frozen=True)
class CheckDef:
    check_id: str
    domain: str
    title: str
    description: str
    budget_ms: int
    fn: CheckFunc
    opt_in: bool = False
    external_tools: tuple[str, ...] = ()
    fix_hint: str = "Review check output and apply the documented fix."

    def is_opted_in(self, names: frozenset[str]) -> bool:
        return self.check_id in names or self.title in names


@dataclass(frozen=True)
class CheckResult:
    check_id: str
    domain: str
    title: str
    status: CheckStatus
    violations: tuple[Violation, ...]
    warnings: tuple[str, ...]
    duration_ms: int
    budget_ms: int
    opt_in: bool
    opted_in: bool
    skipped_reason: str = ""
    fix_hint: str = ""
    metrics: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckRunReport:
    rows: tuple[CheckResult, ...]
    duration_ms: int

    @property
    def summary(self) -> dict[str, int]:
        counts = {status: 0 for status in CheckStatus}
        for row in self.rows:
            counts[row.status] += 1
        return {
            "passed": counts[CheckStatus.PASS],
            "failed": counts[CheckStatus.FAIL],
            "skipped": counts[CheckStatus.SKIP],
            "errors": counts[CheckStatus.ERROR],
            "total": len(self.rows),
            "duration_ms": self.duration_ms,
        }

    @property
    def status(self) -> CheckStatus:
        if any(row.status in (CheckStatus.FAIL, CheckStatus.ERROR) for row in self.rows):
            return CheckStatus.FAIL
        return CheckStatus.PASS
