from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..powershell.params import Extent


class DiagnosticSeverity(str, Enum):
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"
    PARSE_ERROR = "ParseError"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Diagnostic:
    rule_name: str
    severity: DiagnosticSeverity
    message: str
    extent: Extent


@dataclass(frozen=True)
class FileDiagnostic:
    path: str
    diagnostic: Diagnostic

    @property
    def line(self) -> int:
        return self.diagnostic.extent.start_line

    @property
    def column(self) -> int:
        return self.diagnostic.extent.start_column

    def render(self) -> str:
        d = self.diagnostic
        return f"{self.path}:{self.line}:{self.column}: {d.severity} {d.rule_name} {d.message}"

    def as_dict(self) -> dict[str, object]:
        d = self.diagnostic
        return {
            "path": self.path,
            "rule_name": d.rule_name,
            "severity": str(d.severity),
            "message": d.message,
            "line": d.extent.start_line,
            "column": d.extent.start_column,
            "end_line": d.extent.end_line,
            "end_column": d.extent.end_column,
            "text": d.extent.text,
        }
