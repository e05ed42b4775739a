from __future__ import annotations

from pathlib import Path

from ..powershell.params import Extent, ParamBlockSyntaxError, iter_parameters
from .model import Diagnostic, DiagnosticSeverity, FileDiagnostic
from .parameter_block import analyze_parameter

RULE_PARSE_ERROR = "ParameterBlockParseError"
SCRIPT_SUFFIXES = (".ps1", ".psm1")


def analyze_text(text: str, path: str = "<text>") -> list[FileDiagnostic]:
    try:
        parameters = iter_parameters(text)
    except ParamBlockSyntaxError as exc:
        extent = Extent(exc.line, exc.column, exc.line, exc.column, "")
        return [FileDiagnostic(path, Diagnostic(RULE_PARSE_ERROR, DiagnosticSeverity.PARSE_ERROR, exc.message, extent))]
    found: list[FileDiagnostic] = []
    for parameter in parameters:
        found.extend(FileDiagnostic(path, diagnostic) for diagnostic in analyze_parameter(parameter))
    return sorted(found, key=lambda item: (item.line, item.column, item.diagnostic.rule_name))


def analyze_file(path: Path, display: str | None = None) -> list[FileDiagnostic]:
    text = path.read_text(encoding="utf-8-sig", errors="replace")
    return analyze_text(text, display or path.as_posix())


def collect_script_files(paths: list[Path], exclude_dirs: tuple[str, ...] = ()) -> list[Path]:
    found: list[Path] = []
    for path in paths:
        if path.is_dir():
            found.extend(
                p
                for p in sorted(path.rglob("*"))
                if p.is_file()
                and p.suffix.lower() in SCRIPT_SUFFIXES
                and not any(part in exclude_dirs for part in p.relative_to(path).parts[:-1])
            )
        elif path.is_file():
            found.append(path)
    return found
