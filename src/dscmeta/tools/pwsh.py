"""PowerShell (``pwsh``) adapter.

Each operation runs one non-interactive ``pwsh`` process. Inputs are passed
through environment variables so no path ever needs PowerShell quoting, and the
result comes back as a single JSON line prefixed with ``##dscmeta-json:`` so
that stray host output does not interfere with decoding.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..core.config import DscMetaConfig
from ..core.errors import ScriptError
from ..core.exit_codes import ERR_PREREQ, ERR_TIMEOUT
from ..core.process import TIMEOUT_CODE, run_command, which

if TYPE_CHECKING:
    from ..core.context import RunContext

JSON_MARKER = "##dscmeta-json:"

_ANALYZER_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$module = Get-Module -ListAvailable -Name PSScriptAnalyzer | Select-Object -First 1
if (-not $module) {
    $payload = @{ available = $false; records = @() }
}
else {
    Import-Module -Name PSScriptAnalyzer
    $records = @(Invoke-ScriptAnalyzer -Path $env:DSCMETA_ROOT -Recurse | ForEach-Object {
        [ordered] @{
            RuleName   = $_.RuleName
            Severity   = $_.Severity.ToString()
            ScriptPath = $_.ScriptPath
            Line       = $_.Line
            Column     = $_.Column
            Message    = $_.Message
        }
    })
    $payload = @{ available = $true; records = $records }
}
'##dscmeta-json:' + (ConvertTo-Json -InputObject $payload -Depth 5 -Compress)
"""

_PARSE_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$files = @($env:DSCMETA_FILES | ConvertFrom-Json)
$results = @(foreach ($file in $files) {
    $tokens = $null
    $parseErrors = $null
    $null = [System.Management.Automation.Language.Parser]::ParseFile($file, [ref] $tokens, [ref] $parseErrors)
    [ordered] @{
        path   = $file
        errors = @($parseErrors | ForEach-Object {
            [ordered] @{
                line    = $_.Extent.StartLineNumber
                column  = $_.Extent.StartColumnNumber
                message = $_.Message
            }
        })
    }
})
'##dscmeta-json:' + (ConvertTo-Json -InputObject $results -Depth 5 -Compress)
"""

_COMPILE_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$env:PSModulePath = $env:DSCMETA_MODULE_PARENT + [System.IO.Path]::PathSeparator + $env:PSModulePath
$files = @($env:DSCMETA_FILES | ConvertFrom-Json)
$configurationData = @{
    AllNodes = @(
        @{
            NodeName                    = 'localhost'
            PSDscAllowPlainTextPassword = $true
            PSDscAllowDomainUser        = $true
        }
    )
}
$results = @(foreach ($file in $files) {
    $outputPath = Join-Path -Path $env:DSCMETA_OUTPUT -ChildPath ([System.IO.Path]::GetFileNameWithoutExtension($file))
    try {
        $before = @(Get-Command -CommandType Configuration -ErrorAction SilentlyContinue | ForEach-Object -MemberName Name)
        . $file
        $configurations = @(Get-Command -CommandType Configuration -ErrorAction SilentlyContinue |
            Where-Object -FilterScript { $before -notcontains $_.Name })
        foreach ($configuration in $configurations) {
            $null = & $configuration.Name -OutputPath $outputPath -ConfigurationData $configurationData
        }
        [ordered] @{ path = $file; status = 'pass'; configurations = @($configurations | ForEach-Object -MemberName Name); error = '' }
    }
    catch {
        [ordered] @{ path = $file; status = 'fail'; configurations = @(); error = $_.Exception.Message }
    }
})
'##dscmeta-json:' + (ConvertTo-Json -InputObject $results -Depth 5 -Compress)
"""


@dataclass(frozen=True)
class AnalyzerRecord:
    rule_name: str
    severity: str
    script_path: str
    line: int
    column: int
    message: str


@dataclass(frozen=True)
class ParseError:
    line: int
    column: int
    message: str


@dataclass(frozen=True)
class ExampleResult:
    path: str
    passed: bool
    configurations: tuple[str, ...]
    error: str


def find_pwsh(config: DscMetaConfig) -> str | None:
    executable = config.powershell.executable
    if os.path.isabs(executable):
        return executable if Path(executable).is_file() else None
    return which(executable)


def decode_marked_json(stdout: str) -> Any:
    for line in reversed(stdout.splitlines()):
        line = line.strip()
        if line.startswith(JSON_MARKER):
            return json.loads(line[len(JSON_MARKER):])
    raise ValueError("pwsh output carries no result line")


def run_pwsh_json(
    pwsh: str,
    script: str,
    cwd: Path,
    timeout_seconds: int,
    env_overrides: dict[str, str],
    run: RunContext | None = None,
) -> Any:
    env = {**os.environ, **env_overrides}
    result = run_command(
        [pwsh, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", script],
        cwd,
        timeout_seconds=timeout_seconds,
        env=env,
        ctx=run,
    )
    if result.code == TIMEOUT_CODE:
        raise ScriptError(f"pwsh timed out after {timeout_seconds}s", ERR_TIMEOUT, kind="pwsh_timeout")
    if result.code != 0:
        raise ScriptError(f"pwsh exited with {result.code}: {result.combined_output}", ERR_PREREQ, kind="pwsh_failed")
    try:
        return decode_marked_json(result.stdout)
    except ValueError as exc:
        raise ScriptError(f"pwsh returned unreadable output: {exc}", ERR_PREREQ, kind="pwsh_output") from exc


def invoke_script_analyzer(
    pwsh: str, module_root: Path, timeout_seconds: int, run: RunContext | None = None
) -> list[AnalyzerRecord] | None:
    payload = run_pwsh_json(pwsh, _ANALYZER_SCRIPT, module_root, timeout_seconds, {"DSCMETA_ROOT": str(module_root)}, run)
    if not payload.get("available"):
        return None
    return [
        AnalyzerRecord(
            rule_name=str(row.get("RuleName", "")),
            severity=str(row.get("Severity", "")),
            script_path=str(row.get("ScriptPath") or ""),
            line=int(row.get("Line") or 0),
            column=int(row.get("Column") or 0),
            message=str(row.get("Message", "")).strip(),
        )
        for row in payload.get("records") or []
    ]


def parse_files(
    pwsh: str, files: list[Path], cwd: Path, timeout_seconds: int, run: RunContext | None = None
) -> dict[str, list[ParseError]]:
    env = {"DSCMETA_FILES": json.dumps([str(p) for p in files])}
    payload = run_pwsh_json(pwsh, _PARSE_SCRIPT, cwd, timeout_seconds, env, run)
    return {
        str(row["path"]): [
            ParseError(int(err.get("line") or 0), int(err.get("column") or 0), str(err.get("message", "")))
            for err in row.get("errors") or []
        ]
        for row in payload
    }


def compile_examples(
    pwsh: str,
    module_root: Path,
    files: list[Path],
    output_dir: Path,
    timeout_seconds: int,
    run: RunContext | None = None,
) -> list[ExampleResult]:
    output_dir.mkdir(parents=True, exist_ok=True)
    env = {
        "DSCMETA_FILES": json.dumps([str(p) for p in files]),
        "DSCMETA_MODULE_PARENT": str(module_root.parent),
        "DSCMETA_OUTPUT": str(output_dir),
    }
    payload = run_pwsh_json(pwsh, _COMPILE_SCRIPT, module_root, timeout_seconds, env, run)
    return [
        ExampleResult(
            path=str(row.get("path", "")),
            passed=row.get("status") == "pass",
            configurations=tuple(str(name) for name in row.get("configurations") or []),
            error=str(row.get("error") or ""),
        )
        for row in payload
    ]
