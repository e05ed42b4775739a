"""Markdown lint through ``markdownlint`` driven by a ``gulp`` task."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.errors import ScriptError
from ..core.exit_codes import ERR_PREREQ, ERR_TIMEOUT
from ..core.process import TIMEOUT_CODE, CommandResult, run_command

if TYPE_CHECKING:
    from ..core.context import RunContext

DATA_DIR = Path(__file__).resolve().parents[1] / "data" / "markdown"
RUNNER_FILES = ("package.json", "gulpfile.js", ".markdownlint.json")
LINT_CONFIG = ".markdownlint.json"
GULP_TASK = "test-mdsyntax"

_ISSUE = re.compile(
    r"^(?P<path>.+?\.md):\s*(?P<line>\d+)(?::(?P<column>\d+))?:?\s+"
    r"(?P<rule>MD\d{3})(?:/(?P<alias>[\w/-]+))?\s+(?P<message>.+)$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class MarkdownIssue:
    path: str
    line: int
    column: int
    rule: str
    alias: str
    message: str


def prepare_workdir(workdir: Path, module_root: Path) -> Path:
    workdir.mkdir(parents=True, exist_ok=True)
    for name in RUNNER_FILES:
        shutil.copyfile(DATA_DIR / name, workdir / name)
    override = module_root / LINT_CONFIG
    if override.is_file():
        shutil.copyfile(override, workdir / LINT_CONFIG)
    return workdir


def _relative(raw: str, module_root: Path) -> str:
    path = Path(raw.strip())
    if path.is_absolute():
        try:
            return path.resolve().relative_to(module_root.resolve()).as_posix()
        except ValueError:
            return path.as_posix()
    return path.as_posix()


def parse_markdownlint_output(text: str, module_root: Path) -> list[MarkdownIssue]:
    issues: list[MarkdownIssue] = []
    for line in text.splitlines():
        match = _ISSUE.match(line.strip())
        if match is None:
            continue
        issues.append(
            MarkdownIssue(
                path=_relative(match.group("path"), module_root),
                line=int(match.group("line")),
                column=int(match.group("column") or 0),
                rule=match.group("rule").upper(),
                alias=match.group("alias") or "",
                message=match.group("message").strip(),
            )
        )
    return issues


def run_markdown_lint(
    npm: str,
    module_root: Path,
    workdir: Path,
    timeout_seconds: int,
    run: RunContext | None = None,
) -> tuple[CommandResult, list[MarkdownIssue]]:
    prepare_workdir(workdir, module_root)
    install = run_command(
        [npm, "install", "--silent", "--no-audit", "--no-fund"],
        workdir,
        timeout_seconds=timeout_seconds,
        retries=1,
        retry_delay_seconds=2.0,
        ctx=run,
    )
    if install.code == TIMEOUT_CODE:
        raise ScriptError(f"npm install timed out after {timeout_seconds}s", ERR_TIMEOUT, kind="npm_timeout")
    if install.code != 0:
        raise ScriptError(f"npm install failed: {install.combined_output}", ERR_PREREQ, kind="npm_install_failed")
    result = run_command(
        [
            npm,
            "exec",
            "--",
            "gulp",
            GULP_TASK,
            "--silent",
            "--rootpath",
            str(module_root),
            "--dscresourcespath",
            str(workdir),
        ],
        workdir,
        timeout_seconds=timeout_seconds,
        ctx=run,
    )
    if result.code == TIMEOUT_CODE:
        raise ScriptError(f"markdown lint timed out after {timeout_seconds}s", ERR_TIMEOUT, kind="markdown_timeout")
    return result, parse_markdownlint_output(result.combined_output, module_root)
