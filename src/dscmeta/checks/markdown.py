from __future__ import annotations

from ..core.fs import files_with_suffix
from ..core.process import which
from ..tools.markdownlint import run_markdown_lint
from .model import CheckContext, CheckOutcome
from .violations import v


def check_markdown_lint(ctx: CheckContext) -> CheckOutcome:
    files = files_with_suffix(ctx.module_root, ctx.config.exclude_dirs, ".md")
    if not files:
        return CheckOutcome(skipped_reason="no markdown files")
    npm = which(ctx.config.markdown.npm)
    if npm is None:
        return CheckOutcome(skipped_reason=f"{ctx.config.markdown.npm} not found on PATH")
    workdir = ctx.evidence_root / "markdown"
    result, issues = run_markdown_lint(npm, ctx.module_root, workdir, ctx.config.markdown.timeout_seconds, ctx.run)
    violations = [
        v(
            issue.rule,
            f"{issue.rule}/{issue.alias} {issue.message}" if issue.alias else f"{issue.rule} {issue.message}",
            path=issue.path,
            line=issue.line,
            column=issue.column,
        )
        for issue in issues
    ]
    if result.code != 0 and not violations:
        violations.append(v("MARKDOWN_LINT_FAILED", f"markdown lint exited with {result.code}: {result.combined_output}"))
    return CheckOutcome(violations=tuple(violations), metrics={"files": len(files)})
