from __future__ import annotations

from pathlib import Path

import pytest

from dscmeta.checks import analyzer, examples, markdown, scripts
from dscmeta.checks.model import CheckContext, CheckDef, CheckFunc, CheckOutcome, CheckStatus, Severity
from dscmeta.checks.registry import CHECKS, domains, get_check, select_checks
from dscmeta.checks.report import build_report_payload, explain_payload, render_explain, render_json, render_text
from dscmeta.checks.runner import run_checks
from dscmeta.checks.violations import v
from dscmeta.core.errors import ScriptError
from dscmeta.core.exit_codes import ERR_USAGE


def _ok(_ctx: CheckContext) -> CheckOutcome:
    return CheckOutcome(metrics={"files": 1})


def _bad(_ctx: CheckContext) -> CheckOutcome:
    return CheckOutcome(
        violations=(
            v("Z_CODE", "second", path="b.ps1", line=2),
            v("A_CODE", "first", path="a.ps1", line=1),
            v("INFO_ONLY", "note", severity=Severity.INFO),
        )
    )


def _skip(_ctx: CheckContext) -> CheckOutcome:
    return CheckOutcome(skipped_reason="tool missing")


def _boom(_ctx: CheckContext) -> CheckOutcome:
    raise RuntimeError("kaboom")


def _info_only(_ctx: CheckContext) -> CheckOutcome:
    return CheckOutcome(violations=(v("INFO_ONLY", "note", severity=Severity.INFO),))


def _check(check_id: str, fn: CheckFunc, opt_in: bool = False, title: str = "") -> CheckDef:
    domain = check_id.split("/")[0]
    return CheckDef(check_id, domain, title or f"Title {check_id}", "desc", 1000, fn, opt_in=opt_in)


def test_registry_ids_are_unique_and_well_formed() -> None:
    ids = [c.check_id for c in CHECKS]
    assert len(ids) == len(set(ids))
    assert all(check_id.split("/")[0] == c.domain for check_id, c in zip(ids, CHECKS))
    assert domains() == sorted(domains())
    assert "all" in domains()
    assert {"files", "manifest", "resources", "analyzer", "scripts", "examples", "markdown", "paths"} <= set(domains())


def test_opt_in_titles_match_legacy_names() -> None:
    titles = {c.check_id: c.title for c in CHECKS if c.opt_in}
    assert titles["markdown/lint"] == "Common Tests - Validate Markdown Files"
    assert titles["examples/compile"] == "Common Tests - Validate Example Files"
    assert titles["paths/relative-length"] == "Common Tests - Relative Path Length"
    assert titles["analyzer/custom-rules"] == "Common Tests - Custom Script Analyzer Rules"
    assert not get_check("analyzer/required-rules").opt_in


def test_get_and_select_checks() -> None:
    assert get_check("files/final-newline").domain == "files"
    with pytest.raises(ScriptError) as info:
        get_check("files/nope")
    assert info.value.code == ERR_USAGE
    with pytest.raises(ScriptError):
        select_checks("nope")
    assert [c.domain for c in select_checks("manifest")] == ["manifest"] * 3
    assert [c.check_id for c in select_checks("all", ["paths/relative-length", "files/final-newline"])] == [
        "files/final-newline",
        "paths/relative-length",
    ]
    assert select_checks("files", ["paths/relative-length"]) == []


def test_statuses_and_summary(tmp_path: Path) -> None:
    checks = [_check("x/ok", _ok), _check("x/bad", _bad), _check("x/skip", _skip), _check("x/boom", _boom), _check("x/info", _info_only)]
    report = run_checks(CheckContext(module_root=tmp_path), checks)
    statuses = {row.check_id: row.status for row in report.rows}
    assert statuses == {
        "x/ok": CheckStatus.PASS,
        "x/bad": CheckStatus.FAIL,
        "x/skip": CheckStatus.SKIP,
        "x/boom": CheckStatus.ERROR,
        "x/info": CheckStatus.PASS,
    }
    boom = next(row for row in report.rows if row.check_id == "x/boom")
    assert boom.warnings == ("RuntimeError: kaboom",)
    bad = next(row for row in report.rows if row.check_id == "x/bad")
    assert [item.code for item in bad.violations] == ["INFO_ONLY", "A_CODE", "Z_CODE"]
    summary = report.summary
    assert (summary["passed"], summary["failed"], summary["skipped"], summary["errors"], summary["total"]) == (2, 1, 1, 1, 5)
    assert report.status == CheckStatus.FAIL


def test_fail_fast_stops_after_first_failure(tmp_path: Path) -> None:
    checks = [_check("x/ok", _ok), _check("x/bad", _bad), _check("x/after", _ok)]
    report = run_checks(CheckContext(module_root=tmp_path), checks, fail_fast=True)
    assert [row.check_id for row in report.rows] == ["x/ok", "x/bad"]


def test_opt_in_check_not_opted_in_downgrades_to_warnings(tmp_path: Path) -> None:
    check = _check("x/optional", _bad, opt_in=True, title="Common Tests - Optional")
    (row,) = run_checks(CheckContext(module_root=tmp_path), [check]).rows
    assert row.status == CheckStatus.PASS
    assert row.opted_in is False
    assert [item.code for item in row.violations] == ["INFO_ONLY"]
    assert row.warnings == ("a.ps1:1: first", "b.ps1:2: second")


@pytest.mark.parametrize("name", ["x/optional", "Common Tests - Optional"])
def test_opted_in_check_fails_normally(tmp_path: Path, name: str) -> None:
    check = _check("x/optional", _bad, opt_in=True, title="Common Tests - Optional")
    (row,) = run_checks(CheckContext(module_root=tmp_path), [check], frozenset({name})).rows
    assert row.status == CheckStatus.FAIL
    assert row.opted_in is True


def test_report_payload_and_text(tmp_path: Path) -> None:
    checks = [_check("x/ok", _ok), _check("x/bad", _bad), _check("x/skip", _skip)]
    report = run_checks(CheckContext(module_root=tmp_path), checks)
    payload = build_report_payload(report, run_id="r1", module_root=str(tmp_path))
    assert payload["schema_name"] == "dscmeta.check-run.v1"
    assert payload["status"] == "fail"
    assert [row["id"] for row in payload["rows"]] == ["x/bad", "x/ok", "x/skip"]
    assert payload["rows"][0]["status"] == "FAIL"
    assert payload["rows"][0]["budget_status"] == "pass"
    assert render_json(payload).startswith('{"kind": "check-run"')

    text = render_text(payload)
    lines = text.splitlines()
    assert lines[0].startswith("FAIL x/bad (")
    assert "  a.ps1:1: first" in lines
    assert any(line.startswith("SKIP x/skip (") and line.endswith("skipped: tool missing") for line in lines)
    assert "summary: passed=1 failed=1 skipped=1 errors=0 total=3" in text
    assert lines[-2:] == ["failing checks:", "- x/bad: note; first; second"]

    assert render_text(payload, quiet=True) == "FAIL x/bad"


def test_quiet_pass_and_verbose_warnings(tmp_path: Path) -> None:
    check = _check("x/optional", _bad, opt_in=True)
    payload = build_report_payload(run_checks(CheckContext(module_root=tmp_path), [check]))
    assert render_text(payload, quiet=True) == "PASS"
    assert "  warning: a.ps1:1: first" in render_text(payload, verbose=True).splitlines()
    assert "warning:" not in render_text(payload)


def test_explain_renders_check_metadata() -> None:
    check = get_check("markdown/lint")
    text = render_explain(check)
    assert text.splitlines()[0] == "markdown/lint: markdown files pass markdownlint"
    assert "  opt-in: yes" in text
    assert "  requires: npm, gulp, markdownlint" in text
    payload = explain_payload(check)
    assert payload["check"]["title"] == "Common Tests - Validate Markdown Files"


def test_full_registry_on_clean_module(module_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(analyzer, "find_pwsh", lambda config: None)
    monkeypatch.setattr(scripts, "find_pwsh", lambda config: None)
    monkeypatch.setattr(examples, "find_pwsh", lambda config: None)
    monkeypatch.setattr(markdown, "which", lambda tool: None)
    report = run_checks(CheckContext(module_root=module_root), list(CHECKS))
    assert report.status == CheckStatus.PASS, [row for row in report.rows if row.status != CheckStatus.PASS]
    build_report_payload(report, run_id="clean")
