from __future__ import annotations

import json
from pathlib import Path

import pytest

from dscmeta.core.config import config_from_mapping
from dscmeta.core.errors import ScriptError
from dscmeta.core.exit_codes import ERR_PREREQ, ERR_TIMEOUT
from dscmeta.core.process import CommandResult
from dscmeta.tools import markdownlint, pwsh


def _marked(payload: object) -> str:
    return f"WARNING: noise\n{pwsh.JSON_MARKER}{json.dumps(payload)}\n"


def test_decode_marked_json_uses_last_marker_line() -> None:
    stdout = f"{pwsh.JSON_MARKER}[1]\nhost output\n{pwsh.JSON_MARKER}[2]\n"
    assert pwsh.decode_marked_json(stdout) == [2]
    with pytest.raises(ValueError):
        pwsh.decode_marked_json("no marker here")


def test_invoke_script_analyzer_maps_records(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, object] = {}
    payload = {
        "available": True,
        "records": [
            {
                "RuleName": "PSAvoidUsingWriteHost",
                "Severity": "Warning",
                "ScriptPath": str(tmp_path / "a.ps1"),
                "Line": 4,
                "Column": None,
                "Message": " Avoid Write-Host. ",
            }
        ],
    }

    def _run(cmd: list[str], cwd: Path, **kwargs: object) -> CommandResult:
        seen["cmd"] = cmd
        seen["env"] = kwargs["env"]
        return CommandResult(0, _marked(payload), "", 10)

    monkeypatch.setattr(pwsh, "run_command", _run)
    (record,) = pwsh.invoke_script_analyzer("pwsh", tmp_path, 60) or []
    assert record == pwsh.AnalyzerRecord("PSAvoidUsingWriteHost", "Warning", str(tmp_path / "a.ps1"), 4, 0, "Avoid Write-Host.")
    assert seen["cmd"][:4] == ["pwsh", "-NoLogo", "-NoProfile", "-NonInteractive"]  # type: ignore[index]
    assert seen["env"]["DSCMETA_ROOT"] == str(tmp_path)  # type: ignore[index]


def test_invoke_script_analyzer_reports_missing_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(pwsh, "run_command", lambda *args, **kwargs: CommandResult(0, _marked({"available": False}), "", 1))
    assert pwsh.invoke_script_analyzer("pwsh", tmp_path, 60) is None


def test_parse_files_passes_paths_as_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "a b.ps1"

    def _run(cmd: list[str], cwd: Path, **kwargs: object) -> CommandResult:
        files = json.loads(kwargs["env"]["DSCMETA_FILES"])  # type: ignore[index]
        rows = [{"path": files[0], "errors": [{"line": 2, "column": 7, "message": "Unexpected token"}]}]
        return CommandResult(0, _marked(rows), "", 1)

    monkeypatch.setattr(pwsh, "run_command", _run)
    assert pwsh.parse_files("pwsh", [target], tmp_path, 60) == {str(target): [pwsh.ParseError(2, 7, "Unexpected token")]}


@pytest.mark.parametrize(
    ("result", "code"),
    [
        (CommandResult(124, "", "timed out", 1), ERR_TIMEOUT),
        (CommandResult(1, "", "boom", 1), ERR_PREREQ),
        (CommandResult(0, "garbage", "", 1), ERR_PREREQ),
    ],
)
def test_run_pwsh_json_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, result: CommandResult, code: int) -> None:
    monkeypatch.setattr(pwsh, "run_command", lambda *args, **kwargs: result)
    with pytest.raises(ScriptError) as info:
        pwsh.run_pwsh_json("pwsh", "'x'", tmp_path, 5, {})
    assert info.value.code == code


def test_compile_examples_creates_output_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    rows = [{"path": "E.ps1", "status": "pass", "configurations": ["Example"], "error": ""}]
    monkeypatch.setattr(pwsh, "run_command", lambda *args, **kwargs: CommandResult(0, _marked(rows), "", 1))
    out = tmp_path / "out" / "examples"
    (result,) = pwsh.compile_examples("pwsh", tmp_path / "Mod", [tmp_path / "E.ps1"], out, 60)
    assert out.is_dir()
    assert result == pwsh.ExampleResult("E.ps1", True, ("Example",), "")


def test_find_pwsh_with_absolute_path(tmp_path: Path) -> None:
    exe = tmp_path / "pwsh"
    exe.write_text("", encoding="utf-8")
    assert pwsh.find_pwsh(config_from_mapping({"powershell": {"executable": str(exe)}})) == str(exe)
    missing = config_from_mapping({"powershell": {"executable": str(tmp_path / "nope")}})
    assert pwsh.find_pwsh(missing) is None


def test_parse_markdownlint_output(tmp_path: Path) -> None:
    root = tmp_path / "Mod"
    root.mkdir()
    text = "\n".join(
        [
            f"{root / 'README.md'}: 3: MD009/no-trailing-spaces Trailing spaces [Expected: 0; Actual: 2]",
            "docs/Guide.md:10:5 MD013/line-length Line length",
            "CHANGELOG.md: 1: MD041 First line in file should be a top level heading",
            "[12:00:00] Finished 'test-mdsyntax'",
        ]
    )
    issues = markdownlint.parse_markdownlint_output(text, root)
    assert [(i.path, i.line, i.column, i.rule, i.alias) for i in issues] == [
        ("README.md", 3, 0, "MD009", "no-trailing-spaces"),
        ("docs/Guide.md", 10, 5, "MD013", "line-length"),
        ("CHANGELOG.md", 1, 0, "MD041", ""),
    ]
    assert issues[0].message == "Trailing spaces [Expected: 0; Actual: 2]"


def test_prepare_workdir_prefers_module_lint_config(tmp_path: Path) -> None:
    root = tmp_path / "Mod"
    root.mkdir()
    (root / ".markdownlint.json").write_text('{"default": false}\n', encoding="utf-8")
    workdir = markdownlint.prepare_workdir(tmp_path / "work", root)
    assert sorted(p.name for p in workdir.iterdir()) == [".markdownlint.json", "gulpfile.js", "package.json"]
    assert json.loads((workdir / ".markdownlint.json").read_text(encoding="utf-8")) == {"default": False}


def test_run_markdown_lint_installs_then_runs_gulp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = tmp_path / "Mod"
    root.mkdir()
    calls: list[list[str]] = []

    def _run(cmd: list[str], cwd: Path, **kwargs: object) -> CommandResult:
        calls.append(cmd)
        if "install" in cmd:
            return CommandResult(0, "", "", 1)
        return CommandResult(1, "README.md: 1: MD041/first-line-heading First line\n", "", 1)

    monkeypatch.setattr(markdownlint, "run_command", _run)
    result, issues = markdownlint.run_markdown_lint("npm", root, tmp_path / "work", 60)
    assert calls[0][:2] == ["npm", "install"]
    assert calls[1][:5] == ["npm", "exec", "--", "gulp", "test-mdsyntax"]
    assert calls[1][calls[1].index("--rootpath") + 1] == str(root)
    assert result.code == 1
    assert [i.rule for i in issues] == ["MD041"]


def test_run_markdown_lint_install_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(markdownlint, "run_command", lambda *args, **kwargs: CommandResult(1, "", "E404", 1))
    with pytest.raises(ScriptError) as info:
        markdownlint.run_markdown_lint("npm", tmp_path, tmp_path / "work", 60)
    assert info.value.code == ERR_PREREQ
    assert info.value.kind == "npm_install_failed"
