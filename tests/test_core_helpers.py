from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from dscmeta.core.config import (
    DEFAULT_EXCLUDE_DIRS,
    DscMetaConfig,
    config_from_mapping,
    load_config,
    load_opt_in,
)
from dscmeta.core.context import RunContext
from dscmeta.core.errors import ScriptError
from dscmeta.core.exit_codes import ERR_CONFIG, ERR_INTERNAL, ERR_TIMEOUT, ERR_VALIDATION, ERROR_REGISTRY, OK
from dscmeta.core.fs import ensure_evidence_path, is_excluded, read_text_any, write_json
from dscmeta.core.logging import log_event
from dscmeta.core.process import NOT_FOUND_CODE, TIMEOUT_CODE, run_command


def test_exit_codes_come_from_registry() -> None:
    assert (OK, ERR_CONFIG, ERR_VALIDATION, ERR_INTERNAL, ERR_TIMEOUT) == (0, 3, 5, 99, 124)
    rows = json.loads(ERROR_REGISTRY.read_text(encoding="utf-8"))["codes"]
    assert len({row["code"] for row in rows}) == len(rows)
    assert all(row["name"].startswith("DSCMETA_") and row["description"] for row in rows)


def test_missing_config_file_gives_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path)
    assert cfg == DscMetaConfig()
    assert cfg.exclude_dirs == DEFAULT_EXCLUDE_DIRS
    assert cfg.paths.max_relative_length == 129


def test_config_file_merges_over_defaults(tmp_path: Path) -> None:
    (tmp_path / ".dscmeta.yml").write_text(
        "exclude_dirs: [.git, build]\n"
        "powershell:\n  executable: pwsh-preview\n"
        "analyzer:\n  flagged_rules: [PSAvoidGlobalVars]\n",
        encoding="utf-8",
    )
    cfg = load_config(tmp_path)
    assert cfg.exclude_dirs == (".git", "build")
    assert cfg.powershell.executable == "pwsh-preview"
    assert cfg.powershell.timeout_seconds == 600
    assert cfg.analyzer.flagged_rules == ("PSAvoidGlobalVars",)
    assert "PSAvoidUsingWriteHost" in cfg.analyzer.required_rules
    assert cfg.source.endswith(".dscmeta.yml")


def test_empty_config_file_gives_defaults(tmp_path: Path) -> None:
    (tmp_path / ".dscmeta.yml").write_text("# nothing\n", encoding="utf-8")
    assert load_config(tmp_path).powershell.executable == "pwsh"


@pytest.mark.parametrize(
    "body",
    [
        "unknown_key: 1\n",
        "paths:\n  max_relative_length: zero\n",
        "manifest:\n  min_powershell_version: latest\n",
        "- just\n- a list\n",
        "key: [unclosed\n",
    ],
)
def test_invalid_config_is_config_error(tmp_path: Path, body: str) -> None:
    (tmp_path / ".dscmeta.yml").write_text(body, encoding="utf-8")
    with pytest.raises(ScriptError) as info:
        load_config(tmp_path)
    assert info.value.code == ERR_CONFIG


def test_schema_error_names_the_failing_key() -> None:
    with pytest.raises(ScriptError) as info:
        config_from_mapping({"paths": {"max_relative_length": 0}})
    assert "paths/max_relative_length" in str(info.value)


def test_opt_in_merges_file_and_config(tmp_path: Path) -> None:
    (tmp_path / ".MetaTestOptIn.json").write_text(
        json.dumps(["Common Tests - Validate Markdown Files", " "]), encoding="utf-8"
    )
    cfg = config_from_mapping({"opt_in": ["paths/relative-length"]})
    assert load_opt_in(tmp_path, cfg) == frozenset({"Common Tests - Validate Markdown Files", "paths/relative-length"})


@pytest.mark.parametrize("body", ["{not json", '{"a": 1}', "[1, 2]"])
def test_invalid_opt_in_file(tmp_path: Path, body: str) -> None:
    (tmp_path / ".MetaTestOptIn.json").write_text(body, encoding="utf-8")
    with pytest.raises(ScriptError) as info:
        load_opt_in(tmp_path, DscMetaConfig())
    assert info.value.kind == "opt_in_invalid"


def test_run_context_defaults(module_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DSCMETA_RUN_ID", "run-1")
    ctx = RunContext.from_args(str(module_root))
    assert ctx.run_id == "run-1"
    assert ctx.module_name == "xDemo"
    assert ctx.evidence_root == (module_root / "output" / "dscmeta").resolve()
    assert ctx.opt_in == frozenset()


def test_run_context_missing_root(tmp_path: Path) -> None:
    with pytest.raises(ScriptError) as info:
        RunContext.from_args(str(tmp_path / "missing"))
    assert info.value.code == ERR_CONFIG


def test_evidence_writes_stay_under_root(module_root: Path) -> None:
    ctx = RunContext.from_args(str(module_root), run_id="r")
    out = write_json(ctx, ctx.evidence_root / "reports" / "x.json", {"ok": True})
    assert json.loads(out.read_text(encoding="utf-8")) == {"ok": True}
    assert ensure_evidence_path(ctx, Path("output/dscmeta/rel.json")) == ctx.evidence_root / "rel.json"
    with pytest.raises(ScriptError) as info:
        ensure_evidence_path(ctx, module_root / "escape.json")
    assert info.value.code == ERR_VALIDATION
    with pytest.raises(ScriptError):
        ensure_evidence_path(ctx, Path("output/dscmeta/../../escape.json"))


def test_is_excluded_checks_directories_only() -> None:
    assert is_excluded(Path("node_modules/a/b.ps1"), ("node_modules",))
    assert not is_excluded(Path("node_modules"), ("node_modules",))
    assert not is_excluded(Path("src/node_modules.ps1"), ("node_modules",))


def test_read_text_any_decodes_unicode_encodings(tmp_path: Path) -> None:
    for encoding in ("utf-8-sig", "utf-16", "utf-32"):
        path = tmp_path / f"{encoding}.txt"
        path.write_bytes("héllo".encode(encoding))
        assert read_text_any(path) == "héllo"


def test_run_command_captures_output(tmp_path: Path) -> None:
    result = run_command([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"], tmp_path)
    assert result.code == 0
    assert result.stdout.strip() == "out"
    assert result.combined_output == "out\nerr"


def test_run_command_timeout_and_missing_tool(tmp_path: Path) -> None:
    slow = run_command([sys.executable, "-c", "import time; time.sleep(5)"], tmp_path, timeout_seconds=1)
    assert slow.code == TIMEOUT_CODE
    missing = run_command(["dscmeta-no-such-tool"], tmp_path)
    assert missing.code == NOT_FOUND_CODE


def test_run_command_retries_until_attempts_exhausted(tmp_path: Path) -> None:
    counter = tmp_path / "count"
    script = (
        "import pathlib, sys; p = pathlib.Path(sys.argv[1]); "
        "n = int(p.read_text()) + 1 if p.exists() else 1; p.write_text(str(n)); sys.exit(1)"
    )
    result = run_command([sys.executable, "-c", script, str(counter)], tmp_path, retries=2)
    assert result.code == 1
    assert counter.read_text() == "3"


def test_log_event_formats(module_root: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ctx = RunContext.from_args(str(module_root), run_id="r1")
    log_event(ctx, "info", "checks", "finish", check="files/final-newline", status="pass")
    log_event(ctx, "debug", "checks", "start", check="hidden")
    line = capsys.readouterr().err.strip()
    assert "level=info run_id=r1 component=checks action=finish check=files/final-newline status=pass" in line
    assert "hidden" not in line

    json_ctx = RunContext.from_args(str(module_root), run_id="r2", log_json=True, verbose=True)
    log_event(json_ctx, "debug", "cli", "start", cmd="check")
    payload = json.loads(capsys.readouterr().err)
    assert payload["run_id"] == "r2"
    assert payload["cmd"] == "check"


def test_quiet_suppresses_info(module_root: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ctx = RunContext.from_args(str(module_root), run_id="q", quiet=True)
    log_event(ctx, "info", "cli", "start")
    log_event(ctx, "warn", "checks", "finish")
    err = capsys.readouterr().err
    assert "action=start" not in err
    assert "action=finish" in err
