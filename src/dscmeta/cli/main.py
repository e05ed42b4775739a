from __future__ import annotations

import argparse
import os
import platform
import sys
from pathlib import Path

from .. import __version__
from ..checks.model import CheckContext, CheckStatus
from ..checks.registry import CHECKS, get_check, select_checks
from ..checks.report import build_report_payload, explain_payload, render_explain, render_json, render_text
from ..checks.runner import run_checks
from ..core.context import RunContext
from ..core.errors import ScriptError
from ..core.exit_codes import ERR_CHECKS, ERR_INTERNAL, ERR_USAGE, OK
from ..core.fs import write_json
from ..core.logging import log_event
from ..core.process import run_command, which
from ..rules import RULE_NAMES
from ..rules.engine import analyze_file, collect_script_files
from .output import build_base_payload, dumps_json, emit, render_error, resolve_output_format

DOCTOR_TOOLS = ("pwsh", "npm", "node")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dscmeta", description="Common quality checks for PowerShell DSC resource modules.")
    p.add_argument("--module-root", help="module root directory (default: $DSCMETA_MODULE_ROOT or cwd)")
    p.add_argument("--run-id", help="run identifier for logs and artifacts")
    p.add_argument("--evidence-root", help="evidence root path (default: output/dscmeta under the module root)")
    p.add_argument("--format", choices=["text", "json"], default=None, help="output format")
    p.add_argument("--log-json", action="store_true", help="emit structured log lines as JSON")
    vg = p.add_mutually_exclusive_group()
    vg.add_argument("--verbose", action="store_true", help="enable verbose diagnostics")
    vg.add_argument("--quiet", action="store_true", help="only emit failures and errors")
    sub = p.add_subparsers(dest="cmd", required=True)

    check_p = sub.add_parser("check", help="run module checks")
    check_p.add_argument("--domain", default="all", help="restrict to one check domain")
    check_p.add_argument("--select", action="append", default=[], metavar="ID", help="run only this check id (repeatable)")
    check_p.add_argument("--fail-fast", action="store_true", help="stop after the first failing check")
    check_p.add_argument("--out-file", help="write the JSON report under the evidence root")
    check_p.add_argument("--json", action="store_true", help="emit JSON output")

    list_p = sub.add_parser("list", help="list registered checks")
    list_p.add_argument("--domain", default="all", help="restrict to one check domain")
    list_p.add_argument("--json", action="store_true", help="emit JSON output")

    explain_p = sub.add_parser("explain", help="describe one check")
    explain_p.add_argument("check_id")
    explain_p.add_argument("--json", action="store_true", help="emit JSON output")

    analyze_p = sub.add_parser("analyze", help="run the parameter block rules over scripts")
    analyze_p.add_argument("paths", nargs="+", help="files or directories to analyze")
    analyze_p.add_argument("--json", action="store_true", help="emit JSON output")

    config_p = sub.add_parser("config", help="configuration commands")
    config_sub = config_p.add_subparsers(dest="config_cmd", required=True)
    config_dump = config_sub.add_parser("dump", help="print the resolved configuration")
    config_dump.add_argument("--json", action="store_true", help="emit JSON output")
    config_validate = config_sub.add_parser("validate", help="validate the configuration and opt-in files")
    config_validate.add_argument("--json", action="store_true", help="emit JSON output")

    doctor_p = sub.add_parser("doctor", help="show external tool availability")
    doctor_p.add_argument("--json", action="store_true", help="emit JSON output")

    sub.add_parser("version", help="print version")
    return p


def _run_check_command(ctx: RunContext, ns: argparse.Namespace, as_json: bool) -> int:
    checks = select_checks(ns.domain, ns.select)
    if not checks:
        raise ScriptError(f"no checks selected for domain `{ns.domain}`", ERR_USAGE, kind="empty_selection")
    check_ctx = CheckContext(module_root=ctx.module_root, config=ctx.config, run=ctx)
    report = run_checks(check_ctx, checks, ctx.opt_in, fail_fast=ns.fail_fast)
    payload = build_report_payload(report, run_id=ctx.run_id, module_root=str(ctx.module_root))
    if ns.out_file:
        out = write_json(ctx, Path(ns.out_file), payload)
        log_event(ctx, "debug", "report", "write", path=str(out))
    if as_json:
        print(render_json(payload))
    else:
        print(render_text(payload, quiet=ctx.quiet, verbose=ctx.verbose))
    return OK if report.status == CheckStatus.PASS else ERR_CHECKS


def _run_list_command(ns: argparse.Namespace, as_json: bool) -> int:
    checks = select_checks(ns.domain)
    if as_json:
        rows = [
            {"id": c.check_id, "domain": c.domain, "title": c.title, "opt_in": c.opt_in, "description": c.description}
            for c in checks
        ]
        print(dumps_json({"schema_version": 1, "tool": "dscmeta", "status": "ok", "checks": rows}))
        return OK
    for check in checks:
        flag = "opt-in" if check.opt_in else "always"
        print(f"{check.check_id}\t{flag}\t{check.title}")
    return OK


def _run_analyze_command(ctx: RunContext, ns: argparse.Namespace, as_json: bool) -> int:
    paths = [Path(raw) for raw in ns.paths]
    missing = [str(p) for p in paths if not p.exists()]
    if missing:
        raise ScriptError(f"path not found: {', '.join(missing)}", ERR_USAGE, kind="path_missing")
    diagnostics = []
    for path in collect_script_files(paths, tuple(ctx.config.exclude_dirs)):
        diagnostics.extend(analyze_file(path))
    log_event(ctx, "debug", "analyze", "finish", diagnostics=len(diagnostics))
    if as_json:
        status = "fail" if diagnostics else "ok"
        payload = {
            "schema_version": 1,
            "tool": "dscmeta",
            "status": status,
            "rules": list(RULE_NAMES),
            "diagnostics": [d.as_dict() for d in diagnostics],
        }
        print(dumps_json(payload))
    else:
        for item in diagnostics:
            print(item.render())
    return ERR_CHECKS if diagnostics else OK


def _run_config_command(ctx: RunContext, ns: argparse.Namespace, as_json: bool) -> int:
    if ns.config_cmd == "dump":
        payload = {**build_base_payload(ctx), "config": ctx.config.as_dict(), "opt_in": sorted(ctx.opt_in)}
        print(dumps_json(payload, pretty=not as_json))
        return OK
    known = {c.check_id for c in CHECKS} | {c.title for c in CHECKS}
    unknown = sorted(name for name in ctx.opt_in if name not in known)
    payload = {
        **build_base_payload(ctx),
        "source": ctx.config.source or "<defaults>",
        "opt_in": sorted(ctx.opt_in),
        "unknown_opt_in": unknown,
    }
    if as_json:
        emit(payload, True)
    else:
        print(f"config ok: {payload['source']}")
        for name in unknown:
            print(f"warning: opt-in `{name}` does not name a known check")
    return OK


def _tool_version(path: str) -> str:
    flag = "-Version" if Path(path).stem.lower() == "pwsh" else "--version"
    result = run_command([path, flag], Path.cwd(), timeout_seconds=30)
    return result.stdout.strip().splitlines()[0] if result.code == 0 and result.stdout.strip() else ""


def _run_doctor_command(ctx: RunContext, as_json: bool) -> int:
    executables = {"pwsh": ctx.config.powershell.executable, "npm": ctx.config.markdown.npm, "node": "node"}
    tools = []
    for name in DOCTOR_TOOLS:
        executable = executables[name]
        path = which(executable)
        tools.append({"name": name, "path": path or "", "available": path is not None, "version": _tool_version(path) if path else ""})
    payload = {
        **build_base_payload(ctx),
        "python_version": platform.python_version(),
        "tools": tools,
    }
    if as_json:
        emit(payload, True)
        return OK
    print(f"dscmeta {__version__} python {payload['python_version']}")
    for row in tools:
        state = f"{row['path']} {row['version']}".strip() if row["available"] else "not found"
        print(f"{row['name']}: {state}")
    return OK


def main(argv: list[str] | None = None) -> int:
    raw_argv = argv if argv is not None else sys.argv[1:]
    p = build_parser()
    ns = p.parse_args(raw_argv)
    fmt = resolve_output_format(cli_json=bool(getattr(ns, "json", False)), cli_format=ns.format, ci_present=bool(os.environ.get("CI")))
    as_json = fmt == "json"
    try:
        if ns.cmd == "version":
            print(dumps_json({"schema_version": 1, "tool": "dscmeta", "status": "ok", "version": __version__}) if as_json else f"dscmeta {__version__}")
            return OK
        if ns.cmd == "list":
            return _run_list_command(ns, as_json)
        if ns.cmd == "explain":
            check = get_check(ns.check_id)
            print(dumps_json(explain_payload(check)) if as_json else render_explain(check))
            return OK
        ctx = RunContext.from_args(
            ns.module_root,
            ns.run_id,
            ns.evidence_root,
            fmt,
            ns.verbose,
            ns.quiet,
            ns.log_json,
        )
        log_event(ctx, "info", "cli", "start", cmd=ns.cmd, fmt=ctx.output_format, module=ctx.module_name)
        log_event(ctx, "debug", "config", "load", source=ctx.config.source or "<defaults>", opt_in=len(ctx.opt_in))
        if ns.cmd == "check":
            return _run_check_command(ctx, ns, as_json)
        if ns.cmd == "analyze":
            return _run_analyze_command(ctx, ns, as_json)
        if ns.cmd == "config":
            return _run_config_command(ctx, ns, as_json)
        if ns.cmd == "doctor":
            return _run_doctor_command(ctx, as_json)
        return ERR_USAGE
    except ScriptError as exc:
        print(render_error(as_json=as_json, message=str(exc), code=exc.code, kind=exc.kind), file=sys.stderr)
        return exc.code
    except Exception as exc:  # pragma: no cover
        print(render_error(as_json=as_json, message=f"internal error: {exc}", code=ERR_INTERNAL, kind="internal_error"), file=sys.stderr)
        return ERR_INTERNAL


if __name__ == "__main__":
    raise SystemExit(main())
