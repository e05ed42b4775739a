from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..core.errors import ScriptError
from ..core.exit_codes import ERR_INTERNAL
from .model import CheckDef, CheckResult, CheckRunReport

CHECK_RUN = "dscmeta.check-run.v1"
CHECK_RUN_SCHEMA = Path(__file__).resolve().parents[1] / "schemas" / "check-run.schema.json"


def budget_status(result: CheckResult) -> str:
    return "warn" if result.budget_ms and result.duration_ms > result.budget_ms else "pass"


def results_as_rows(results: list[CheckResult]) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for result in sorted(results, key=lambda row: row.check_id):
        rows.append(
            {
                "id": result.check_id,
                "domain": result.domain,
                "title": result.title,
                "status": str(result.status).upper(),
                "duration_ms": int(result.duration_ms),
                "budget_ms": int(result.budget_ms),
                "budget_status": budget_status(result),
                "opt_in": result.opt_in,
                "opted_in": result.opted_in,
                "skipped_reason": result.skipped_reason,
                "hint": result.fix_hint,
                "violations": [
                    {
                        "code": item.code,
                        "message": item.message,
                        "path": item.path,
                        "line": item.line,
                        "column": item.column,
                        "severity": str(item.severity),
                    }
                    for item in sorted(result.violations, key=lambda item: item.canonical_key)
                ],
                "warnings": list(result.warnings),
                "metrics": dict(result.metrics),
            }
        )
    return rows


def validate_payload(payload: dict[str, Any]) -> None:
    import jsonschema

    schema = json.loads(CHECK_RUN_SCHEMA.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        loc = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ScriptError(f"{CHECK_RUN} payload invalid at {loc}: {exc.message}", ERR_INTERNAL, kind="report_invalid") from exc


def build_report_payload(report: CheckRunReport, *, run_id: str = "", module_root: str = "") -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schema_name": CHECK_RUN,
        "schema_version": 1,
        "tool": "dscmeta",
        "kind": "check-run",
        "run_id": run_id,
        "module_root": module_root,
        "status": str(report.status),
        "summary": dict(report.summary),
        "rows": results_as_rows(list(report.rows)),
    }
    validate_payload(payload)
    return payload


def render_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True)


def _detail(row: dict[str, Any]) -> str:
    if row.get("violations"):
        return "; ".join(item["message"] for item in row["violations"])
    return "; ".join(row.get("warnings", []))


def render_text(payload: dict[str, Any], *, quiet: bool = False, verbose: bool = False) -> str:
    rows = sorted(payload.get("rows", []), key=lambda item: str(item.get("id", "")))
    failing = [row for row in rows if row.get("status") in ("FAIL", "ERROR")]
    out: list[str] = []
    if quiet:
        out.extend(f"FAIL {row['id']}" for row in failing)
        return "\n".join(out or ["PASS"])
    for row in rows:
        line = f"{row['status']} {row['id']} ({int(row.get('duration_ms', 0))}ms)"
        if row.get("skipped_reason"):
            line += f" skipped: {row['skipped_reason']}"
        if verbose and row.get("budget_status") == "warn":
            line += f" over budget {int(row.get('budget_ms', 0))}ms"
        out.append(line)
        if row.get("status") in ("FAIL", "ERROR"):
            for item in row.get("violations", []):
                where = item["path"]
                if where and item["line"]:
                    where = f"{where}:{item['line']}"
                out.append(f"  {where}: {item['message']}" if where else f"  {item['message']}")
        if verbose:
            out.extend(f"  warning: {item}" for item in row.get("warnings", []))
    summary = payload.get("summary", {})
    out.append(
        f"summary: passed={int(summary.get('passed', 0))} failed={int(summary.get('failed', 0))} "
        f"skipped={int(summary.get('skipped', 0))} errors={int(summary.get('errors', 0))} "
        f"total={int(summary.get('total', 0))} duration_ms={int(summary.get('duration_ms', 0))}"
    )
    if failing:
        out.append("failing checks:")
        for row in failing:
            out.append(f"- {row['id']}: {_detail(row) or row.get('hint', '')}")
    return "\n".join(out)


def explain_payload(check: CheckDef) -> dict[str, Any]:
    return {
        "schema_version": 1,
        "tool": "dscmeta",
        "status": "ok",
        "check": {
            "id": check.check_id,
            "domain": check.domain,
            "title": check.title,
            "description": check.description,
            "opt_in": check.opt_in,
            "budget_ms": check.budget_ms,
            "external_tools": list(check.external_tools),
            "hint": check.fix_hint,
        },
    }


def render_explain(check: CheckDef) -> str:
    lines = [
        f"{check.check_id}: {check.description}",
        f"  title: {check.title}",
        f"  domain: {check.domain}",
        f"  opt-in: {'yes' if check.opt_in else 'no'}",
        f"  budget: {check.budget_ms}ms",
    ]
    if check.external_tools:
        lines.append(f"  requires: {', '.join(check.external_tools)}")
    lines.append(f"  fix: {check.fix_hint}")
    return "\n".join(lines)


__all__ = [
    "CHECK_RUN",
    "budget_status",
    "build_report_payload",
    "explain_payload",
    "render_explain",
    "render_json",
    "render_text",
    "results_as_rows",
]
