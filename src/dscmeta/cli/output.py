"""CLI payload output helpers."""

from __future__ import annotations

import json

from ..core.context import RunContext


def dumps_json(payload: object, pretty: bool = False) -> str:
    if pretty:
        return json.dumps(payload, indent=2, sort_keys=True, default=str)
    return json.dumps(payload, sort_keys=True, default=str)


def emit(payload: dict[str, object], as_json: bool) -> None:
    print(dumps_json(payload, pretty=not as_json))


def build_base_payload(ctx: RunContext, status: str = "ok") -> dict[str, object]:
    return {
        "schema_version": 1,
        "tool": "dscmeta",
        "status": status,
        "run_id": ctx.run_id,
        "module_root": str(ctx.module_root),
        "evidence_root": str(ctx.evidence_root),
        "format": ctx.output_format,
    }


def resolve_output_format(*, cli_json: bool, cli_format: str | None, ci_present: bool) -> str:
    if cli_json:
        return "json"
    if cli_format:
        return cli_format
    return "json" if ci_present else "text"


def render_error(*, as_json: bool, message: str, code: int, kind: str = "generic_error") -> str:
    if as_json:
        return dumps_json(
            {
                "schema_version": 1,
                "tool": "dscmeta",
                "status": "fail",
                "error": {"message": message, "code": code, "kind": kind},
            }
        )
    return message
