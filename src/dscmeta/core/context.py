from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from .config import DscMetaConfig, load_config, load_opt_in
from .errors import ScriptError
from .exit_codes import ERR_CONFIG

OutputFormat = Literal["text", "json"]

DEFAULT_EVIDENCE_DIR = "output/dscmeta"


def resolve_module_root(raw: str | None) -> Path:
    candidate = Path(raw or os.environ.get("DSCMETA_MODULE_ROOT") or Path.cwd())
    root = candidate.expanduser().resolve()
    if not root.is_dir():
        raise ScriptError(f"module root does not exist: {root}", ERR_CONFIG, kind="module_root_missing")
    return root


@dataclass(frozen=True)
class RunContext:
    run_id: str
    module_root: Path
    evidence_root: Path
    output_format: OutputFormat
    verbose: bool
    quiet: bool
    log_json: bool
    config: DscMetaConfig
    opt_in: frozenset[str]

    @property
    def module_name(self) -> str:
        return self.module_root.name

    @classmethod
    def from_args(
        cls,
        module_root: str | None,
        run_id: str | None = None,
        evidence_root: str | None = None,
        output_format: OutputFormat = "text",
        verbose: bool = False,
        quiet: bool = False,
        log_json: bool = False,
    ) -> "RunContext":
        root = resolve_module_root(module_root)
        default_run = f"dscmeta-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}"
        resolved_run_id = run_id or os.environ.get("DSCMETA_RUN_ID", default_run)
        raw_evidence = Path(evidence_root or os.environ.get("DSCMETA_EVIDENCE_ROOT", DEFAULT_EVIDENCE_DIR))
        resolved_evidence = raw_evidence.resolve() if raw_evidence.is_absolute() else (root / raw_evidence).resolve()
        config = load_config(root)
        return cls(
            run_id=resolved_run_id,
            module_root=root,
            evidence_root=resolved_evidence,
            output_format=output_format,
            verbose=verbose,
            quiet=quiet,
            log_json=log_json,
            config=config,
            opt_in=load_opt_in(root, config),
        )
