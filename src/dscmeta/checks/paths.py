from __future__ import annotations

from ..core.fs import iter_module_files, rel_posix
from .model import CheckContext, CheckOutcome
from .violations import v


def check_relative_path_length(ctx: CheckContext) -> CheckOutcome:
    limit = ctx.config.paths.max_relative_length
    violations = []
    longest = 0
    for path in iter_module_files(ctx.module_root, ctx.config.exclude_dirs):
        rel = rel_posix(ctx.module_root, path)
        relative = f"{ctx.module_root.name}/{rel}"
        longest = max(longest, len(relative))
        if len(relative) > limit:
            violations.append(
                v("PATH_TOO_LONG", f"relative path is {len(relative)} characters; the limit is {limit}", path=rel)
            )
    return CheckOutcome(violations=tuple(violations), metrics={"longest": longest, "limit": limit})
