from __future__ import annotations

import re
from pathlib import Path

from ..core.fs import read_text_any, rel_posix
from ..powershell import ParamBlockSyntaxError, find_closing_bracket
from .model import CheckContext, CheckOutcome
from .violations import v

TARGET_FUNCTIONS = ("Get-TargetResource", "Set-TargetResource", "Test-TargetResource")

_MOF_COMMENTS = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)
_MOF_CLASS = re.compile(r"\[(?P<qualifiers>[^\]]*)\]\s*class\s+(?P<name>\w+)\s*(?::\s*(?P<base>\w+))?", re.IGNORECASE)
_CLASS_VERSION = re.compile(r"\bClassVersion\s*\(\s*\"[\d.]+\"\s*\)", re.IGNORECASE)
_FRIENDLY_NAME = re.compile(r"\bFriendlyName\s*\(\s*\"(?P<name>[^\"]+)\"\s*\)", re.IGNORECASE)
_KEY_PROPERTY = re.compile(r"\[\s*(?:[^\]]*,\s*)?Key\b[^\]]*\]\s*\w+(?:\[\])?\s+\w+", re.IGNORECASE)
_FUNCTION = re.compile(r"^\s*function\s+(?P<name>[\w-]+)", re.IGNORECASE | re.MULTILINE)
_EXPORT = re.compile(r"Export-ModuleMember\b(?P<args>[^\n]*(?:`\r?\n[^\n]*)*)", re.IGNORECASE)


def resource_dirs(module_root: Path) -> list[Path]:
    for child in sorted(module_root.iterdir()):
        if child.is_dir() and child.name.lower() == "dscresources":
            return sorted(p for p in child.iterdir() if p.is_dir())
    return []


def check_schema_present(ctx: CheckContext) -> CheckOutcome:
    dirs = resource_dirs(ctx.module_root)
    if not dirs:
        return CheckOutcome(skipped_reason="no DSCResources directory with resources")
    violations = []
    for folder in dirs:
        rel = rel_posix(ctx.module_root, folder)
        for suffix in (".psm1", ".schema.mof"):
            if not (folder / f"{folder.name}{suffix}").is_file():
                violations.append(v("RESOURCE_FILE_MISSING", f"missing {folder.name}{suffix}", path=rel))
    return CheckOutcome(violations=tuple(violations), metrics={"resources": len(dirs)})


def validate_schema_text(text: str, resource_name: str) -> list[str]:
    body = _MOF_COMMENTS.sub("", text)
    match = _MOF_CLASS.search(body)
    if match is None:
        return ["no qualified class declaration found"]
    problems: list[str] = []
    if match.group("name") != resource_name:
        problems.append(f"class name `{match.group('name')}` does not match the resource folder `{resource_name}`")
    if (match.group("base") or "").lower() != "omi_baseresource":
        problems.append("class must derive from OMI_BaseResource")
    qualifiers = match.group("qualifiers")
    if not _CLASS_VERSION.search(qualifiers):
        problems.append("class is missing a ClassVersion qualifier")
    if not _FRIENDLY_NAME.search(qualifiers):
        problems.append("class is missing a FriendlyName qualifier")
    if not _KEY_PROPERTY.search(body, match.end()):
        problems.append("class has no property qualified as Key")
    return problems


def check_schema_valid(ctx: CheckContext) -> CheckOutcome:
    schemas = [
        (folder, folder / f"{folder.name}.schema.mof")
        for folder in resource_dirs(ctx.module_root)
        if (folder / f"{folder.name}.schema.mof").is_file()
    ]
    if not schemas:
        return CheckOutcome(skipped_reason="no resource schema files")
    violations = []
    for folder, schema in schemas:
        rel = rel_posix(ctx.module_root, schema)
        for problem in validate_schema_text(read_text_any(schema), folder.name):
            violations.append(v("RESOURCE_SCHEMA_INVALID", problem, path=rel))
    return CheckOutcome(violations=tuple(violations), metrics={"schemas": len(schemas)})


def _export_arguments(text: str) -> list[str]:
    """Argument text of each Export-ModuleMember call, following `( )` groups across lines."""
    found: list[str] = []
    for match in _EXPORT.finditer(text):
        start, end = match.span("args")
        i = start
        while i < end:
            if text[i] == "(":
                try:
                    i = find_closing_bracket(text, i) + 1
                except ParamBlockSyntaxError:
                    break
                end = max(end, i)
                continue
            i += 1
        found.append(text[start:end])
    return found


def _exports(text: str, name: str) -> bool:
    for args in _export_arguments(text):
        lowered = args.lower()
        if "*-targetresource" in lowered or name.lower() in lowered:
            return True
    return False


def check_target_functions(ctx: CheckContext) -> CheckOutcome:
    modules = [
        folder / f"{folder.name}.psm1"
        for folder in resource_dirs(ctx.module_root)
        if (folder / f"{folder.name}.psm1").is_file()
    ]
    if not modules:
        return CheckOutcome(skipped_reason="no resource modules")
    violations = []
    for module in modules:
        rel = rel_posix(ctx.module_root, module)
        text = read_text_any(module)
        defined = {m.group("name").lower() for m in _FUNCTION.finditer(text)}
        for name in TARGET_FUNCTIONS:
            if name.lower() not in defined:
                violations.append(v("RESOURCE_FUNCTION_MISSING", f"{name} is not defined", path=rel))
            elif not _exports(text, name):
                violations.append(v("RESOURCE_FUNCTION_NOT_EXPORTED", f"{name} is not exported", path=rel))
    return CheckOutcome(violations=tuple(violations), metrics={"modules": len(modules)})
