from __future__ import annotations

from ..core.errors import ScriptError
from ..core.exit_codes import ERR_USAGE
from .analyzer import check_custom_rules, check_flagged_rules, check_new_error_rules, check_required_rules
from .examples import check_examples_compile
from .files import check_final_newline, check_markdown_no_bom, check_no_tab_characters, check_no_unicode_encoding
from .manifest import check_manifest_present, check_manifest_valid, check_powershell_version
from .markdown import check_markdown_lint
from .model import CheckDef
from .paths import check_relative_path_length
from .resources import check_schema_present, check_schema_valid, check_target_functions
from .scripts import check_module_files_parse, check_script_files_parse

FILE_FORMATTING = "Common Tests - File Formatting"
MODULE_MANIFEST = "Common Tests - Module Manifest"
SCHEMA_VALIDATION = "Common Tests - Script Resource Schema Validation"

CHECKS: tuple[CheckDef, ...] = (
    CheckDef(
        "files/no-unicode-encoding", "files", FILE_FORMATTING,
        "text files are not encoded as UTF-16 or UTF-32", 1000, check_no_unicode_encoding,
        fix_hint="Re-save the file as UTF-8 or ASCII.",
    ),
    CheckDef(
        "files/no-tab-characters", "files", FILE_FORMATTING,
        "text files are indented with spaces", 1000, check_no_tab_characters,
        fix_hint="Replace tab characters with four spaces.",
    ),
    CheckDef(
        "files/final-newline", "files", FILE_FORMATTING,
        "text files end with a newline", 1000, check_final_newline,
        fix_hint="Add a newline at the end of the file.",
    ),
    CheckDef(
        "files/markdown-no-bom", "files", FILE_FORMATTING,
        "markdown files have no byte order mark", 500, check_markdown_no_bom,
        fix_hint="Re-save the markdown file as UTF-8 without BOM.",
    ),
    CheckDef(
        "manifest/present", "manifest", MODULE_MANIFEST,
        "the module root contains its module manifest", 200, check_manifest_present,
        fix_hint="Add <ModuleName>.psd1 to the module root.",
    ),
    CheckDef(
        "manifest/valid", "manifest", MODULE_MANIFEST,
        "the module manifest parses and carries version, GUID, author and description", 500, check_manifest_valid,
        fix_hint="Fix the manifest syntax and required fields.",
    ),
    CheckDef(
        "manifest/powershell-version", "manifest", MODULE_MANIFEST,
        "the module manifest requires a supported PowerShell version", 500, check_powershell_version,
        fix_hint="Set PowerShellVersion to the minimum supported version or later.",
    ),
    CheckDef(
        "resources/schema-present", "resources", SCHEMA_VALIDATION,
        "every resource folder has a module and a schema file", 500, check_schema_present,
        fix_hint="Add <Resource>.psm1 and <Resource>.schema.mof to the resource folder.",
    ),
    CheckDef(
        "resources/schema-valid", "resources", SCHEMA_VALIDATION,
        "resource schemas declare a versioned OMI_BaseResource class with a key property", 1000, check_schema_valid,
        fix_hint="Fix the class declaration and qualifiers in the schema file.",
    ),
    CheckDef(
        "resources/target-functions", "resources", SCHEMA_VALIDATION,
        "resource modules define and export the Get/Set/Test-TargetResource functions", 1000, check_target_functions,
        fix_hint="Define the three *-TargetResource functions and export them with Export-ModuleMember.",
    ),
    CheckDef(
        "analyzer/required-rules", "analyzer", "Common Tests - Required Script Analyzer Rules",
        "no PSScriptAnalyzer findings from required rules", 120000, check_required_rules,
        external_tools=("pwsh", "PSScriptAnalyzer"),
        fix_hint="Fix the reported PSScriptAnalyzer findings.",
    ),
    CheckDef(
        "analyzer/flagged-rules", "analyzer", "Common Tests - Flagged Script Analyzer Rules",
        "no PSScriptAnalyzer findings from flagged rules", 1000, check_flagged_rules,
        opt_in=True, external_tools=("pwsh", "PSScriptAnalyzer"),
        fix_hint="Fix the reported PSScriptAnalyzer findings or suppress them with a justification.",
    ),
    CheckDef(
        "analyzer/new-error-rules", "analyzer", "Common Tests - New Error-Level Script Analyzer Rules",
        "no error-level PSScriptAnalyzer findings from rules outside the known lists", 1000, check_new_error_rules,
        opt_in=True, external_tools=("pwsh", "PSScriptAnalyzer"),
        fix_hint="Fix the reported PSScriptAnalyzer findings.",
    ),
    CheckDef(
        "analyzer/custom-rules", "analyzer", "Common Tests - Custom Script Analyzer Rules",
        "parameter blocks follow the DSC style conventions", 3000, check_custom_rules,
        opt_in=True,
        fix_hint="Start each parameter with [Parameter()] and write mandatory parameters as Mandatory = $true.",
    ),
    CheckDef(
        "scripts/module-files-parse", "scripts", "Common Tests - Validate Module Files",
        "module files parse without errors", 60000, check_module_files_parse,
        opt_in=True, external_tools=("pwsh",),
        fix_hint="Fix the reported syntax errors.",
    ),
    CheckDef(
        "scripts/script-files-parse", "scripts", "Common Tests - Validate Script Files",
        "script files parse without errors", 60000, check_script_files_parse,
        opt_in=True, external_tools=("pwsh",),
        fix_hint="Fix the reported syntax errors.",
    ),
    CheckDef(
        "examples/compile", "examples", "Common Tests - Validate Example Files",
        "every example configuration compiles", 300000, check_examples_compile,
        opt_in=True, external_tools=("pwsh",),
        fix_hint="Make the example dot-sourceable and its configurations compile with the module on PSModulePath.",
    ),
    CheckDef(
        "markdown/lint", "markdown", "Common Tests - Validate Markdown Files",
        "markdown files pass markdownlint", 300000, check_markdown_lint,
        opt_in=True, external_tools=("npm", "gulp", "markdownlint"),
        fix_hint="Fix the reported markdownlint rules.",
    ),
    CheckDef(
        "paths/relative-length", "paths", "Common Tests - Relative Path Length",
        "relative file paths stay within the maximum length", 1000, check_relative_path_length,
        opt_in=True,
        fix_hint="Shorten folder or file names.",
    ),
)


def domains() -> list[str]:
    return sorted({"all", *{c.domain for c in CHECKS}})


def get_check(check_id: str) -> CheckDef:
    for check in CHECKS:
        if check.check_id == check_id:
            return check
    raise ScriptError(f"unknown check `{check_id}`", ERR_USAGE, kind="unknown_check")


def select_checks(domain: str = "all", ids: list[str] | None = None) -> list[CheckDef]:
    if domain not in domains():
        raise ScriptError(f"unknown domain `{domain}`; expected one of {', '.join(domains())}", ERR_USAGE, kind="unknown_domain")
    if ids:
        wanted = {get_check(check_id).check_id for check_id in ids}
        return [c for c in CHECKS if c.check_id in wanted and (domain == "all" or c.domain == domain)]
    return [c for c in CHECKS if domain == "all" or c.domain == domain]
