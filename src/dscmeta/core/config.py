from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

from .errors import ScriptError
from .exit_codes import ERR_CONFIG

CONFIG_FILE_NAME = ".dscmeta.yml"
OPT_IN_FILE_NAME = ".MetaTestOptIn.json"
CONFIG_SCHEMA = Path(__file__).resolve().parents[1] / "schemas" / "config.schema.json"

DEFAULT_EXCLUDE_DIRS = (".git", "node_modules", "DscResource.Tests", ".vscode", "output")
DEFAULT_TEXT_EXTENSIONS = (".gitignore", ".gitattributes", ".ps1", ".psm1", ".psd1", ".json", ".xml", ".cmd", ".mof")

DEFAULT_REQUIRED_RULES = (
    "PSAvoidDefaultValueForMandatoryParameter",
    "PSAvoidDefaultValueSwitchParameter",
    "PSAvoidInvokingEmptyMembers",
    "PSAvoidNullOrEmptyHelpMessageAttribute",
    "PSAvoidUsingCmdletAliases",
    "PSAvoidUsingComputerNameHardcoded",
    "PSAvoidUsingDeprecatedManifestFields",
    "PSAvoidUsingEmptyCatchBlock",
    "PSAvoidUsingInvokeExpression",
    "PSAvoidUsingPositionalParameters",
    "PSAvoidShouldContinueWithoutForce",
    "PSAvoidUsingWMICmdlet",
    "PSAvoidUsingWriteHost",
    "PSDSCReturnCorrectTypesForDSCFunctions",
    "PSDSCStandardDSCFunctionsInResource",
    "PSDSCUseIdenticalMandatoryParametersForDSC",
    "PSDSCUseIdenticalParametersForDSC",
    "PSMissingModuleManifestField",
    "PSPossibleIncorrectComparisonWithNull",
    "PSProvideCommentHelp",
    "PSReservedCmdletChar",
    "PSReservedParams",
    "PSUseApprovedVerbs",
    "PSUseCmdletCorrectly",
    "PSUseOutputTypeCorrectly",
)
DEFAULT_FLAGGED_RULES = (
    "PSAvoidGlobalVars",
    "PSAvoidUsingConvertToSecureStringWithPlainText",
    "PSAvoidUsingPlainTextForPassword",
    "PSAvoidUsingUsernameAndPasswordParams",
    "PSDSCUseVerboseMessageInDSCResource",
    "PSShouldProcess",
    "PSUseDeclaredVarsMoreThanAssignments",
    "PSUsePSCredentialType",
)
DEFAULT_IGNORE_RULES = (
    "PSDSCDscExamplesPresent",
    "PSDSCDscTestsPresent",
)


@dataclass(frozen=True)
class PowerShellConfig:
    executable: str = "pwsh"
    timeout_seconds: int = 600


@dataclass(frozen=True)
class AnalyzerConfig:
    required_rules: tuple[str, ...] = DEFAULT_REQUIRED_RULES
    flagged_rules: tuple[str, ...] = DEFAULT_FLAGGED_RULES
    ignore_rules: tuple[str, ...] = DEFAULT_IGNORE_RULES


@dataclass(frozen=True)
class ManifestConfig:
    min_powershell_version: str = "4.0"


@dataclass(frozen=True)
class PathsConfig:
    max_relative_length: int = 129


@dataclass(frozen=True)
class ExamplesConfig:
    directory: str = "Examples"


@dataclass(frozen=True)
class MarkdownConfig:
    npm: str = "npm"
    timeout_seconds: int = 900


@dataclass(frozen=True)
class DscMetaConfig:
    exclude_dirs: tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    text_extensions: tuple[str, ...] = DEFAULT_TEXT_EXTENSIONS
    opt_in: tuple[str, ...] = ()
    powershell: PowerShellConfig = field(default_factory=PowerShellConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    examples: ExamplesConfig = field(default_factory=ExamplesConfig)
    markdown: MarkdownConfig = field(default_factory=MarkdownConfig)
    source: str = ""

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


_SECTIONS = {
    "powershell": PowerShellConfig,
    "analyzer": AnalyzerConfig,
    "manifest": ManifestConfig,
    "paths": PathsConfig,
    "examples": ExamplesConfig,
    "markdown": MarkdownConfig,
}


def _load_yaml(path: Path) -> Any:
    import yaml

    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ScriptError(f"{path.name}: invalid YAML: {exc}", ERR_CONFIG, kind="config_invalid") from exc
    except OSError as exc:
        raise ScriptError(f"{path.name}: unreadable: {exc}", ERR_CONFIG, kind="config_unreadable") from exc


def validate_config_payload(payload: object, source: str = CONFIG_FILE_NAME) -> None:
    import jsonschema

    schema = json.loads(CONFIG_SCHEMA.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        pointer = "/".join(str(p) for p in exc.absolute_path)
        loc = pointer or "<root>"
        raise ScriptError(
            f"{source}: schema validation failed at {loc}: {exc.message}", ERR_CONFIG, kind="config_invalid"
        ) from exc


def _tupled(value: dict[str, Any]) -> dict[str, Any]:
    return {key: tuple(item) if isinstance(item, list) else item for key, item in value.items()}


def config_from_mapping(payload: dict[str, Any], source: str = "") -> DscMetaConfig:
    validate_config_payload(payload, source or CONFIG_FILE_NAME)
    cfg = DscMetaConfig(source=source)
    updates: dict[str, Any] = {}
    for key, value in payload.items():
        section = _SECTIONS.get(key)
        if section is None:
            updates[key] = tuple(value)
            continue
        updates[key] = replace(getattr(cfg, key), **_tupled(value))
    return replace(cfg, **updates)


def load_config(module_root: Path) -> DscMetaConfig:
    path = module_root / CONFIG_FILE_NAME
    if not path.is_file():
        return DscMetaConfig()
    payload = _load_yaml(path)
    if payload is None:
        return DscMetaConfig(source=str(path))
    if not isinstance(payload, dict):
        raise ScriptError(f"{path.name}: root must be a mapping", ERR_CONFIG, kind="config_invalid")
    return config_from_mapping(payload, str(path))


def load_opt_in(module_root: Path, config: DscMetaConfig) -> frozenset[str]:
    names = set(config.opt_in)
    path = module_root / OPT_IN_FILE_NAME
    if path.is_file():
        try:
            payload = json.loads(path.read_text(encoding="utf-8-sig"))
        except (OSError, ValueError) as exc:
            raise ScriptError(f"{path.name}: invalid JSON: {exc}", ERR_CONFIG, kind="opt_in_invalid") from exc
        if not isinstance(payload, list) or not all(isinstance(item, str) for item in payload):
            raise ScriptError(f"{path.name}: must be a JSON array of strings", ERR_CONFIG, kind="opt_in_invalid")
        names.update(payload)
    return frozenset(name.strip() for name in names if name.strip())
