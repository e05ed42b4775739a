"""Native parameter-block convention rules."""

from __future__ import annotations

from .engine import RULE_PARSE_ERROR, analyze_file, analyze_text, collect_script_files
from .model import Diagnostic, DiagnosticSeverity, FileDiagnostic
from .parameter_block import (
    RULE_ATTRIBUTE_LOWER_CASE,
    RULE_ATTRIBUTE_MISSING,
    RULE_ATTRIBUTE_WRONG_PLACE,
    RULE_MANDATORY_NAMED_ARGUMENT,
    analyze_parameter,
    measure_mandatory_named_argument,
    measure_parameter_attribute,
)

RULE_NAMES = (
    RULE_ATTRIBUTE_MISSING,
    RULE_ATTRIBUTE_WRONG_PLACE,
    RULE_ATTRIBUTE_LOWER_CASE,
    RULE_MANDATORY_NAMED_ARGUMENT,
)

__all__ = [
    "Diagnostic",
    "DiagnosticSeverity",
    "FileDiagnostic",
    "RULE_ATTRIBUTE_LOWER_CASE",
    "RULE_ATTRIBUTE_MISSING",
    "RULE_ATTRIBUTE_WRONG_PLACE",
    "RULE_MANDATORY_NAMED_ARGUMENT",
    "RULE_NAMES",
    "RULE_PARSE_ERROR",
    "analyze_file",
    "analyze_parameter",
    "analyze_text",
    "collect_script_files",
    "measure_mandatory_named_argument",
    "measure_parameter_attribute",
]
