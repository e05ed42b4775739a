"""Lightweight readers for PowerShell source and data files."""

from __future__ import annotations

from .data_file import DataFileSyntaxError, lookup, parse_data_file
from .params import (
    Attribute,
    Extent,
    NamedArgument,
    ParamBlock,
    ParamBlockSyntaxError,
    Parameter,
    find_closing_bracket,
    iter_parameters,
    parse_param_blocks,
)

__all__ = [
    "Attribute",
    "DataFileSyntaxError",
    "Extent",
    "NamedArgument",
    "ParamBlock",
    "ParamBlockSyntaxError",
    "Parameter",
    "find_closing_bracket",
    "iter_parameters",
    "lookup",
    "parse_data_file",
    "parse_param_blocks",
]
