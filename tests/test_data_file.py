from __future__ import annotations

import pytest

from dscmeta.powershell import DataFileSyntaxError, lookup, parse_data_file

MANIFEST = """# Module manifest for module 'xDemo'
@{
    ModuleVersion = '2.1.0.0'
    GUID = "5f70a0b3-0c5e-4f2b-9a5e-3c1c3e2e8a11"
    'Quoted Key' = 'it''s'
    FunctionsToExport = 'Get-One', 'Get-Two'
    RequiredModules = @(
        'ModuleA'
        'ModuleB'
    )
    <# block
       comment #>
    PrivateData = @{ PSData = @{ Tags = @('DSC', 'Demo'); Prerelease = $null } }
    Count = 3; Ratio = 1.5; Enabled = $true
}
"""


def test_parses_manifest_values() -> None:
    data = parse_data_file(MANIFEST)
    assert data["ModuleVersion"] == "2.1.0.0"
    assert data["GUID"] == "5f70a0b3-0c5e-4f2b-9a5e-3c1c3e2e8a11"
    assert data["Quoted Key"] == "it's"
    assert data["FunctionsToExport"] == ["Get-One", "Get-Two"]
    assert data["RequiredModules"] == ["ModuleA", "ModuleB"]
    assert data["PrivateData"] == {"PSData": {"Tags": ["DSC", "Demo"], "Prerelease": None}}
    assert (data["Count"], data["Ratio"], data["Enabled"]) == (3, 1.5, True)


def test_lookup_is_case_insensitive() -> None:
    data = parse_data_file("@{ PowerShellVersion = '5.0' }")
    assert lookup(data, "powershellversion") == "5.0"
    assert lookup(data, "PowerShellVersion") == "5.0"
    assert lookup(data, "Missing", "default") == "default"


def test_double_quoted_escapes() -> None:
    data = parse_data_file('@{ Text = "a`tb""c" }')
    assert data["Text"] == 'a\tb"c'


def test_leading_bom_and_line_continuation() -> None:
    data = parse_data_file("\ufeff@{\n    Names = 'a', `\n        'b'\n}\n")
    assert data["Names"] == ["a", "b"]


def test_empty_containers() -> None:
    assert parse_data_file("@{ A = @(); B = @{} }") == {"A": [], "B": {}}


@pytest.mark.parametrize(
    "text",
    [
        "@{ A = Get-Date }",
        "@{ A = 'unterminated }",
        "@{ A = 1 } trailing",
        "'not a hashtable'",
        "@{ A = 1 B = 2 }",
    ],
)
def test_rejects_unsupported_content(text: str) -> None:
    with pytest.raises(DataFileSyntaxError):
        parse_data_file(text)


def test_error_reports_line_and_column() -> None:
    with pytest.raises(DataFileSyntaxError) as info:
        parse_data_file("@{\n    A = 1\n    B = $env:PATH\n}\n")
    assert (info.value.line, info.value.column) == (3, 9)
