from __future__ import annotations

import socket
from pathlib import Path

import pytest
from hypothesis import settings
from hypothesis.database import DirectoryBasedExampleDatabase

_ALLOWED_MARKERS = {"unit", "integration", "slow"}

_ROOT = Path(__file__).resolve().parents[1]
_HYPOTHESIS_DB = _ROOT / ".hypothesis/examples"
_HYPOTHESIS_DB.parent.mkdir(parents=True, exist_ok=True)
settings.register_profile("dscmeta", database=DirectoryBasedExampleDatabase(_HYPOTHESIS_DB))
settings.load_profile("dscmeta")

MANIFEST = """@{
    ModuleVersion     = '1.0.0.0'
    GUID              = '5f70a0b3-0c5e-4f2b-9a5e-3c1c3e2e8a11'
    Author            = 'Contoso'
    CompanyName       = 'Contoso'
    Description       = 'Demo DSC resources'
    PowerShellVersion = '4.0'
    FunctionsToExport = '*'
    PrivateData       = @{
        PSData = @{
            Tags = @('DesiredStateConfiguration', 'DSC')
        }
    }
}
"""

RESOURCE_MODULE = """function Get-TargetResource
{
    [CmdletBinding()]
    [OutputType([System.Collections.Hashtable])]
    param
    (
        [Parameter(Mandatory = $true)]
        [System.String]
        $Name
    )

    return @{
        Name = $Name
    }
}

function Set-TargetResource
{
    [CmdletBinding()]
    param
    (
        [Parameter(Mandatory = $true)]
        [System.String]
        $Name,

        [Parameter()]
        [System.String]
        $Value
    )
}

function Test-TargetResource
{
    [CmdletBinding()]
    [OutputType([System.Boolean])]
    param
    (
        [Parameter(Mandatory = $true)]
        [System.String]
        $Name,

        [Parameter()]
        [System.String]
        $Value
    )

    return $true
}

Export-ModuleMember -Function *-TargetResource
"""

RESOURCE_SCHEMA = """[ClassVersion("1.0.0.0"), FriendlyName("xDemo")]
class MSFT_xDemo : OMI_BaseResource
{
    [Key, Description("The name of the item.")] String Name;
    [Write, Description("The value of the item.")] String Value;
};
"""


def write_module(root: Path) -> Path:
    """Create a small module that passes every offline check."""
    resource = root / "DSCResources" / "MSFT_xDemo"
    resource.mkdir(parents=True)
    (root / f"{root.name}.psd1").write_text(MANIFEST, encoding="utf-8")
    (resource / "MSFT_xDemo.psm1").write_text(RESOURCE_MODULE, encoding="utf-8")
    (resource / "MSFT_xDemo.schema.mof").write_text(RESOURCE_SCHEMA, encoding="utf-8")
    (root / "README.md").write_text("# xDemo\n\nDemo resources.\n", encoding="utf-8")
    return root


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        names = {mark.name for mark in item.iter_markers()}
        if not names.intersection(_ALLOWED_MARKERS):
            item.add_marker("unit")


@pytest.fixture(autouse=True)
def no_network_for_unit(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> None:
    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("slow"):
        return

    def _blocked(*_args: object, **_kwargs: object) -> socket.socket:
        raise RuntimeError("network disabled in unit tests")

    def _blocked_connect(*_args: object, **_kwargs: object) -> None:
        raise RuntimeError("network disabled in unit tests")

    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket.socket, "connect", _blocked_connect)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CI", "DSCMETA_MODULE_ROOT", "DSCMETA_RUN_ID", "DSCMETA_EVIDENCE_ROOT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def module_root(tmp_path: Path) -> Path:
    return write_module(tmp_path / "xDemo")
