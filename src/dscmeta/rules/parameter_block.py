"""Style rules for parameter declarations in DSC resource code.

Every parameter must carry ``[Parameter()]`` as its first attribute, spelled
with that exact casing, and a ``Mandatory`` argument must be written as
``Mandatory = $true``.
"""

from __future__ import annotations

from ..powershell.params import Extent, NamedArgument, Parameter
from .model import Diagnostic, DiagnosticSeverity

PARAMETER_ATTRIBUTE = "Parameter"
MANDATORY_ARGUMENT = "Mandatory"
MANDATORY_VALUE = "$true"

RULE_ATTRIBUTE_MISSING = "ParameterBlockParameterAttributeMissing"
RULE_ATTRIBUTE_WRONG_PLACE = "ParameterBlockParameterAttributeWrongPlace"
RULE_ATTRIBUTE_LOWER_CASE = "ParameterBlockParameterAttributeLowerCase"
RULE_MANDATORY_NAMED_ARGUMENT = "ParameterBlockNonMandatoryParameter"

MESSAGES = {
    RULE_ATTRIBUTE_MISSING: "A [Parameter()] attribute must be the first attribute of each parameter and be on its own line.",
    RULE_ATTRIBUTE_WRONG_PLACE: "The [Parameter()] attribute must be the first attribute of each parameter.",
    RULE_ATTRIBUTE_LOWER_CASE: "The [Parameter()] attribute must start with an upper case 'P'.",
    RULE_MANDATORY_NAMED_ARGUMENT: "A mandatory parameter must be declared as 'Mandatory = $true'; "
    "a non-mandatory parameter must omit the Mandatory argument.",
}


def _diagnostic(rule_name: str, extent: Extent) -> Diagnostic:
    return Diagnostic(rule_name, DiagnosticSeverity.WARNING, MESSAGES[rule_name], extent)


def measure_parameter_attribute(parameter: Parameter) -> Diagnostic | None:
    names = [attribute.name for attribute in parameter.attributes]
    if PARAMETER_ATTRIBUTE.lower() not in (name.lower() for name in names):
        return _diagnostic(RULE_ATTRIBUTE_MISSING, parameter.extent)
    if names[0].lower() != PARAMETER_ATTRIBUTE.lower():
        return _diagnostic(RULE_ATTRIBUTE_WRONG_PLACE, parameter.extent)
    if names[0] != PARAMETER_ATTRIBUTE:
        return _diagnostic(RULE_ATTRIBUTE_LOWER_CASE, parameter.extent)
    return None


def measure_mandatory_named_argument(argument: NamedArgument) -> Diagnostic | None:
    if argument.name.lower() != MANDATORY_ARGUMENT.lower():
        return None
    if (
        argument.name == MANDATORY_ARGUMENT
        and not argument.expression_omitted
        and argument.value_text == MANDATORY_VALUE
    ):
        return None
    return _diagnostic(RULE_MANDATORY_NAMED_ARGUMENT, argument.extent)


def analyze_parameter(parameter: Parameter) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    placement = measure_parameter_attribute(parameter)
    if placement is not None:
        found.append(placement)
    for attribute in parameter.attributes:
        for argument in attribute.named_arguments:
            mandatory = measure_mandatory_named_argument(argument)
            if mandatory is not None:
                found.append(mandatory)
    return found
