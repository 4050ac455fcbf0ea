"""Argument validation against ``ToolDef`` parameter declarations."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from infrabridge.envelope import INVALID_PARAMS, Err, ErrorEnvelope, Ok, Result, Violation
from infrabridge.tools import ParameterDef, ToolDef

_INVALID = object()


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _check_value(
    value: Any,
    param: ParameterDef,
    path: str,
    violations: list[Violation],
) -> Any:
    kind = param.type
    if kind == "integer":
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or (isinstance(value, float) and not value.is_integer())
        ):
            violations.append(Violation(path, f"expected integer, got {_json_type(value)}"))
            return _INVALID
        value = int(value)
    elif kind == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            violations.append(Violation(path, f"expected number, got {_json_type(value)}"))
            return _INVALID
    elif kind == "string":
        if not isinstance(value, str):
            violations.append(Violation(path, f"expected string, got {_json_type(value)}"))
            return _INVALID
    elif kind == "boolean":
        if not isinstance(value, bool):
            violations.append(Violation(path, f"expected boolean, got {_json_type(value)}"))
            return _INVALID
    elif kind == "array":
        if not isinstance(value, list):
            violations.append(Violation(path, f"expected array, got {_json_type(value)}"))
            return _INVALID
        if param.items is not None:
            checked = []
            for index, item in enumerate(value):
                item_path = f"{path}[{index}]"
                if item is None:
                    violations.append(Violation(item_path, "expected non-null item"))
                    continue
                checked.append(_check_value(item, param.items, item_path, violations))
            value = checked
        else:
            value = list(value)
    elif kind == "object":
        if not isinstance(value, dict):
            violations.append(Violation(path, f"expected object, got {_json_type(value)}"))
            return _INVALID
        if param.properties is not None:
            value = _check_fields(value, param.properties, param.required, path, violations)
        else:
            value = dict(value)

    if param.enum is not None and value not in param.enum:
        allowed = ", ".join(repr(option) for option in param.enum)
        violations.append(Violation(path, f"expected one of [{allowed}], got {value!r}"))
        return _INVALID
    if kind in ("integer", "number"):
        if param.minimum is not None and value < param.minimum:
            violations.append(Violation(path, f"must be >= {param.minimum:g}, got {value}"))
            return _INVALID
        if param.maximum is not None and value > param.maximum:
            violations.append(Violation(path, f"must be <= {param.maximum:g}, got {value}"))
            return _INVALID
    return value


def _check_fields(
    arguments: Mapping[str, Any],
    parameters: tuple[tuple[str, ParameterDef], ...],
    required: tuple[str, ...],
    path: str,
    violations: list[Violation],
) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for name, param in parameters:
        field_path = _join(path, name)
        value = arguments.get(name)
        if value is None:
            if name in required:
                violations.append(Violation(field_path, "required field missing"))
            record[name] = copy.deepcopy(param.default)
            continue
        record[name] = _check_value(value, param, field_path, violations)
    return record


def validate_params(
    parameters: tuple[tuple[str, ParameterDef], ...],
    required: tuple[str, ...],
    arguments: Mapping[str, Any] | None,
) -> tuple[dict[str, Any], list[Violation]]:
    """Validate an argument bag against declared parameters.

    Every declared parameter appears in the returned record, either with the
    checked value, its declared default, or ``None``. Undeclared keys are
    dropped. All violations are collected in one pass.
    """
    violations: list[Violation] = []
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        violations.append(
            Violation("arguments", f"expected object, got {_json_type(arguments)}")
        )
        arguments = {}
    record = _check_fields(arguments, parameters, required, "", violations)
    return record, violations


def validate_arguments(tool: ToolDef, arguments: Mapping[str, Any] | None) -> Result:
    """Validate invocation arguments for ``tool``.

    Returns:
        ``Ok(record)`` with defaults applied, or ``Err`` carrying an
        ``invalid_params`` envelope that lists every violation.
    """
    record, violations = validate_params(tool.parameters, tool.required, arguments)
    if not violations:
        return Ok(record)

    summary = "; ".join(f"{item.field}: {item.problem}" for item in violations)
    return Err(
        ErrorEnvelope(
            kind=INVALID_PARAMS,
            message=f"Invalid parameters for {tool.name}: {summary}",
            details={"violations": [item.to_dict() for item in violations]},
        )
    )


__all__ = ["Violation", "validate_arguments", "validate_params"]
