"""
Argument matching and coercion.

Strict matching is plain ``isinstance`` with two exceptions: ``bool`` never
stands in for a number, and ``None`` only satisfies nullable or untyped
parameters. Lenient matching adds conversions across the numeric family,
numeric and boolean parsing of strings, enum members by name, and
callables (script lambdas included) for callback protocols.

``coerce`` never raises: a value that cannot be converted is passed on
unchanged and the call itself reports the failure.
"""

from __future__ import annotations

import enum
import math
import numbers
from decimal import Decimal
from fractions import Fraction
from typing import Any, Optional

from .errors import CoercionError
from .host import unwrap_value
from .members import ParamType

PRIMITIVE_TYPES = (bool, int, float, complex)

_FAILED = object()


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def is_numeric_type(target: Any) -> bool:
    return (
        isinstance(target, type)
        and target is not bool
        and issubclass(target, numbers.Number)
    )


def is_primitive(param: ParamType) -> bool:
    return bool(param.types) and all(t in PRIMITIVE_TYPES for t in param.types)


def _strict_instance(value: Any, target: type) -> bool:
    if isinstance(value, bool) and target is not bool and target in PRIMITIVE_TYPES:
        return False
    try:
        return isinstance(value, target)
    except TypeError:
        return False


def matches_strict(value: Any, param: ParamType) -> bool:
    if param.is_any:
        return True
    if value is None:
        return param.nullable
    return any(_strict_instance(value, t) for t in param.types)


def matches_lenient(value: Any, param: ParamType) -> bool:
    if matches_strict(value, param):
        return True
    if value is None:
        return not is_primitive(param)
    return any(_try_convert(value, t) is not _FAILED for t in param.types)


# ============================================================
# Conversion
# ============================================================


def _enum_member(target: type, text: str) -> Any:
    members = target.__members__
    for key in (text, text.upper()):
        if key in members:
            return members[key]
    try:
        return target(text)
    except (ValueError, TypeError):
        return _FAILED


def _parse_number(text: str, target: type) -> Any:
    text = text.strip()
    try:
        if target is int:
            return int(text)
        if target is float:
            return float(text)
        return target(text)
    except (ValueError, TypeError, ArithmeticError):
        return _FAILED


def _convert_number(value: Any, target: type) -> Any:
    if isinstance(value, target) and not isinstance(value, bool):
        return value
    try:
        if target is int:
            if isinstance(value, float) and not math.isfinite(value):
                return _FAILED
            return int(value)
        if target is float:
            return float(value)
        if target is Decimal and isinstance(value, Fraction):
            return Decimal(value.numerator) / Decimal(value.denominator)
        return target(value)
    except (ValueError, TypeError, ArithmeticError):
        return _FAILED


def _is_callback_protocol(target: Any) -> bool:
    return (
        isinstance(target, type)
        and getattr(target, "_is_protocol", False)
        and "__call__" in vars(target)
    )


def _try_convert(value: Any, target: type) -> Any:
    if isinstance(value, str):
        if target is bool:
            text = value.strip()
            return text.lower() == "true" or text == "1"
        if isinstance(target, type) and issubclass(target, enum.Enum):
            return _enum_member(target, value.strip())
        if is_numeric_type(target):
            return _parse_number(value, target)
        return _FAILED

    if is_number(value) and is_numeric_type(target):
        return _convert_number(value, target)

    if callable(value) and _is_callback_protocol(target):
        return value

    return _FAILED


def convert(value: Any, target: type) -> Any:
    """Converts ``value`` to ``target`` or raises CoercionError."""
    converted = _try_convert(value, target)
    if converted is _FAILED:
        raise CoercionError(value, getattr(target, "__name__", repr(target)))
    return converted


def coerce(value: Any, param: Optional[ParamType]) -> Any:
    """Adapts one argument to a parameter type, keeping the original on failure."""
    value = unwrap_value(value)
    if value is None or param is None or param.is_any:
        return value
    if matches_strict(value, param):
        return value
    for target in param.types:
        try:
            return convert(value, target)
        except CoercionError:
            continue
    return value


def parse_scalar(text: str) -> Any:
    """Infers a literal from untyped object-literal text."""
    stripped = text.strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in "\"'":
        return stripped[1:-1]
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    if stripped[:1] and stripped[0] in "+-.0123456789":
        for target in (int, float):
            parsed = _parse_number(stripped, target)
            if parsed is not _FAILED:
                return parsed
    return stripped
