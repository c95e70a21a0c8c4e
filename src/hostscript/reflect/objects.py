"""
Object-model wrapper for values that have no native host representation.

``ReflectedObject`` is what scripts hold when an expression returns an
arbitrary Python object or a type. It exposes the object-model operations
scripts use on such values: identification, field reads and writes, and
evaluating follow-up expressions with the wrapped value as subject.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .gate import is_type_descriptor, qualified_name
from .host import DefaultHost, Diagnostics, HostValue

if TYPE_CHECKING:
    from .engine import ExpressionEngine

IDENTITY_PREFIX = "py@"

# Values the host represents natively and that are never wrapped.
SIMPLE_TYPES = (str, int, float, bool, complex, list, tuple, dict, set, frozenset)


def is_simple(value: Any) -> bool:
    return value is None or isinstance(value, (HostValue, *SIMPLE_TYPES))


class ReflectedObject(HostValue):
    """A type or arbitrary object held by a script."""

    def __init__(self, value: Any, engine: Optional["ExpressionEngine"] = None):
        self._value = value
        self._engine = engine
        self._id = uuid.uuid4().hex

    def unwrap(self) -> Any:
        return self._value

    @property
    def is_static(self) -> bool:
        """True when the wrapped value is a type or module."""
        return is_type_descriptor(self._value)

    @property
    def class_name(self) -> str:
        return qualified_name(self._value)

    def identify(self) -> str:
        if self.is_static:
            return IDENTITY_PREFIX + qualified_name(self._value)
        return IDENTITY_PREFIX + self._id

    def field(self, name: str, diagnostics: Optional[Diagnostics] = None) -> Any:
        return self._require_engine().resolver.get_field(self._value, name, diagnostics)

    def set_fields(
        self, values: Mapping[str, Any], diagnostics: Optional[Diagnostics] = None
    ) -> Dict[str, bool]:
        """Writes each field; returns which writes succeeded."""
        resolver = self._require_engine().resolver
        return {
            name: resolver.set_field(self._value, name, value, diagnostics)
            for name, value in values.items()
        }

    def invoke(self, expression: str, diagnostics: Optional[Diagnostics] = None) -> Any:
        """Evaluates ``expression`` with this value bound to ``this``."""
        from .evaluator import EvaluationContext

        engine = self._require_engine()
        return engine.evaluate(
            expression,
            EvaluationContext(subject=self._value, diagnostics=diagnostics),
        )

    def _require_engine(self) -> "ExpressionEngine":
        if self._engine is None:
            raise RuntimeError("ReflectedObject is not attached to an engine")
        return self._engine

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReflectedObject):
            return self._value is other._value
        return NotImplemented

    def __hash__(self) -> int:
        return id(self._value)

    def __repr__(self) -> str:
        return f"ReflectedObject({self.identify()})"

    def __str__(self) -> str:
        return str(self._value)


class ObjectModelHost(DefaultHost):
    """Host that wraps non-simple results into ``ReflectedObject``."""

    def __init__(self, engine: Optional["ExpressionEngine"] = None):
        self.engine = engine

    def wrap(self, value: Any) -> Any:
        if is_simple(value):
            return value
        return ReflectedObject(value, self.engine)
