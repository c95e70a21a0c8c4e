"""
Dynamic member resolution and invocation.

Resolution searches candidates in this order and keeps the first
admissible match:

1. strict pass over publicly reachable members,
2. lenient pass over publicly reachable members,
3. a walk up the ownership chain (``__mro__`` for classes, the module itself
   for modules), trying strict then lenient at each level.

Inside every pass fixed-arity candidates are tried before ``*args``
candidates. Results, including misses, are cached by ``MemberKey`` until
the next reload.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
import threading
import types
import typing
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

from .caches import MISSING, ConcurrentCache, Generation
from .coercion import coerce, matches_lenient, matches_strict
from .errors import (
    ExpressionError,
    FieldWriteError,
    InvocationError,
    MemberNotFoundError,
)
from .gate import TypeGate, is_type_descriptor, qualified_name
from .host import Diagnostics, LoggingDiagnostics, unwrap_value
from .members import (
    ANY_PARAM,
    IntrospectionMemberProvider,
    MemberCandidate,
    MemberProvider,
    ParamType,
    is_dunder,
    param_type_from_annotation,
)

logger = logging.getLogger("hostscript.reflect.resolver")

_ABSENT = object()


@dataclass(frozen=True)
class MemberKey:
    """
    Cache key: owner, member name and runtime argument types.

    ``static`` separates reads through a type handle from reads through an
    instance of the same type, which resolve against different members.
    """

    owner: Any
    name: str
    signature: Tuple[type, ...] = ()
    static: bool = False

    @classmethod
    def for_call(cls, owner: Any, name: str, args: Sequence[Any]) -> "MemberKey":
        return cls(owner, name, tuple(type(arg) for arg in args))


@dataclass(frozen=True)
class MemberHandle:
    """A resolved callable member, reusable for every call with the same key."""

    candidate: MemberCandidate

    @property
    def is_static(self) -> bool:
        return self.candidate.is_static

    def invoke(self, receiver: Any, owner: Any, args: Sequence[Any]) -> Any:
        bound = self.candidate.bind(receiver, owner)
        coerced = [coerce(arg, self.candidate.param_for(i)) for i, arg in enumerate(args)]
        try:
            return bound(*coerced)
        except Exception as exc:
            raise InvocationError(self.candidate.describe(), exc) from exc


@dataclass(frozen=True)
class FieldHandle:
    """A resolved field getter."""

    name: str

    def read(self, target: Any) -> Any:
        return getattr(target, self.name)


class ResolutionStats:
    """Thread-safe counters for resolution activity."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.resolutions = 0
        self.invocations = 0
        self.failures = 0

    def bump(self, counter: str) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "resolutions": self.resolutions,
                "invocations": self.invocations,
                "failures": self.failures,
            }


def _owner_of(target: Any) -> Any:
    return target if is_type_descriptor(target) else type(target)


def _type_label(value: Any) -> str:
    return "null" if value is None else type(value).__name__


def _first_match(
    candidates: Iterable[MemberCandidate], args: Sequence[Any], strict: bool
) -> Optional[MemberCandidate]:
    matcher = matches_strict if strict else matches_lenient
    ordered = list(candidates)
    for varargs in (False, True):
        for candidate in ordered:
            if candidate.is_varargs != varargs:
                continue
            if all(matcher(arg, candidate.param_for(i)) for i, arg in enumerate(args)):
                return candidate
    return None


class ResolutionEngine:
    """Resolves, caches and invokes members of host types."""

    def __init__(
        self,
        gate: TypeGate,
        provider: Optional[MemberProvider] = None,
        generation: Optional[Generation] = None,
    ):
        self._gate = gate
        self._provider: MemberProvider = provider or IntrospectionMemberProvider()
        self._methods: ConcurrentCache[MemberKey, Any] = ConcurrentCache("methods", generation)
        self._constructors: ConcurrentCache[MemberKey, Any] = ConcurrentCache(
            "constructors", generation
        )
        self._fields: ConcurrentCache[MemberKey, Any] = ConcurrentCache("fields", generation)
        self.stats = ResolutionStats()

    @property
    def caches(self) -> dict:
        return {
            "methods": self._methods,
            "constructors": self._constructors,
            "fields": self._fields,
        }

    def clear(self) -> None:
        self._methods.clear()
        self._constructors.clear()
        self._fields.clear()

    # ============================================================
    # Public operations: failures are reported, never raised
    # ============================================================

    def invoke(
        self,
        target: Any,
        name: str,
        args: Sequence[Any],
        diagnostics: Optional[Diagnostics] = None,
    ) -> Any:
        """Calls ``name`` on a value, or a static member when ``target`` is a type."""
        target = unwrap_value(target)
        if is_type_descriptor(target):
            return self.invoke_static(target, name, args, diagnostics)
        return self._guarded(diagnostics, self._call, target, type(target), name, args, False)

    def invoke_static(
        self,
        owner: Any,
        name: str,
        args: Sequence[Any],
        diagnostics: Optional[Diagnostics] = None,
    ) -> Any:
        return self._guarded(diagnostics, self._call, None, owner, name, args, True)

    def construct(
        self,
        owner: Any,
        args: Sequence[Any],
        diagnostics: Optional[Diagnostics] = None,
    ) -> Any:
        return self._guarded(diagnostics, self._construct, owner, args)

    def get_field(
        self, target: Any, name: str, diagnostics: Optional[Diagnostics] = None
    ) -> Any:
        return self._guarded(diagnostics, self._get_field, unwrap_value(target), name)

    def set_field(
        self,
        target: Any,
        name: str,
        value: Any,
        diagnostics: Optional[Diagnostics] = None,
    ) -> bool:
        result = self._guarded(
            diagnostics, self._set_field, unwrap_value(target), name, value
        )
        return bool(result)

    def field_type(self, owner: Any, name: str) -> ParamType:
        """Declared type of a field, or any when it is not annotated."""
        annotation = self._annotations(owner).get(name, _ABSENT)
        if annotation is _ABSENT:
            return ANY_PARAM
        return param_type_from_annotation(annotation)

    def _guarded(self, diagnostics: Optional[Diagnostics], operation, *args) -> Any:
        try:
            return operation(*args)
        except ExpressionError as error:
            self.stats.bump("failures")
            (diagnostics or LoggingDiagnostics()).report(error)
            return None

    # ============================================================
    # Methods and constructors
    # ============================================================

    def _call(
        self, receiver: Any, owner: Any, name: str, args: Sequence[Any], static: bool
    ) -> Any:
        self._gate.check_owner(owner)
        args = [unwrap_value(arg) for arg in args]
        key = MemberKey.for_call(owner, name, args)
        handle = self._methods.get_or_compute(
            key, lambda k: self._resolve_method(k, args)
        )

        kind = "static method" if static else "method"
        if handle is MISSING or (static and not handle.is_static):
            raise MemberNotFoundError(
                kind, qualified_name(owner), name, [_type_label(a) for a in args]
            )

        self.stats.bump("invocations")
        return handle.invoke(receiver, owner, args)

    def _construct(self, owner: Any, args: Sequence[Any]) -> Any:
        self._gate.check_owner(owner)
        args = [unwrap_value(arg) for arg in args]
        key = MemberKey.for_call(owner, "<init>", args)
        handle = self._constructors.get_or_compute(
            key, lambda k: self._resolve_constructor(k, args)
        )
        if handle is MISSING:
            raise MemberNotFoundError(
                "constructor",
                qualified_name(owner),
                getattr(owner, "__name__", "<init>"),
                [_type_label(a) for a in args],
            )

        self.stats.bump("invocations")
        return handle.invoke(None, owner, args)

    def _resolve_method(self, key: MemberKey, args: Sequence[Any]) -> Any:
        self.stats.bump("resolutions")
        if is_dunder(key.name):
            return MISSING

        count = len(args)
        public = [
            c for c in self._provider.public_members(key.owner, key.name) if c.accepts_count(count)
        ]
        for strict in (True, False):
            found = _first_match(public, args, strict)
            if found is not None:
                return self._publish(key, found, "public", strict)

        for level in self._provider.declared_levels(key.owner):
            declared = [
                c
                for c in self._provider.declared_members(level, key.owner, key.name)
                if c.accepts_count(count)
            ]
            for strict in (True, False):
                found = _first_match(declared, args, strict)
                if found is not None:
                    return self._publish(key, found, "declared", strict)

        logger.debug(
            "member_not_found",
            extra={"owner": qualified_name(key.owner), "member": key.name, "arity": count},
        )
        return MISSING

    def _resolve_constructor(self, key: MemberKey, args: Sequence[Any]) -> Any:
        self.stats.bump("resolutions")
        count = len(args)
        candidates = [c for c in self._provider.constructors(key.owner) if c.accepts_count(count)]
        for strict in (True, False):
            found = _first_match(candidates, args, strict)
            if found is not None:
                return self._publish(key, found, "constructor", strict)
        return MISSING

    @staticmethod
    def _publish(key: MemberKey, candidate: MemberCandidate, scope: str, strict: bool) -> MemberHandle:
        logger.debug(
            "member_resolved",
            extra={
                "owner": qualified_name(key.owner),
                "member": key.name,
                "candidate": candidate.describe(),
                "scope": scope,
                "strict": strict,
            },
        )
        return MemberHandle(candidate)

    # ============================================================
    # Fields
    # ============================================================

    def _get_field(self, target: Any, name: str) -> Any:
        owner = _owner_of(target)
        self._gate.check_owner(owner)
        static = owner is target
        key = MemberKey(owner, name, static=static)

        if static:
            handle = self._fields.get_or_compute(key, self._resolve_static_field)
        else:
            handle = self._fields.get_or_compute(key, self._resolve_instance_field)

        if handle is MISSING:
            raise MemberNotFoundError("field", qualified_name(owner), name)

        try:
            return handle.read(target)
        except AttributeError:
            raise MemberNotFoundError("field", qualified_name(owner), name) from None
        except Exception as exc:
            raise InvocationError(f"{qualified_name(owner)}.{name}", exc) from exc

    def _resolve_static_field(self, key: MemberKey) -> Any:
        self.stats.bump("resolutions")
        if is_dunder(key.name):
            return MISSING
        if isinstance(key.owner, types.ModuleType):
            found = key.name in vars(key.owner)
        else:
            found = inspect.getattr_static(key.owner, key.name, _ABSENT) is not _ABSENT
        return FieldHandle(key.name) if found else MISSING

    def _resolve_instance_field(self, key: MemberKey) -> Any:
        # Instance attributes vary per object, so only reserved names are
        # negative-cached; missing attributes surface when the handle reads.
        self.stats.bump("resolutions")
        if is_dunder(key.name):
            return MISSING
        return FieldHandle(key.name)

    @classmethod
    def _annotations(cls, owner: Any) -> dict:
        if not is_type_descriptor(owner):
            return {}
        try:
            return typing.get_type_hints(owner)
        except (NameError, TypeError, AttributeError, SyntaxError):
            return cls._raw_annotations(owner)

    @staticmethod
    def _raw_annotations(owner: Any) -> dict:
        """Unevaluated annotations, merged along the MRO for classes."""
        if isinstance(owner, types.ModuleType):
            return dict(inspect.get_annotations(owner))
        merged: dict = {}
        for level in reversed(owner.__mro__):
            merged.update(inspect.get_annotations(level))
        return merged

    def _set_field(self, target: Any, name: str, value: Any) -> bool:
        owner = _owner_of(target)
        self._gate.check_owner(owner)
        static = owner is target
        owner_name = qualified_name(owner)

        if is_dunder(name):
            raise FieldWriteError(owner_name, name, "reserved name")

        raw = self._raw_annotations(owner)
        annotation = raw.get(name, _ABSENT)
        if _is_final(annotation):
            raise FieldWriteError(owner_name, name, "field is declared Final")

        if isinstance(owner, types.ModuleType):
            if name not in vars(owner):
                raise MemberNotFoundError("field", owner_name, name)
            setattr(owner, name, coerce(value, self.field_type(owner, name)))
            return True

        class_attr = inspect.getattr_static(owner, name, _ABSENT)
        instance_field = _is_instance_field(owner, name, annotation)

        if static:
            if instance_field:
                raise FieldWriteError(owner_name, name, "instance field cannot be set through a type")
            if class_attr is _ABSENT:
                raise MemberNotFoundError("field", owner_name, name)
            if _is_read_only_descriptor(class_attr) or isinstance(class_attr, property):
                raise FieldWriteError(owner_name, name, "member is read-only")
            setattr(owner, name, coerce(value, self.field_type(owner, name)))
            return True

        params = getattr(owner, "__dataclass_params__", None)
        if params is not None and params.frozen:
            raise FieldWriteError(owner_name, name, "instance is immutable")

        if isinstance(class_attr, property):
            if class_attr.fset is None:
                raise FieldWriteError(owner_name, name, "property has no setter")
            setattr(target, name, coerce(value, _setter_param(class_attr)))
            return True

        if _is_read_only_descriptor(class_attr):
            raise FieldWriteError(owner_name, name, "member is read-only")

        in_instance = name in getattr(target, "__dict__", {})
        if not instance_field and not in_instance:
            if class_attr is _ABSENT:
                raise MemberNotFoundError("field", owner_name, name)
            raise FieldWriteError(owner_name, name, "class field cannot be set through an instance")

        setattr(target, name, coerce(value, self.field_type(owner, name)))
        return True


def _is_final(annotation: Any) -> bool:
    if annotation is _ABSENT:
        return False
    if annotation is typing.Final or typing.get_origin(annotation) is typing.Final:
        return True
    return isinstance(annotation, str) and annotation.startswith(("Final", "typing.Final"))


def _is_class_var(annotation: Any) -> bool:
    if annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar:
        return True
    return isinstance(annotation, str) and annotation.startswith(("ClassVar", "typing.ClassVar"))


def _is_instance_field(owner: type, name: str, annotation: Any) -> bool:
    if dataclasses.is_dataclass(owner) and name in {f.name for f in dataclasses.fields(owner)}:
        return True
    for level in owner.__mro__:
        slots = vars(level).get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        if name in slots:
            return True
    if annotation is _ABSENT:
        return False
    return not _is_class_var(annotation)


def _is_read_only_descriptor(attr: Any) -> bool:
    if attr is _ABSENT or isinstance(attr, property):
        return False
    kind = type(attr)
    if isinstance(attr, types.MemberDescriptorType):
        return False
    return hasattr(kind, "__get__") and not hasattr(kind, "__set__")


def _setter_param(prop: property) -> ParamType:
    try:
        hints = typing.get_type_hints(prop.fset)
    except (NameError, TypeError, AttributeError, SyntaxError):
        return ANY_PARAM
    parameters = [p for p in hints if p != "return"]
    if not parameters:
        return ANY_PARAM
    return param_type_from_annotation(hints[parameters[-1]])
