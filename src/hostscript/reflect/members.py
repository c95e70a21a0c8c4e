"""
Member descriptors and the introspection-based member provider.

A provider answers three questions for the resolution engine:

* which members named ``name`` are publicly reachable from an owner,
* which levels make up the owner's ownership chain, and which members each
  level declares itself,
* which constructor signatures an owner offers.

The default provider reads everything from ``inspect`` and ``typing``.
Overload stubs registered with ``typing.overload`` contribute one
candidate each, so a single Python function can expose several
signatures. Hosts without usable introspection can plug in a provider
backed by an explicit registry instead.
"""

from __future__ import annotations

import inspect
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger("hostscript.reflect.members")

NoneType = type(None)

# Candidate kinds.
INSTANCE = "instance"
CLASS = "class"
STATIC = "static"
FUNCTION = "function"
CONSTRUCTOR = "constructor"

# Kinds callable without a receiver.
STATIC_KINDS = frozenset({CLASS, STATIC, FUNCTION, CONSTRUCTOR})

_ABSENT = object()


@dataclass(frozen=True)
class ParamType:
    """Normalized declared type of one parameter. No types means any."""

    types: Tuple[type, ...] = ()
    nullable: bool = True

    @property
    def is_any(self) -> bool:
        return not self.types

    @property
    def label(self) -> str:
        if self.is_any:
            return "any"
        names = [t.__name__ for t in self.types]
        if self.nullable:
            names.append("None")
        return " | ".join(names)


ANY_PARAM = ParamType()


def param_type_from_annotation(annotation: Any) -> ParamType:
    """Maps a typing annotation onto the runtime classes that satisfy it."""
    if annotation is inspect.Parameter.empty or annotation is Any or annotation is object:
        return ANY_PARAM
    if isinstance(annotation, (str, typing.ForwardRef, typing.TypeVar)):
        return ANY_PARAM
    if annotation is None or annotation is NoneType:
        return ParamType((NoneType,), True)

    origin = typing.get_origin(annotation)

    if origin is typing.Union or origin is types.UnionType:
        members = typing.get_args(annotation)
        nullable = NoneType in members
        collected: List[type] = []
        for member in members:
            if member is NoneType:
                continue
            inner = param_type_from_annotation(member)
            if inner.is_any:
                return ANY_PARAM
            collected.extend(inner.types)
        return ParamType(tuple(dict.fromkeys(collected)), nullable)

    if origin is typing.Annotated:
        return param_type_from_annotation(typing.get_args(annotation)[0])

    if origin is typing.Literal:
        values = typing.get_args(annotation)
        literal_types = tuple(dict.fromkeys(type(v) for v in values if v is not None))
        return ParamType(literal_types, None in values)

    if origin in (typing.ClassVar, typing.Final):
        args = typing.get_args(annotation)
        return param_type_from_annotation(args[0]) if args else ANY_PARAM

    if isinstance(origin, type):
        return ParamType((origin,), False)

    if isinstance(annotation, type):
        return ParamType((annotation,), False)

    return ANY_PARAM


@dataclass(frozen=True)
class MemberCandidate:
    """One callable signature of a member, as seen from an owner."""

    name: str
    kind: str
    member: Any
    declaring: Any
    params: Tuple[ParamType, ...] = ()
    required: int = 0
    var_positional: Optional[ParamType] = None

    @property
    def is_varargs(self) -> bool:
        return self.var_positional is not None

    @property
    def is_static(self) -> bool:
        return self.kind in STATIC_KINDS

    def accepts_count(self, count: int) -> bool:
        if count < self.required:
            return False
        return self.is_varargs or count <= len(self.params)

    def param_for(self, index: int) -> ParamType:
        if index < len(self.params):
            return self.params[index]
        return self.var_positional or ANY_PARAM

    def bind(self, receiver: Any, owner: Any) -> Callable[..., Any]:
        """Returns the callable for this candidate, bound to ``receiver`` when needed."""
        if self.kind in (FUNCTION, CONSTRUCTOR) or isinstance(self.declaring, types.ModuleType):
            return self.member
        getter = getattr(type(self.member), "__get__", None)
        if getter is None:
            return self.member
        return getter(self.member, receiver, owner)

    def describe(self) -> str:
        rendered = [p.label for p in self.params]
        if self.var_positional is not None:
            rendered.append("*" + self.var_positional.label)
        owner = getattr(self.declaring, "__name__", repr(self.declaring))
        return f"{owner}.{self.name}({', '.join(rendered)})"


class MemberProvider(Protocol):
    """Enumerates candidate members for the resolution engine."""

    def public_members(self, owner: Any, name: str) -> Sequence[MemberCandidate]: ...

    def declared_levels(self, owner: Any) -> Sequence[Any]: ...

    def declared_members(
        self, level: Any, owner: Any, name: str
    ) -> Sequence[MemberCandidate]: ...

    def constructors(self, owner: Any) -> Sequence[MemberCandidate]: ...


def is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _type_hints(source: Any) -> dict:
    if source is None:
        return {}
    try:
        return typing.get_type_hints(source)
    except (NameError, TypeError, AttributeError, SyntaxError) as exc:
        logger.debug(
            "type_hints_unavailable",
            extra={"source": getattr(source, "__qualname__", repr(source)), "error": str(exc)},
        )
        return {}


def _overloads(func: Any) -> List[Any]:
    if not isinstance(func, types.FunctionType):
        return []
    # Stubs decorated with staticmethod/classmethod are registered wrapped.
    return [getattr(stub, "__func__", stub) for stub in typing.get_overloads(func)]


class IntrospectionMemberProvider:
    """Member provider backed by ``inspect`` and ``typing``."""

    def public_members(self, owner: Any, name: str) -> Sequence[MemberCandidate]:
        if name.startswith("_"):
            return ()
        if isinstance(owner, types.ModuleType):
            return self._candidates(name, vars(owner).get(name, _ABSENT), owner)
        for level in owner.__mro__:
            attr = vars(level).get(name, _ABSENT)
            if attr is not _ABSENT:
                return self._candidates(name, attr, level)
        return ()

    def declared_levels(self, owner: Any) -> Sequence[Any]:
        if isinstance(owner, types.ModuleType):
            return (owner,)
        return owner.__mro__

    def declared_members(
        self, level: Any, owner: Any, name: str
    ) -> Sequence[MemberCandidate]:
        if is_dunder(name):
            return ()
        return self._candidates(name, vars(level).get(name, _ABSENT), level)

    def constructors(self, owner: Any) -> Sequence[MemberCandidate]:
        if not isinstance(owner, type):
            return ()

        init = inspect.getattr_static(owner, "__init__", None)
        if isinstance(init, types.FunctionType):
            sources = _overloads(init) or [init]
            return self._build(owner.__name__, CONSTRUCTOR, owner, owner, sources, True)

        new = inspect.getattr_static(owner, "__new__", None)
        if isinstance(new, staticmethod):
            new = new.__func__
        if isinstance(new, types.FunctionType) and _overloads(new):
            return self._build(owner.__name__, CONSTRUCTOR, owner, owner, _overloads(new), True)

        hints_source = new if isinstance(new, types.FunctionType) else None
        candidate = self._candidate_for(
            owner.__name__, CONSTRUCTOR, owner, owner, owner, False, hints_source
        )
        return (candidate,) if candidate is not None else ()

    # ============================================================
    # Candidate construction
    # ============================================================

    def _candidates(self, name: str, attr: Any, declaring: Any) -> Sequence[MemberCandidate]:
        if attr is _ABSENT:
            return ()

        in_module = isinstance(declaring, types.ModuleType)

        if isinstance(attr, type):
            return tuple(
                MemberCandidate(
                    name=name,
                    kind=CONSTRUCTOR,
                    member=attr,
                    declaring=declaring,
                    params=c.params,
                    required=c.required,
                    var_positional=c.var_positional,
                )
                for c in self.constructors(attr)
            )

        if isinstance(attr, staticmethod):
            func = attr.__func__
            return self._build(name, STATIC, attr, declaring, _overloads(func) or [func], False)

        if isinstance(attr, classmethod):
            func = attr.__func__
            return self._build(name, CLASS, attr, declaring, _overloads(func) or [func], True)

        if isinstance(attr, types.ClassMethodDescriptorType):
            bound = attr.__get__(None, declaring)
            candidate = self._candidate_for(name, CLASS, attr, declaring, bound, False, None)
            return (candidate,) if candidate is not None else ()

        if isinstance(attr, types.FunctionType):
            kind = FUNCTION if in_module else INSTANCE
            return self._build(name, kind, attr, declaring, _overloads(attr) or [attr], not in_module)

        if isinstance(attr, (types.MethodDescriptorType, types.WrapperDescriptorType)):
            candidate = self._candidate_for(name, INSTANCE, attr, declaring, attr, True, None)
            return (candidate,) if candidate is not None else ()

        if isinstance(attr, (property, types.GetSetDescriptorType, types.MemberDescriptorType)):
            return ()

        if callable(attr):
            kind = FUNCTION if in_module else STATIC
            candidate = self._candidate_for(name, kind, attr, declaring, attr, False, attr)
            return (candidate,) if candidate is not None else ()

        return ()

    def _build(
        self,
        name: str,
        kind: str,
        member: Any,
        declaring: Any,
        sources: Sequence[Any],
        drop_first: bool,
    ) -> Tuple[MemberCandidate, ...]:
        built = []
        for source in sources:
            candidate = self._candidate_for(name, kind, member, declaring, source, drop_first, source)
            if candidate is not None:
                built.append(candidate)
        return tuple(built)

    def _candidate_for(
        self,
        name: str,
        kind: str,
        member: Any,
        declaring: Any,
        signature_source: Any,
        drop_first: bool,
        hints_source: Any,
    ) -> Optional[MemberCandidate]:
        """Builds one candidate, or None when the signature cannot be called positionally."""
        try:
            signature = inspect.signature(signature_source)
        except (ValueError, TypeError):
            # No introspectable signature (many builtins): accept any arguments.
            return MemberCandidate(
                name=name,
                kind=kind,
                member=member,
                declaring=declaring,
                var_positional=ANY_PARAM,
            )

        hints = _type_hints(hints_source)
        parameters = list(signature.parameters.values())
        if (
            drop_first
            and parameters
            and parameters[0].kind
            in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ):
            parameters = parameters[1:]

        params: List[ParamType] = []
        required = 0
        var_positional: Optional[ParamType] = None

        for parameter in parameters:
            annotation = hints.get(parameter.name, parameter.annotation)
            if parameter.kind in (
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
            ):
                params.append(param_type_from_annotation(annotation))
                if parameter.default is inspect.Parameter.empty:
                    required = len(params)
            elif parameter.kind is inspect.Parameter.VAR_POSITIONAL:
                var_positional = param_type_from_annotation(annotation)
            elif (
                parameter.kind is inspect.Parameter.KEYWORD_ONLY
                and parameter.default is inspect.Parameter.empty
            ):
                return None

        return MemberCandidate(
            name=name,
            kind=kind,
            member=member,
            declaring=declaring,
            params=tuple(params),
            required=required,
            var_positional=var_positional,
        )
