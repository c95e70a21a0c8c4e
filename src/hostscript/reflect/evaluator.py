"""
Expression evaluator.

Walks an AST against an evaluation context. Member lookups, calls and
constructions go through the resolution engine; failed resolutions are
reported to the context's diagnostics sink and yield None so the
surrounding expression can continue.

Variable resolution order:
1. unit imports, then a type lookup by name (skipped for names carrying
   the ``@`` address marker, for subject aliases and for lambda
   parameters; a bare name only resolves as a module when the policy
   lists it as a root)
2. subject aliases
3. script-local definitions
4. ambient context values
5. the host's value parser
6. the raw name itself
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, cast

from .ast import (
    AstNode,
    BracketInitNode,
    FieldAccessNode,
    LambdaNode,
    LiteralNode,
    MethodCallNode,
    NewNode,
    VariableNode,
)
from .coercion import parse_scalar
from .errors import (
    EvaluationError,
    NullTargetError,
    PermissionDeniedError,
    TypeNotFoundError,
)
from .gate import TypeDescriptor, TypeGate, is_type_descriptor
from .host import (
    DEFAULT_HOST,
    Diagnostics,
    HostAdapter,
    LoggingDiagnostics,
    unwrap_value,
)
from .imports import ImportRegistry
from .resolver import ResolutionEngine

ADDRESS_MARKER = "@"


@dataclass
class EvaluationContext:
    """Per-call evaluation state supplied by the host."""

    unit: Optional[str] = None
    """Identity of the calling script unit; selects the import table."""

    subject: Any = None
    """Current object, if any."""

    subject_aliases: Optional[Sequence[str]] = None
    """Names that refer to the subject; defaults to the engine's aliases."""

    definitions: Mapping[str, Any] = field(default_factory=dict)
    """Script-local named values."""

    context_values: Mapping[str, Any] = field(default_factory=dict)
    """Ambient values supplied by the triggering host event."""

    host: Optional[HostAdapter] = None
    """Host value parsing and wrapping; defaults to the engine's host."""

    diagnostics: Optional[Diagnostics] = None
    """Error sink; defaults to the engine's sink."""


# ============================================================
# Object-literal text helpers
# ============================================================


def split_top_level(text: str, separators: str = ",;") -> List[str]:
    """Splits on separators outside parentheses, brackets and quotes."""
    parts: List[str] = []
    depth = 0
    quote: Optional[str] = None
    start = 0
    index = 0

    while index < len(text):
        ch = text[index]
        if quote is not None:
            if ch == "\\":
                index += 1
            elif ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        elif ch in separators and depth == 0:
            parts.append(text[start:index])
            start = index + 1
        index += 1

    parts.append(text[start:])
    return [part.strip() for part in parts if part.strip()]


def find_assignment(segment: str) -> int:
    """Index of the first top-level ``=`` or ``:``, or -1."""
    depth = 0
    quote: Optional[str] = None
    index = 0

    while index < len(segment):
        ch = segment[index]
        if quote is not None:
            if ch == "\\":
                index += 1
            elif ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        elif ch in "=:" and depth == 0:
            return index
        index += 1

    return -1


def has_named_fields(raw: str) -> bool:
    return find_assignment(raw) >= 0


def strip_quotes(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


# ============================================================
# Lambdas
# ============================================================


class ScriptLambda:
    """
    A ``params -> body`` lambda closed over the context it was created in.

    Calling it binds the positional arguments to the parameter names as
    definitions (missing ones bind to None, extra ones are ignored) and
    evaluates the body, returning the plain value.
    """

    def __init__(self, params: Sequence[str], body: AstNode, evaluator: "Evaluator"):
        self.params: Tuple[str, ...] = tuple(params)
        self.body = body
        self._evaluator = evaluator

    def __call__(self, *args: Any) -> Any:
        bound: Dict[str, Any] = {}
        for index, name in enumerate(self.params):
            bound[name] = unwrap_value(args[index]) if index < len(args) else None
        return unwrap_value(self._evaluator.fork(bound).evaluate(self.body))

    def __repr__(self) -> str:
        return f"ScriptLambda(({', '.join(self.params)}) -> ...)"


# ============================================================
# Evaluator
# ============================================================


class Evaluator:
    """Evaluates an AST node and returns the result."""

    def __init__(
        self,
        context: EvaluationContext,
        resolver: ResolutionEngine,
        gate: TypeGate,
        imports: ImportRegistry,
        source: str = "",
        host: Optional[HostAdapter] = None,
        diagnostics: Optional[Diagnostics] = None,
        subject_aliases: Sequence[str] = ("this",),
        bound: FrozenSet[str] = frozenset(),
    ):
        self._context = context
        self._bound = bound
        self._resolver = resolver
        self._gate = gate
        self._imports = imports
        self._source = source
        self._host: HostAdapter = context.host or host or DEFAULT_HOST
        self._diagnostics: Diagnostics = (
            context.diagnostics or diagnostics or LoggingDiagnostics()
        )
        if context.subject_aliases is not None:
            subject_aliases = context.subject_aliases
        self._subject_aliases = tuple(subject_aliases)

    @property
    def context(self) -> EvaluationContext:
        return self._context

    def fork(self, bound: Mapping[str, Any]) -> "Evaluator":
        """An evaluator for a lambda body: same context plus ``bound`` definitions."""
        definitions = dict(self._context.definitions)
        definitions.update(bound)
        return Evaluator(
            dataclasses.replace(self._context, definitions=definitions),
            self._resolver,
            self._gate,
            self._imports,
            self._source,
            host=self._host,
            diagnostics=self._diagnostics,
            subject_aliases=self._subject_aliases,
            bound=self._bound | frozenset(bound),
        )

    def evaluate(self, node: AstNode) -> Any:
        """Evaluates an AST node and returns the value."""
        node_type = node.type

        if node_type == "Literal":
            return cast(LiteralNode, node).value

        if node_type == "Variable":
            return self._evaluate_variable(cast(VariableNode, node).name)

        if node_type == "FieldAccess":
            return self._evaluate_field_access(cast(FieldAccessNode, node))

        if node_type == "MethodCall":
            return self._evaluate_method_call(cast(MethodCallNode, node))

        if node_type == "New":
            return self._evaluate_new(cast(NewNode, node))

        if node_type == "BracketInit":
            return self._evaluate_bracket_init(cast(BracketInitNode, node))

        if node_type == "Lambda":
            lambda_node = cast(LambdaNode, node)
            return ScriptLambda(lambda_node.params, lambda_node.body, self)

        raise EvaluationError(f"Unknown node type: {node_type}", node.position, self._source)

    # ============================================================
    # Type lookup
    # ============================================================

    def _lookup_type(self, name: str) -> Optional[TypeDescriptor]:
        """Unit imports first, then the name as a qualified type name."""
        found = self._imports.resolve(self._context.unit, name)
        if found is not None:
            return found
        # Bare names would import arbitrary top-level modules.
        if "." not in name and not self._gate.is_root(name):
            return None
        return self._gate.lookup(name)

    def _report(self, error: Exception) -> None:
        self._diagnostics.report(error)  # type: ignore[arg-type]

    # ============================================================
    # Node evaluation
    # ============================================================

    def _evaluate_variable(self, name: str) -> Any:
        context = self._context

        if name in self._subject_aliases:
            if context.subject is not None:
                return context.subject
        elif ADDRESS_MARKER not in name and name not in self._bound:
            found = self._lookup_type(name)
            if found is not None:
                return found

        if name in context.definitions:
            return context.definitions[name]

        if name in context.context_values:
            return context.context_values[name]

        parsed = self._host.parse_value(name)
        if parsed is not None:
            return parsed

        return name

    def _evaluate_field_access(self, node: FieldAccessNode) -> Any:
        target = unwrap_value(self.evaluate(node.target))

        if isinstance(target, str):
            full_name = f"{target}.{node.name}"
            found = self._gate.lookup(full_name)
            return found if found is not None else full_name

        if target is None:
            raise EvaluationError(
                f"Cannot access field '{node.name}' on null target",
                node.position,
                self._source,
            )

        return self._resolver.get_field(target, node.name, self._diagnostics)

    def _evaluate_args(self, args: Sequence[AstNode]) -> List[Any]:
        return [unwrap_value(self.evaluate(arg)) for arg in args]

    def _evaluate_method_call(self, node: MethodCallNode) -> Any:
        target = unwrap_value(self.evaluate(node.target))
        args = self._evaluate_args(node.args)

        if target is None:
            self._report(NullTargetError(node.name))
            return None

        if is_type_descriptor(target):
            return self._resolver.invoke_static(target, node.name, args, self._diagnostics)
        return self._resolver.invoke(target, node.name, args, self._diagnostics)

    def _evaluate_new(self, node: NewNode) -> Any:
        descriptor = self._lookup_type(node.type_name)
        if descriptor is None:
            if "." in node.type_name and not self._gate.is_allowed(node.type_name):
                self._report(PermissionDeniedError(node.type_name))
            else:
                self._report(TypeNotFoundError(node.type_name))
            return None

        args = self._evaluate_args(node.args)
        return self._resolver.construct(descriptor, args, self._diagnostics)

    def _evaluate_bracket_init(self, node: BracketInitNode) -> Any:
        target = unwrap_value(self.evaluate(node.target))
        raw = node.raw_text

        if isinstance(target, str):
            descriptor = self._lookup_type(target)
            if descriptor is None:
                text = f"{target}[{raw}]"
                parsed = self._host.parse_object(text)
                return parsed if parsed is not None else text
            target = descriptor

        if isinstance(target, type):
            return self._construct_literal(target, raw)

        raise EvaluationError(
            f"Cannot apply '[...]' to a value of type {type(target).__name__}",
            node.position,
            self._source,
        )

    def _construct_literal(self, cls: type, raw: str) -> Any:
        if not raw:
            return self._resolver.construct(cls, [], self._diagnostics)

        if not has_named_fields(raw):
            values = [strip_quotes(segment) for segment in split_top_level(raw)]
            return self._resolver.construct(cls, values, self._diagnostics)

        instance = self._resolver.construct(cls, [], self._diagnostics)
        if instance is None:
            return None

        for name, text in self._named_fields(raw):
            declared = self._resolver.field_type(cls, name)
            value = parse_scalar(text) if declared.is_any else strip_quotes(text)
            self._resolver.set_field(instance, name, value, self._diagnostics)

        return instance

    def _named_fields(self, raw: str) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        for segment in split_top_level(raw):
            index = find_assignment(segment)
            if index < 0:
                self._report(
                    EvaluationError(
                        f"Expected 'name=value' in object literal, got '{segment}'",
                        None,
                        self._source,
                    )
                )
                continue
            pairs.append((segment[:index].strip(), segment[index + 1 :].strip()))
        return pairs
