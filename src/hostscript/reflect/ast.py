"""
Abstract Syntax Tree (AST) node types for the expression language.

The AST is produced by the parser and consumed by the evaluator. Nodes
are frozen so a parsed tree can be cached and shared across threads.
"""

from abc import ABC
from dataclasses import dataclass
from typing import Any, Literal, Sequence, Union

# ============================================================
# AST Node Types
# ============================================================


@dataclass(frozen=True)
class AstNodeBase(ABC):
    """Base class for all AST nodes."""

    position: int
    """Position in source expression (for error reporting)."""


@dataclass(frozen=True)
class LiteralNode(AstNodeBase):
    """Literal node: string, number, boolean or null."""

    value: Any

    @property
    def type(self) -> Literal["Literal"]:
        return "Literal"


@dataclass(frozen=True)
class VariableNode(AstNodeBase):
    """Bare identifier, resolved lazily at evaluation time."""

    name: str

    @property
    def type(self) -> Literal["Variable"]:
        return "Variable"


@dataclass(frozen=True)
class FieldAccessNode(AstNodeBase):
    """Field access node (e.g., Type.field or obj.field)."""

    target: "AstNode"
    name: str

    @property
    def type(self) -> Literal["FieldAccess"]:
        return "FieldAccess"


@dataclass(frozen=True)
class MethodCallNode(AstNodeBase):
    """Method call node (e.g., obj.method(a, b))."""

    target: "AstNode"
    name: str
    args: Sequence["AstNode"]

    @property
    def type(self) -> Literal["MethodCall"]:
        return "MethodCall"


@dataclass(frozen=True)
class NewNode(AstNodeBase):
    """Constructor expression (e.g., new pkg.Type(a, b))."""

    type_name: str
    args: Sequence["AstNode"]

    @property
    def type(self) -> Literal["New"]:
        return "New"


@dataclass(frozen=True)
class BracketInitNode(AstNodeBase):
    """Object-literal construction (e.g., Point[x=1, y=2] or Point[1, 2])."""

    target: "AstNode"
    raw_text: str

    @property
    def type(self) -> Literal["BracketInit"]:
        return "BracketInit"


@dataclass(frozen=True)
class LambdaNode(AstNodeBase):
    """Lambda expression (e.g., x -> x.name() or (a, b) -> a.max(b))."""

    params: Sequence[str]
    body: "AstNode"

    @property
    def type(self) -> Literal["Lambda"]:
        return "Lambda"


# Union type for all AST nodes
AstNode = Union[
    LiteralNode,
    VariableNode,
    FieldAccessNode,
    MethodCallNode,
    NewNode,
    BracketInitNode,
    LambdaNode,
]


# ============================================================
# AST Utilities
# ============================================================


def _children(node: AstNode) -> Sequence[AstNode]:
    if node.type in ("Literal", "Variable"):
        return ()

    if node.type in ("FieldAccess", "BracketInit"):
        return (node.target,)  # type: ignore[union-attr]

    if node.type == "MethodCall":
        return (node.target, *node.args)  # type: ignore[union-attr]

    if node.type == "New":
        return tuple(node.args)  # type: ignore[union-attr]

    if node.type == "Lambda":
        return (node.body,)  # type: ignore[union-attr]

    return ()


def count_ast_nodes(node: AstNode) -> int:
    """Counts the total number of nodes in an AST."""
    return 1 + sum(count_ast_nodes(child) for child in _children(node))


def calculate_ast_depth(node: AstNode) -> int:
    """Calculates the maximum depth of an AST."""
    children = _children(node)
    if not children:
        return 1
    return 1 + max(calculate_ast_depth(child) for child in children)


def _format_literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return repr(value)


def _format_args(args: Sequence[AstNode]) -> str:
    return "[" + ", ".join(ast_to_string(arg) for arg in args) + "]"


def ast_to_string(node: AstNode) -> str:
    """
    Returns the canonical one-line structure of an AST node.

    ``a.b(c)`` renders as ``MethodCall(Variable("a"), "b", [Variable("c")])``.
    The output is stable for a given input text, so it doubles as a cheap
    structural fingerprint in tests and debug logs.
    """
    if node.type == "Literal":
        return f"Literal({_format_literal(node.value)})"  # type: ignore[union-attr]

    if node.type == "Variable":
        return f'Variable("{node.name}")'  # type: ignore[union-attr]

    if node.type == "FieldAccess":
        return f'FieldAccess({ast_to_string(node.target)}, "{node.name}")'  # type: ignore[union-attr]

    if node.type == "MethodCall":
        return (
            f"MethodCall({ast_to_string(node.target)}, "  # type: ignore[union-attr]
            f'"{node.name}", {_format_args(node.args)})'  # type: ignore[union-attr]
        )

    if node.type == "New":
        return f'New("{node.type_name}", {_format_args(node.args)})'  # type: ignore[union-attr]

    if node.type == "BracketInit":
        return (
            f"BracketInit({ast_to_string(node.target)}, "  # type: ignore[union-attr]
            f"{_format_literal(node.raw_text)})"  # type: ignore[union-attr]
        )

    if node.type == "Lambda":
        params = ", ".join(f'"{name}"' for name in node.params)  # type: ignore[union-attr]
        return f"Lambda([{params}], {ast_to_string(node.body)})"  # type: ignore[union-attr]

    return f"Unknown({node!r})"
