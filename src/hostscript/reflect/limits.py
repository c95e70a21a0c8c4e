"""
Resource limits for expression parsing and evaluation.

These limits protect against pathological expressions pasted into
scripts: very long texts, deeply nested calls, and huge object literals.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import LimitExceededError


@dataclass(frozen=True)
class ExpressionLimits:
    """Expression limits configuration."""

    # Maximum expression string length in characters
    max_expression_length: int = 4096

    # Maximum AST depth (nesting level)
    max_ast_depth: int = 32

    # Maximum number of AST nodes
    max_ast_nodes: int = 256

    # Maximum string literal length
    max_string_length: int = 1024

    # Maximum method or constructor call arguments
    max_call_args: int = 16

    # Maximum raw text length inside a bracket initializer
    max_bracket_length: int = 1024


DEFAULT_EXPRESSION_LIMITS = ExpressionLimits()


def check_expression_length(
    expression: str, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates that expression length is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(expression) > limits.max_expression_length:
        raise LimitExceededError(
            "max_expression_length", limits.max_expression_length, len(expression)
        )


def check_string_length(value: str, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates string literal length during tokenization."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(value) > limits.max_string_length:
        raise LimitExceededError(
            "max_string_length", limits.max_string_length, len(value)
        )


def check_bracket_length(raw: str, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates bracket initializer text length during tokenization."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(raw) > limits.max_bracket_length:
        raise LimitExceededError(
            "max_bracket_length", limits.max_bracket_length, len(raw)
        )


def check_ast_depth(depth: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates AST depth after parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_ast_depth:
        raise LimitExceededError("max_ast_depth", limits.max_ast_depth, depth)


def check_ast_node_count(
    count: int, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates AST node count after parsing."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_ast_nodes:
        raise LimitExceededError("max_ast_nodes", limits.max_ast_nodes, count)


def check_call_arg_count(count: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates method and constructor argument counts."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_call_args:
        raise LimitExceededError("max_call_args", limits.max_call_args, count)
