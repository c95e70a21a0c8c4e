"""
Reflective expression engine for host scripting environments.

This module evaluates Java-style expressions (``obj.method(args)``,
``new Type(args)``, ``Type.field``, ``Type[x=1, y=2]``) against Python
types discovered at run time, with overload resolution, argument
coercion, allow-list gating and cached member handles.
"""

# Core types and utilities
from .ast import (
    AstNode,
    AstNodeBase,
    BracketInitNode,
    FieldAccessNode,
    LambdaNode,
    LiteralNode,
    MethodCallNode,
    NewNode,
    VariableNode,
    ast_to_string,
    calculate_ast_depth,
    count_ast_nodes,
)

# Caches
from .caches import (
    MISSING,
    NOT_FOUND,
    CacheStats,
    ConcurrentCache,
    Generation,
    LruCache,
)

# Coercion
from .coercion import (
    coerce,
    convert,
    matches_lenient,
    matches_strict,
)

# Configuration
from .config import (
    EngineConfig,
    load_config,
    normalize_config,
    parse_config,
)

# Engine
from .engine import ExpressionEngine
from .errors import (
    CoercionError,
    EvaluationError,
    ExpressionError,
    FieldWriteError,
    InvocationError,
    LimitExceededError,
    MemberNotFoundError,
    NullTargetError,
    ParseError,
    PermissionDeniedError,
    ResolutionError,
    TokenizerError,
    TypeNotFoundError,
)

# Evaluator
from .evaluator import (
    EvaluationContext,
    Evaluator,
    ScriptLambda,
    split_top_level,
)

# Security gate
from .gate import (
    DEFAULT_ALLOWED_NAMESPACES,
    AllowListPolicy,
    SecurityPolicy,
    TypeDescriptor,
    TypeGate,
    qualified_name,
)

# Host collaborators
from .host import (
    CollectingDiagnostics,
    DefaultHost,
    Diagnostics,
    HostAdapter,
    HostValue,
    LoggingDiagnostics,
    unwrap_value,
)

# Imports
from .imports import (
    GLOBAL_UNIT,
    ImportRegistry,
    ImportTable,
)
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_ast_depth,
    check_ast_node_count,
    check_bracket_length,
    check_call_arg_count,
    check_expression_length,
    check_string_length,
)

# Members
from .members import (
    IntrospectionMemberProvider,
    MemberCandidate,
    MemberProvider,
    ParamType,
    param_type_from_annotation,
)

# Object model
from .objects import (
    ObjectModelHost,
    ReflectedObject,
)

# Parser
from .parser import (
    Parser,
    parse,
)

# Resolution
from .resolver import (
    MemberHandle,
    MemberKey,
    ResolutionEngine,
)

# Template
from .template import expand_template

# Tokenizer
from .tokenizer import (
    Token,
    Tokenizer,
    TokenType,
    tokenize,
)

__all__ = [
    # AST types
    "AstNode",
    "AstNodeBase",
    "LiteralNode",
    "VariableNode",
    "FieldAccessNode",
    "MethodCallNode",
    "NewNode",
    "BracketInitNode",
    "LambdaNode",
    "count_ast_nodes",
    "calculate_ast_depth",
    "ast_to_string",
    # Errors
    "ExpressionError",
    "TokenizerError",
    "ParseError",
    "EvaluationError",
    "NullTargetError",
    "ResolutionError",
    "TypeNotFoundError",
    "MemberNotFoundError",
    "PermissionDeniedError",
    "CoercionError",
    "InvocationError",
    "FieldWriteError",
    "LimitExceededError",
    # Limits
    "ExpressionLimits",
    "DEFAULT_EXPRESSION_LIMITS",
    "check_expression_length",
    "check_string_length",
    "check_bracket_length",
    "check_ast_depth",
    "check_ast_node_count",
    "check_call_arg_count",
    # Tokenizer
    "Token",
    "TokenType",
    "Tokenizer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # Caches
    "CacheStats",
    "ConcurrentCache",
    "Generation",
    "LruCache",
    "MISSING",
    "NOT_FOUND",
    # Security gate
    "AllowListPolicy",
    "DEFAULT_ALLOWED_NAMESPACES",
    "SecurityPolicy",
    "TypeDescriptor",
    "TypeGate",
    "qualified_name",
    # Imports
    "GLOBAL_UNIT",
    "ImportRegistry",
    "ImportTable",
    # Members and resolution
    "IntrospectionMemberProvider",
    "MemberCandidate",
    "MemberProvider",
    "ParamType",
    "param_type_from_annotation",
    "MemberHandle",
    "MemberKey",
    "ResolutionEngine",
    # Coercion
    "coerce",
    "convert",
    "matches_strict",
    "matches_lenient",
    # Host collaborators
    "CollectingDiagnostics",
    "DefaultHost",
    "Diagnostics",
    "HostAdapter",
    "HostValue",
    "LoggingDiagnostics",
    "unwrap_value",
    # Evaluator
    "EvaluationContext",
    "Evaluator",
    "ScriptLambda",
    "split_top_level",
    # Template
    "expand_template",
    # Object model
    "ObjectModelHost",
    "ReflectedObject",
    # Configuration
    "EngineConfig",
    "load_config",
    "normalize_config",
    "parse_config",
    # Engine
    "ExpressionEngine",
]
