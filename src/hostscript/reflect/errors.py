"""
Error types for the reflective expression engine.

All expression errors extend ExpressionError for consistent handling.
Errors raised during evaluation never escape the public entry points of
the engine; they are reported to the diagnostics sink instead.
"""

from typing import Any, Optional, Sequence


class ExpressionError(Exception):
    """
    Base error class for all expression-related errors.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.expression = expression

    def format_with_context(self) -> str:
        """
        Returns a formatted error message with position context.
        """
        if self.expression is None or self.position is None:
            return self.message

        pointer = " " * self.position + "^"
        return f"{self.message}\n  {self.expression}\n  {pointer}"


class TokenizerError(ExpressionError):
    """
    Error thrown during tokenization (lexical analysis).
    """

    pass


class ParseError(ExpressionError):
    """
    Error thrown during parsing (syntax analysis).

    Carries the offending token so hosts can point at it.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        token: Any = None,
    ):
        super().__init__(message, position, expression)
        self.token = token


class EvaluationError(ExpressionError):
    """
    Error thrown during evaluation (runtime error).
    """

    pass


class NullTargetError(EvaluationError):
    """
    A call was made on an absent target.

    Carries no message: hosts treat it as an expected "nothing to do"
    outcome and do not log it.
    """

    def __init__(self, member: str):
        super().__init__("")
        self.member = member


class ResolutionError(EvaluationError):
    """
    Base error for failed type or member lookups.
    """

    pass


class TypeNotFoundError(ResolutionError):
    """
    Error thrown when a qualified type name cannot be resolved.
    """

    def __init__(self, type_name: str):
        super().__init__(f"Type '{type_name}' could not be found")
        self.type_name = type_name


class MemberNotFoundError(ResolutionError):
    """
    Error thrown when no member matches a name and argument list.
    """

    def __init__(
        self,
        kind: str,
        owner_name: str,
        member: str,
        arg_types: Sequence[str] = (),
    ):
        signature = ", ".join(arg_types)
        if kind == "field":
            message = f"Could not find field '{member}' on '{owner_name}'"
        else:
            message = (
                f"Could not find a matching {kind} '{member}({signature})' "
                f"for '{owner_name}'"
            )
        super().__init__(message)
        self.kind = kind
        self.owner_name = owner_name
        self.member = member
        self.arg_types = tuple(arg_types)


class PermissionDeniedError(ResolutionError):
    """
    Error thrown when the security gate rejects a type.
    """

    def __init__(self, type_name: str):
        super().__init__(
            f"Access to type '{type_name}' is denied by the security configuration"
        )
        self.type_name = type_name


class CoercionError(EvaluationError):
    """
    Error thrown when a value cannot be converted to a parameter type.

    Only used inside the coercion step; callers fall back to the original
    value instead of propagating it.
    """

    def __init__(self, value: Any, target: str):
        super().__init__(
            f"Cannot convert {type(value).__name__} value {value!r} to {target}"
        )
        self.value = value
        self.target = target


class InvocationError(EvaluationError):
    """
    Error thrown when a resolved member raises while being invoked.
    """

    def __init__(self, member: str, cause: BaseException):
        super().__init__(f"{member}: {type(cause).__name__}: {cause}")
        self.member = member
        self.cause = cause


class FieldWriteError(EvaluationError):
    """
    Error thrown when a field write is rejected.
    """

    def __init__(self, owner_name: str, field: str, reason: str):
        super().__init__(f"Cannot set field '{field}' on '{owner_name}': {reason}")
        self.owner_name = owner_name
        self.field = field
        self.reason = reason


class LimitExceededError(ExpressionError):
    """
    Error thrown when expression limits are exceeded.
    """

    def __init__(self, limit_name: str, limit: int, actual: int):
        message = f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})"
        super().__init__(message)
        self.limit_name = limit_name
        self.limit = limit
        self.actual = actual
