"""
Host-facing collaborators: object-model values, value parsing, diagnostics.

The engine never depends on a concrete host. It talks to a ``HostAdapter``
for host syntax it does not understand and reports failures to a
``Diagnostics`` sink.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Protocol

from .errors import ExpressionError

logger = logging.getLogger("hostscript.reflect.host")


class HostValue(ABC):
    """A value that lives in the host's object model."""

    @abstractmethod
    def unwrap(self) -> Any:
        """Returns the underlying plain value."""


def unwrap_value(value: Any) -> Any:
    while isinstance(value, HostValue):
        value = value.unwrap()
    return value


class Diagnostics(Protocol):
    def report(self, error: ExpressionError) -> None: ...


class LoggingDiagnostics:
    """Default sink: logs every error that carries a message."""

    def report(self, error: ExpressionError) -> None:
        if not error.message:
            return
        logger.warning(
            "expression_error",
            extra={
                "error_type": type(error).__name__,
                "error": error.format_with_context(),
            },
        )


class CollectingDiagnostics:
    """Keeps reported errors in memory; empty-message errors are dropped."""

    def __init__(self) -> None:
        self._errors: List[ExpressionError] = []
        self._lock = threading.Lock()

    def report(self, error: ExpressionError) -> None:
        if not error.message:
            return
        with self._lock:
            self._errors.append(error)

    @property
    def errors(self) -> List[ExpressionError]:
        with self._lock:
            return list(self._errors)

    @property
    def messages(self) -> List[str]:
        return [error.message for error in self.errors]

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()


class HostAdapter(Protocol):
    """Host facilities the evaluator falls back on."""

    def parse_value(self, text: str) -> Any:
        """Interprets raw identifier text as a host value, or returns None."""
        ...

    def parse_object(self, text: str) -> Any:
        """Interprets ``name[raw]`` syntax as a host object, or returns None."""
        ...

    def wrap(self, value: Any) -> Any:
        """Converts an evaluation result into the host's object model."""
        ...


class DefaultHost:
    """Host without its own value syntax. Results are returned as-is."""

    def parse_value(self, text: str) -> Optional[Any]:
        return None

    def parse_object(self, text: str) -> Optional[Any]:
        return None

    def wrap(self, value: Any) -> Any:
        return value


DEFAULT_HOST = DefaultHost()
