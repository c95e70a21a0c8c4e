"""
Security and type-lookup gate.

Every type resolution is checked against a host-supplied policy before
anything is imported, listed, read, or invoked. Successful and failed
lookups are cached by qualified name; a reload clears both.
"""

from __future__ import annotations

import importlib
import logging
import types
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from .caches import NOT_FOUND, ConcurrentCache, Generation
from .errors import PermissionDeniedError, TypeNotFoundError

logger = logging.getLogger("hostscript.reflect.gate")

# A host policy: qualified name -> allowed?
SecurityPolicy = Callable[[str], bool]

# Classes and modules both act as type descriptors. Modules expose their
# functions and classes as static members.
TypeDescriptor = Union[type, types.ModuleType]

DEFAULT_ALLOWED_NAMESPACES: Tuple[str, ...] = (
    "builtins",
    "math",
    "decimal",
    "fractions",
    "datetime",
    "collections",
)


def is_type_descriptor(value: Any) -> bool:
    return isinstance(value, (type, types.ModuleType))


def qualified_name(descriptor: Any) -> str:
    """Returns the dotted name the policy sees for a class or module."""
    if isinstance(descriptor, types.ModuleType):
        return descriptor.__name__
    if isinstance(descriptor, type):
        return f"{descriptor.__module__}.{descriptor.__qualname__}"
    return qualified_name(type(descriptor))


def short_name(descriptor: Any) -> str:
    if isinstance(descriptor, types.ModuleType):
        return descriptor.__name__.rpartition(".")[2]
    return getattr(descriptor, "__name__", str(descriptor))


class AllowListPolicy:
    """Prefix match over permitted namespaces."""

    def __init__(self, prefixes: Iterable[str]):
        self.prefixes: Tuple[str, ...] = tuple(
            p.strip() for p in prefixes if p and p.strip()
        )

    def __call__(self, name: str) -> bool:
        if "*" in self.prefixes:
            return True
        return any(name.startswith(prefix) for prefix in self.prefixes)

    @property
    def roots(self) -> Tuple[str, ...]:
        """Top-level modules listed by name; only these resolve as bare identifiers."""
        return tuple(p for p in self.prefixes if p != "*" and "." not in p)

    def __repr__(self) -> str:
        return f"AllowListPolicy({list(self.prefixes)!r})"


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _import_descriptor(name: str) -> Optional[TypeDescriptor]:
    """
    Imports the longest module prefix of ``name`` and walks the rest as
    attributes. Only classes and modules are accepted as the result.
    """
    parts = name.split(".")
    if not all(parts) or any(_is_dunder(part) for part in parts):
        return None

    for split in range(len(parts), 0, -1):
        module_name = ".".join(parts[:split])
        try:
            current: Any = importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            missing = exc.name or ""
            if module_name == missing or module_name.startswith(missing + "."):
                continue
            logger.warning(
                "type_import_failed",
                extra={"type_name": name, "module": module_name, "error": str(exc)},
            )
            return None
        except ImportError as exc:
            logger.warning(
                "type_import_failed",
                extra={"type_name": name, "module": module_name, "error": str(exc)},
            )
            return None

        for attr in parts[split:]:
            current = getattr(current, attr, None)
            if current is None:
                return None

        return current if is_type_descriptor(current) else None

    return None


class TypeGate:
    """Allow-list check plus a qualified-name -> descriptor cache."""

    def __init__(
        self,
        policy: Optional[SecurityPolicy] = None,
        generation: Optional[Generation] = None,
    ):
        self._policy: SecurityPolicy = policy or AllowListPolicy(
            DEFAULT_ALLOWED_NAMESPACES
        )
        self._types: ConcurrentCache[str, Any] = ConcurrentCache("types", generation)

    @property
    def cache(self) -> ConcurrentCache[str, Any]:
        return self._types

    def is_allowed(self, name: str) -> bool:
        return bool(self._policy(name))

    def is_root(self, name: str) -> bool:
        """
        True when the policy names ``name`` as a top-level module. Policies
        without a ``roots`` attribute expose no bare module names.
        """
        return name in getattr(self._policy, "roots", ())

    def lookup(self, name: str) -> Optional[TypeDescriptor]:
        """Resolves a qualified name, returning None when denied or unknown."""
        if not name or not self.is_allowed(name):
            return None
        found = self._types.get_or_compute(name, self._load)
        if found is NOT_FOUND:
            return None
        if not self.is_allowed(qualified_name(found)):
            return None
        return found

    def require(self, name: str) -> TypeDescriptor:
        """Resolves a qualified name or raises."""
        if not name or not self.is_allowed(name):
            logger.warning("type_access_denied", extra={"type_name": name})
            raise PermissionDeniedError(name)
        found = self._types.get_or_compute(name, self._load)
        if found is NOT_FOUND:
            raise TypeNotFoundError(name)
        self.check_owner(found)
        return found

    def check_owner(self, descriptor: Any) -> None:
        """Raises PermissionDeniedError unless the descriptor's type is allowed."""
        name = qualified_name(descriptor)
        if not self.is_allowed(name):
            logger.warning("type_access_denied", extra={"type_name": name})
            raise PermissionDeniedError(name)

    def clear(self) -> None:
        self._types.clear()

    @staticmethod
    def _load(name: str) -> Any:
        descriptor = _import_descriptor(name)
        logger.debug(
            "type_resolved",
            extra={"type_name": name, "found": descriptor is not None},
        )
        return NOT_FOUND if descriptor is None else descriptor
