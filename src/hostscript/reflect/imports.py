"""
Per-unit import tables.

Each script unit owns an alias -> descriptor map plus a set of star-import
namespaces. Tables are independent; the registry indexing them is the only
shared structure.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from .gate import TypeDescriptor, TypeGate, short_name

logger = logging.getLogger("hostscript.reflect.imports")

GLOBAL_UNIT = "<global>"


def unit_key(unit: Optional[str]) -> str:
    """Normalizes a unit identity; empty identities share the global table."""
    if not unit:
        return GLOBAL_UNIT
    return unit.replace("\\", "/")


class ImportTable:
    """Alias map and star imports for one unit."""

    def __init__(self, unit: str = GLOBAL_UNIT):
        self.unit = unit
        self._aliases: Dict[str, TypeDescriptor] = {}
        self._star_imports: List[str] = []
        self._lock = threading.Lock()

    def add(self, alias: str, descriptor: TypeDescriptor) -> None:
        with self._lock:
            self._aliases[alias] = descriptor

    def add_star_import(self, namespace: str) -> None:
        with self._lock:
            if namespace not in self._star_imports:
                self._star_imports.append(namespace)

    @property
    def aliases(self) -> Dict[str, TypeDescriptor]:
        with self._lock:
            return dict(self._aliases)

    @property
    def star_imports(self) -> List[str]:
        with self._lock:
            return list(self._star_imports)

    def resolve(self, name: str, gate: Optional[TypeGate] = None) -> Optional[TypeDescriptor]:
        """
        Alias first, then the imported descriptors' own short names, then
        ``namespace.name`` for each star import (silently, through the gate).
        """
        with self._lock:
            found = self._aliases.get(name)
            if found is not None:
                return found
            for descriptor in self._aliases.values():
                if short_name(descriptor) == name:
                    return descriptor
            namespaces = list(self._star_imports)

        if gate is not None:
            for namespace in namespaces:
                found = gate.lookup(f"{namespace}.{name}")
                if found is not None:
                    return found
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._aliases) + len(self._star_imports)


class ImportRegistry:
    """Lock-protected index of import tables by unit key."""

    def __init__(self, gate: TypeGate):
        self._gate = gate
        self._tables: Dict[str, ImportTable] = {}
        self._lock = threading.Lock()

    def table(self, unit: Optional[str]) -> Optional[ImportTable]:
        with self._lock:
            return self._tables.get(unit_key(unit))

    def _table_for_update(self, unit: Optional[str]) -> ImportTable:
        key = unit_key(unit)
        with self._lock:
            table = self._tables.get(key)
            if table is None:
                table = ImportTable(key)
                self._tables[key] = table
            return table

    def add_import(
        self, unit: Optional[str], qualified_name: str, alias: Optional[str] = None
    ) -> Optional[TypeDescriptor]:
        """
        Registers an import for ``unit``.

        ``pkg.*`` registers a star import. Anything else must resolve through
        the gate: unknown or denied names raise TypeNotFoundError or
        PermissionDeniedError.
        """
        qualified_name = qualified_name.strip()
        if qualified_name.endswith(".*"):
            namespace = qualified_name[:-2]
            self._table_for_update(unit).add_star_import(namespace)
            logger.debug(
                "star_import_added",
                extra={"unit": unit_key(unit), "namespace": namespace},
            )
            return None

        descriptor = self._gate.require(qualified_name)
        key = alias or qualified_name.rpartition(".")[2]
        self._table_for_update(unit).add(key, descriptor)
        logger.debug(
            "import_added",
            extra={"unit": unit_key(unit), "type_name": qualified_name, "alias": key},
        )
        return descriptor

    def resolve(self, unit: Optional[str], name: str) -> Optional[TypeDescriptor]:
        table = self.table(unit)
        if table is None:
            return None
        return table.resolve(name, self._gate)

    def clear_all(self) -> None:
        with self._lock:
            self._tables = {}

    def units(self) -> List[str]:
        with self._lock:
            return sorted(self._tables)
