"""
Tests for the security gate and import tables.
"""

import collections
import datetime
import math

import pytest

from hostscript.reflect import (
    AllowListPolicy,
    ImportRegistry,
    ImportTable,
    PermissionDeniedError,
    TypeGate,
    TypeNotFoundError,
    qualified_name,
)
from hostscript.reflect.imports import GLOBAL_UNIT, unit_key


class TestAllowListPolicy:
    """Tests for prefix matching."""

    def test_prefix_match(self):
        policy = AllowListPolicy(["datetime", "math"])
        assert policy("datetime.date")
        assert policy("math")
        assert not policy("subprocess.Popen")

    def test_wildcard(self):
        assert AllowListPolicy(["*"])("anything.at.all")

    def test_blank_entries_ignored(self):
        policy = AllowListPolicy(["", "  ", " math "])
        assert policy.prefixes == ("math",)

    def test_roots_are_bare_module_entries(self):
        policy = AllowListPolicy(["math", "json.decoder", "*", "reflect_fixtures"])
        assert policy.roots == ("math", "reflect_fixtures")


class TestQualifiedName:
    def test_class(self):
        assert qualified_name(datetime.date) == "datetime.date"

    def test_module(self):
        assert qualified_name(math) == "math"

    def test_instance_uses_its_type(self):
        assert qualified_name(collections.OrderedDict()) == "collections.OrderedDict"


class TestTypeGate:
    """Tests for TypeGate lookups."""

    def test_lookup_class(self):
        gate = TypeGate(AllowListPolicy(["datetime"]))
        assert gate.lookup("datetime.date") is datetime.date

    def test_lookup_module(self):
        assert TypeGate(AllowListPolicy(["math"])).lookup("math") is math

    def test_lookup_denied_is_silent(self):
        gate = TypeGate(AllowListPolicy(["math"]))
        assert gate.lookup("subprocess.Popen") is None
        assert "subprocess.Popen" not in gate.cache

    def test_lookup_unknown_is_cached(self):
        gate = TypeGate(AllowListPolicy(["math"]))
        assert gate.lookup("math.Nothing") is None
        assert "math.Nothing" in gate.cache

    def test_non_type_attribute_is_not_a_type(self):
        assert TypeGate(AllowListPolicy(["math"])).lookup("math.pi") is None

    def test_dunder_path_is_rejected(self):
        assert TypeGate(AllowListPolicy(["*"])).lookup("math.__class__") is None

    def test_reexport_outside_policy_is_rejected(self):
        # Defined in json.decoder, re-exported by json.
        gate = TypeGate(AllowListPolicy(["json.JSONDecodeError"]))
        assert gate.lookup("json.JSONDecodeError") is None

    def test_require_raises_on_denied(self):
        gate = TypeGate(AllowListPolicy(["math"]))
        with pytest.raises(PermissionDeniedError) as exc_info:
            gate.require("subprocess.Popen")
        assert exc_info.value.type_name == "subprocess.Popen"

    def test_require_raises_on_unknown(self):
        with pytest.raises(TypeNotFoundError):
            TypeGate(AllowListPolicy(["math"])).require("math.Nothing")

    def test_check_owner(self):
        gate = TypeGate(AllowListPolicy(["math"]))
        gate.check_owner(math)
        with pytest.raises(PermissionDeniedError):
            gate.check_owner(datetime.date)

    def test_clear(self):
        gate = TypeGate(AllowListPolicy(["math"]))
        gate.lookup("math")
        gate.clear()
        assert len(gate.cache) == 0

    def test_is_root(self):
        gate = TypeGate(AllowListPolicy(["math", "*"]))
        assert gate.is_root("math")
        assert not gate.is_root("this")

    def test_callable_policy_has_no_roots(self):
        assert not TypeGate(lambda name: True).is_root("math")

    def test_custom_policy_callable(self):
        gate = TypeGate(lambda name: name == "datetime.timedelta")
        assert gate.lookup("datetime.timedelta") is datetime.timedelta
        assert gate.lookup("datetime.date") is None


class TestImportTable:
    """Tests for per-unit import tables."""

    def test_alias_lookup(self):
        table = ImportTable()
        table.add("Date", datetime.date)
        assert table.resolve("Date") is datetime.date

    def test_short_name_lookup(self):
        table = ImportTable()
        table.add("D", datetime.date)
        assert table.resolve("date") is datetime.date

    def test_star_import_needs_gate(self):
        table = ImportTable()
        table.add_star_import("datetime")
        assert table.resolve("date") is None
        assert table.resolve("date", TypeGate(AllowListPolicy(["datetime"]))) is datetime.date

    def test_star_imports_are_unique(self):
        table = ImportTable()
        table.add_star_import("datetime")
        table.add_star_import("datetime")
        assert table.star_imports == ["datetime"]
        assert len(table) == 1


class TestImportRegistry:
    """Tests for the unit registry."""

    @pytest.fixture
    def registry(self) -> ImportRegistry:
        return ImportRegistry(TypeGate(AllowListPolicy(["datetime", "math"])))

    def test_default_alias_is_last_segment(self, registry):
        registry.add_import("u", "datetime.timedelta")
        assert registry.table("u").aliases == {"timedelta": datetime.timedelta}

    def test_explicit_alias(self, registry):
        registry.add_import("u", "datetime.timedelta", "Span")
        assert registry.resolve("u", "Span") is datetime.timedelta

    def test_unknown_unit(self, registry):
        assert registry.resolve("nobody", "date") is None

    def test_unit_keys(self):
        assert unit_key(None) == GLOBAL_UNIT
        assert unit_key("") == GLOBAL_UNIT
        assert unit_key("a\\b.dsc") == "a/b.dsc"

    def test_clear_all(self, registry):
        registry.add_import("u", "math")
        assert registry.units() == ["u"]
        registry.clear_all()
        assert registry.units() == []
        assert registry.resolve("u", "math") is None

    def test_denied_import_adds_nothing(self, registry):
        with pytest.raises(PermissionDeniedError):
            registry.add_import("u", "subprocess.Popen")
        assert registry.table("u") is None
