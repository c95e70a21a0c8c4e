"""
Tests for member resolution, invocation and field access.
"""

import math

import pytest
import reflect_fixtures
from reflect_fixtures import (
    Bag,
    Calculator,
    Derived,
    Formatter,
    FrozenPoint,
    MathUtil,
    Picker,
    Point,
    Settings,
    Tracked,
)

from hostscript.reflect import (
    AllowListPolicy,
    CollectingDiagnostics,
    EvaluationContext,
    ExpressionEngine,
    FieldWriteError,
    InvocationError,
    MemberKey,
    MemberNotFoundError,
    PermissionDeniedError,
)


def run(engine: ExpressionEngine, text: str, **definitions):
    return engine.evaluate(text, EvaluationContext(definitions=definitions))


class TestOverloads:
    """Tests for overload selection."""

    def test_selects_overload_by_argument_type(self, engine):
        fmt = Formatter()
        assert run(engine, "fmt.f(1)", fmt=fmt) == "int"
        assert run(engine, 'fmt.f("x")', fmt=fmt) == "str"

    def test_warm_calls_match_cold_calls(self, engine):
        fmt = Formatter()
        cold = [run(engine, "fmt.f(1)", fmt=fmt), run(engine, 'fmt.f("x")', fmt=fmt)]
        warm = [run(engine, "fmt.f(1)", fmt=fmt), run(engine, 'fmt.f("x")', fmt=fmt)]
        assert cold == warm == ["int", "str"]

    def test_strict_match_wins_over_lenient(self, engine):
        # "5" parses as an int, but the str overload matches without conversion.
        assert run(engine, 'fmt.f("5")', fmt=Formatter()) == "str"

    def test_one_resolution_per_signature(self, engine):
        fmt = Formatter()
        run(engine, "fmt.f(1)", fmt=fmt)
        before = engine.stats()["resolutions"]
        for _ in range(5):
            run(engine, "fmt.f(2)", fmt=fmt)
        assert engine.stats()["resolutions"] == before

    def test_bool_is_not_a_number(self, engine, diagnostics):
        assert run(engine, "fmt.f(true)", fmt=Formatter()) is None
        assert isinstance(diagnostics.errors[0], MemberNotFoundError)
        assert "f(bool)" in diagnostics.messages[0]

    def test_nullable_parameter_accepts_null(self, engine):
        assert run(engine, "fmt.describe(null)", fmt=Formatter()) == "none"


class TestLenientMatching:
    """Tests for the lenient pass and argument coercion."""

    def test_numeric_string_reaches_float_parameter(self, engine):
        assert run(engine, 'calc.half("2.5")', calc=Calculator()) == pytest.approx(1.25)

    def test_int_widens_to_float(self, engine):
        assert run(engine, "calc.half(3)", calc=Calculator()) == pytest.approx(1.5)

    def test_string_to_bool(self, engine):
        calc = Calculator()
        assert run(engine, 'calc.flag("true")', calc=calc) is True
        assert run(engine, 'calc.flag("1")', calc=calc) is True
        assert run(engine, 'calc.flag("yes")', calc=calc) is False

    def test_string_to_enum_member(self, engine):
        assert run(engine, 'calc.paint("green")', calc=Calculator()) == "GREEN"

    def test_null_never_reaches_primitive_parameter(self, engine, diagnostics):
        assert run(engine, "calc.half(null)", calc=Calculator()) is None
        assert "half(null)" in diagnostics.messages[0]


class TestVarargs:
    """Tests for variable-arity members."""

    def test_varargs_collects_and_coerces(self, engine):
        assert run(engine, 'calc.total(1, "2", 3)', calc=Calculator()) == 6

    def test_varargs_accepts_no_arguments(self, engine):
        assert run(engine, "calc.total()", calc=Calculator()) == 0

    def test_fixed_arity_preferred_over_varargs(self, engine):
        picker = Picker()
        assert run(engine, "p.pick(1, 2)", p=picker) == "picked 2"

        handle = engine.resolver.caches["methods"].get(MemberKey.for_call(Picker, "pick", [1, 2]))
        assert handle is not None
        assert not handle.candidate.is_varargs

    def test_varargs_used_when_fixed_arity_does_not_fit(self, engine):
        assert run(engine, "p.pick(1, 2, 3)", p=Picker()) == "picked 3"

        handle = engine.resolver.caches["methods"].get(
            MemberKey.for_call(Picker, "pick", [1, 2, 3])
        )
        assert handle.candidate.is_varargs


class TestStaticMembers:
    """Tests for static, class and module members."""

    def test_static_method(self, engine, context):
        engine.add_import(context.unit, "reflect_fixtures.MathUtil")
        assert engine.evaluate("MathUtil.twice(4)", context) == 8

    def test_class_method(self, engine, context):
        engine.add_import(context.unit, "reflect_fixtures.MathUtil")
        assert isinstance(engine.evaluate("MathUtil.create()", context), MathUtil)

    def test_instance_method_is_not_static(self, engine, context, diagnostics):
        engine.add_import(context.unit, "reflect_fixtures.MathUtil")
        assert engine.evaluate("MathUtil.instance_only()", context) is None
        assert "static method 'instance_only()'" in diagnostics.messages[0]

    def test_module_function(self, engine):
        assert engine.evaluate("math.floor(2.5)") == 2
        assert engine.evaluate("math.pow(2, 3)") == pytest.approx(8.0)

    def test_builtin_instance_method(self, engine):
        assert engine.evaluate('"hello".upper()') == "HELLO"

    def test_constructor_through_new(self, engine):
        result = engine.evaluate("new datetime.date(2024, 1, 2).isoformat()")
        assert result == "2024-01-02"


class TestDeclaredWalk:
    """Tests for the ownership-chain walk."""

    def test_override_is_found_first(self, engine):
        assert run(engine, "d.greet()", d=Derived()) == "derived"

    def test_non_public_member_reached_by_walk(self, engine):
        assert run(engine, "calc._secret()", calc=Calculator()) == "hidden"

    def test_inherited_non_public_member(self, engine):
        assert run(engine, "d._inherited()", d=Derived()) == "from base"

    def test_dunder_members_are_never_resolved(self, engine, diagnostics):
        assert run(engine, "calc.__class__()", calc=Calculator()) is None
        assert isinstance(diagnostics.errors[0], MemberNotFoundError)


class TestNegativeCache:
    """Tests for cached misses."""

    def test_missing_method_resolved_once(self, engine, diagnostics):
        calc = Calculator()
        assert run(engine, "calc.missing()", calc=calc) is None
        resolutions = engine.stats()["resolutions"]
        assert run(engine, "calc.missing()", calc=calc) is None
        assert engine.stats()["resolutions"] == resolutions
        assert len(diagnostics.errors) == 2

    def test_missing_static_field_resolved_once(self, engine, context, diagnostics):
        engine.add_import(context.unit, "reflect_fixtures.Settings")
        assert engine.evaluate("Settings.nothing", context) is None
        resolutions = engine.stats()["resolutions"]
        assert engine.evaluate("Settings.nothing", context) is None
        assert engine.stats()["resolutions"] == resolutions
        assert "Could not find field 'nothing'" in diagnostics.messages[0]


class TestInvocationFailures:
    """Tests for members that raise."""

    def test_exception_is_reported_as_invocation_error(self, engine, diagnostics):
        assert run(engine, "calc.fail()", calc=Calculator()) is None
        error = diagnostics.errors[0]
        assert isinstance(error, InvocationError)
        assert isinstance(error.cause, ValueError)
        assert "boom" in error.message

    def test_failures_are_counted(self, engine):
        run(engine, "calc.fail()", calc=Calculator())
        assert engine.stats()["failures"] == 1


class TestFieldRead:
    """Tests for field reads."""

    def test_instance_field(self, engine):
        assert run(engine, "p.x", p=Point(3, 4)) == 3

    def test_class_variable(self, engine, context):
        engine.add_import(context.unit, "reflect_fixtures.Point")
        assert engine.evaluate("Point.ORIGIN_NAME", context) == "origin"

    def test_module_constant(self, engine):
        assert engine.evaluate("math.pi") == pytest.approx(math.pi)

    def test_property(self, engine):
        assert run(engine, "s.computed", s=Settings()) == 42

    def test_missing_instance_field(self, engine, diagnostics):
        assert run(engine, "p.z", p=Point()) is None
        assert isinstance(diagnostics.errors[0], MemberNotFoundError)

    def test_null_target(self, engine, diagnostics):
        assert run(engine, "nothing.x", nothing=None) is None
        assert "null target" in diagnostics.messages[0]

    def test_type_read_miss_does_not_hide_instance_field(self, engine, diagnostics):
        bag = Bag()
        bag.count = 5
        assert run(engine, "T.count", T=Bag, bag=bag) is None
        assert run(engine, "bag.count", T=Bag, bag=bag) == 5
        assert len(diagnostics.errors) == 1

    def test_instance_read_does_not_leak_to_type_read(self, engine, diagnostics):
        bag = Bag()
        bag.count = 5
        assert run(engine, "bag.count", T=Bag, bag=bag) == 5
        assert run(engine, "T.count", T=Bag, bag=bag) is None
        assert isinstance(diagnostics.errors[0], MemberNotFoundError)


class TestFieldWrite:
    """Tests for field write rules."""

    def test_coerces_to_declared_type(self, engine):
        point = Point()
        assert engine.resolver.set_field(point, "x", "7") is True
        assert point.x == 7

    def test_untyped_field_takes_value_as_is(self, engine):
        bag = Bag()
        assert engine.resolver.set_field(bag, "count", "3") is True
        assert bag.count == "3"

    def test_frozen_instance_rejected(self, engine, diagnostics):
        point = FrozenPoint()
        assert engine.resolver.set_field(point, "x", 1, diagnostics) is False
        assert isinstance(diagnostics.errors[0], FieldWriteError)
        assert point.x == 0

    def test_final_field_rejected(self, engine, diagnostics):
        assert engine.resolver.set_field(Settings, "LIMIT", 11, diagnostics) is False
        assert "Final" in diagnostics.messages[0]
        assert Settings.LIMIT == 10

    def test_property_without_setter_rejected(self, engine, diagnostics):
        assert engine.resolver.set_field(Settings(), "computed", 1, diagnostics) is False
        assert "no setter" in diagnostics.messages[0]

    def test_class_field_not_set_through_instance(self, engine, diagnostics):
        settings = Settings()
        assert engine.resolver.set_field(settings, "mode", "slow", diagnostics) is False
        assert Settings.mode == "fast"

    def test_instance_field_not_set_through_type(self, engine, diagnostics):
        assert engine.resolver.set_field(Point, "x", 1, diagnostics) is False
        assert "through a type" in diagnostics.messages[0]

    def test_static_field_write(self, engine):
        try:
            assert engine.resolver.set_field(Settings, "mode", "slow") is True
            assert Settings.mode == "slow"
        finally:
            Settings.mode = "fast"

    def test_instance_attribute_write(self, engine):
        settings = Settings()
        assert engine.resolver.set_field(settings, "level", 5) is True
        assert settings.level == 5

    def test_missing_field_rejected(self, engine, diagnostics):
        assert engine.resolver.set_field(Settings(), "unknown", 1, diagnostics) is False
        assert isinstance(diagnostics.errors[0], MemberNotFoundError)

    def test_reserved_name_rejected(self, engine, diagnostics):
        assert engine.resolver.set_field(Settings(), "__dict__", {}, diagnostics) is False


class TestPermissions:
    """Tests for the security gate at the member level."""

    def test_denied_type_is_never_constructed(self):
        diagnostics = CollectingDiagnostics()
        engine = ExpressionEngine(AllowListPolicy(["math"]), diagnostics=diagnostics)
        before = Tracked.instances

        assert engine.evaluate("new reflect_fixtures.Tracked()") is None
        assert Tracked.instances == before
        assert isinstance(diagnostics.errors[0], PermissionDeniedError)

    def test_denied_owner_is_never_invoked(self):
        diagnostics = CollectingDiagnostics()
        engine = ExpressionEngine(AllowListPolicy(["math"]), diagnostics=diagnostics)
        tracked = Tracked()

        result = engine.evaluate(
            "t.ping()", EvaluationContext(definitions={"t": tracked})
        )
        assert result is None
        assert "reflect_fixtures.Tracked" in diagnostics.messages[0]

    def test_allowed_type_constructs(self, engine):
        before = Tracked.instances
        result = engine.evaluate("new reflect_fixtures.Tracked()")
        assert isinstance(result, reflect_fixtures.Tracked)
        assert Tracked.instances == before + 1
