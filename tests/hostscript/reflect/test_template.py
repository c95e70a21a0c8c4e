"""
Tests for ``%expr%`` template expansion.
"""

import pytest

from hostscript.reflect import DefaultHost, EvaluationContext, EvaluationError, expand_template
from hostscript.reflect.template import stringify


def names(fragment: str):
    return {"name": "World", "count": 3, "flag": True, "nothing": None}.get(fragment, fragment)


class FailingHost(DefaultHost):
    """Host whose value parser breaks."""

    def parse_value(self, text):
        raise RuntimeError("host exploded")


class TestExpandTemplate:
    """Tests for the substitution rules."""

    def test_substitutes_placeholder(self):
        assert expand_template("Hello %name%!", names) == "Hello World!"

    def test_double_percent_is_literal(self):
        assert expand_template("100%% done", names) == "100% done"

    def test_angle_brackets_are_stripped(self):
        assert expand_template("Hi %<name>%", names) == "Hi World"

    def test_empty_placeholder_is_dropped(self):
        assert expand_template("a % % b", names) == "a  b"

    def test_unterminated_placeholder_copied(self):
        assert expand_template("50% off", names) == "50% off"

    def test_multiple_placeholders(self):
        assert expand_template("%name% has %count%", names) == "World has 3"

    def test_values_are_stringified(self):
        assert expand_template("%flag%/%nothing%", names) == "true/null"

    def test_text_without_placeholders(self):
        assert expand_template("plain text", names) == "plain text"

    def test_fragments_are_trimmed(self):
        seen = []

        def record(fragment):
            seen.append(fragment)
            return ""

        expand_template("% name %", record)
        assert seen == ["name"]


class TestStringify:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, "null"), (True, "true"), (False, "false"), (1.5, "1.5"), ("s", "s")],
    )
    def test_stringify(self, value, expected):
        assert stringify(value) == expected


class TestEngineTemplates:
    """Tests for templates evaluated through the engine."""

    @pytest.fixture
    def greeting_context(self) -> EvaluationContext:
        return EvaluationContext(definitions={"name": "World", "a": 1, "b": 2})

    def test_expand_template(self, engine, greeting_context):
        assert engine.expand_template("Hello %name%!", greeting_context) == "Hello World!"

    def test_evaluate_with_escape(self, engine, greeting_context):
        assert engine.evaluate("100%% done", greeting_context) == "100% done"

    def test_whole_placeholder_keeps_value_type(self, engine, greeting_context):
        assert engine.evaluate("%a%", greeting_context) == 1

    def test_double_percent_alone(self, engine):
        assert engine.evaluate("%%") == "%"

    def test_several_placeholders_render_text(self, engine, greeting_context):
        assert engine.evaluate("%a% and %b%", greeting_context) == "1 and 2"

    def test_placeholder_with_call(self, engine):
        assert engine.evaluate("floor: %math.floor(2.7)%") == "floor: 2"

    def test_bad_fragment_fails_whole_template(self, engine, diagnostics):
        assert engine.expand_template("x %a.(% y") is None
        assert diagnostics.messages

    def test_host_failure_is_reported(self, engine, diagnostics):
        context = EvaluationContext(host=FailingHost())
        assert engine.expand_template("a%zz%b", context) is None
        assert isinstance(diagnostics.errors[0], EvaluationError)
        assert "host exploded" in diagnostics.messages[0]

    def test_host_failure_matches_evaluate(self, engine, diagnostics):
        context = EvaluationContext(host=FailingHost())
        assert engine.evaluate("a%zz%b", context) is None
        assert engine.expand_template("a%zz%b", context) is None
        assert len(diagnostics.errors) == 2
