"""
Tests for engine configuration loading.
"""

import json
import textwrap

import pytest
from pydantic import ValidationError

from hostscript.reflect import (
    DEFAULT_ALLOWED_NAMESPACES,
    DEFAULT_EXPRESSION_LIMITS,
    EngineConfig,
    ExpressionLimits,
    load_config,
    normalize_config,
    parse_config,
)


class TestNormalizeConfig:
    """Tests for normalize_config."""

    def test_none_gives_defaults(self):
        config = normalize_config(None)
        assert config.allowed_namespaces == list(DEFAULT_ALLOWED_NAMESPACES)
        assert config.ast_cache_size == 2000
        assert config.subject_aliases == ["this"]
        assert config.limits() is DEFAULT_EXPRESSION_LIMITS

    def test_model_is_returned_as_is(self):
        config = EngineConfig(allowed_namespaces=["math"])
        assert normalize_config(config) is config

    def test_accepts_snake_and_camel_case(self):
        assert normalize_config({"ast_cache_size": 5}).ast_cache_size == 5
        assert normalize_config({"astCacheSize": 6}).ast_cache_size == 6

    def test_comma_separated_namespaces(self):
        config = normalize_config({"allowedNamespaces": "math, datetime ,"})
        assert config.allowed_namespaces == ["math", "datetime"]

    @pytest.mark.parametrize("key", ["allowed-packages", "allowed_packages", "allowedPackages"])
    def test_legacy_namespace_keys(self, key):
        config = normalize_config({key: ["fractions"]})
        assert config.allowed_namespaces == ["fractions"]

    def test_rejects_non_mapping(self):
        with pytest.raises(ValueError, match="must be an object"):
            normalize_config(["math"])  # type: ignore[arg-type]

    def test_rejects_non_positive_cache_size(self):
        with pytest.raises(ValidationError):
            normalize_config({"astCacheSize": 0})

    def test_unknown_field_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="hostscript.reflect.config"):
            normalize_config({"colour": "blue"})
        assert any(record.getMessage() == "unknown_config_field" for record in caplog.records)


class TestLimits:
    """Tests for expression limit configuration."""

    def test_limits_from_camel_case_mapping(self):
        config = normalize_config({"expressionLimits": {"maxCallArgs": 3, "maxAstDepth": 8}})
        limits = config.limits()
        assert limits.max_call_args == 3
        assert limits.max_ast_depth == 8
        assert limits.max_ast_nodes == DEFAULT_EXPRESSION_LIMITS.max_ast_nodes

    def test_limits_from_kebab_case_mapping(self):
        config = normalize_config({"expression_limits": {"max-string-length": 12}})
        assert config.limits().max_string_length == 12

    def test_limits_instance(self):
        limits = ExpressionLimits(max_call_args=1)
        assert normalize_config({"expressionLimits": limits}).limits() == limits

    def test_unknown_limit_is_ignored(self, caplog):
        config = normalize_config({"expressionLimits": {"maxWidgets": 1}})
        with caplog.at_level("WARNING", logger="hostscript.reflect.config"):
            assert config.limits() == ExpressionLimits()
        assert any(record.getMessage() == "unknown_limit_ignored" for record in caplog.records)


class TestParseConfig:
    """Tests for YAML and JSON parsing."""

    def test_yaml(self):
        config = parse_config(
            textwrap.dedent(
                """
                allowedNamespaces:
                  - math
                  - reflect_fixtures
                astCacheSize: 50
                expressionLimits:
                  maxCallArgs: 4
                """
            )
        )
        assert config.allowed_namespaces == ["math", "reflect_fixtures"]
        assert config.ast_cache_size == 50
        assert config.limits().max_call_args == 4

    def test_empty_yaml(self):
        assert parse_config("").allowed_namespaces == list(DEFAULT_ALLOWED_NAMESPACES)

    def test_json(self):
        config = parse_config('{"allowed-packages": "math,decimal"}', "json")
        assert config.allowed_namespaces == ["math", "decimal"]

    def test_rejects_yaml_list(self):
        with pytest.raises(ValueError, match="YAML configuration must be an object"):
            parse_config("- math\n- datetime\n")


class TestLoadConfig:
    """Tests for loading configuration files."""

    def test_load_yaml_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("allowedNamespaces: [math]\nsubjectAliases: [self, me]\n")
        config = load_config(path)
        assert config.allowed_namespaces == ["math"]
        assert config.subject_aliases == ["self", "me"]

    def test_load_json_file(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"astCacheSize": 7}))
        assert load_config(str(path)).ast_cache_size == 7

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yml")
