"""
Engine configuration.

Hosts describe the engine in YAML or JSON; keys may be snake_case or
camelCase. ``allowed-packages`` is accepted as a legacy spelling of
``allowedNamespaces``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .gate import DEFAULT_ALLOWED_NAMESPACES
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits

logger = logging.getLogger("hostscript.reflect.config")

_LIMIT_FIELDS = {f.name for f in fields(ExpressionLimits)}

_ALIASES = {
    "allowed-packages": "allowed_namespaces",
    "allowed_packages": "allowed_namespaces",
    "allowedPackages": "allowed_namespaces",
}


class EngineConfig(BaseModel):
    """Configuration for an ExpressionEngine."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # Namespace prefixes the security gate admits
    allowed_namespaces: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_NAMESPACES),
        alias="allowedNamespaces",
    )

    # Bound of the parsed-expression cache
    ast_cache_size: int = Field(default=2000, alias="astCacheSize", gt=0)

    # Names that refer to the evaluation subject
    subject_aliases: list[str] = Field(default_factory=lambda: ["this"], alias="subjectAliases")

    # Expression limits - can be dict or ExpressionLimits
    expression_limits: dict[str, Any] | ExpressionLimits | None = Field(
        default=None, alias="expressionLimits"
    )

    @field_validator("allowed_namespaces", "subject_aliases", mode="before")
    @classmethod
    def _split_comma_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def limits(self) -> ExpressionLimits:
        """Resolves ``expression_limits`` into an ExpressionLimits instance."""
        raw = self.expression_limits
        if raw is None:
            return DEFAULT_EXPRESSION_LIMITS
        if isinstance(raw, ExpressionLimits):
            return raw
        known = {}
        for key, value in raw.items():
            name = _snake_case(key)
            if name in _LIMIT_FIELDS:
                known[name] = int(value)
            else:
                logger.warning("unknown_limit_ignored", extra={"field": key})
        return ExpressionLimits(**known)


def _snake_case(key: str) -> str:
    out = []
    for ch in key.replace("-", "_"):
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def _is_plain_object(value: Any) -> bool:
    """Check if value is a plain dict-like object."""
    return isinstance(value, dict)


def normalize_config(
    config: Union[EngineConfig, dict[str, Any], None],
) -> EngineConfig:
    """Normalize configuration from a model, a mapping, or nothing."""
    if config is None:
        return EngineConfig()
    if isinstance(config, EngineConfig):
        return config
    if not _is_plain_object(config):
        raise ValueError("Engine configuration must be an object")

    candidate = dict(config)
    for legacy, name in _ALIASES.items():
        if legacy in candidate and name not in candidate:
            candidate[name] = candidate.pop(legacy)

    engine_config = EngineConfig.model_validate(candidate)
    if engine_config.model_extra:
        for key in engine_config.model_extra:
            logger.warning("unknown_config_field", extra={"field": key})
    return engine_config


def parse_config(content: str, fmt: str = "yaml") -> EngineConfig:
    """Parses YAML or JSON text into an EngineConfig."""
    if fmt == "json":
        parsed = json.loads(content)
    else:
        parsed = yaml.safe_load(content or "")
        if parsed is None:
            parsed = {}
    if not _is_plain_object(parsed):
        raise ValueError(f"Parsed {fmt.upper()} configuration must be an object")
    return normalize_config(parsed)


def load_config(path: Union[str, Path]) -> EngineConfig:
    """Loads an EngineConfig from a ``.json``, ``.yaml`` or ``.yml`` file."""
    path = Path(path)
    fmt = "json" if path.suffix.lower() == ".json" else "yaml"
    content = path.read_text(encoding="utf-8")
    config = parse_config(content, fmt)
    logger.debug(
        "engine_config_loaded",
        extra={"path": str(path), "allowed_namespaces": config.allowed_namespaces},
    )
    return config

