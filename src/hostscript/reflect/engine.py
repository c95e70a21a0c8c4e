"""
The expression engine: the single entry point hosts call.

``evaluate`` and ``expand_template`` never raise. Syntax errors,
resolution failures, permission denials and failing invocations are
reported to the diagnostics sink and produce None. ``add_import`` is the
exception: a bad import declaration fails loudly so the host can point at
the script line.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Sequence, Union

from .ast import AstNode
from .caches import CacheStats, Generation, LruCache, cache_stats
from .config import EngineConfig, normalize_config
from .errors import EvaluationError, ExpressionError
from .evaluator import EvaluationContext, Evaluator
from .gate import AllowListPolicy, SecurityPolicy, TypeDescriptor, TypeGate
from .host import DEFAULT_HOST, Diagnostics, HostAdapter, LoggingDiagnostics
from .imports import ImportRegistry
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits
from .members import MemberProvider
from .objects import ObjectModelHost
from .parser import parse
from .resolver import ResolutionEngine
from .template import DELIMITER, expand_template

logger = logging.getLogger("hostscript.reflect.engine")

DEFAULT_AST_CACHE_SIZE = 2000

_FAILED = object()


class ExpressionEngine:
    """Parses, caches and evaluates expressions against host types."""

    def __init__(
        self,
        security_policy: Optional[SecurityPolicy] = None,
        *,
        ast_cache_size: int = DEFAULT_AST_CACHE_SIZE,
        limits: Optional[ExpressionLimits] = None,
        provider: Optional[MemberProvider] = None,
        host: Optional[HostAdapter] = None,
        diagnostics: Optional[Diagnostics] = None,
        subject_aliases: Sequence[str] = ("this",),
    ):
        self._generation = Generation()
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        self._host: HostAdapter = host or DEFAULT_HOST
        if isinstance(host, ObjectModelHost) and host.engine is None:
            host.engine = self
        self._diagnostics: Diagnostics = diagnostics or LoggingDiagnostics()
        self._subject_aliases = tuple(subject_aliases)

        self.gate = TypeGate(security_policy, self._generation)
        self.imports = ImportRegistry(self.gate)
        self.resolver = ResolutionEngine(self.gate, provider, self._generation)
        self._ast_cache: LruCache[str, AstNode] = LruCache(
            "ast", ast_cache_size, self._generation
        )

        self._parse_count = 0
        self._parse_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: Union[EngineConfig, Dict[str, Any], None] = None,
        **kwargs: Any,
    ) -> "ExpressionEngine":
        """Builds an engine from an EngineConfig or an equivalent mapping."""
        engine_config = normalize_config(config)
        engine = cls(
            AllowListPolicy(engine_config.allowed_namespaces),
            ast_cache_size=engine_config.ast_cache_size,
            limits=engine_config.limits(),
            subject_aliases=engine_config.subject_aliases,
            **kwargs,
        )
        logger.debug(
            "engine_configured",
            extra={
                "allowed_namespaces": engine_config.allowed_namespaces,
                "ast_cache_size": engine_config.ast_cache_size,
            },
        )
        return engine

    # ============================================================
    # Host surface
    # ============================================================

    def evaluate(self, text: Optional[str], context: Optional[EvaluationContext] = None) -> Any:
        """
        Evaluates an expression or a ``%...%`` template.

        Args:
            text: Expression text
            context: Evaluation context; a global-unit context is used if omitted

        Returns:
            The result, wrapped by the host adapter, or None on failure
        """
        context = self._prepare(context)
        result = self._guarded(context, text, self._execute)
        if result is _FAILED:
            return None
        return (context.host or self._host).wrap(result)

    def expand_template(self, text: str, context: Optional[EvaluationContext] = None) -> Optional[str]:
        """Expands ``%expr%`` placeholders in ``text``; None on failure."""
        context = self._prepare(context)
        result = self._guarded(context, text, self._expand)
        return None if result is _FAILED else result

    def parse(self, text: str) -> AstNode:
        """Returns the cached AST for ``text``, parsing it on first use."""
        return self._ast_cache.get_or_compute(text, self._parse)

    def add_import(
        self, unit: Optional[str], qualified_name: str, alias: Optional[str] = None
    ) -> Optional[TypeDescriptor]:
        """Registers an import for a unit; raises on unknown or denied types."""
        return self.imports.add_import(unit, qualified_name, alias)

    def clear_all(self) -> None:
        """Drops every cache and every import table."""
        generation = self._generation.bump()
        self._ast_cache.clear()
        self.gate.clear()
        self.resolver.clear()
        self.imports.clear_all()
        logger.info("engine_reloaded", extra={"generation": generation})

    # ============================================================
    # Introspection
    # ============================================================

    @property
    def parse_count(self) -> int:
        return self._parse_count

    @property
    def generation(self) -> int:
        return self._generation.value

    def cache_stats(self) -> Dict[str, CacheStats]:
        caches = {"ast": self._ast_cache, "types": self.gate.cache}
        caches.update(self.resolver.caches)
        return cache_stats(caches)

    def stats(self) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {"parses": self._parse_count}
        snapshot.update(self.resolver.stats.snapshot())
        snapshot["caches"] = {name: s.size for name, s in self.cache_stats().items()}
        return snapshot

    # ============================================================
    # Internals
    # ============================================================

    def _prepare(self, context: Optional[EvaluationContext]) -> EvaluationContext:
        if context is None:
            return EvaluationContext()
        return context

    def _guarded(
        self,
        context: EvaluationContext,
        text: Optional[str],
        run: Callable[[Optional[str], EvaluationContext], Any],
    ) -> Any:
        """Runs an entry point, reporting any failure and returning _FAILED."""
        try:
            return run(text, context)
        except ExpressionError as error:
            self._report(context, error, text)
        except Exception as error:
            logger.exception("expression_failed", extra={"expression": text})
            self._report(
                context,
                EvaluationError(f"{type(error).__name__}: {error}", None, text),
                text,
            )
        return _FAILED

    def _expand(self, text: Optional[str], context: EvaluationContext) -> str:
        return expand_template(text or "", self._fragment_evaluator(context))

    def _report(self, context: EvaluationContext, error: ExpressionError, text: Optional[str]) -> None:
        if error.expression is None:
            error.expression = text
        (context.diagnostics or self._diagnostics).report(error)

    def _parse(self, text: str) -> AstNode:
        ast = parse(text, self._limits)
        with self._parse_lock:
            self._parse_count += 1
        logger.debug("expression_parsed", extra={"expression": text})
        return ast

    def _execute(self, text: Optional[str], context: EvaluationContext) -> Any:
        if text is None:
            return None
        text = text.strip()

        if len(text) >= 2 and text[0] == DELIMITER and text[-1] == DELIMITER:
            if len(text) == 2:
                return DELIMITER
            inner = text[1:-1]
            if DELIMITER not in inner:
                return self._execute(inner, context)

        if DELIMITER in text:
            return expand_template(text, self._fragment_evaluator(context))

        return self._evaluate_ast(self.parse(text), context, text)

    def _fragment_evaluator(self, context: EvaluationContext) -> Callable[[str], Any]:
        def evaluate_fragment(fragment: str) -> Any:
            return self._evaluate_ast(self.parse(fragment), context, fragment)

        return evaluate_fragment

    def _evaluate_ast(self, ast: AstNode, context: EvaluationContext, source: str) -> Any:
        evaluator = Evaluator(
            context,
            self.resolver,
            self.gate,
            self.imports,
            source,
            host=self._host,
            diagnostics=self._diagnostics,
            subject_aliases=self._subject_aliases,
        )
        return evaluator.evaluate(ast)

    def __repr__(self) -> str:
        return f"ExpressionEngine(units={self.imports.units()!r}, generation={self.generation})"
