"""Shared engine fixtures for the reflection tests."""

import pytest
from reflect_fixtures import FIXTURE_NAMESPACES

from hostscript.reflect import (
    AllowListPolicy,
    CollectingDiagnostics,
    EvaluationContext,
    ExpressionEngine,
)


@pytest.fixture
def diagnostics() -> CollectingDiagnostics:
    return CollectingDiagnostics()


@pytest.fixture
def engine(diagnostics: CollectingDiagnostics) -> ExpressionEngine:
    """Engine that admits the default namespaces plus the fixture module."""
    return ExpressionEngine(AllowListPolicy(FIXTURE_NAMESPACES), diagnostics=diagnostics)


@pytest.fixture
def context() -> EvaluationContext:
    return EvaluationContext(unit="scripts/test.dsc")
