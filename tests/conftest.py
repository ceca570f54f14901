"""Shared test fixtures."""

from unittest.mock import AsyncMock, MagicMock

import mlflow
import pytest

from relatos.core.types import AgentContext


@pytest.fixture(autouse=True)
def _disable_mlflow_tracing():
    """Disable MLflow tracing during tests so nothing is written to mlruns/."""
    mlflow.tracing.disable()
    yield
    mlflow.tracing.enable()


@pytest.fixture
def single_contract_context() -> AgentContext:
    """User allowed exactly one contract ("X")."""
    return AgentContext(user_id=4242, allowed_contratos={"X"})


@pytest.fixture
def multi_contract_context() -> AgentContext:
    """User allowed two contracts, nothing selected."""
    return AgentContext(user_id=4242, allowed_contratos={"X", "Y"})


@pytest.fixture
def make_session():
    """Factory for an AsyncSession stand-in whose execute() returns the given rows."""

    def _make(rows: list[dict] | None = None, scalars: list | None = None) -> AsyncMock:
        result = MagicMock()
        result.mappings.return_value.all.return_value = rows or []
        result.scalars.return_value.all.return_value = scalars or []
        session = AsyncMock()
        session.execute.return_value = result
        return session

    return _make
