"""MLflow tracing wrapper for the agent — degrades to no-ops without MLflow.

The API can be deployed without MLflow installed; every helper here then
does nothing. Modules import from here instead of importing mlflow:

    from relatos.observability.tracing import trace, start_span, log_metrics

    @trace(name="call_llm", span_type="CHAT_MODEL")
    async def call_llm(...): ...

    with start_span("agent_turn_1", span_type="AGENT") as span:
        span.set_inputs({...})
"""

import asyncio
import functools
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

try:
    import mlflow as _mlflow

    mlflow = _mlflow
    _HAS_MLFLOW = True
    logger.debug("MLflow available — tracing enabled")
except ImportError:
    mlflow = None  # type: ignore[assignment]
    _HAS_MLFLOW = False
    logger.debug("MLflow not installed — tracing disabled")


def trace(name: str | None = None, **kwargs):
    """Decorator: wraps function with MLflow trace if available."""
    if _HAS_MLFLOW:
        return _mlflow.trace(name=name, **kwargs) if name else _mlflow.trace(**kwargs)

    def passthrough(fn):
        if asyncio.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kw):
                return await fn(*args, **kw)
            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kw):
            return fn(*args, **kw)
        return wrapper

    return passthrough


@contextmanager
def start_span(name: str = "span", **kwargs):
    """Context manager: MLflow span if available, otherwise no-op."""
    if _HAS_MLFLOW:
        with _mlflow.start_span(name=name, **kwargs) as span:
            yield span
    else:
        yield _NoOpSpan()


def log_metrics(metrics: dict, step: int | None = None) -> None:
    if _HAS_MLFLOW:
        try:
            _mlflow.log_metrics(metrics, step=step)
        except Exception as e:
            logger.debug("MLflow log_metrics failed: %s", e)


def init_tracking(tracking_uri: str, experiment_name: str) -> bool:
    """Point MLflow at the tracking store. Returns False when MLflow is absent."""
    if not _HAS_MLFLOW:
        return False
    _mlflow.set_tracking_uri(tracking_uri)
    _mlflow.set_experiment(experiment_name)
    _mlflow.config.enable_async_logging()
    return True


class _NoOpSpan:
    """Dummy span that accepts set_inputs/set_outputs without error."""

    def set_inputs(self, inputs: dict) -> None:
        pass

    def set_outputs(self, outputs: dict) -> None:
        pass
