"""Observability — prompt registry, structured logging, and MLflow integration helpers."""

from relatos.observability.logging import setup_logging
from relatos.observability.prompts import get_active_prompt

__all__ = ["get_active_prompt", "setup_logging"]
