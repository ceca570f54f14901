"""Relatos API — FastAPI application serving the relatos agent.

Run:
    uvicorn relatos.api.main:app --reload
    # or
    relatos-api
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from relatos import __version__
from relatos.api.agent import router as agent_router
from relatos.config import settings
from relatos.observability.logging import bind_correlation_id, setup_logging
from relatos.observability.tracing import init_tracking
from relatos.observability.tracing import mlflow as _mlflow
from relatos.storage.db import check_db, dispose_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging/tracing and probe the database on startup."""
    setup_logging(json_format=settings.log_json, level=settings.log_level)

    if init_tracking(settings.mlflow_tracking_uri, settings.mlflow_experiment_name):
        logger.info("MLflow tracing enabled: %s", settings.mlflow_tracking_uri)
    else:
        logger.info("MLflow not installed — tracing disabled")

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set — agent requests will fail")

    if settings.database_url:
        # Log host/db only, never credentials
        parsed = urlparse(settings.database_url)
        redacted_host = f"{parsed.hostname}:{parsed.port}" if parsed.port else parsed.hostname
        logger.info("Reporting database at %s/%s", redacted_host, parsed.path.lstrip("/"))
        try:
            await asyncio.wait_for(check_db(), timeout=15)
            logger.info("Database reachable")
        except asyncio.TimeoutError:
            logger.error("Database check timed out after 15s — API will start in degraded mode")
        except Exception as e:
            logger.error("Database check failed: %s — API will start in degraded mode", e)
    else:
        logger.warning("DATABASE_URL is not set — agent queries will fail")

    logger.info("Relatos API ready")
    yield
    await dispose_engine()
    logger.info("Shutting down")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Set correlation ID from X-Request-ID header or generate a new one."""

    async def dispatch(self, request: Request, call_next):
        cid = request.headers.get("x-request-id") or str(uuid.uuid4())
        with bind_correlation_id(cid):
            response = await call_next(request)
        response.headers["x-request-id"] = cid
        return response


app = FastAPI(
    title="Relatos Agent",
    description="Conversational, read-only query agent over safety deviation reports (relatos).",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agent_router)


@app.get("/health")
async def health():
    """Health check — database connectivity and MLflow availability."""
    checks = {}

    try:
        await asyncio.wait_for(check_db(), timeout=5)
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}"

    checks["llm"] = "configured" if settings.openai_api_key else "missing_api_key"
    checks["mlflow"] = "ok" if _mlflow is not None else "not_installed"

    healthy = checks["database"] == "ok" and checks["llm"] == "configured"
    return {"status": "healthy" if healthy else "degraded", "checks": checks}


def run():
    """Entry point for relatos-api console script."""
    uvicorn.run("relatos.api.main:app", host="0.0.0.0", port=8000)
