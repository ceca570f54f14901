"""Relatos agent endpoint — plain-text streaming answers.

POST /api/agents/relatos
    body: {"messages": [...], "contrato"?: str, "ui"?: {"status"?, "periodo_dias"?}}
    response: text/plain stream of the assistant's answer

The body is handed to the agent unvalidated: the agent applies the strict
schema itself and answers malformed input with a short message, so the
caller always gets a well-formed stream.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from relatos.api.deps import CallerIdentity, get_contratos_cache, require_caller
from relatos.pipeline.agent import run_relatos_agent
from relatos.retrieval.contratos import AllowedContratosCache, build_agent_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["agents"])

def _split_body(body: object) -> tuple[object, str | None]:
    """Separate the agent input from the caller's selected contract."""
    if not isinstance(body, dict):
        return body, None
    requested = body.get("contrato")
    agent_input = {key: value for key, value in body.items() if key != "contrato"}
    return agent_input, requested if isinstance(requested, str) and requested else None


@router.post("/relatos")
async def relatos_agent(
    request: Request,
    caller: CallerIdentity = Depends(require_caller),
    cache: AllowedContratosCache = Depends(get_contratos_cache),
):
    """Answer a question about relatos, streamed as plain text."""
    try:
        body = await request.json()
    except ValueError:
        body = None

    agent_input, requested_contrato = _split_body(body)

    try:
        context = await build_agent_context(
            caller.matricula,
            contrato_raiz=caller.contrato_raiz,
            requested_contrato=requested_contrato,
            cache=cache,
        )
        stream = await run_relatos_agent(context, agent_input)
    except Exception:
        logger.exception("Relatos agent failed", extra={"user_id": caller.matricula})
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Erro interno do servidor"},
        )

    return StreamingResponse(
        stream,
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
        },
        # Release the upstream LLM response even if the client went away mid-stream
        background=BackgroundTask(stream.aclose),
    )
