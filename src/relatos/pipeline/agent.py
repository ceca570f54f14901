"""Relatos agent — question in, streamed answer out.

Pipeline for one user turn:
  validate input → build system prompt (tenant + UI filters) → tool loop
  (at most MAX_AGENT_TURNS LLM calls offering queryRelatos) → answer.

The loop ends as soon as the model answers in plain text. If every turn asked
for tools, one last streaming call is made with tool_choice="none", so a turn
never costs more than MAX_AGENT_TURNS + 1 provider calls.

Bad tool arguments, permission problems and database failures are fed back
to the model as {"error": ...} tool messages. Configuration and provider
errors propagate to the caller.
"""

import json
import logging
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import ValidationError

from relatos.api.schemas import ChatInput, UiContext
from relatos.core.errors import ContratoNotAllowedError, RelatosQueryError
from relatos.core.types import AgentContext, QueryRelatosResult
from relatos.observability.prompts import (
    CONTRATO_KNOWN_LINE,
    CONTRATO_UNKNOWN_LINE,
    get_active_prompt,
    get_prompt_version,
)
from relatos.observability.tracing import start_span
from relatos.retrieval.llm import call_llm, open_llm_stream
from relatos.retrieval.params import (
    QUERY_RELATOS_TOOL,
    TOOL_NAME,
    QueryRelatosParams,
    describe_validation_error,
)
from relatos.retrieval.relatos import query_relatos
from relatos.retrieval.streaming import ImmediateStream, TextStream

logger = logging.getLogger(__name__)

MAX_AGENT_TURNS = 4

INVALID_INPUT_MESSAGE = "Não consegui ler sua mensagem. Tente novamente."
EMPTY_ANSWER_MESSAGE = "Não consegui gerar uma resposta. Pode reformular?"
NOT_DEFINED = "não definido"


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------

def build_system_prompt(context: AgentContext) -> str:
    """Agent rules plus the contract line (fixed contract, or ask the user)."""
    contrato = context.default_contrato
    if contrato:
        contrato_line = CONTRATO_KNOWN_LINE.format(contrato=contrato)
    else:
        contrato_line = CONTRATO_UNKNOWN_LINE
    return get_active_prompt("relatos_agent").format(contrato_line=contrato_line)


def build_ui_note(ui: UiContext | None) -> str | None:
    if ui is None or ui.is_empty:
        return None
    return get_active_prompt("ui_filters_note").format(
        status=ui.status or NOT_DEFINED,
        periodo_dias=ui.periodo_dias or NOT_DEFINED,
    )


def build_conversation(context: AgentContext, chat: ChatInput) -> list[dict]:
    messages = [{"role": "system", "content": build_system_prompt(context)}]
    ui_note = build_ui_note(chat.ui)
    if ui_note:
        messages.append({"role": "system", "content": ui_note})
    messages.extend({"role": m.role, "content": m.content} for m in chat.messages)
    return messages


# ---------------------------------------------------------------------------
# Tool execution
# ---------------------------------------------------------------------------

def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _tool_error(message: str, **extra) -> str:
    return json.dumps({"error": message, **extra}, ensure_ascii=False)


def _tool_result(result: QueryRelatosResult) -> str:
    return json.dumps(asdict(result), default=_json_default, ensure_ascii=False)


async def execute_tool_call(context: AgentContext, tool_call: dict, ui: UiContext | None = None) -> str:
    """Run one model-issued tool call and return the tool message content."""
    function = tool_call.get("function") or {}
    name = function.get("name", "")
    if name != TOOL_NAME:
        logger.warning("Model requested unsupported tool %r", name, extra={"tool": name})
        return _tool_error("Ferramenta não suportada.")

    raw_args = function.get("arguments")
    if isinstance(raw_args, dict):
        args = raw_args
    else:
        try:
            args = json.loads(raw_args or "{}")
        except (json.JSONDecodeError, TypeError):
            logger.info("Tool arguments were not valid JSON", extra={"tool": name})
            return _tool_error("Argumentos inválidos (JSON).")

    try:
        params = QueryRelatosParams.model_validate(args)
    except ValidationError as e:
        logger.info("Tool arguments failed validation (%d errors)", e.error_count(), extra={"tool": name})
        return _tool_error("Argumentos inválidos.", details=describe_validation_error(e))

    try:
        result = await query_relatos(context, params, ui)
    except (ContratoNotAllowedError, RelatosQueryError) as e:
        logger.warning("queryRelatos failed: %s", e, extra={"user_id": context.user_id, "tool": name})
        return _tool_error(str(e))

    return _tool_result(result)


# ---------------------------------------------------------------------------
# Agent loop
# ---------------------------------------------------------------------------

async def run_relatos_agent(context: AgentContext, payload: object) -> TextStream:
    """Answer the latest user message in `payload` as a text stream.

    Args:
        context: caller identity and allowed contracts, resolved upstream.
        payload: raw input, expected shape {"messages": [...], "ui": {...}}.

    Raises:
        ConfigurationError: LLM or database settings are missing.
        LLMProviderError: the provider answered with a non-2xx status.
    """
    try:
        chat = ChatInput.model_validate(payload)
    except ValidationError as e:
        logger.info("Rejected agent input (%d errors)", e.error_count(), extra={"user_id": context.user_id})
        return ImmediateStream(INVALID_INPUT_MESSAGE)

    messages = build_conversation(context, chat)
    tools = [QUERY_RELATOS_TOOL]

    for turn in range(1, MAX_AGENT_TURNS + 1):
        with start_span(name=f"agent_turn_{turn}", span_type="CHAT_MODEL") as span:
            span.set_inputs({
                "turn": turn,
                "message_count": len(messages),
                "prompt_version": get_prompt_version("relatos_agent"),
            })
            response = await call_llm(messages, tools=tools, tool_choice="auto")
            if response is None:
                span.set_outputs({"error": "empty_response"})
                logger.error("LLM returned no message on turn %d", turn, extra={"turn": turn})
                break
            tool_calls = response["tool_calls"]
            span.set_outputs({"tool_calls": len(tool_calls), "has_content": bool(response["content"])})

        if not tool_calls:
            content = response["content"].strip()
            return ImmediateStream(content or EMPTY_ANSWER_MESSAGE)

        messages.append({
            "role": "assistant",
            "content": response["content"] or None,
            "tool_calls": tool_calls,
        })

        for tc in tool_calls:
            name = (tc.get("function") or {}).get("name", "")
            logger.info("Agent turn %d executing tool %s", turn, name, extra={"turn": turn, "tool": name})
            with start_span(name="agent_tool", span_type="TOOL") as tool_span:
                tool_span.set_inputs({"tool": name, "turn": turn})
                content = await execute_tool_call(context, tc, chat.ui)
                tool_span.set_outputs({"is_error": content.startswith('{"error"')})
            messages.append({"role": "tool", "tool_call_id": tc.get("id", ""), "content": content})

    logger.info("Agent did not settle within %d turns, streaming final answer without tools", MAX_AGENT_TURNS)
    return await open_llm_stream(messages, tools=tools, tool_choice="none")
