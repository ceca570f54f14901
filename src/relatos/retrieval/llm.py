"""LLM client — OpenAI-compatible chat completions.

Two modes:
  1. call_llm(): one non-streaming completion, possibly with tool_calls,
     used inside the agent's tool loop.
  2. open_llm_stream(): one streaming completion, returned as a TextStream
     that the HTTP layer forwards while the provider is still generating.

A missing API key raises ConfigurationError. A non-2xx answer raises
LLMProviderError. Neither is retried or swallowed here.
"""

import logging

import httpx

from relatos.config import settings
from relatos.core.errors import ConfigurationError, LLMProviderError
from relatos.observability.tracing import log_metrics, trace
from relatos.retrieval.streaming import UpstreamEventStream

logger = logging.getLogger(__name__)


def _make_client() -> httpx.AsyncClient:
    # Fail fast on connect, generous on read (generation time)
    timeout = httpx.Timeout(connect=10.0, read=settings.llm_timeout_seconds, write=10.0, pool=5.0)
    return httpx.AsyncClient(timeout=timeout)


def _chat_url() -> str:
    return settings.openai_base_url.rstrip("/") + "/chat/completions"


def _headers() -> dict:
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY não configurada.")
    return {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "Content-Type": "application/json",
    }


def _build_payload(
    messages: list[dict],
    tools: list[dict] | None,
    tool_choice: str,
    stream: bool,
) -> dict:
    payload: dict = {
        "model": settings.openai_model,
        "temperature": settings.llm_temperature,
        "messages": _clean_messages_for_api(messages),
        "stream": stream,
    }
    if tools:
        payload["tools"] = tools
        payload["tool_choice"] = tool_choice
    return payload


def _clean_messages_for_api(messages: list[dict]) -> list[dict]:
    """Keep only the keys each role accepts in the chat completions API."""
    cleaned = []
    for msg in messages:
        clean = {"role": msg["role"]}

        content = msg.get("content")
        if content is not None:
            clean["content"] = content
        elif msg["role"] in ("assistant", "tool"):
            clean["content"] = ""

        if msg["role"] == "assistant" and msg.get("tool_calls"):
            clean["tool_calls"] = msg["tool_calls"]

        if msg["role"] == "tool":
            clean["tool_call_id"] = msg.get("tool_call_id", "")

        cleaned.append(clean)
    return cleaned


def _log_usage(data: dict) -> None:
    usage = data.get("usage") or {}
    prompt_tokens = usage.get("prompt_tokens", 0)
    completion_tokens = usage.get("completion_tokens", 0)
    if prompt_tokens or completion_tokens:
        log_metrics({
            "llm_prompt_tokens": float(prompt_tokens),
            "llm_completion_tokens": float(completion_tokens),
            "llm_total_tokens": float(prompt_tokens + completion_tokens),
        })


@trace(name="call_llm", span_type="CHAT_MODEL")
async def call_llm(
    messages: list[dict],
    tools: list[dict] | None = None,
    tool_choice: str = "auto",
) -> dict | None:
    """Call the LLM once, without streaming.

    Returns:
        Dict with 'content' (str) and 'tool_calls' (list), or None when the
        provider answered 2xx without a message.

    Raises:
        ConfigurationError: OPENAI_API_KEY is not set.
        LLMProviderError: the provider answered with a non-2xx status.
    """
    headers = _headers()
    payload = _build_payload(messages, tools, tool_choice, stream=False)

    async with _make_client() as client:
        resp = await client.post(_chat_url(), json=payload, headers=headers)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("LLM provider error %d (model=%s)", resp.status_code, payload["model"])
            raise LLMProviderError(resp.status_code, resp.text) from e
        data = resp.json()

    _log_usage(data)
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError):
        logger.warning("LLM response had no message (model=%s)", payload["model"])
        return None

    logger.info("LLM response (model=%s, tool_calls=%d)", payload["model"], len(message.get("tool_calls") or []))
    return {
        "content": message.get("content") or "",
        "tool_calls": message.get("tool_calls") or [],
    }


async def open_llm_stream(
    messages: list[dict],
    tools: list[dict] | None = None,
    tool_choice: str = "none",
) -> UpstreamEventStream:
    """Start a streaming completion and hand back its text deltas.

    The HTTP response stays open until the returned stream is exhausted or
    closed; both paths release the response and the client.
    """
    headers = _headers()
    payload = _build_payload(messages, tools, tool_choice, stream=True)

    client = _make_client()
    try:
        request = client.build_request("POST", _chat_url(), json=payload, headers=headers)
        resp = await client.send(request, stream=True)
    except BaseException:
        await client.aclose()
        raise

    if resp.is_error:
        body = (await resp.aread()).decode("utf-8", errors="replace")
        await resp.aclose()
        await client.aclose()
        logger.error("LLM provider error %d on streaming call (model=%s)", resp.status_code, payload["model"])
        raise LLMProviderError(resp.status_code, body)

    async def _close() -> None:
        await resp.aclose()
        await client.aclose()

    logger.info("LLM stream opened (model=%s)", payload["model"])
    return UpstreamEventStream(resp.aiter_lines(), on_close=_close)
