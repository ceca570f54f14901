"""Relatos CLI — ask the agent one question from the terminal.

    relatos-chat --matricula 1234 "quantos desvios vencidos no último mês?"
    relatos-chat --matricula 1234 --contrato C-001 --contrato C-002 --selected C-002 \\
        --status "Em Andamento" --periodo-dias 30 "top locais por potencial"
"""

import argparse
import asyncio
import logging
import sys

from relatos.config import settings
from relatos.core.errors import RelatosError
from relatos.core.types import AgentContext
from relatos.observability.logging import setup_logging
from relatos.observability.tracing import init_tracking


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="relatos-chat", description="Pergunte ao agente de relatos.")
    parser.add_argument("question", nargs="+", help="pergunta em linguagem natural")
    parser.add_argument("--matricula", type=int, required=True, help="matrícula do usuário")
    parser.add_argument(
        "--contrato", action="append", default=[],
        help="contrato permitido (repetível); sem este flag, lê de usuario_contratos",
    )
    parser.add_argument("--selected", help="contrato selecionado na tela")
    parser.add_argument("--status", help="filtro de status da tela")
    parser.add_argument("--periodo-dias", type=int, help="filtro de período (dias) da tela")
    parser.add_argument("--verbose", action="store_true", help="logs em texto no stderr")
    return parser.parse_args(argv)


def _build_payload(args: argparse.Namespace) -> dict:
    payload: dict = {"messages": [{"role": "user", "content": " ".join(args.question)}]}
    ui = {}
    if args.status:
        ui["status"] = args.status
    if args.periodo_dias is not None:
        ui["periodo_dias"] = args.periodo_dias
    if ui:
        payload["ui"] = ui
    return payload


async def _build_context(args: argparse.Namespace) -> AgentContext:
    if args.contrato:
        allowed = frozenset(args.contrato)
        selected = args.selected if args.selected in allowed else None
        if selected is None and len(allowed) == 1:
            selected = next(iter(allowed))
        return AgentContext(user_id=args.matricula, allowed_contratos=allowed, selected_contrato=selected)

    from relatos.retrieval.contratos import build_agent_context

    return await build_agent_context(args.matricula, requested_contrato=args.selected)


async def _ask(args: argparse.Namespace) -> None:
    from relatos.pipeline.agent import run_relatos_agent

    context = await _build_context(args)
    stream = await run_relatos_agent(context, _build_payload(args))
    try:
        async for chunk in stream:
            sys.stdout.write(chunk.decode("utf-8"))
            sys.stdout.flush()
    finally:
        await stream.aclose()
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the relatos-chat console script."""
    args = _parse_args(argv)
    setup_logging(json_format=False, level="INFO" if args.verbose else "WARNING")
    init_tracking(settings.mlflow_tracking_uri, settings.mlflow_experiment_name)

    try:
        asyncio.run(_ask(args))
    except RelatosError as e:
        logging.getLogger(__name__).error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
