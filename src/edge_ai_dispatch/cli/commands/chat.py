"""Send a single prompt through the dispatch client."""

import asyncio
import json
import logging

import typer

from edge_ai_dispatch.agent.dispatch import DispatchClient
from edge_ai_dispatch.agent.models import DispatchOptions
from edge_ai_dispatch.config.loader import load_config
from edge_ai_dispatch.core.error_handler import safe_entrypoint
from edge_ai_dispatch.core.exceptions import AIError
from edge_ai_dispatch.streaming.transformer import DoneEvent, ErrorEvent, TextEvent
from edge_ai_dispatch.utils.logging import get_logger, setup_logging

app = typer.Typer(name="chat", help="Send a prompt through the dispatch client")
log = get_logger("cli.chat")


async def _run(prompt: str, options: DispatchOptions, as_json: bool, stream: bool) -> int:
    config = load_config()
    async with DispatchClient(config) as client:
        if stream:
            exit_code = 0
            async for event in client.generate_stream(prompt, options):
                if isinstance(event, TextEvent):
                    typer.echo(event.data, nl=False)
                elif isinstance(event, ErrorEvent):
                    typer.echo(f"\nError: {event.message}", err=True)
                    exit_code = 1
                elif isinstance(event, DoneEvent):
                    typer.echo("")
            return exit_code

        if as_json:
            result = await client.generate_json(prompt, options=options)
            if not result.success:
                typer.echo(f"Error: {result.error}", err=True)
                typer.echo(result.raw, err=True)
                return 1
            typer.echo(json.dumps(result.data, indent=2))
            return 0

        result = await client.generate(prompt, options)
        if result.thinking:
            log.info(f"Model reasoning: {result.thinking}")
        typer.echo(result.response)
        log.debug(
            f"{result.model} answered in {result.duration_ms:.0f}ms "
            f"after {result.attempts} attempt(s)"
        )
        return 0


@app.command("run")
@safe_entrypoint("cli.chat.run")
def run(
    prompt: str = typer.Argument(..., help="The prompt to send"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model id or alias"),
    as_json: bool = typer.Option(False, "--json", help="Request and print JSON"),
    stream: bool = typer.Option(False, "--stream", help="Stream the response"),
    max_tokens: int | None = typer.Option(None, "--max-tokens", help="Output token cap"),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Send PROMPT and print the model's answer."""
    if as_json and stream:
        typer.echo("--json and --stream cannot be combined", err=True)
        raise typer.Exit(2)

    setup_logging(getattr(logging, log_level.upper(), logging.WARNING))
    options = DispatchOptions(model=model, max_tokens=max_tokens)

    try:
        exit_code = asyncio.run(_run(prompt, options, as_json, stream))
    except AIError as e:
        typer.echo(f"Error [{e.code.value}]: {e.message}", err=True)
        raise typer.Exit(1) from e
    if exit_code:
        raise typer.Exit(exit_code)
