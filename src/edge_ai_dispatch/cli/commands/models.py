"""Inspect the model catalog and identifier routing."""

import json

import typer

from edge_ai_dispatch.core.error_handler import safe_entrypoint
from edge_ai_dispatch.providers.registry import MODEL_REGISTRY, resolve_alias
from edge_ai_dispatch.providers.resolver import resolve
from edge_ai_dispatch.utils.logging import get_logger

app = typer.Typer(name="models", help="Inspect the model catalog")
log = get_logger("cli.models")


@app.command("list")
@safe_entrypoint("cli.models.list")
def list_models(
    provider: str | None = typer.Option(None, "--provider", "-p", help="Only this provider"),
    tier: str | None = typer.Option(None, "--tier", help="Only this tier"),
    tools: bool = typer.Option(False, "--tools", help="Only tool-capable models"),
) -> None:
    """List catalog models."""
    models = MODEL_REGISTRY.list_models(provider=provider, tier=tier)
    if tools:
        models = [m for m in models if m.supports_tools]
    if not models:
        typer.echo("No models match the given filters")
        return

    for model in models:
        flags = []
        if model.supports_tools:
            flags.append("tools")
        if model.is_reasoning:
            flags.append("reasoning")
        if model.supports_vision:
            flags.append("vision")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{model.id} ({model.provider}, {model.tier}){suffix}")


@app.command("show")
@safe_entrypoint("cli.models.show")
def show_model(
    model_id: str = typer.Argument(..., help="Model id or alias"),
) -> None:
    """Show one catalog entry as JSON."""
    config = MODEL_REGISTRY.get(model_id)
    if config is None:
        typer.echo(f"Model not found: {model_id}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(config.model_dump(), indent=2))


@app.command("resolve")
@safe_entrypoint("cli.models.resolve")
def resolve_model(
    model_id: str = typer.Argument(..., help="Model id or alias"),
) -> None:
    """Show how an identifier is routed."""
    resolved = resolve(resolve_alias(model_id))
    log.debug(f"Resolved {model_id!r} to {resolved.canonical_id}")
    typer.echo(f"provider: {resolved.provider}")
    typer.echo(f"model: {resolved.model}")
    typer.echo(f"canonical: {resolved.canonical_id}")
    typer.echo(f"routing: {resolved.routing_class.value}")
