import json
from pathlib import Path

import click


@click.group()
def main() -> None:
    """Workshop - workspace templates and triggers."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from WORKSHOP_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from WORKSHOP_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the Template Runtime server."""
    import uvicorn

    from workshop.template_runtime.settings import WorkshopSettings

    settings = WorkshopSettings()

    uvicorn.run(
        "workshop.template_runtime.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
        # Allow enough time for in-flight applications to finish during shutdown.
        timeout_graceful_shutdown=settings.graceful_shutdown_timeout + 30,
    )


# ---------------------------------------------------------------------------
# One-shot commands (local adapters, no server)
# ---------------------------------------------------------------------------


def _parse_pairs(pairs: tuple[str, ...], option: str) -> dict[str, str]:
    """Turn ``("k=v", ...)`` into a dict.  Values stay strings."""
    parsed: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"expected KEY=VALUE, got {pair!r}"
            raise click.BadParameter(msg, param_hint=option)
        parsed[key.strip()] = value
    return parsed


def _services():
    from workshop.template_runtime.log import setup_logging
    from workshop.template_runtime.services import build_services
    from workshop.template_runtime.settings import WorkshopSettings

    settings = WorkshopSettings()
    setup_logging(settings.log_level)
    return build_services(settings)


@main.command()
@click.argument("template_id")
@click.option("--var", "variables", multiple=True, metavar="NAME=VALUE", help="Variable value (repeatable).")
@click.option(
    "--override", "overrides", multiple=True, metavar="TYPE=ITEM_ID", help="Pin a wildcard category to an item."
)
def apply(template_id: str, variables: tuple[str, ...], overrides: tuple[str, ...]) -> None:
    """Apply a template once and print the result as JSON."""
    import anyio

    variable_values = _parse_pairs(variables, "--var")
    context_overrides = _parse_pairs(overrides, "--override")
    services = _services()

    async def _run():
        result = await services.orchestrator.apply(
            template_id, context_overrides=context_overrides, variable_values=variable_values
        )
        await services.orchestrator.wait_for_detached()
        return result

    result = anyio.run(_run)
    click.echo(result.model_dump_json(indent=2))
    if not result.success:
        raise SystemExit(1)


@main.command()
@click.argument("trigger_id")
@click.option(
    "--context",
    "context_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file with the trigger context (entity state).",
)
def execute(trigger_id: str, context_file: Path | None) -> None:
    """Fire a trigger once and print the result as JSON."""
    import anyio

    context = {}
    if context_file is not None:
        try:
            context = json.loads(context_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"invalid JSON: {exc}", param_hint="--context") from exc
        if not isinstance(context, dict):
            raise click.BadParameter("context must be a JSON object", param_hint="--context")
    services = _services()

    async def _run():
        result = await services.executor.execute(trigger_id, context)
        # The loop closes on return; let a timed-out workspace creation finish first.
        await services.orchestrator.wait_for_detached()
        return result

    result = anyio.run(_run)
    click.echo(result.model_dump_json(indent=2))
    if not result.success:
        raise SystemExit(1)


@main.command()
@click.argument("collection", type=click.Choice(["templates", "triggers"]))
def index(collection: str) -> None:
    """Print the listing index of templates or triggers as JSON."""
    import anyio

    services = _services()
    store = services.templates if collection == "templates" else services.triggers
    rows = anyio.run(store.index)
    click.echo(json.dumps(rows, indent=2, default=str))


if __name__ == "__main__":
    main()
