"""``cpb-ai status`` and ``cpb-ai serve``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from cpb_ai.cli import _async
from cpb_ai.cli._output import print_result
from cpb_ai.cli.main import handle_errors

if TYPE_CHECKING:
    from cpb_ai.cli._context import CliContext
    from cpb_ai.engine import Engine


@click.command("status")
@click.pass_obj
@handle_errors
def status_cmd(ctx: CliContext) -> None:
    """Show which domains have a usable saved model."""

    async def _run(engine: Engine) -> dict[str, Any]:
        return engine.status()

    status = _async.with_engine(ctx.settings, _run)
    if ctx.json_mode:
        print_result(ctx, status)
        return
    rows = [{"domain": name, **info} for name, info in status["domains"].items()]
    print_result(ctx, rows, title="Domain models")


@click.command("serve")
@click.option("--host", default=None, help="Bind address (default from settings).")
@click.option("--port", type=int, default=None, help="Bind port (default from settings).")
@click.pass_obj
@handle_errors
def serve_cmd(ctx: CliContext, host: str | None, port: int | None) -> None:  # pragma: no cover
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from cpb_ai.api.app import create_app

    settings = ctx.settings
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )
