"""Root CLI entry point: ``cpb-ai`` command group."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console

from cpb_ai import __version__
from cpb_ai.cli._context import CliContext
from cpb_ai.exceptions import (
    CpbAIError,
    DatasetFormatError,
    InsufficientDataError,
)
from cpb_ai.observability import setup_logging
from cpb_ai.settings import EngineSettings

_PREFIXES: dict[type[CpbAIError], str] = {
    DatasetFormatError: "Dataset format error",
    InsufficientDataError: "Insufficient data",
}


def _describe(exc: CpbAIError) -> str:
    for cls, prefix in _PREFIXES.items():
        if isinstance(exc, cls):
            return f"{prefix}: {exc}"
    return str(exc)


def handle_errors(fn: Any) -> Any:
    """Turn engine exceptions raised by a command into a one-line Click error."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except (click.exceptions.Exit, click.ClickException):
            raise
        except CpbAIError as exc:
            raise click.ClickException(_describe(exc)) from exc
        except ValidationError as exc:
            raise click.ClickException(f"Invalid input: {exc}") from exc
        except Exception as exc:
            raise click.ClickException(f"Unexpected error: {exc}") from exc

    return wrapper


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--artifact-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding per-domain model artifacts.",
)
@click.option("--database-url", default=None, help="Training history database URL.")
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output raw JSON.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log at INFO level.")
@click.version_option(version=__version__, prog_name="cpb-ai")
@click.pass_context
def cli(
    ctx: click.Context,
    artifact_dir: Path | None,
    database_url: str | None,
    json_mode: bool,
    verbose: bool,
) -> None:
    """CPB AI engine: local training and prediction."""
    overrides: dict[str, Any] = {}
    if artifact_dir is not None:
        overrides["artifact_dir"] = artifact_dir
    if database_url is not None:
        overrides["database_url"] = database_url
    settings = EngineSettings(**overrides)

    setup_logging(logging.INFO if verbose else logging.WARNING, json_format=False)
    ctx.obj = CliContext(
        settings=settings,
        console=Console(),
        err_console=Console(stderr=True),
        json_mode=json_mode,
    )


# ---------------------------------------------------------------------------
# Register commands (lazy imports to keep startup fast)
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    from cpb_ai.cli.commands.history import history_cmd, trend_cmd
    from cpb_ai.cli.commands.predict import predict_cmd
    from cpb_ai.cli.commands.status import serve_cmd, status_cmd
    from cpb_ai.cli.commands.training import bootstrap_cmd, train_cmd

    cli.add_command(train_cmd)
    cli.add_command(bootstrap_cmd)
    cli.add_command(predict_cmd)
    cli.add_command(history_cmd)
    cli.add_command(trend_cmd)
    cli.add_command(status_cmd)
    cli.add_command(serve_cmd)


_register_commands()
