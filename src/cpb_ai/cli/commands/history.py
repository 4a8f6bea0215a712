"""``cpb-ai history`` and ``cpb-ai trend``: inspect past training runs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from cpb_ai.cli import _async
from cpb_ai.cli._output import print_result, print_success
from cpb_ai.cli.main import handle_errors
from cpb_ai.types import Domain

if TYPE_CHECKING:
    from cpb_ai.cli._context import CliContext
    from cpb_ai.engine import Engine

_DOMAIN_CHOICE = click.Choice([d.value for d in Domain])

_HISTORY_COLUMNS = [
    ("Timestamp", "timestamp"),
    ("Domain", "domain"),
    ("Records", "record_count"),
    ("Epochs", "epochs_run"),
    ("Loss", "loss"),
    ("Accuracy", "accuracy"),
    ("F1", "f1"),
    ("MAE", "mean_absolute_error"),
]


@click.command("history")
@click.option("--domain", type=_DOMAIN_CHOICE, default=None, help="Only runs of this domain.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Most recent N runs.")
@click.option("--clear", is_flag=True, default=False, help="Delete every recorded run.")
@click.pass_obj
@handle_errors
def history_cmd(ctx: CliContext, domain: str | None, limit: int | None, clear: bool) -> None:
    """List recorded training runs, oldest first."""

    async def _run(engine: Engine) -> Any:
        if clear:
            return await engine.history.clear()
        runs = await engine.history.list(domain, limit=limit)
        return [run.model_dump(mode="json") for run in runs]

    result = _async.with_engine(ctx.settings, _run)
    if clear:
        print_success(ctx, f"Removed {result} training run(s).")
        return
    print_result(ctx, result, columns=_HISTORY_COLUMNS, title="Training history")


@click.command("trend")
@click.option("--domain", type=_DOMAIN_CHOICE, default=None, help="Only runs of this domain.")
@click.pass_obj
@handle_errors
def trend_cmd(ctx: CliContext, domain: str | None) -> None:
    """Show how accuracy and loss moved from the first to the latest run."""

    async def _run(engine: Engine) -> dict[str, Any]:
        report = await engine.history.trend(domain)
        return report.model_dump(mode="json")

    print_result(ctx, _async.with_engine(ctx.settings, _run), title="Training trend")
