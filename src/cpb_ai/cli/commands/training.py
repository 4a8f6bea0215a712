"""``cpb-ai train`` and ``cpb-ai bootstrap``: run training locally."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from cpb_ai.cli import _async
from cpb_ai.cli._output import print_result, print_success, print_warning
from cpb_ai.cli.main import handle_errors
from cpb_ai.datasets.router import DatasetRouter
from cpb_ai.types import Domain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from cpb_ai.cli._context import CliContext
    from cpb_ai.engine import Engine
    from cpb_ai.schemas import TrainingRun

_DOMAIN_CHOICE = click.Choice([d.value for d in Domain])

_RUN_COLUMNS = [
    ("Domain", "domain"),
    ("Records", "record_count"),
    ("Epochs", "epochs_run"),
    ("Loss", "loss"),
    ("Accuracy", "accuracy"),
    ("F1", "f1"),
    ("MAE", "mean_absolute_error"),
    ("Persisted", "persisted"),
]


def _train_with_progress(
    ctx: CliContext,
    label: str,
    start: Callable[[Engine, Callable[[int], None]], Awaitable[TrainingRun]],
) -> TrainingRun:
    """Open an engine, run *start* and render its epoch progress."""

    async def _run(engine: Engine) -> TrainingRun:
        if ctx.json_mode:
            return await start(engine, lambda _percent: None)
        with Progress(
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=ctx.err_console,
            transient=True,
        ) as bar:
            task = bar.add_task(label, total=100)
            return await start(engine, lambda percent: bar.update(task, completed=percent))

    return _async.with_engine(ctx.settings, _run)


def _report(ctx: CliContext, run: TrainingRun) -> None:
    data = run.model_dump(mode="json")
    if ctx.json_mode:
        print_result(ctx, data)
        return
    print_result(ctx, [data], columns=_RUN_COLUMNS, title="Training run")
    if run.persisted:
        print_success(ctx, f"Model for {run.domain} trained and saved.")
    else:
        print_warning(ctx, f"Model for {run.domain} trained but could not be saved.")


@click.command("train")
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--domain",
    type=_DOMAIN_CHOICE,
    default=None,
    help="Train this domain instead of detecting it from the dataset.",
)
@click.pass_obj
@handle_errors
def train_cmd(ctx: CliContext, dataset: Path, domain: str | None) -> None:
    """Train a domain model on a JSON DATASET file."""
    try:
        payload: Any = json.loads(dataset.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{dataset} is not valid JSON: {exc}") from exc

    async def _start(engine: Engine, progress: Callable[[int], None]) -> TrainingRun:
        if domain is None:
            return await engine.training.train_dataset(payload, progress)
        records = DatasetRouter.locate_records(payload)
        return await engine.training.train(domain, records, progress)

    _report(ctx, _train_with_progress(ctx, f"Training {domain or dataset.name}", _start))


@click.command("bootstrap")
@click.pass_obj
@handle_errors
def bootstrap_cmd(ctx: CliContext) -> None:
    """Train the transfusion model on the built-in clinical baseline."""

    async def _start(engine: Engine, progress: Callable[[int], None]) -> TrainingRun:
        return await engine.training.bootstrap_baseline(progress)

    _report(ctx, _train_with_progress(ctx, "Bootstrapping transfusion", _start))
