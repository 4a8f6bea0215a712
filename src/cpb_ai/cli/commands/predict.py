"""``cpb-ai predict``: one prediction from a JSON record."""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, Any

import click

from cpb_ai.cli import _async
from cpb_ai.cli._output import print_result
from cpb_ai.cli.main import handle_errors

if TYPE_CHECKING:
    from cpb_ai.cli._context import CliContext
    from cpb_ai.engine import Engine

COMPLICATIONS = "complications"


def _load_record(source: str) -> dict[str, Any]:
    """Parse *source* as inline JSON, or read it from a file path or ``-``."""
    text = source
    if source == "-":
        text = sys.stdin.read()
    elif not source.lstrip().startswith("{"):
        try:
            with open(source, encoding="utf-8") as fh:
                text = fh.read()
        except OSError as exc:
            raise click.ClickException(f"Cannot read record from {source}: {exc}") from exc
    try:
        record = json.loads(text)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Record is not valid JSON: {exc}") from exc
    if not isinstance(record, dict):
        raise click.ClickException("Record must be a JSON object")
    return record


@click.command("predict")
@click.argument("domain")
@click.argument("record", default="-")
@click.pass_obj
@handle_errors
def predict_cmd(ctx: CliContext, domain: str, record: str) -> None:
    """Predict for DOMAIN from RECORD (inline JSON, a file, or ``-`` for stdin).

    DOMAIN is one of transfusion, perfusion, blood-gas, fluid-balance or
    complications.
    """
    data = _load_record(record)

    if domain == COMPLICATIONS:
        from cpb_ai.inference.service import InferenceService

        risk = InferenceService.predict_complications(data)
        print_result(ctx, risk.model_dump(mode="json"), title="Complication risk")
        return

    async def _run(engine: Engine) -> dict[str, Any]:
        result = await engine.inference.predict(domain, data)
        return result.model_dump(mode="json")

    result = _async.with_engine(ctx.settings, _run)
    if not ctx.json_mode:
        details = result.pop("details", {})
        result.update({f"details.{k}": v for k, v in details.items()})
    print_result(ctx, result, title=f"Prediction ({domain})")
