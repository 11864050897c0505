from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from app.schemas import DatasetResponse
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_dataset, render_narrative, render_narrative_list, render_verdict
from services.classifier import HardnessBasis, classify_latest
from services.monitor import build_dataset
from services.normalizer import NanPolicy
from services.parser import IngestionError, parse_csv_bytes


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Upload water sensor data to HydroLens and read back quality verdicts.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="HydroLens API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between narrative status checks.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to wait for a narrative.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        poll_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("upload")
def upload_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
) -> None:
    """Replace the server dataset with a CSV file."""
    state = _get_state(ctx)
    typer.echo(f"Uploading {file} to {state.config.base_url} ...")
    payload = state.client.upload_dataset(file)
    typer.secho(
        f"Dataset replaced. generation={payload.get('generation')} samples={payload.get('sample_count')}",
        fg=typer.colors.GREEN,
    )


@app.command("dataset")
def dataset_command(ctx: typer.Context) -> None:
    """Show the dataset currently held by the server."""
    render_dataset(_get_state(ctx).client.get_dataset())


@app.command("verdict")
def verdict_command(ctx: typer.Context) -> None:
    """Classify the latest sample on the server."""
    render_verdict(_get_state(ctx).client.get_verdict())


@app.command("predict")
def predict_command(
    ctx: typer.Context,
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait for the narrative analysis and print it.",
    ),
) -> None:
    """Classify the latest sample and request a narrative analysis."""
    state = _get_state(ctx)
    payload = state.client.predict()
    render_verdict(payload["verdict"])
    narrative_id = payload["narrative_id"]
    typer.echo()
    typer.echo(f"narrative_id: {narrative_id}")

    if not wait:
        return

    typer.echo("Waiting for narrative analysis ...")
    narrative = state.client.poll_narrative(
        narrative_id,
        interval=state.config.poll_interval,
        timeout=state.config.poll_timeout,
    )
    typer.echo()
    render_narrative(narrative)


@app.command("narrative")
def narrative_command(
    ctx: typer.Context,
    narrative_id: str = typer.Argument(..., help="Identifier returned from the predict command."),
) -> None:
    """Fetch a narrative analysis by id."""
    render_narrative(_get_state(ctx).client.get_narrative(narrative_id))


@app.command("narratives")
def narratives_command(ctx: typer.Context) -> None:
    """List narrative requests known to the server, newest first."""
    render_narrative_list(_get_state(ctx).client.list_narratives())


@app.command("classify")
def classify_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."),
    basis: HardnessBasis = typer.Option(
        HardnessBasis.raw,
        "--basis",
        help="Hardness value used by the hardness rule.",
    ),
    nan_policy: NanPolicy = typer.Option(
        NanPolicy.skip,
        "--nan-policy",
        help="Whether unparseable hardness cells are skipped or poison normalization.",
    ),
    show_data: bool = typer.Option(
        False,
        "--show-data",
        help="Print the normalized samples as well.",
    ),
) -> None:
    """Classify a CSV file locally without contacting the server."""
    try:
        samples = parse_csv_bytes(file.read_bytes())
    except IngestionError as exc:
        typer.secho(f"Could not read {file}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    dataset = build_dataset(samples, source=file.name, nan_policy=nan_policy)
    if show_data:
        render_dataset(DatasetResponse.from_dataset(dataset).model_dump(mode="json"))
        typer.echo()
    render_verdict(classify_latest(dataset, basis).model_dump(mode="json"))
