from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

_CATEGORY_COLORS = {
    "Excellent": typer.colors.GREEN,
    "Good": typer.colors.CYAN,
    "Bad": typer.colors.YELLOW,
    "Terrible": typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Any) -> str:
    return "n/a" if value is None else str(value)


def render_dataset(payload: Dict[str, Any]) -> None:
    echo_heading("Dataset")
    echo_key_values(
        [
            ("source", payload.get("source")),
            ("generation", payload.get("generation")),
            ("loaded_at", payload.get("loaded_at")),
            ("sample_count", payload.get("sample_count")),
        ]
    )
    samples = payload.get("samples") or []
    if not samples:
        typer.echo("No samples.")
        return
    typer.echo()
    typer.echo(f"{'time':<12}{'ph':>8}{'turbidity':>11}{'hardness':>10}{'normalized':>12}")
    for sample in samples:
        typer.echo(
            f"{sample.get('time', ''):<12}"
            f"{_fmt(sample.get('ph')):>8}"
            f"{_fmt(sample.get('turbidity')):>11}"
            f"{_fmt(sample.get('hardness')):>10}"
            f"{_fmt(sample.get('hardness_normalized')):>12}"
        )


def render_verdict(payload: Dict[str, Any]) -> None:
    echo_heading("Water Quality Verdict")
    category = payload.get("category")
    typer.secho(
        f"category: {category}",
        fg=_CATEGORY_COLORS.get(category),
    )
    echo_key_values(
        [
            ("score", f"{payload.get('score')}/3"),
            ("hardness_basis", payload.get("hardness_basis")),
        ]
    )
    typer.echo(payload.get("message", ""))


def render_narrative(payload: Dict[str, Any]) -> None:
    echo_heading("Narrative Analysis")
    echo_key_values(
        [
            ("narrative_id", payload.get("narrative_id")),
            ("status", payload.get("status")),
            ("requested_at", payload.get("requested_at")),
            ("completed_at", payload.get("completed_at")),
        ]
    )
    if payload.get("error"):
        typer.secho(f"error: {payload['error']}", fg=typer.colors.YELLOW)
    analysis = payload.get("analysis")
    if analysis:
        typer.echo()
        typer.echo(analysis)


def render_narrative_list(items: Iterable[Dict[str, Any]]) -> None:
    echo_heading("Narrative Requests")
    rows = list(items)
    if not rows:
        typer.echo("No narrative requests yet.")
        return
    for item in rows:
        typer.echo(
            f"  - {item.get('narrative_id')}: {item.get('status')}"
            f" (requested {item.get('requested_at')})"
        )
