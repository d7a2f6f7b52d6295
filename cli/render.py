"""Terminal rendering for eligibility decisions."""

from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_decision(payload: Dict[str, Any]) -> None:
    data = payload.get("data") or {}
    allowed = bool(data.get("allow_ride"))

    echo_heading("Eligibility")
    typer.secho(
        f"allow_ride: {allowed}",
        fg=typer.colors.GREEN if allowed else typer.colors.YELLOW,
    )
    echo_key_values(
        [
            ("message", payload.get("message")),
            ("balance", data.get("balance")),
        ]
    )

    bikes = data.get("bikes") or []
    typer.echo()
    echo_heading("Bikes")
    if bikes:
        for bike in bikes:
            typer.echo(
                f"  - #{bike.get('designation')} ({bike.get('category')}) "
                f"at {bike.get('latitude')}, {bike.get('longitude')} id={bike.get('id')}"
            )
    else:
        typer.echo("No bikes listed.")
