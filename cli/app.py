"""Typer commands for checking rider eligibility from a terminal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_decision

EXIT_DENIED = 2


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the ride eligibility service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("check")
def check_command(
    ctx: typer.Context,
    lat: float = typer.Option(..., "--lat", min=-90.0, max=90.0, help="Rider latitude."),
    lon: float = typer.Option(..., "--lon", min=-180.0, max=180.0, help="Rider longitude."),
    email: str = typer.Option(..., "--email", "-e", help="Rider account email."),
) -> None:
    """Ask whether a rider may start a ride at a coordinate."""
    state = _get_state(ctx)
    payload = state.client.check_eligibility(lat, lon, email)
    render_decision(payload)
    if not payload["data"].get("allow_ride"):
        raise typer.Exit(code=EXIT_DENIED)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Check that the service is up."""
    state = _get_state(ctx)
    payload = state.client.health()
    typer.secho(
        f"{state.config.base_url}: {payload.get('message', 'unknown')}",
        fg=typer.colors.GREEN,
    )
