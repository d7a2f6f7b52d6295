"""Thin httpx wrapper around the eligibility HTTP API."""

from __future__ import annotations

from typing import Any, Dict

import httpx
import typer

from cli.config import CLIConfig

# Eligibility decisions arrive with these codes; anything else is an error.
_DECISION_STATUSES = {200, 401}


class ApiClient:
    """Minimal HTTP client for the ride eligibility service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def check_eligibility(self, latitude: float, longitude: float, email: str) -> Dict[str, Any]:
        try:
            response = self._client.post(
                "/api/bikes/get_available_bikes",
                json={"latitude": latitude, "longitude": longitude, "riderEmail": email},
            )
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        if response.status_code not in _DECISION_STATUSES:
            self._handle_error_response(response)
        payload = response.json()
        if not isinstance(payload.get("data"), dict):
            raise typer.BadParameter("Unexpected response payload from eligibility check.")
        return payload

    def health(self) -> Dict[str, Any]:
        try:
            response = self._client.get("/api/bikes/health")
            response.raise_for_status()
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        except httpx.HTTPStatusError as exc:
            self._handle_error_response(exc.response)
        return response.json()

    def _handle_transport_error(self, exc: httpx.TransportError) -> None:
        typer.secho(
            f"Could not reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_error_response(response: httpx.Response) -> None:
        detail: str | None = None
        try:
            data = response.json()
            detail = data.get("message") or data.get("error") or data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = response.text.strip()
        message = (
            f"Request failed with status {response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
