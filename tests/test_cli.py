from __future__ import annotations

from typing import Any, Dict, List

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config


class StubClient:
    def __init__(self, config, allow_ride: bool = True) -> None:
        self.config = config
        self.checks: List[tuple[float, float, str]] = []
        bikes = [
            {
                "id": "bike-1",
                "designation": 1001,
                "latitude": 12.9716,
                "longitude": 77.5946,
                "status": "available",
                "isFaulty": False,
                "category": "standard",
            }
        ]
        self.payload: Dict[str, Any] = {
            "message": "Success" if allow_ride else "balance too low",
            "data": {
                "balance": 120 if allow_ride else 30,
                "allow_ride": allow_ride,
                "bikes": bikes if allow_ride else [],
            },
        }
        self.closed = False

    def check_eligibility(self, latitude: float, longitude: float, email: str) -> Dict[str, Any]:
        self.checks.append((latitude, longitude, email))
        return self.payload

    def health(self) -> Dict[str, Any]:
        return {"message": "Success"}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_check_allowed(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app, ["check", "--lat", "12.9716", "--lon", "77.5946", "--email", "valid@test.com"]
    )

    assert result.exit_code == 0
    assert "allow_ride: True" in result.stdout
    assert "#1001" in result.stdout
    assert stub.checks == [(12.9716, 77.5946, "valid@test.com")]
    assert stub.closed is True


def test_check_denied_exits_with_code_two(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None, allow_ride=False)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app, ["check", "--lat", "12.9716", "--lon", "77.5946", "--email", "low@test.com"]
    )

    assert result.exit_code == 2
    assert "balance too low" in result.stdout
    assert "No bikes listed." in result.stdout


def test_check_rejects_out_of_range_latitude(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["check", "--lat", "95", "--lon", "77.5", "--email", "a@b.c"])

    assert result.exit_code != 0
    assert stub.checks == []


def test_health_command_uses_base_url_option(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://bikes.internal:9000/", "health"])

    assert result.exit_code == 0
    assert "http://bikes.internal:9000: Success" in result.stdout
    assert stub.config.base_url == "http://bikes.internal:9000"


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://env-host:8000")
    monkeypatch.setenv("CLI_TIMEOUT", "not-a-number")

    config = load_config()

    assert config == CLIConfig(base_url="http://env-host:8000", timeout=10.0)


def _client_with(handler) -> ApiClient:
    client = ApiClient(CLIConfig(base_url="http://testserver"))
    client._client.close()
    client._client = httpx.Client(base_url="http://testserver", transport=httpx.MockTransport(handler))
    return client


def test_api_client_treats_unknown_rider_as_decision() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/bikes/get_available_bikes"
        return httpx.Response(
            401,
            json={"message": "rider not found", "data": {"balance": 0, "allow_ride": False, "bikes": []}},
        )

    client = _client_with(handler)
    try:
        payload = client.check_eligibility(12.9, 77.5, "nobody@test.com")
    finally:
        client.close()

    assert payload["message"] == "rider not found"


def test_api_client_exits_on_service_fault() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            503, json={"error": "eligibility check failed", "message": "fleet_lookup unavailable"}
        )

    client = _client_with(handler)
    try:
        with pytest.raises(typer.Exit) as excinfo:
            client.check_eligibility(12.9, 77.5, "valid@test.com")
    finally:
        client.close()

    assert excinfo.value.exit_code == 1
