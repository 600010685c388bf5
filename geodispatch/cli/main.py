from typing import Any, Dict, Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from geodispatch.providers.settings import get_settings

app = typer.Typer(help="CLI for the geospatial dispatch API")
console = Console()

# API URL - can be set through GEODISPATCH_API_URL
API_URL = get_settings().geodispatch_api_url


def _error_message(response: httpx.Response) -> str:
    """Extract the message of an API error payload."""
    try:
        return response.json().get("message", response.text)
    except ValueError:
        return response.text


def _request(method: str, path: str, **kwargs) -> Optional[Dict[str, Any]]:
    """
    Call the API and print errors the way every command does.

    Returns:
        Decoded JSON body, or None when the call failed
    """
    try:
        response = httpx.request(method, f"{API_URL}{path}", timeout=30.0, **kwargs)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        console.print(f"[bold red]HTTP error {e.response.status_code}: {_error_message(e.response)}")
    except httpx.RequestError as e:
        console.print(f"[bold red]Request error: {e.__class__.__name__}")
    return None


@app.command()
def status():
    """
    Show the active strategy and the health of every provider.
    """
    with console.status("[bold green]Fetching service status..."):
        data = _request("GET", "/maps/status")
    if data is None:
        raise typer.Exit(code=1)

    console.print(f"Status: [bold]{data['status']}[/]")
    console.print(f"Strategy: [cyan]{data['active_strategy']}[/]")

    table = Table(show_header=True, header_style="bold green")
    table.add_column("Provider")
    table.add_column("Credential")
    table.add_column("Available")
    table.add_column("Weight")
    table.add_column("Requests")
    table.add_column("Success rate")

    for provider_id, health in data["provider_health"].items():
        stats = health["stats"]
        if not health["requires_credential"]:
            credential = "-"
        else:
            credential = "configured" if health["credential_configured"] else "missing"
        table.add_row(
            provider_id,
            credential,
            "[green]yes[/]" if health["available"] else "[red]no[/]",
            str(data["weights"].get(provider_id, "-")),
            str(stats["total_requests"]),
            f"{stats['success_rate']:.0f}%",
        )

    console.print(table)


@app.command()
def tiers():
    """
    List subscription tiers and the providers they can use.
    """
    with console.status("[bold green]Fetching tiers..."):
        data = _request("GET", "/maps/tiers")
    if data is None:
        raise typer.Exit(code=1)

    table = Table(show_header=True, header_style="bold green")
    table.add_column("Tier")
    table.add_column("Rate limit")
    table.add_column("Providers")
    table.add_column("Features")

    for tier in data["tiers"]:
        providers = ", ".join(
            p["id"] if p["configured"] else f"[dim]{p['id']} (not configured)[/]"
            for p in tier["providers"]
        )
        table.add_row(tier["name"], str(tier["rate_limit"]), providers, ", ".join(tier["features"]))

    console.print(table)
    console.print(f"Current strategy: [cyan]{data['current_strategy']}[/]")


@app.command()
def geocode(
    address: str = typer.Argument(..., help="Address to geocode (e.g. '1600 Amphitheatre Pkwy')"),
    tier: str = typer.Option("free", help="Subscription tier"),
    provider: Optional[str] = typer.Option(None, help="Explicit provider (must belong to the tier)"),
):
    """
    Geocode an address through the tier's providers.
    """
    params = {"address": address, "tier": tier}
    if provider:
        params["provider"] = provider

    with console.status(f"[bold green]Geocoding '{address}'..."):
        data = _request("GET", "/maps/geocode", params=params)
    if data is None:
        raise typer.Exit(code=1)

    console.print(f"[bold]{data['formatted_address']}[/]")
    console.print(f"Coordinates: [cyan]{data['latitude']:.6f}, {data['longitude']:.6f}[/]")
    console.print(f"Provider: {data['provider_id']} (confidence {data['confidence']:.2f})")


@app.command()
def tile(
    provider: str = typer.Argument(..., help="Provider id"),
    z: int = typer.Argument(...),
    x: int = typer.Argument(...),
    y: int = typer.Argument(...),
    style: Optional[str] = typer.Option(None, help="Style token"),
    tier: str = typer.Option("free", help="Subscription tier"),
):
    """
    Print the URL of one tile.
    """
    params = {"tier": tier}
    if style:
        params["style"] = style

    data = _request("GET", f"/maps/tile/{provider}/{z}/{x}/{y}", params=params)
    if data is None:
        raise typer.Exit(code=1)
    console.print(data["tile_url"], soft_wrap=True)


@app.command("set-strategy")
def set_strategy(
    strategy: str = typer.Argument(..., help="failover, round-robin or weighted"),
):
    """
    Switch the load-balancing strategy.
    """
    data = _request("POST", "/maps/config/strategy", json={"strategy": strategy})
    if data is None:
        raise typer.Exit(code=1)
    console.print(f"[green]{data['message']}")


@app.command("set-key")
def set_key(
    provider: str = typer.Argument(..., help="Provider id"),
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="New credential; empty clears it"),
):
    """
    Rotate a provider credential.
    """
    data = _request("POST", "/maps/config/api-key", json={"provider": provider, "api_key": api_key})
    if data is None:
        raise typer.Exit(code=1)
    console.print(f"[green]{data['message']}")


def main():
    app()


if __name__ == "__main__":
    main()
