#!/usr/bin/env python3
"""
Brandforge CLI - brand video generation.

Commands:
    video       Generate, list and follow videos
    models      List available video models
    keys        Provider key management (admin)
    config      Manage local configuration
    health      Check Brandforge health
"""
import json
from urllib.request import Request, urlopen

import typer
from rich.console import Console
from rich.table import Table

from brandforge_cli.api import (
    api_request as _api_request,
    stream_events as _stream_events,
    load_config,
    save_config,
    get_url,
    APIError,
    ConfigError,
    ConnectionError,
    CONFIG_FILE,
    DEFAULT_URL,
)

CLI_VERSION = "0.1.0"

app = typer.Typer(
    name="brandforge",
    help="Brandforge CLI - brand video generation",
    no_args_is_help=True,
)
video_app = typer.Typer(help="Generate, list and follow videos")
keys_app = typer.Typer(help="Provider key management (admin)")
config_app = typer.Typer(help="Manage local configuration (~/.brandforge)")

app.add_typer(video_app, name="video")
app.add_typer(keys_app, name="keys")
app.add_typer(config_app, name="config")

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    "complete": "green",
    "error": "red",
    "generating": "yellow",
    "processing": "yellow",
    "pending": "dim",
    "queued": "dim",
}


def _fail(message: str):
    err_console.print(message)
    raise typer.Exit(1)


def api_request(method: str, endpoint: str, data: dict = None, timeout: int = 30) -> dict:
    """Make API request with CLI error handling."""
    try:
        return _api_request(method, endpoint, data, timeout)
    except APIError as e:
        _fail(f"[red]Error {e.status_code}:[/red] {e.detail}")
    except ConfigError as e:
        _fail(f"[red]Error:[/red] {e}")
    except ConnectionError as e:
        _fail(f"[red]{e}[/red]")


SECRET_CONFIG_KEYS = ("token",)


def _display(key: str, value: str) -> str:
    """Config values are shown as-is, except the token, which is shortened."""
    if key not in SECRET_CONFIG_KEYS or not value:
        return value
    return value[:12] + "..." if len(value) > 12 else "***"


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def format_cost(cost) -> str:
    if not cost:
        return "-"
    return f"${cost:.2f}"


# =============================================================================
# Config Commands
# =============================================================================

@config_app.command("init")
def config_init():
    """Write a config file pointing at the local server."""
    if CONFIG_FILE.exists():
        console.print(f"Config already exists: [cyan]{CONFIG_FILE}[/cyan]")
        return

    save_config({"url": DEFAULT_URL})
    console.print(f"[green]✓[/green] Created: [cyan]{CONFIG_FILE}[/cyan]")
    console.print("Then: [cyan]brandforge config set token <jwt>[/cyan]")


@config_app.command("show")
def config_show():
    """Show the config file and its values."""
    config = load_config()
    if not config:
        console.print(f"No config at [cyan]{CONFIG_FILE}[/cyan]")
        return

    console.print(f"[bold]{CONFIG_FILE}[/bold]")
    for k, v in config.items():
        console.print(f"  {k}: [cyan]{_display(k, v)}[/cyan]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="url or token"),
    value: str = typer.Argument(...),
):
    """Set a config value."""
    config = load_config()
    config[key] = value
    save_config(config)
    console.print(f"[green]✓[/green] Set {key} = [cyan]{_display(key, value)}[/cyan]")


@config_app.command("get")
def config_get(
    key: str = typer.Argument(...),
    raw: bool = typer.Option(False, "--raw", help="Print the unshortened value"),
):
    """Print one config value."""
    value = load_config().get(key)
    if value is None:
        _fail(f"[red]Key not found:[/red] {key}")
    if raw:
        print(value)
    else:
        console.print(f"{key}: [cyan]{_display(key, value)}[/cyan]")


# =============================================================================
# Health / Version
# =============================================================================

@app.command()
def health(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show full response"),
):
    """Check Brandforge service health."""
    url = f"{get_url().rstrip('/')}/health"

    try:
        with urlopen(Request(url), timeout=10) as resp:
            result = json.loads(resp.read().decode())
    except Exception as e:
        _fail(f"[red]Error:[/red] {e}")

    status = result.get("status", "unknown")
    service = result.get("service", "brandforge")
    version = result.get("version", "?")

    if status == "healthy":
        console.print(f"[green]✓[/green] {service} v{version}: [green]{status}[/green]")
    else:
        console.print(f"[yellow]⚠[/yellow] {service} v{version}: [yellow]{status}[/yellow]")

    providers = result.get("providers")
    if providers:
        console.print(f"  Providers: {', '.join(providers)}")

    if verbose:
        console.print(json.dumps(result, indent=2))


@app.command()
def version():
    """Show CLI version."""
    console.print(f"brandforge-cli [cyan]v{CLI_VERSION}[/cyan] (Typer)")


# =============================================================================
# Models
# =============================================================================

@app.command()
def models(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List video models available through the enabled provider keys."""
    result = api_request("GET", "/api/video/models")
    model_list = result.get("models", [])

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    if not model_list:
        console.print("No video models available. Ask an admin to add a provider key.")
        return

    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Provider", style="dim")
    table.add_column("Max Duration", justify="right")
    table.add_column("Price", justify="right")

    for m in model_list:
        pricing = m.get("pricing") or {}
        if pricing.get("estimatedCostPerSecond"):
            price = f"${pricing['estimatedCostPerSecond']:.2f}/s"
        elif pricing.get("estimatedCostPerGeneration"):
            price = f"${pricing['estimatedCostPerGeneration']:.2f}"
        else:
            price = "-"
        max_duration = m.get("maxDuration")
        table.add_row(
            m.get("id"),
            m.get("displayName"),
            m.get("provider"),
            f"{max_duration}s" if max_duration else "-",
            price,
        )

    console.print(table)


# =============================================================================
# Video Commands
# =============================================================================

def _watch(generation_id: str) -> dict:
    """Print progress events until the stream ends. Returns the last event."""
    last = {}
    try:
        for event in _stream_events(f"/api/video/{generation_id}/stream"):
            last = event
            status = event.get("status", "unknown")
            progress = event.get("progress") or 0
            line = f"  {styled_status(status)} {progress}%"
            if event.get("error"):
                line += f" [dim]({event['error']})[/dim]"
            console.print(line)
    except APIError as e:
        _fail(f"[red]Error {e.status_code}:[/red] {e.detail}")
    except ConfigError as e:
        _fail(f"[red]Error:[/red] {e}")
    except ConnectionError as e:
        _fail(f"[red]{e}[/red]")

    if last.get("status") == "complete":
        console.print(f"[green]✓[/green] Video ready: [cyan]{last.get('videoUrl')}[/cyan]")
    elif last.get("status") == "error":
        _fail(f"[red]✗ Generation failed:[/red] {last.get('error') or 'Unknown error'}")
    return last


@video_app.command("generate")
def video_generate(
    prompt: str = typer.Argument(..., help="Video prompt"),
    model: str = typer.Option(None, "--model", "-m", help="Model id (see 'brandforge models')"),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider (openai, wavespeed)"),
    aspect_ratio: str = typer.Option(None, "--aspect-ratio", "-a", help="16:9, 9:16 or 1:1"),
    duration: int = typer.Option(None, "--duration", "-d", help="Clip length in seconds"),
    resolution: str = typer.Option(None, "--resolution", "-r", help="e.g. 720p, 1080p"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Follow progress until finished"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Start a video generation."""
    data = {"prompt": prompt}
    for field, value in (
        ("model", model),
        ("provider", provider),
        ("aspectRatio", aspect_ratio),
        ("duration", duration),
        ("resolution", resolution),
    ):
        if value is not None:
            data[field] = value

    result = api_request("POST", "/api/video/generate", data, timeout=120)

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    console.print(f"[green]✓[/green] Started generation: [bold]{result.get('id')}[/bold]")
    console.print(f"  Status: {styled_status(result.get('status', 'unknown'))}")
    console.print(f"  Job: [dim]{result.get('providerJobId')}[/dim]")
    if result.get("videoUrl"):
        console.print(f"  Video: [cyan]{result['videoUrl']}[/cyan]")
        return

    if watch:
        _watch(result["id"])
    else:
        console.print(f"\nFollow with: [cyan]brandforge video watch {result.get('id')}[/cyan]")


@video_app.command("list")
def video_list(
    status: str = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-n", help="Page size (max 50)"),
    offset: int = typer.Option(0, "--offset", help="Skip this many"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List your video generations, newest first."""
    endpoint = f"/api/video?limit={limit}&offset={offset}"
    if status:
        endpoint += f"&status={status}"
    result = api_request("GET", endpoint)
    videos = result.get("videos", [])

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    if not videos:
        console.print("No videos found.")
        return

    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Prompt", max_width=40)
    table.add_column("Model", style="cyan")
    table.add_column("Status")
    table.add_column("Cost", justify="right")
    table.add_column("Created")

    for v in videos:
        created = (v.get("createdAt") or "")[:19].replace("T", " ")
        table.add_row(
            v.get("id"),
            v.get("prompt"),
            v.get("model") or "-",
            styled_status(v.get("status", "unknown")),
            format_cost(v.get("cost")),
            created,
        )

    console.print(table)
    console.print(f"[dim]Showing {len(videos)} of {result.get('total', len(videos))}[/dim]")


@video_app.command("status")
def video_status(
    generation_id: str = typer.Argument(..., help="Generation id"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show one video generation."""
    result = api_request("GET", f"/api/video/{generation_id}")

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    console.print(f"[bold]{result.get('id')}[/bold]")
    console.print(f"  Prompt: {result.get('prompt')}")
    console.print(f"  Provider: {result.get('provider')} / [cyan]{result.get('model')}[/cyan]")
    console.print(f"  Status: {styled_status(result.get('status', 'unknown'))}")
    console.print(f"  Cost: {format_cost(result.get('cost'))}")
    if result.get("videoUrl"):
        console.print(f"  Video: [cyan]{result['videoUrl']}[/cyan]")
    if result.get("error"):
        console.print(f"  Error: [red]{result['error']}[/red]")


@video_app.command("watch")
def video_watch(
    generation_id: str = typer.Argument(..., help="Generation id"),
):
    """Follow a generation's progress until it finishes."""
    _watch(generation_id)


@video_app.command("cancel")
def video_cancel(
    generation_id: str = typer.Argument(..., help="Generation id"),
):
    """Stop tracking an in-flight generation."""
    result = api_request("POST", f"/api/video/{generation_id}/cancel")
    console.print(f"[green]✓[/green] {result.get('id')}: {styled_status(result.get('status', 'unknown'))}")


@video_app.command("delete")
def video_delete(
    generation_id: str = typer.Argument(..., help="Generation id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a generation and its stored video."""
    if not yes:
        typer.confirm(f"Delete video {generation_id}?", abort=True)
    api_request("DELETE", f"/api/video/{generation_id}")
    console.print(f"[green]✓[/green] Deleted {generation_id}")


# =============================================================================
# Provider Key Commands (admin)
# =============================================================================

@keys_app.command("list")
def keys_list(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List video provider keys."""
    result = api_request("GET", "/api/admin/video-keys")
    keys = result.get("keys", [])

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    if not keys:
        console.print("No provider keys configured.")
        return

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Provider")
    table.add_column("Suffix", style="dim")
    table.add_column("Status")
    table.add_column("Last Used")

    for k in keys:
        if not k.get("enabled"):
            status = "[red]Disabled[/red]"
        elif not k.get("videoEnabled"):
            status = "[yellow]Video off[/yellow]"
        else:
            status = "[green]Active[/green]"
        last_used = (k.get("lastUsedAt") or "Never")[:19].replace("T", " ")
        table.add_row(k.get("name"), k.get("provider"), f"****{k.get('keySuffix') or ''}", status, last_used)

    console.print(table)


@keys_app.command("add")
def keys_add(
    provider: str = typer.Argument(..., help="Provider (openai, wavespeed)"),
    key: str = typer.Option(..., "--key", "-k", help="Provider API key"),
    name: str = typer.Option("Default", "--name", "-n", help="Key name"),
    video: bool = typer.Option(False, "--video", help="Allow the key to be used for video generation"),
):
    """Add a video provider key."""
    result = api_request(
        "POST",
        "/api/admin/video-keys",
        {"provider": provider, "apiKey": key, "name": name, "videoEnabled": video},
    )
    console.print(f"[green]✓[/green] Added {provider} key: [bold]{result.get('name')}[/bold]")
    console.print(f"  ID: [dim]{result.get('id')}[/dim]")
    console.print(f"  Suffix: [dim]****{result.get('keySuffix')}[/dim]")
    if not result.get("videoEnabled"):
        console.print("  Video generation is off for this key (add with --video to enable)")


@keys_app.command("remove")
def keys_remove(
    key_id: str = typer.Argument(..., help="Key id"),
):
    """Delete a video provider key."""
    api_request("DELETE", f"/api/admin/video-keys/{key_id}")
    console.print(f"[green]✓[/green] Removed key {key_id}")


@keys_app.command("validate")
def keys_validate(
    key: str = typer.Argument(..., help="WaveSpeed API key to check"),
):
    """Check a WaveSpeed key against the balance endpoint."""
    result = api_request("POST", "/api/admin/video-keys/wavespeed/validate", {"apiKey": key})
    if result.get("valid"):
        console.print(f"[green]✓[/green] Key is valid. Balance: [cyan]{result.get('balance')}[/cyan]")
    else:
        _fail(f"[red]✗ Invalid key:[/red] {result.get('error')}")


@keys_app.command("pricing")
def keys_pricing(
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the 24h cache"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show live WaveSpeed model pricing."""
    endpoint = "/api/admin/video-keys/wavespeed/pricing"
    if refresh:
        endpoint += "?refresh=true"
    result = api_request("GET", endpoint)

    if as_json:
        console.print(json.dumps(result, indent=2))
        return

    if result.get("error"):
        _fail(f"[red]Error:[/red] {result['error']}")

    table = Table(title="WaveSpeed pricing" + (" (cached)" if result.get("cached") else ""))
    table.add_column("Model", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Base Price", justify="right")

    for m in result.get("models", []):
        price = m.get("base_price")
        table.add_row(m.get("model_id"), m.get("type") or "-", f"${price:.2f}" if price is not None else "-")

    console.print(table)


# =============================================================================
# Main
# =============================================================================

def main():
    app()


if __name__ == "__main__":
    main()
