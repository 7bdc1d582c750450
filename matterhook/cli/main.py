"""CLI commands for matterhook."""

import asyncio
import logging
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from matterhook import __version__
from matterhook.errors import ConfigError, PermanentStreamError

app = typer.Typer(
    name="matterhook",
    help="matterhook - relay Matterbridge messages to a webhook",
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger("matterhook")


def version_callback(value: bool):
    if value:
        console.print(f"matterhook v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """matterhook - Matterbridge to webhook relay."""
    pass


# ============================================================================
# Run Command
# ============================================================================


async def _run_relay(relay) -> None:
    """Run the relay with SIGINT/SIGTERM wired to a graceful stop."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, relay.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform / thread
            pass

    try:
        await relay.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@app.command()
def run(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Start relaying messages."""
    from matterhook.config import load_config
    from matterhook.relay import RelayLoop
    from matterhook.telemetry import RelayMetrics, setup_logging, start_metrics_server

    try:
        config = load_config(config_path)
        config.validate_required()
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Set MATTERBRIDGE_API_URL and WEBHOOK_URL or run [cyan]matterhook onboard[/cyan].")
        raise typer.Exit(1)

    try:
        setup_logging(config.logging.level, config.logging.format)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    metrics = RelayMetrics()
    if config.telemetry.enabled:
        logger.debug("setting up telemetry...")
        try:
            start_metrics_server(
                metrics, config.telemetry.metrics_port, config.telemetry.metrics_host
            )
        except OSError as e:
            console.print(f"[red]Error: failed to start metrics server: {e}[/red]")
            raise typer.Exit(1)

    relay = RelayLoop(config, metrics=metrics)

    try:
        asyncio.run(_run_relay(relay))
    except PermanentStreamError as e:
        logger.critical("failed to run: %s", e, extra={"error": str(e)})
        raise typer.Exit(1)

    logger.info("Shut down cleanly")


# ============================================================================
# Setup / Onboard
# ============================================================================


@app.command()
def onboard():
    """Interactive setup wizard for the source API and the webhook."""
    from matterhook.config import Config, get_config_path, load_config, save_config

    config_path = get_config_path()

    # Load existing config or create new one
    if config_path.exists():
        try:
            config = load_config(config_path, env={})
        except ConfigError as e:
            console.print(f"[red]Error: {e}[/red]")
            console.print(f"Fix or remove {config_path} and run onboard again.")
            raise typer.Exit(1)
        console.print(f"[dim]Updating existing config at {config_path}[/dim]\n")
    else:
        config = Config()

    # --- Step 1: Matterbridge API ---
    console.print("[bold]Step 1:[/bold] Matterbridge API\n")
    api_url = typer.prompt("API URL", default=config.source.url or "http://localhost:4242")
    if not api_url.strip():
        console.print("[red]API URL cannot be empty.[/red]")
        raise typer.Exit(1)
    config.source.url = api_url.strip()

    username = typer.prompt("API username (leave blank for none)", default="")
    config.source.username = username.strip()
    if config.source.username:
        password = typer.prompt("API password", hide_input=True)
        config.source.password = password.strip()
    else:
        config.source.password = ""
    console.print("  [green]>[/green] Source saved\n")

    # --- Step 2: Webhook ---
    console.print("[bold]Step 2:[/bold] Webhook\n")
    webhook_url = typer.prompt("Webhook URL", default=config.webhook.url or None)
    if not webhook_url.strip():
        console.print("[red]Webhook URL cannot be empty.[/red]")
        raise typer.Exit(1)
    config.webhook.url = webhook_url.strip()

    prefix = typer.prompt(
        "Only forward messages starting with (leave blank to forward all)",
        default="",
    )
    config.webhook.prefix = prefix
    if prefix:
        console.print(f"  [green]>[/green] Forwarding messages starting with {prefix!r}\n")
    else:
        console.print("  [yellow]>[/yellow] No prefix: every chat message is forwarded\n")

    # --- Step 3: Save config ---
    save_config(config, config_path)
    console.print(f"[green]>[/green] Config saved to {config_path}")
    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Run [cyan]matterhook run[/cyan] to start relaying.\n")


# ============================================================================
# Status Command
# ============================================================================


@app.command()
def status(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Show status and configuration."""
    from matterhook.config import get_config_path, load_config
    from matterhook.telemetry import redact_url

    path = config_path or get_config_path()
    try:
        config = load_config(path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print("matterhook Status\n")

    console.print(
        f"Config:    {path} "
        f"{'[green]>[/green]' if path.exists() else '[red]x[/red]'}"
    )
    console.print(f"Source:    {escape(redact_url(config.source.url)) or '[dim]not set[/dim]'}")
    if config.has_credentials:
        console.print(f"Auth:      basic ({config.source.username} / ********)")
    else:
        console.print("Auth:      [dim]none[/dim]")
    console.print(f"Webhook:   {escape(redact_url(config.webhook.url)) or '[dim]not set[/dim]'}")
    console.print(
        f"Prefix:    {repr(config.webhook.prefix) if config.webhook.prefix else '[dim]none[/dim]'}"
    )
    console.print(
        f"Telemetry: "
        f"{'[green]enabled[/green]' if config.telemetry.enabled else '[dim]disabled[/dim]'}"
        + (f" (port {config.telemetry.metrics_port})" if config.telemetry.enabled else "")
    )

    try:
        config.validate_required()
    except ConfigError:
        console.print(
            "\n[yellow]Run [cyan]matterhook onboard[/cyan] to configure the relay.[/yellow]"
        )


if __name__ == "__main__":
    app()
