"""
CLI interface for the dad joke service.

Provides command-line access to joke generation and usage stats.
"""

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from dad_joke.config.loader import AppConfig, load_app_config, load_config
from dad_joke.core.handler import JokeRequestHandler
from dad_joke.sdk.completion_client import CompletionClient
from dad_joke.storage.repository import UsageStore
from dad_joke.storage.tables import TableStoreError, open_table_store

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML config file (defaults to DAD_JOKE_CONFIG or app settings)"
)


def _load(config_path: Optional[str]) -> AppConfig:
    if config_path:
        return load_app_config(config_path)
    return load_config()


def _build_handler(config: AppConfig) -> JokeRequestHandler:
    return JokeRequestHandler(
        usage_store=UsageStore(open_table_store(config.store_connection)),
        completion_client=CompletionClient.from_config(config),
    )


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Dad joke CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Dad Joke - Use --help to see available commands")


@app.command()
def status(config_path: Optional[str] = CONFIG_OPTION):
    """Show which backends are configured."""
    try:
        config = _load(config_path)
    except Exception as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if config.completion_configured:
        console.print(f"[green]✓[/] Completion: {config.completion_endpoint} ({config.completion_deployment})")
    else:
        console.print("[yellow]![/] Completion not configured - fallback jokes only")
    if config.store_configured:
        console.print("[green]✓[/] Usage store configured")
    else:
        console.print("[yellow]![/] Usage store not configured - stats disabled")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def init(config_path: Optional[str] = CONFIG_OPTION):
    """Create the usage tables."""
    try:
        config = _load(config_path)
        UsageStore(open_table_store(config.store_connection)).initialize()
        console.print("[green]✓[/] Usage tables initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except (TableStoreError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error initializing usage tables:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def joke(
    keywords: Optional[str] = typer.Option(
        None,
        "--keywords",
        "-k",
        help="Topic for the joke"
    ),
    config_path: Optional[str] = CONFIG_OPTION
):
    """Tell a joke and count it."""
    try:
        handler = _build_handler(_load(config_path))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    response = handler.handle_joke("GET", {"keywords": keywords} if keywords else {})
    if response.status_code != 200:
        console.print(f"[red]Error:[/] {response.body['error']}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"\n{response.body['joke']}\n")
    console.print(f"[dim]Request #{response.body['requestCount']} today[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def stats(config_path: Optional[str] = CONFIG_OPTION):
    """Show request totals and the latest jokes."""
    try:
        handler = _build_handler(_load(config_path))
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    response = handler.handle_stats()
    if response.status_code != 200:
        console.print(f"[red]Error:[/] {response.body['error']}")
        sys.exit(EXIT_CODE_FAIL)

    _display_stats(response.body)
    sys.exit(EXIT_CODE_PASS)


def _display_stats(body):
    """Display usage stats with the recent jokes as a table."""
    console.print("\n[bold]Joke Usage[/bold]")
    console.print("-" * 40)

    if not body.get("storageAvailable", True):
        console.print("[yellow]Usage store unavailable - showing zeros[/]")

    console.print(f"Total requests: {body['totalRequests']}")
    console.print(f"Today: {body['todayRequests']}")

    if not body["recentJokes"]:
        console.print("\n[dim]No jokes recorded yet.[/]")
        return

    table = Table(title="Recent jokes")
    table.add_column("Time")
    table.add_column("Keywords")
    table.add_column("Joke")
    for item in body["recentJokes"]:
        table.add_row(item["timestamp"], item["keywords"], item["joke"])
    console.print(table)


if __name__ == "__main__":
    app()
