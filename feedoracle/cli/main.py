"""
Command Line Interface for the consensus oracle.

Usage:
    feedoracle query price BTC --strategy dynamic --method weightedMedian
    feedoracle providers
    feedoracle serve --port 8090
"""

import asyncio
import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv
import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from feedoracle.models import AggregationMethod, WeightingStrategy

app = typer.Typer(
    name="feedoracle",
    help="Consensus oracle over unreliable data providers",
    add_completion=False,
)

console = Console()


def configure_logging(level: Optional[str] = None) -> None:
    """Filter structlog output by FEEDORACLE_LOG_LEVEL (default WARNING)."""
    name = (level or os.getenv("FEEDORACLE_LOG_LEVEL", "WARNING")).upper()
    level_value = getattr(logging, name, logging.WARNING)
    if not isinstance(level_value, int):
        level_value = logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level_value))


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    load_dotenv()
    configure_logging(log_level)


@app.command()
def query(
    data_type: str = typer.Argument(..., help="Data type, e.g. price or weather"),
    subject: str = typer.Argument(..., help="Subject, e.g. BTC or Berlin"),
    strategy: Optional[WeightingStrategy] = typer.Option(None, "--strategy", "-s", help="Weighting strategy"),
    method: Optional[AggregationMethod] = typer.Option(None, "--method", "-m", help="Aggregation method"),
    max_providers: Optional[int] = typer.Option(None, "--max-providers", help="Maximum providers to query"),
    outlier_threshold: Optional[float] = typer.Option(None, "--outlier-threshold", help="Fractional deviation"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Per-provider timeout (s)"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Query the providers for one consensus value.

    Example:
        feedoracle query price ETH --method median
    """
    criteria = {
        key: value
        for key, value in {
            "weighting_strategy": strategy,
            "aggregation_method": method,
            "max_providers": max_providers,
            "outlier_threshold": outlier_threshold,
        }.items()
        if value is not None
    }
    asyncio.run(_query_async(data_type, subject, criteria, timeout, output_json))


async def _query_async(
    data_type: str,
    subject: str,
    criteria: dict,
    timeout: Optional[float],
    output_json: bool,
):
    """Async query handler."""
    from feedoracle.core import ConsensusOracle, OracleConfig
    from feedoracle.errors import OracleError

    config = OracleConfig.from_env().model_copy(update={"enable_health_monitor": False})
    oracle = ConsensusOracle(config=config)

    try:
        with console.status(f"Querying providers for {data_type} {subject}..."):
            result = await oracle.query(data_type, subject, criteria or None, timeout=timeout)
    except OracleError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None
    finally:
        await oracle.close()

    if output_json:
        console.print_json(result.model_dump_json())
        return

    status = "✅ Consensus" if result.consensus_reached else "⚠️ Best effort (outliers kept)"
    console.print(Panel.fit(f"[bold]{status}[/bold]", title=f"{data_type} / {subject}"))

    table = Table(show_header=False, box=None)
    table.add_column("Label", style="bold")
    table.add_column("Value")

    value = result.value if not isinstance(result.value, (dict, list)) else json.dumps(result.value)
    table.add_row("Value", f"[bold green]{value}[/bold green]")
    table.add_row("Confidence", f"{result.confidence:.1%}")
    table.add_row("Method", result.method.value)
    table.add_row("Sources", ", ".join(result.sources) or "-")
    table.add_row("Outliers", ", ".join(result.outliers) or "-")
    for name, reason in result.failures.items():
        table.add_row(f"✗ {name}", f"[dim]{reason}[/dim]")
    quality = result.quality_metrics
    table.add_row(
        "Quality",
        f"accuracy {quality.accuracy:.2f}, freshness {quality.freshness:.2f}, "
        f"consistency {quality.consistency:.2f}",
    )
    table.add_row("Time", f"{result.execution_time_ms:.0f} ms")
    console.print(table)


@app.command()
def providers(
    check: bool = typer.Option(False, "--check", help="Run a health check first"),
):
    """
    Show registered providers with their weights and metrics.
    """
    asyncio.run(_providers_async(check))


async def _providers_async(check: bool):
    from feedoracle.core import ConsensusOracle, OracleConfig

    oracle = ConsensusOracle(config=OracleConfig(enable_health_monitor=False))
    try:
        if check:
            await oracle.check_health()
        snapshots = oracle.get_provider_metrics()
    finally:
        await oracle.close()

    table = Table(title="Providers")
    table.add_column("Name", style="bold")
    table.add_column("Capabilities")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Reliability", justify="right")
    table.add_column("Resp. time", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Requests", justify="right")

    for snapshot in snapshots:
        status_color = "green" if snapshot.status.value == "active" else "red"
        table.add_row(
            snapshot.name,
            ", ".join(snapshot.capabilities),
            f"[{status_color}]{snapshot.status.value}[/{status_color}]",
            f"{snapshot.selection_score:.1f}",
            f"{snapshot.weights.reliability:.0f}",
            f"{snapshot.weights.response_time:.0f}",
            f"{snapshot.weights.accuracy:.0f}",
            f"{snapshot.metrics.successful_requests}/{snapshot.metrics.total_requests}",
        )

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8090, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """
    Start the oracle API server.

    Example:
        feedoracle serve --port 8090
    """
    import uvicorn

    from feedoracle.api.server import create_app

    console.print()
    console.print(
        Panel.fit(
            f"[bold blue]Host:[/bold blue] {host}\n"
            f"[bold blue]Port:[/bold blue] {port}\n"
            f"[bold blue]Docs:[/bold blue] http://{host}:{port}/docs",
            title="🚀 Starting Oracle API Server",
        )
    )
    console.print()

    if reload:
        uvicorn.run(
            "feedoracle.api.server:create_app",
            host=host,
            port=port,
            reload=True,
            factory=True,
        )
    else:
        uvicorn.run(create_app(), host=host, port=port)


@app.command()
def config():
    """
    Show current configuration.
    """
    from feedoracle.core import OracleConfig

    current = OracleConfig.from_env()
    table = Table(title="Oracle Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("per_call_timeout_seconds", str(current.per_call_timeout_seconds))
    table.add_row("cache_ttl_seconds", str(current.cache_ttl_seconds))
    table.add_row("health_check_interval_seconds", str(current.health_check_interval_seconds))
    table.add_row("enable_health_monitor", str(current.enable_health_monitor))
    for name, value in current.default_criteria.model_dump(mode="json").items():
        table.add_row(name, str(value))

    console.print(table)


@app.command()
def version():
    """
    Show version information.
    """
    from feedoracle import __version__

    console.print(f"[bold]feedoracle[/bold] v{__version__}")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
