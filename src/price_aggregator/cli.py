"""Click-based CLI for price-aggregator.

Thin wrapper around the aggregation service. Every command opens storage,
wires the service, delegates, and closes both again.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from price_aggregator.core import ConfigError, load_config

        try:
            config = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as exc:
            raise click.ClickException(str(exc)) from exc
        _configure_logging(config.logging.level, ctx.obj.get("verbose", False))
        ctx.obj["config"] = config
    return ctx.obj["config"]


def _configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


async def _open_service(config):
    """Create storage and wire the aggregation service on top of it."""
    from price_aggregator.service import build_service
    from price_aggregator.storage import create_store

    store = await create_store(config.storage)
    return store, build_service(config, store)


def _print_report(report, title: str) -> None:
    table = Table(title=title)
    table.add_column("Asset", style="bold")
    table.add_column("Status")
    table.add_column("Price", justify="right")
    table.add_column("Source / Error")

    for result in report.details:
        if result.success:
            table.add_row(
                result.asset_id, "[green]ok[/green]", f"{result.price:,.2f}", result.source or ""
            )
        else:
            table.add_row(result.asset_id, "[red]failed[/red]", "", result.error or "")

    console.print(table)
    console.print(
        f"[green]✓[/green] {report.succeeded} updated, "
        f"{report.failed} failed ({report.total} total)"
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_AGGREGATOR_CONFIG",
    default=None,
    help="Path to price-aggregator.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="price-aggregator")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Price Aggregator: multi-provider asset pricing and valuation."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# Price updates
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("asset_ids", nargs=-1, required=True)
@click.pass_context
def update(ctx: click.Context, asset_ids: tuple[str, ...]) -> None:
    """Refresh the price of one or more assets."""
    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            report = await service.update_assets_prices(list(asset_ids))
        finally:
            await service.close()
            await store.close()
        _print_report(report, "Price Update")
        if report.failed:
            ctx.exit(1)

    _run_async(_run())


@cli.command("update-all")
@click.pass_context
def update_all(ctx: click.Context) -> None:
    """Refresh every active trackable asset."""
    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            report = await service.update_all_assets()
        finally:
            await service.close()
            await store.close()
        _print_report(report, "Price Update (all assets)")

    _run_async(_run())


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
@click.option(
    "--type",
    "-t",
    "asset_type",
    type=click.Choice(
        ["STOCK", "ETF", "BOND", "FUND", "CRYPTO", "COMMODITY"], case_sensitive=False
    ),
    default=None,
    help="Restrict results to an asset type.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Write JSON to stdout.")
@click.pass_context
def search(ctx: click.Context, query: str, asset_type: str | None, as_json: bool) -> None:
    """Search symbols across providers, falling back to the built-in catalog."""
    from price_aggregator.core import AssetType

    config = _load_config(ctx)
    type_filter = AssetType(asset_type.upper()) if asset_type else None

    async def _run():
        store, service = await _open_service(config)
        try:
            return await service.search_asset(query, type_filter)
        finally:
            await service.close()
            await store.close()

    results = _run_async(_run())

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
        return

    if not results:
        console.print(f"[yellow]No results for '{query}'.[/yellow]")
        return

    table = Table(title=f"Search: {query}")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Region")
    table.add_column("Provider")
    for r in results:
        table.add_row(r.symbol, r.name, r.type, r.region or "", r.provider)
    console.print(table)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("asset_id")
@click.option("--days", "-d", type=click.IntRange(min=1), default=None, help="Lookback window.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Write JSON to stdout.")
@click.pass_context
def history(ctx: click.Context, asset_id: str, days: int | None, as_json: bool) -> None:
    """Show recorded prices for an asset, oldest first."""
    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            return await service.get_price_history(asset_id, days)
        finally:
            await service.close()
            await store.close()

    records = _run_async(_run())

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        console.print(f"[yellow]No price history for {asset_id}.[/yellow]")
        return

    table = Table(title=f"Price History: {asset_id}")
    table.add_column("Recorded at")
    table.add_column("Price", justify="right")
    table.add_column("Source")
    for r in records:
        table.add_row(r.recorded_at.isoformat(timespec="seconds"), f"{r.price:,.4f}", r.source)
    console.print(table)


@cli.command()
@click.argument("asset_id")
@click.option("--days", "-d", type=click.IntRange(min=1), default=None, help="Lookback window.")
@click.pass_context
def stats(ctx: click.Context, asset_id: str, days: int | None) -> None:
    """Show min/max/avg/change statistics for an asset."""
    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            return await service.get_price_statistics(asset_id, days)
        finally:
            await service.close()
            await store.close()

    result = _run_async(_run())
    if result is None:
        console.print(f"[yellow]No price history for {asset_id}.[/yellow]")
        return

    window = days if days is not None else config.pricing.default_history_days
    table = Table(title=f"Statistics: {asset_id} ({window}d)")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Current", f"{result.current:,.4f}")
    table.add_row("Min", f"{result.min:,.4f}")
    table.add_row("Max", f"{result.max:,.4f}")
    table.add_row("Average", f"{result.avg:,.4f}")
    table.add_row("Change", f"{result.change_percent:+.2f}%")
    table.add_row("Points", str(result.count))
    console.print(table)


@cli.command()
@click.option(
    "--retention-days",
    type=click.IntRange(min=1),
    default=None,
    help="Keep this many days of history (default from config).",
)
@click.pass_context
def prune(ctx: click.Context, retention_days: int | None) -> None:
    """Delete price history older than the retention window."""
    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            return await service.prune_history(retention_days)
        finally:
            await service.close()
            await store.close()

    deleted = _run_async(_run())
    console.print(f"[green]✓[/green] Deleted {deleted} price records")


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("asset_id")
@click.option(
    "--timeframe",
    type=click.Choice(["1d", "7d", "30d", "90d"]),
    default="7d",
    help="Prediction horizon.",
)
@click.pass_context
def predict(ctx: click.Context, asset_id: str, timeframe: str) -> None:
    """Estimate a future price from recorded history."""
    from price_aggregator.core import PredictionTimeframe

    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            return await service.predict_price(asset_id, PredictionTimeframe(timeframe))
        finally:
            await service.close()
            await store.close()

    prediction = _run_async(_run())
    if prediction is None:
        console.print(f"[yellow]No prediction available for {asset_id}.[/yellow]")
        return

    click.echo(json.dumps(prediction.model_dump(mode="json"), indent=2))


@cli.command()
@click.argument("asset_id")
@click.option(
    "--timeframe",
    type=click.Choice(["1d", "7d", "30d", "90d"]),
    default=None,
    help="Only predictions for this horizon.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Write JSON to stdout.")
@click.pass_context
def predictions(ctx: click.Context, asset_id: str, timeframe: str | None, as_json: bool) -> None:
    """List stored predictions that have not expired yet."""
    from price_aggregator.core import PredictionTimeframe

    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            return await service.get_active_predictions(
                asset_id, PredictionTimeframe(timeframe) if timeframe else None
            )
        finally:
            await service.close()
            await store.close()

    items = _run_async(_run())

    if as_json:
        click.echo(json.dumps([p.model_dump(mode="json") for p in items], indent=2))
        return

    if not items:
        console.print(f"[yellow]No active predictions for {asset_id}.[/yellow]")
        return

    table = Table(title=f"Active Predictions: {asset_id}")
    table.add_column("Timeframe")
    table.add_column("Price", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Algorithm")
    table.add_column("Expires at")
    for p in items:
        table.add_row(
            str(p.timeframe),
            f"{p.predicted_price:,.2f}",
            f"{p.confidence:.0%}",
            p.algorithm,
            p.expires_at.isoformat(timespec="seconds"),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


@cli.command("load-assets")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def load_assets(ctx: click.Context, path: str) -> None:
    """Insert or replace assets from a YAML or JSON file.

    The file holds a list of assets, or a mapping with an ``assets`` list.
    """
    import yaml
    from pydantic import ValidationError

    from price_aggregator.core import Asset

    config = _load_config(ctx)

    try:
        data = yaml.safe_load(Path(path).read_text())
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Could not parse {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("assets")
    if not isinstance(data, list):
        raise click.ClickException(f"{path} must contain a list of assets")

    try:
        assets = [Asset.model_validate(item) for item in data]
    except ValidationError as exc:
        raise click.ClickException(f"Invalid asset in {path}: {exc}") from exc

    async def _run():
        from price_aggregator.storage import create_store

        store = await create_store(config.storage)
        try:
            for asset in assets:
                await store.save_asset(asset)
        finally:
            await store.close()

    _run_async(_run())
    console.print(f"[green]✓[/green] Loaded {len(assets)} assets")


@cli.command()
@click.pass_context
def providers(ctx: click.Context) -> None:
    """List configured price providers and whether they are enabled."""
    from price_aggregator.service import build_providers

    config = _load_config(ctx)

    table = Table(title="Price Providers")
    table.add_column("Provider", style="bold")
    table.add_column("Enabled")
    table.add_column("Asset types")
    table.add_column("Min interval", justify="right")
    for name, provider in build_providers(config).items():
        table.add_row(
            name.value,
            "[green]yes[/green]" if provider.is_enabled() else "[dim]no[/dim]",
            ", ".join(sorted(t.value for t in provider.asset_types)),
            f"{provider.min_interval:g}s",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Scheduler / server
# ---------------------------------------------------------------------------


@cli.command("run-scheduler")
@click.pass_context
def run_scheduler(ctx: click.Context) -> None:
    """Run the periodic refresh and cleanup jobs until interrupted."""
    config = _load_config(ctx)
    if not config.pricing.price_updates_enabled:
        raise click.ClickException("Price updates are disabled (pricing.price_updates_enabled)")

    async def _run():
        from price_aggregator.pricing import PriceScheduler

        store, service = await _open_service(config)
        scheduler = PriceScheduler(service.orchestrator, config.pricing)
        try:
            scheduler.start()
            console.print(
                f"Scheduler running: refresh every "
                f"{config.pricing.refresh_interval_hours}h, cleanup at "
                f"{config.pricing.cleanup_hour:02d}:00 UTC. Ctrl+C to stop."
            )
            await asyncio.Event().wait()
        finally:
            await scheduler.shutdown()
            await service.close()
            await store.close()

    try:
        _run_async(_run())
    except KeyboardInterrupt:
        console.print("Scheduler stopped.")


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]uvicorn not installed. Install with: "
            "pip install price-aggregator[api][/red]"
        )
        raise SystemExit(1)

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting price-aggregator API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "price_aggregator.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show storage coverage and provider status."""
    config = _load_config(ctx)

    async def _run():
        store, service = await _open_service(config)
        try:
            assets = await store.list_assets()
            trackable = await store.list_trackable_assets()
            return assets, trackable, service.provider_status()
        finally:
            await service.close()
            await store.close()

    assets, trackable, provider_status = _run_async(_run())
    priced = [a for a in assets if a.last_price_update is not None]

    table = Table(title="Price Aggregator Status")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Database path", config.storage.sqlite_path)
    table.add_row("Scheduled updates", "on" if config.pricing.price_updates_enabled else "off")
    table.add_section()
    table.add_row("Total assets", str(len(assets)))
    table.add_row("Trackable assets", str(len(trackable)))
    table.add_row("Priced assets", str(len(priced)))
    table.add_row(
        "Last update",
        str(max(a.last_price_update for a in priced)) if priced else "N/A",
    )
    table.add_section()
    table.add_row(
        "Enabled providers",
        f"{sum(provider_status.values())}/{len(provider_status)}",
    )

    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
