#!/usr/bin/env python3
"""
Command-line interface for Storefront Python Toolkit.

Provides configuration, schema and trash management for the catalog store.
"""

import sys
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, Optional

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from . import __version__
from .catalog.models import Base
from .config import Environment, StorefrontConfig, get_config, setup_logging
from .database import create_engine_from_config, create_session_factory, init_db, session_scope
from .soft_delete import SoftDeleteService

console = Console()


@contextmanager
def open_trash_service(config: StorefrontConfig) -> Iterator[SoftDeleteService]:
    """Yield a soft delete service bound to a transactional session."""
    engine = create_engine_from_config(config)
    try:
        with session_scope(create_session_factory(engine)) as session:
            yield SoftDeleteService(session, base_class=Base)
    finally:
        engine.dispose()


def record_row(record: Any) -> Dict[str, Any]:
    """Plain representation of a soft-deletable record."""
    return {
        "id": record.id,
        "slug": record.slug,
        "name": getattr(record, "name", None),
        "is_active": record.is_active,
        "deleted_at": record.deleted_at.isoformat() if record.deleted_at else None,
    }


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option(
    "--database-url",
    help="SQLAlchemy database URL, overrides the configured one",
)
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    """Storefront Python Toolkit - Catalog store tools with recoverable deletes."""
    try:
        config = get_config()
        if database_url:
            config = config.model_copy(update={"database_url": database_url})
    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    ctx.obj = config
    setup_logging(config)

    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Storefront Python Toolkit[/bold blue] v{__version__}\n"
                "[dim]Catalog store tools with recoverable deletes[/dim]\n\n"
                "Use [bold]storefront --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Manage storefront toolkit configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
@click.pass_obj
def config_show(config: StorefrontConfig, format: str) -> None:
    """Display current configuration."""
    config_dict = config.to_dict()

    if format == "json":
        console.print_json(data=config_dict)
    elif format == "yaml":
        console.print(yaml.dump(config_dict, default_flow_style=False))
    else:
        table = Table(title="Storefront Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        # Group settings by category
        categories = {
            "General": ["application_name", "environment", "log_level"],
            "Database": ["database_url", "echo_sql"],
            "Soft Delete": ["block_hard_deletes", "trash_report_days"],
            "Catalog": ["default_page_size", "max_page_size"],
        }

        for category, settings in categories.items():
            table.add_row(f"[bold]{category}[/bold]", "")
            for setting in settings:
                value = config_dict[setting]
                if isinstance(value, bool):
                    value = "✓" if value else "✗"
                table.add_row(f"  {setting}", str(value))

        console.print(table)


@config.command("validate")
@click.pass_obj
def config_validate(config: StorefrontConfig) -> None:
    """Validate current configuration."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Validating configuration...", total=None)

        issues = []
        warnings = []

        try:
            url = make_url(config.database_url)
        except ArgumentError as e:
            issues.append(f"Database URL cannot be parsed: {e}")
            url = None

        production = config.environment == Environment.PRODUCTION
        if url is not None and url.get_backend_name() == "sqlite" and production:
            warnings.append("SQLite is not recommended for production")
        if config.echo_sql and production:
            warnings.append("SQL echo logs every statement, disable it in production")
        if not config.block_hard_deletes and production:
            warnings.append(
                "Hard deletes are not blocked - records deleted outside the "
                "mediator cannot be restored"
            )

        progress.stop()

    if issues:
        console.print("[red]✗ Configuration validation failed:[/red]")
        for issue in issues:
            console.print(f"  [red]• {issue}[/red]")
        sys.exit(1)

    console.print("[green]✓ Configuration is valid[/green]")

    if warnings:
        console.print("\n[yellow]⚠ Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]• {warning}[/yellow]")


@cli.group()
def db() -> None:
    """Database schema management."""
    pass


@db.command("init")
@click.pass_obj
def db_init(config: StorefrontConfig) -> None:
    """Create the storefront tables."""
    try:
        engine = create_engine_from_config(config)
        init_db(engine)
        engine.dispose()
    except Exception as e:
        console.print(f"[red]Error initializing database: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Database initialized ({len(Base.metadata.tables)} tables)")


@cli.group()
def trash() -> None:
    """Inspect, delete and restore soft-deleted catalog records."""
    pass


@trash.command("list")
@click.argument("entity")
@click.option("--limit", type=int, default=100, help="Maximum results to return")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
@click.pass_obj
def trash_list(config: StorefrontConfig, entity: str, limit: int, format: str) -> None:
    """List soft-deleted records of ENTITY, newest deletion first."""
    try:
        with open_trash_service(config) as service:
            model = service.get_model(entity)
            rows = [record_row(r) for r in service.list_deleted(model, take=limit)]
    except Exception as e:
        console.print(f"[red]Error listing deleted records: {e}[/red]")
        sys.exit(1)

    if format == "json":
        console.print_json(data=rows)
        return

    if not rows:
        console.print(f"[yellow]No deleted {model.__name__} records[/yellow]")
        return

    table = Table(title=f"Deleted {model.__name__} records (showing {len(rows)})")
    table.add_column("ID", style="cyan")
    table.add_column("Slug", style="green")
    table.add_column("Name")
    table.add_column("Deleted at", style="yellow")
    for row in rows:
        table.add_row(str(row["id"]), row["slug"], row["name"] or "", row["deleted_at"])

    console.print(table)


@trash.command("delete")
@click.argument("entity")
@click.argument("entity_id", type=int)
@click.pass_obj
def trash_delete(config: StorefrontConfig, entity: str, entity_id: int) -> None:
    """Soft delete one record of ENTITY."""
    try:
        with open_trash_service(config) as service:
            model = service.get_model(entity)
            record = service.mediator.delete(model, {"id": entity_id})
            slug = record.slug
    except Exception as e:
        console.print(f"[red]Error deleting record: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Deleted {model.__name__} {entity_id} (slug now '{slug}')")


@trash.command("restore")
@click.argument("entity")
@click.argument("entity_id", type=int)
@click.option("--slug", help="Slug to restore under instead of the original one")
@click.pass_obj
def trash_restore(
    config: StorefrontConfig, entity: str, entity_id: int, slug: Optional[str]
) -> None:
    """Restore one soft-deleted record of ENTITY."""
    try:
        with open_trash_service(config) as service:
            model = service.get_model(entity)
            record = service.restore(model, {"id": entity_id}, slug=slug)
            restored_slug = record.slug
    except Exception as e:
        console.print(f"[red]Error restoring record: {e}[/red]")
        sys.exit(1)

    console.print(
        f"[green]✓[/green] Restored {model.__name__} {entity_id} as '{restored_slug}'"
    )


@trash.command("report")
@click.option("--days", type=int, help="Number of days to report on")
@click.pass_obj
def trash_report(config: StorefrontConfig, days: Optional[int]) -> None:
    """Summarise soft deletions per entity type."""
    days = days or config.trash_report_days
    end_date = datetime.now(timezone.utc)
    start_date = end_date - timedelta(days=days)

    try:
        with open_trash_service(config) as service:
            report = service.generate_trash_report(start_date, end_date)
    except Exception as e:
        console.print(f"[red]Error generating trash report: {e}[/red]")
        sys.exit(1)

    console.print(
        Panel.fit(
            f"[bold]Trash Report[/bold]\n"
            f"Last {days} days\n\n"
            f"Deleted in period: [cyan]{report.total_deletions:,}[/cyan]",
            border_style="blue",
        )
    )

    table = Table(title="Records by type")
    table.add_column("Entity", style="cyan")
    table.add_column("Deleted in period", style="yellow")
    table.add_column("Live", style="green")
    table.add_column("In trash", style="red")
    for entity_type, deleted in report.by_type.items():
        table.add_row(
            entity_type,
            str(deleted),
            str(report.live_by_type[entity_type]),
            str(report.deleted_by_type[entity_type]),
        )

    console.print(table)


if __name__ == "__main__":
    cli()
