#!/usr/bin/env python3
"""
Command-line interface for SQLAlchemy Paranoid.

Inspects registered paranoid models and maintains soft-deleted rows.
"""

import importlib
import sys
from datetime import timedelta
from typing import Any, List, Optional, Tuple, Type

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import and_, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__
from .column import utcnow
from .config import get_config
from .exceptions import UnknownTypeError
from .registry import type_registry
from .scopes import INCLUDE_DELETED, is_paranoid

console = Console()


def _load_models(modules: Tuple[str, ...]) -> None:
    """Import modules so their paranoid models register themselves."""
    for module in modules:
        try:
            importlib.import_module(module)
        except ImportError as e:
            console.print(f"[red]Cannot import models module '{module}': {e}[/red]")
            sys.exit(1)


def _paranoid_types(names: Tuple[str, ...] = ()) -> List[Tuple[str, Type[Any]]]:
    return [
        (name, model)
        for name, model in type_registry.items()
        if is_paranoid(model) and (not names or name in names)
    ]


def _count(session: Session, model: Type[Any], predicate: Any) -> int:
    statement = (
        select(func.count())
        .select_from(model)
        .where(predicate)
        .execution_options(**{INCLUDE_DELETED: True})
    )
    return session.scalar(statement) or 0


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """SQLAlchemy Paranoid - soft deletion tools for SQLAlchemy models."""
    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]SQLAlchemy Paranoid[/bold blue] v{__version__}\n"
                "[dim]Soft deletion tools for SQLAlchemy models[/dim]\n\n"
                "Use [bold]paranoid --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Show paranoid configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
def config_show(format: str) -> None:
    """Display current configuration."""
    try:
        config_dict = get_config().to_dict()
    except ValueError as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    if format == "json":
        console.print_json(data=config_dict)
    elif format == "yaml":
        import yaml  # type: ignore[import-untyped]

        console.print(yaml.dump(config_dict, default_flow_style=False))
    else:
        table = Table(title="Paranoid Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        for setting, value in config_dict.items():
            if isinstance(value, bool):
                value = "✓" if value else "✗"
            table.add_row(setting, str(value))

        console.print(table)


@cli.command("types")
@click.option("--models", multiple=True, help="Module defining paranoid models")
def types(models: Tuple[str, ...]) -> None:
    """List registered paranoid models."""
    _load_models(models)

    registered = _paranoid_types()
    if not registered:
        console.print("[yellow]No paranoid models registered[/yellow]")
        return

    table = Table(title="Paranoid Models", show_header=True)
    table.add_column("Model", style="cyan")
    table.add_column("Column", style="green")
    table.add_column("Kind")
    table.add_column("Deleted Value")
    table.add_column("Dependents", style="dim")

    for name, model in registered:
        policy = model.__paranoid_policy__
        dependents = ", ".join(
            f"{association.name} ({association.dependent.value})"
            for association in model.__paranoid_dependents__
        )
        table.add_row(
            name,
            policy.column,
            policy.column_type.value,
            policy.deleted_value or "[dim]-[/dim]",
            dependents or "[dim]-[/dim]",
        )

    console.print(table)


@cli.command("status")
@click.argument("database_url")
@click.option("--models", multiple=True, help="Module defining paranoid models")
@click.option("--type", "type_names", multiple=True, help="Limit to these models")
def status(
    database_url: str, models: Tuple[str, ...], type_names: Tuple[str, ...]
) -> None:
    """Show live and deleted record counts per paranoid model."""
    _load_models(models)

    registered = _paranoid_types(type_names)
    if not registered:
        console.print("[yellow]No matching paranoid models[/yellow]")
        sys.exit(1)

    engine = create_engine(database_url)
    table = Table(title="Soft Delete Status", show_header=True)
    table.add_column("Model", style="cyan")
    table.add_column("Live", justify="right", style="green")
    table.add_column("Deleted", justify="right", style="red")

    with Session(engine) as session:
        for name, model in registered:
            try:
                live = _count(session, model, model.live_predicate())
                deleted = _count(session, model, model.deleted_predicate())
            except SQLAlchemyError as e:
                session.rollback()
                table.add_row(name, "[dim]n/a[/dim]", f"[dim]{type(e).__name__}[/dim]")
                continue
            table.add_row(name, str(live), str(deleted))

    engine.dispose()
    console.print(table)


@cli.command("purge")
@click.argument("database_url")
@click.option("--type", "type_name", required=True, help="Model to purge")
@click.option(
    "--older-than-days",
    type=int,
    default=None,
    help="Only purge records deleted more than this many days ago",
)
@click.option("--models", multiple=True, help="Module defining paranoid models")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def purge(
    database_url: str,
    type_name: str,
    older_than_days: Optional[int],
    models: Tuple[str, ...],
    yes: bool,
) -> None:
    """Permanently remove soft-deleted records of one model.

    Rows are deleted in bulk. Hooks do not run and nothing cascades, so
    dependents of the purged rows must be purged first or handled by
    the database's foreign keys.
    """
    _load_models(models)

    try:
        model = type_registry.resolve(type_name)
    except UnknownTypeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not is_paranoid(model):
        console.print(f"[red]{type_name} is not a paranoid model[/red]")
        sys.exit(1)

    conditions = [model.deleted_predicate()]
    if older_than_days is not None:
        if not model.__paranoid_policy__.is_time:
            console.print(
                f"[red]--older-than-days needs a time marker; "
                f"{type_name} uses {model.__paranoid_policy__.column_type.value}[/red]"
            )
            sys.exit(1)
        cutoff = utcnow() - timedelta(days=older_than_days)
        conditions.append(model.paranoid_filter().deleted_before_time(cutoff))

    engine = create_engine(database_url)
    try:
        with Session(engine) as session, session.begin():
            candidates = _count(session, model, and_(*conditions))
            if candidates == 0:
                console.print(f"[green]No deleted {type_name} records to purge[/green]")
                return

            if not yes:
                click.confirm(
                    f"Permanently remove {candidates} {type_name} record(s)?",
                    abort=True,
                )

            removed = model.bulk_purge(session, *conditions)
    except SQLAlchemyError as e:
        console.print(f"[red]Purge failed: {e}[/red]")
        sys.exit(1)
    finally:
        engine.dispose()

    console.print(f"[green]✓ Purged {removed} {type_name} record(s)[/green]")


if __name__ == "__main__":
    cli()
