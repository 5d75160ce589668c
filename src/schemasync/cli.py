"""
Command-line interface for schemasync.
"""

import asyncio
import sys
from functools import wraps
from typing import List

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .backends import BackendFactory
from .client import HttpCatalogClient
from .config import SchemaSyncConfig
from .exceptions import SchemaSyncError
from .logger import RunLogger, configure_logging
from .schema.operations import RunMode
from .schema.reconciler import RunResult, SchemaReconciler


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SchemaSyncError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _load_config(path: str) -> SchemaSyncConfig:
    config = SchemaSyncConfig.from_yaml(path)
    config.validate_config()
    configure_logging(config.logging)
    return config


async def _run(config: SchemaSyncConfig, mode: RunMode, remove: bool) -> List[RunResult]:
    """Run every configured backend; remove walks them in reverse order."""
    run_logger = RunLogger(console=console)
    results = []
    for backend in BackendFactory.create_backends(config, reverse=remove):
        async with HttpCatalogClient(backend.config.client) as client:
            reconciler = SchemaReconciler(client, backend, run_logger, mode)
            if remove:
                results.append(await reconciler.remove())
            else:
                results.append(await reconciler.deploy())
    return results


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """schemasync: declarative schema reconciliation for remote catalogs."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--preview",
    is_flag=True,
    help="Report what would change without applying it",
)
@click.option(
    "--dry-run",
    "dry_run",
    is_flag=True,
    help="Like --preview, and also print the rendered steps",
)
@handle_errors
def deploy(config: str, preview: bool, dry_run: bool):
    """Converge the remote catalog to the configuration."""
    schemasync_config = _load_config(config)

    if dry_run:
        mode = RunMode.DRY_RUN
    elif preview:
        mode = RunMode.PREVIEW
    else:
        mode = RunMode.APPLY

    asyncio.run(_run(schemasync_config, mode, remove=False))


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--preview",
    is_flag=True,
    help="Report what would be deleted without deleting it",
)
@handle_errors
def remove(config: str, preview: bool):
    """Delete every owned object whose retention policy allows it."""
    schemasync_config = _load_config(config)
    mode = RunMode.PREVIEW if preview else RunMode.APPLY
    asyncio.run(_run(schemasync_config, mode, remove=True))


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    schemasync_config = SchemaSyncConfig.from_yaml(config)
    schemasync_config.validate_config()

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(schemasync_config)


def _display_config_summary(config: SchemaSyncConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    table = Table(title="Catalog Sections")
    table.add_column("Section", style="cyan")
    table.add_column("Endpoint", style="magenta")
    table.add_column("Collections", style="green")
    table.add_column("Indexes", style="green")
    table.add_column("Functions", style="green")
    table.add_column("Roles", style="green")
    table.add_column("Retention", style="yellow")

    for section in config.sections:
        settings = getattr(config, section)
        indexes = getattr(settings, "indexes", None)
        table.add_row(
            section,
            settings.client.base_url,
            str(len(settings.collections)),
            "-" if indexes is None else str(len(indexes)),
            str(len(settings.functions)),
            str(len(settings.roles)),
            settings.retention_policy,
        )

    console.print(table)


if __name__ == "__main__":
    main()
