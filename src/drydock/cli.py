"""
Command-line interface for Drydock

Starts throwaway PostgreSQL instances by hand and cleans up containers
left behind by test runs that never reached their teardown.
"""

import sys
import time
from pathlib import Path
from typing import Optional

import click

from . import __author__, __version__
from .config import DrydockSettings, InstanceConfig, load_config
from .container_engine import create_engine
from .container_management import TeardownController
from .errors import DrydockError
from .instance import Drydock
from .logging_config import setup_logging


@click.group()
@click.option(
    "--config-file",
    type=click.Path(exists=True, path_type=Path),
    help="Path to YAML configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set logging level",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=None,
    help="Enable verbose output",
)
@click.option(
    "--log-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory for log files",
)
@click.option(
    "--runtime",
    type=click.Choice(["docker", "podman"], case_sensitive=False),
    default=None,
    help="Container runtime to use",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[Path],
    log_level: Optional[str],
    verbose: Optional[bool],
    log_dir: Optional[Path],
    runtime: Optional[str],
) -> None:
    """
    Drydock: disposable PostgreSQL containers for tests
    """
    try:
        config = load_config(
            config_file=str(config_file) if config_file else None,
            cli_overrides={
                k: v for k, v in {
                    "log_level": log_level.upper() if log_level else None,
                    "verbose": verbose,
                    "log_dir": str(log_dir) if log_dir else None,
                    "container_runtime": runtime,
                }.items() if v is not None
            },
        )
    except ValueError as e:
        click.echo(f"❌ Invalid configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(
        log_dir=config.log_dir,
        verbose=config.verbose,
        log_level=config.log_level,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("image", required=False)
@click.option("--port", type=int, default=None, help="Fixed host port (default: free port)")
@click.option("--password", default=None, help="Fixed superuser password (default: random)")
@click.option("--database", "database_name", default=None, help="Also create a database with this name")
@click.option("--new-database", is_flag=True, help="Also create a database with a generated name")
@click.option("--hold/--no-hold", default=True, help="Keep the instance running until interrupted")
@click.pass_context
def up(
    ctx: click.Context,
    image: Optional[str],
    port: Optional[int],
    password: Optional[str],
    database_name: Optional[str],
    new_database: bool,
    hold: bool,
) -> None:
    """Start a PostgreSQL instance and print how to connect to it.

    IMAGE: Image as repository:tag (default from configuration)
    """
    config: DrydockSettings = ctx.obj["config"]

    try:
        instance_config = InstanceConfig(
            image=image or config.default_image,
            port=port,
            password=password,
        )
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    dd = None
    try:
        dd = Drydock.from_config(instance_config, settings=config)
        click.echo(f"🚀 Starting {instance_config.image} on port {dd.port}...")
        dd.start()

        dbname = None
        if database_name or new_database:
            dbname = dd.new_database(database_name)

        click.echo(f"✅ PostgreSQL is ready ({dd.container_name})")
        if dbname:
            click.echo(f"   Database: {dbname}")
        click.echo(f"   DSN:  {dd.dsn(dbname)}")
        click.echo(f"   URL:  {dd.database_url(dbname)}")
        if dbname:
            click.echo(f"   JDBC: {dd.jdbc_url(dbname)}")

        if hold:
            click.echo("Press Ctrl+C to stop")
            try:
                while True:
                    time.sleep(1)
            except KeyboardInterrupt:
                click.echo("\nShutting down...")

    except DrydockError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        if dd is not None:
            dd.terminate()
            click.echo("🧹 Instance removed")


@cli.command()
@click.option("--dry-run", is_flag=True, help="Only list the containers that would be removed")
@click.pass_context
def cleanup(ctx: click.Context, dry_run: bool) -> None:
    """Remove containers left behind by aborted test runs."""
    config: DrydockSettings = ctx.obj["config"]
    engine = create_engine(config)

    try:
        removed = TeardownController(engine).cleanup_orphans(
            config.container_name_prefix, dry_run=dry_run
        )
    except DrydockError as e:
        click.echo(f"❌ Cleanup failed: {e}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    if not removed:
        click.echo(f"No {config.container_name_prefix}-* containers found")
        return

    verb = "Would remove" if dry_run else "Removed"
    for name in removed:
        click.echo(f"   {verb} {name}")
    click.echo(f"✅ {verb} {len(removed)} container(s)")


@cli.command("config-show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: DrydockSettings = ctx.obj["config"]

    click.echo("Current Drydock Configuration")
    click.echo("=" * 30)
    for key, value in config.get_display_values().items():
        click.echo(f"{key.replace('_', ' ').title():<24} {value}")


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"Drydock version {__version__}")
    click.echo(f"Author: {__author__}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
