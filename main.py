#!/usr/bin/env python3
"""
Asset Registry: CLI entry point.

Usage examples:
  python main.py migrate                       # Apply pending schema migrations
  python main.py status                        # Schema version and row counts
  python main.py serve                         # Run the API (API_HOST / API_PORT)
  python main.py serve --port 8080
  python main.py -v migrate --db data/other.db
"""
import logging
import sqlite3
import sys
from pathlib import Path

import click

from config import Config


def _setup_logging(verbose: bool, level_name: str = "INFO") -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", "db_path", default=None, type=click.Path(), help="SQLite database file (default: DB_PATH)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db_path: str | None) -> None:
    """Asset Registry: purchase orders, PARs and inventory."""
    config = Config()
    if db_path:
        config.db_path = Path(db_path)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config
    _setup_logging(verbose, config.log_level)


# --------------------------------------------------------------------
# migrate command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def migrate(ctx: click.Context) -> None:
    """Apply pending schema migrations to the database."""
    from registry.database import Database

    config: Config = ctx.obj["config"]
    db = Database(config.db_path, timeout=config.db_timeout)
    try:
        applied = db.migrate()
    except sqlite3.Error as e:
        click.echo(f"✗ Migration failed: {e}", err=True)
        sys.exit(1)

    if applied:
        click.echo(f"✓ Applied migrations: {', '.join(str(v) for v in applied)}")
    else:
        click.echo("✓ Schema already up to date")
    click.echo(f"  Database:        {config.db_path}")
    click.echo(f"  Schema version:  {db.schema_version()}")


# --------------------------------------------------------------------
# status command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show schema version and row counts."""
    from registry.database import Database
    from registry.migrations import MIGRATIONS

    config: Config = ctx.obj["config"]
    click.echo("\n=== Asset Registry Status ===\n")
    click.echo(f"  Database:  {config.db_path}")

    if not config.db_path.exists():
        click.echo("  ✗ Database file not found, run `python main.py migrate`\n")
        sys.exit(1)

    db = Database(config.db_path, timeout=config.db_timeout)
    version = db.schema_version()
    latest = max(m.version for m in MIGRATIONS)
    tick = "✓" if version == latest else "✗"
    click.echo(f"  Schema:    {tick} version {version} of {latest}")
    if version < latest:
        click.echo("     → Run `python main.py migrate`")
        click.echo()
        return

    click.echo()
    for table, count in db.table_counts().items():
        click.echo(f"  {table:<36} {count}")
    click.echo()


# --------------------------------------------------------------------
# serve command
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST or 127.0.0.1)")
@click.option("--port", "-p", default=None, type=int, help="Port (default: API_PORT or 8000)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the JSON API under uvicorn."""
    import uvicorn

    from api.app import create_app

    config: Config = ctx.obj["config"]
    if host:
        config.api_host = host
    if port is not None:
        config.api_port = port

    click.echo(
        f"\n  Serving:   http://{config.api_host}:{config.api_port}/api\n"
        f"  Database:  {config.db_path}\n"
    )
    app = create_app(config)
    uvicorn.run(
        app,
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
