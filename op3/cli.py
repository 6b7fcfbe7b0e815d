import os
from pathlib import Path

import click

PACKAGE_DIR = Path(__file__).parent
ALEMBIC_INI = PACKAGE_DIR / "server" / "alembic.ini"


@click.group()
def main() -> None:
    """OP3 - multi-tenant chat workspaces backend."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: OP3_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: OP3_PORT or 3005).")
@click.option("--reload", is_flag=True, default=False, help="Restart on code changes.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    from op3.server.settings import get_settings

    settings = get_settings()
    uvicorn.run(
        "op3.server.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        # loguru owns the output; uvicorn records are intercepted.
        log_level="warning",
    )


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


def run_alembic(command_name: str, *args: object, **kwargs: object) -> None:
    """Invoke one ``alembic.command`` function against the packaged scripts."""
    from alembic import command
    from alembic.config import Config

    from op3.server.log import setup_logging
    from op3.server.settings import Op3Settings

    settings = Op3Settings()
    if not settings.database_url:
        raise click.ClickException("OP3_DATABASE_URL is not set (or pass --database-url).")
    setup_logging(settings.log_level)

    cfg = Config(str(ALEMBIC_INI))
    cfg.attributes["configure_logger"] = False
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    getattr(command, command_name)(cfg, *args, **kwargs)


@main.group()
@click.option("--database-url", default=None, help="Overrides OP3_DATABASE_URL for this command.")
def db(database_url: str | None) -> None:
    """Apply and inspect schema migrations."""
    if database_url:
        os.environ["OP3_DATABASE_URL"] = database_url


@db.command()
@click.option("--revision", default="head", show_default=True, help="Target revision.")
def upgrade(revision: str) -> None:
    """Migrate the schema forward."""
    run_alembic("upgrade", revision)
    click.echo(f"Database upgraded to {revision}.")


@db.command()
@click.option("--revision", default="-1", show_default=True, help="Target revision.")
def downgrade(revision: str) -> None:
    """Roll the schema back."""
    run_alembic("downgrade", revision)
    click.echo(f"Database downgraded to {revision}.")


@db.command()
@click.argument("message")
def migrate(message: str) -> None:
    """Autogenerate a revision from the ORM tables."""
    run_alembic("revision", message=message, autogenerate=True)
    click.echo(f"Migration generated: {message}")


@db.command()
def current() -> None:
    """Print the revision the database is at."""
    run_alembic("current", verbose=True)


@db.command()
def history() -> None:
    """List known revisions."""
    run_alembic("history", verbose=True)


if __name__ == "__main__":
    main()
