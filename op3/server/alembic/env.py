"""Alembic environment for the OP3 schema.

The target database comes from ``OP3_DATABASE_URL``.  Migrations run on a
synchronous engine, so the async driver in that URL is replaced:
``sqlite+aiosqlite`` becomes plain ``sqlite`` and any PostgreSQL URL uses
psycopg3.
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, make_url, pool

from op3.server.db.tables import Base
from op3.server.settings import Op3Settings

SYNC_DRIVERS = {"sqlite": "sqlite", "postgresql": "postgresql+psycopg"}

config = context.config
# The op3 CLI routes alembic output through loguru instead.
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def sync_url() -> str:
    database_url = Op3Settings().database_url
    if not database_url:
        raise RuntimeError("OP3_DATABASE_URL is not set. Cannot run migrations.")
    url = make_url(database_url)
    driver = SYNC_DRIVERS.get(url.get_backend_name())
    if driver is not None:
        url = url.set(drivername=driver)
    return url.render_as_string(hide_password=False)


def include_object(obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any) -> bool:
    # Never autogenerate DROP TABLE for tables this project does not own.
    return not (type_ == "table" and reflected and compare_to is None)


def configure(**options: Any) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        **options,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline(url: str) -> None:
    """Emit SQL to stdout instead of executing it."""
    configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=make_url(url).get_backend_name() == "sqlite",
    )


def run_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        # SQLite cannot ALTER most constraints in place; batch mode copies the table.
        configure(
            connection=connection,
            compare_server_default=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
    engine.dispose()


if context.is_offline_mode():
    run_offline(sync_url())
else:
    run_online(sync_url())
