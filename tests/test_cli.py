"""Tests for the ``op3`` command line."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner
from loguru import logger
from sqlalchemy import create_engine, inspect

from op3.cli import main


@pytest.fixture(autouse=True)
def _reset_loguru() -> Iterator[None]:
    """Migration commands point loguru at the runner's stderr; undo that."""
    yield
    logger.remove()
    logger.add(sys.stderr)


def table_names(db_path: Path) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def column_names(db_path: Path, table: str) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        return {c["name"] for c in inspect(engine).get_columns(table)}
    finally:
        engine.dispose()


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output
    assert "db" in result.output


def test_db_commands_require_a_database_url() -> None:
    result = CliRunner().invoke(main, ["db", "upgrade"])
    assert result.exit_code == 1
    assert "OP3_DATABASE_URL is not set" in result.output


def test_upgrade_and_downgrade(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # --database-url writes the environment; setenv first so it is restored afterwards.
    monkeypatch.setenv("OP3_DATABASE_URL", "sqlite+aiosqlite:///unused.db")
    db_path = tmp_path / "op3.db"
    runner = CliRunner()

    result = runner.invoke(main, ["db", "--database-url", f"sqlite+aiosqlite:///{db_path}", "upgrade"])
    assert result.exit_code == 0, result.output
    assert "Database upgraded to head." in result.output
    assert {"users", "workspaces", "workspace_groups", "chat_sessions", "alembic_version"} <= table_names(db_path)
    assert "is_active" in column_names(db_path, "users")

    result = runner.invoke(main, ["db", "--database-url", f"sqlite+aiosqlite:///{db_path}", "downgrade"])
    assert result.exit_code == 0, result.output
    assert "is_active" not in column_names(db_path, "users")

    args = ["db", "--database-url", f"sqlite+aiosqlite:///{db_path}", "downgrade", "--revision", "base"]
    result = runner.invoke(main, args)
    assert result.exit_code == 0, result.output
    assert table_names(db_path) == {"alembic_version"}
