"""Database engine, session helpers and dev schema sync using SQLModel."""

import logging
import os
from datetime import datetime
from enum import Enum
from pathlib import Path

from sqlalchemy import Column, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.dialects.sqlite import dialect as sqlite_dialect
from sqlmodel import Session, SQLModel, create_engine

logger = logging.getLogger(__name__)

DB_PATH = Path(__file__).parent / "taskboard.db"
DATABASE_URL = os.getenv("TASKBOARD_DATABASE_URL", f"sqlite:///{DB_PATH}")


def build_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine; SQLite connections are shared with the request thread pool."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=False, **kwargs)


engine = build_engine()


def _column_ddl_type(column: Column) -> str:
    return column.type.compile(dialect=sqlite_dialect())


def _default_clause(column: Column) -> str:
    """DEFAULT clause for a NOT NULL column added to a populated SQLite table.

    Scalar model defaults are reused, so a new ``revision`` counter starts
    at 0 on every existing project.
    """
    if column.nullable:
        return ""
    if column.default is not None and column.default.is_scalar:
        return f" DEFAULT {_sql_literal(column.default.arg)}"
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        python_type = str
    return " DEFAULT " + _FALLBACK_LITERALS.get(python_type, "''")


_FALLBACK_LITERALS = {
    bool: "0",
    int: "0",
    float: "0.0",
    datetime: "'1970-01-01 00:00:00'",
}


def _sql_literal(value) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (bool, int, float)):
        return str(int(value) if isinstance(value, bool) else value)
    return "'{}'".format(str(value).replace("'", "''"))


def _diff_table(db_engine: Engine, table) -> tuple[set, set, set]:
    """Return (added, removed, retyped) column names between model and database."""
    db_columns = {
        col["name"]: col for col in inspect(db_engine).get_columns(table.name)
    }
    model_columns = {col.name: col for col in table.columns}

    added = set(model_columns) - set(db_columns)
    removed = set(db_columns) - set(model_columns)
    retyped = set()
    for name in set(db_columns) & set(model_columns):
        db_type = str(db_columns[name]["type"]).upper()
        model_type = _column_ddl_type(model_columns[name]).upper()
        if db_type != model_type:
            logger.debug(
                "Type mismatch on '%s.%s': db=%s model=%s",
                table.name, name, db_type, model_type,
            )
            retyped.add(name)
    return added, removed, retyped


def sync_schema(db_engine: Engine) -> None:
    """Bring existing tables in line with the SQLModel metadata.

    Added columns are appended with ALTER TABLE. Removed or retyped columns
    drop and recreate the table, which loses its rows (dev databases only).
    """
    existing = set(inspect(db_engine).get_table_names())

    for table in SQLModel.metadata.sorted_tables:
        if table.name not in existing:
            continue
        added, removed, retyped = _diff_table(db_engine, table)
        if not (added or removed or retyped):
            continue

        if added and not (removed or retyped):
            logger.info("Adding columns to '%s': %s", table.name, sorted(added))
            with db_engine.begin() as conn:
                for name in sorted(added):
                    col = table.columns[name]
                    not_null = "" if col.nullable else " NOT NULL"
                    stmt = (
                        f'ALTER TABLE "{table.name}" ADD COLUMN "{name}" '
                        f"{_column_ddl_type(col)}{not_null}{_default_clause(col)}"
                    )
                    logger.info("  %s", stmt)
                    conn.execute(text(stmt))
            continue

        logger.warning(
            "Recreating table '%s' (added=%s removed=%s retyped=%s); rows will be lost",
            table.name, sorted(added), sorted(removed), sorted(retyped),
        )
        with db_engine.begin() as conn:
            conn.execute(text(f'DROP TABLE "{table.name}"'))
        table.create(db_engine)


def create_db_and_tables(db_engine: Engine = engine) -> None:
    """Create all tables from SQLModel metadata, then sync schema drift."""
    SQLModel.metadata.create_all(db_engine)
    sync_schema(db_engine)


def get_session():
    """Yield a database session for FastAPI dependency injection."""
    with Session(engine) as session:
        yield session
