"""
Database migrations for the assembly tracker.

Uses ALTER TABLE ADD COLUMN for incremental schema evolution. Each migration
is idempotent: columns are only added if absent.

Called automatically from build_engine() after create_all(). On a fresh
database every column already exists and nothing happens; the hooks let a
store created with a narrower assemblypart or delivery table (no identity
classification, no extra attributes, no delivery times) pick up the newer
columns without manual steps.
"""
from sqlalchemy import inspect, text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times; checks column existence before altering.

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        # AssemblyPart: identity classification (ifc / ms / synthetic) and its origin
        _add_column_if_missing(conn, "assemblypart", "identity_kind", "VARCHAR DEFAULT 'synthetic'")
        _add_column_if_missing(conn, "assemblypart", "identity_source", "VARCHAR")

        # AssemblyPart: properties outside the canonical field set
        _add_column_if_missing(conn, "assemblypart", "extra_attributes_json", "TEXT")

        # Delivery: optional arrival / unloading times
        _add_column_if_missing(conn, "delivery", "arrival_time", "TIME")
        _add_column_if_missing(conn, "delivery", "unloading_time", "TIME")

        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if it doesn't already exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name (lowercase, as SQLModel names it).
        column: Column name to add.
        col_type: SQL type string, e.g. "INTEGER", "REAL", "TEXT".
    """
    existing_columns = {col["name"] for col in inspect(conn).get_columns(table)}
    if column not in existing_columns:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))
