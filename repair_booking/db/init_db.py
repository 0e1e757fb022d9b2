"""Database initialization utilities."""

import logging

from sqlalchemy import Engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from repair_booking.db import models  # noqa: F401 - ensure model metadata is registered
from repair_booking.db.session import Base, engine as default_engine

logger = logging.getLogger(__name__)

ACTIVE_OCCURRENCE_WHERE = "status != 'CANCELLED'"


def _table_exists(engine: Engine, table_name: str) -> bool:
    return table_name in inspect(engine).get_table_names()


def _has_duplicate_rows(
    engine: Engine,
    table_name: str,
    columns: list[str],
    where_clause: str | None = None,
) -> bool:
    if not _table_exists(engine, table_name):
        return False

    columns_sql = ", ".join(columns)
    where_sql = f" WHERE {where_clause}" if where_clause else ""
    duplicate_query = (
        f"SELECT 1 FROM {table_name}"
        f"{where_sql} "
        f"GROUP BY {columns_sql} "
        "HAVING COUNT(*) > 1 "
        "LIMIT 1"
    )
    with engine.connect() as connection:
        return connection.execute(text(duplicate_query)).first() is not None


def _ensure_unique_index_if_clean(
    engine: Engine,
    table_name: str,
    index_name: str,
    columns: list[str],
    where_clause: str | None = None,
) -> bool:
    """Create a (partial) unique index unless existing rows already violate it."""
    if not _table_exists(engine, table_name):
        return False

    if _has_duplicate_rows(engine, table_name=table_name, columns=columns, where_clause=where_clause):
        logger.warning(
            "Skipping unique index %s on %s due to duplicate existing data.",
            index_name,
            table_name,
        )
        return False

    columns_sql = ", ".join(columns)
    where_sql = f" WHERE {where_clause}" if where_clause else ""
    with engine.begin() as connection:
        connection.execute(
            text(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} "
                f"ON {table_name} ({columns_sql}){where_sql}"
            )
        )
    return True


def init_db(engine: Engine = default_engine) -> None:
    """Create tables and make sure the slot-occurrence guard exists.

    Tables created by an older build may predate the partial unique index;
    without it concurrent reservations could double-book a slot.
    """
    try:
        Base.metadata.create_all(bind=engine)

        _ensure_unique_index_if_clean(
            engine,
            table_name="bookings",
            index_name="uq_bookings_active_slot_occurrence",
            columns=["slot_id", "scheduled_date"],
            where_clause=ACTIVE_OCCURRENCE_WHERE,
        )
        _ensure_unique_index_if_clean(
            engine,
            table_name="bookings",
            index_name="uq_bookings_active_quote",
            columns=["quote_id"],
            where_clause=f"quote_id IS NOT NULL AND {ACTIVE_OCCURRENCE_WHERE}",
        )
    except SQLAlchemyError:
        logger.exception("Database initialization failed.")
        raise
