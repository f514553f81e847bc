"""Database helper utilities for ensuring schema consistency."""
from __future__ import annotations

from typing import Iterable, Set

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db


# Columns added to ``users`` after the first release, with the DDL fragment
# used to backfill them on older databases.
_CREDIT_COLUMNS = {
    "subscription_tier": "VARCHAR(20) NOT NULL DEFAULT 'free'",
    "monthly_chapter_credits": "INTEGER NOT NULL DEFAULT 5",
    "monthly_image_credits": "INTEGER NOT NULL DEFAULT 30",
    "credits_used_this_month": "INTEGER NOT NULL DEFAULT 0",
    "images_used_this_month": "INTEGER NOT NULL DEFAULT 0",
}


def _get_column_names(table_name: str) -> Set[str]:
    inspector = inspect(db.engine)
    return {column["name"] for column in inspector.get_columns(table_name)}


def ensure_database_schema() -> None:
    """Ensure that essential schema updates are applied.

    The function is light-weight so it can run on every application start.
    It creates missing tables and makes sure the ``users`` table carries the
    subscription and credit counter columns read by the generation gate.
    """

    try:
        inspector = inspect(db.engine)
        table_names: Iterable[str] = inspector.get_table_names()

        if "users" not in table_names:
            db.create_all()
            inspector = inspect(db.engine)
            table_names = inspector.get_table_names()

        # Import locally to avoid circular import issues during application setup.
        from .models import Chapter, Character, PromptLog, Project

        required_tables = {
            "projects": Project.__table__,
            "chapters": Chapter.__table__,
            "characters": Character.__table__,
            "prompts_log": PromptLog.__table__,
        }

        for table_name, table in required_tables.items():
            if table_name not in table_names:
                table.create(bind=db.engine)

        user_columns = _get_column_names("users")
        for column_name, ddl in _CREDIT_COLUMNS.items():
            if column_name not in user_columns:
                with db.engine.begin() as connection:
                    connection.execute(text(f"ALTER TABLE users ADD COLUMN {column_name} {ddl}"))
    except SQLAlchemyError:
        # Refuse to continue with a partially configured schema.
        raise
