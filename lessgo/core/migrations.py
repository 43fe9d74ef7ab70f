"""Schema migration run every time the store opens.

Tables that do not exist yet are created; columns added to a model after
the store was first created are patched in with ``ALTER TABLE``. The
outcome is stamped into ``schema_meta``.
"""
from typing import TYPE_CHECKING, List

from sqlalchemy import Column, MetaData, String, Table, inspect, select, text
from sqlalchemy.exc import SQLAlchemyError

from lessgo.core.database import Base
from lessgo.core.errors import MigrationError
from lessgo.core.log import get_logger

if TYPE_CHECKING:
    from lessgo.core.database import Store

SCHEMA_VERSION = 3

logger = get_logger("lessgo.migrations")

meta = MetaData()
schema_meta = Table(
    "schema_meta",
    meta,
    Column("key", String(50), primary_key=True),
    Column("value", String(255), nullable=False),
)


def _load_models() -> None:
    # tables register themselves on Base.metadata when their module is imported
    from lessgo.models import chat, draft, favorite, listing, listing_image, message, user  # noqa: F401


def _literal_default(column) -> str:
    default = column.default
    if default is None or not default.is_scalar:
        return ""
    value = default.arg
    if isinstance(value, bool):
        return f" DEFAULT {int(value)}"
    if isinstance(value, (int, float)):
        return f" DEFAULT {value}"
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f" DEFAULT '{escaped}'"
    return ""


def pending_columns(engine) -> List[tuple]:
    """(table, column) pairs the models declare but the store lacks."""
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    missing = []
    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue
        have = {c["name"] for c in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name not in have:
                missing.append((table, column))
    return missing


def _migrate(engine) -> None:
    Base.metadata.create_all(bind=engine)
    meta.create_all(bind=engine)

    with engine.begin() as conn:
        for table, column in pending_columns(engine):
            col_type = column.type.compile(dialect=engine.dialect)
            conn.execute(
                text(
                    f"ALTER TABLE {table.name} ADD COLUMN {column.name} {col_type}"
                    f"{_literal_default(column)}"
                )
            )
            logger.info("Added column %s.%s", table.name, column.name)

        current = conn.execute(
            select(schema_meta.c.value).where(schema_meta.c.key == "schema_version")
        ).scalar()
        if current is None:
            conn.execute(schema_meta.insert().values(key="schema_version", value=str(SCHEMA_VERSION)))
        elif current != str(SCHEMA_VERSION):
            conn.execute(
                schema_meta.update()
                .where(schema_meta.c.key == "schema_version")
                .values(value=str(SCHEMA_VERSION))
            )
            logger.info("Schema migrated from version %s to %s", current, SCHEMA_VERSION)


def schema_version(engine) -> int:
    with engine.connect() as conn:
        value = conn.execute(
            select(schema_meta.c.value).where(schema_meta.c.key == "schema_version")
        ).scalar()
    return int(value) if value is not None else 0


def run_migrations(store: "Store", allow_destructive_reset: bool = False) -> None:
    _load_models()
    try:
        _migrate(store.engine)
    except SQLAlchemyError as e:
        if not allow_destructive_reset:
            raise MigrationError(f"Schema migration failed: {e}") from e
        logger.error("Schema migration failed (%s); recreating the store", e)
        store.reset()
        meta.create_all(bind=store.engine)
        with store.engine.begin() as conn:
            conn.execute(schema_meta.delete())
            conn.execute(schema_meta.insert().values(key="schema_version", value=str(SCHEMA_VERSION)))
