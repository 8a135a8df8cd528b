"""
Reconcile normalized records into the local store, keyed on natural keys.

Two strategies are available:

- ``upsert_many``: INSERT ... ON CONFLICT (natural key) DO UPDATE for a whole
  batch inside one transaction. Any failure rolls the batch back.
- ``upsert_by_lookup``: per-record existence check on the natural key, then
  UPDATE of the first match or INSERT. Not atomic across the check-then-act
  gap; kept for the PMS entities when explicitly configured.

Both strategies leave ``created_at`` untouched on update and always stamp
``updated_at`` with the write time.
"""

from typing import Any, Dict, Mapping, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal
import logging

from sqlalchemy import Column, insert, select, update
from sqlalchemy import types as sqltypes
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import ConfigurationError, NormalizationError, SchemaMismatchError, UpsertError
from ingestion.entities import EntityDefinition
from models.base import utcnow

logger = logging.getLogger(__name__)

UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

BATCH = "batch"
LOOKUP = "lookup"
STRATEGIES = (BATCH, LOOKUP)


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def coerce_value(column: Column, value: Any) -> Any:
    """
    Convert a normalized value to the Python type the column binds.

    ISO strings become date/datetime, numbers become strings for text
    columns and 0/1 become booleans. Drivers such as asyncpg do not coerce.
    """
    if value is None:
        return None
    column_type = column.type
    try:
        if isinstance(column_type, sqltypes.DateTime):
            if isinstance(value, str):
                return _parse_datetime(value) if value.strip() else None
            if isinstance(value, datetime):
                return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value
            if isinstance(value, date):
                return datetime(value.year, value.month, value.day)
        elif isinstance(column_type, sqltypes.Date):
            if isinstance(value, str):
                return _parse_datetime(value).date() if value.strip() else None
            if isinstance(value, datetime):
                return value.date()
        elif isinstance(column_type, sqltypes.Boolean):
            if isinstance(value, str):
                return value.strip().lower() in ("true", "1", "yes", "y", "t")
            if isinstance(value, (int, float, Decimal)):
                return bool(value)
        elif isinstance(column_type, sqltypes.Integer):
            if isinstance(value, str):
                return int(value.strip())
            if isinstance(value, (float, Decimal)):
                if value != int(value):
                    raise ValueError(f"{value!r} is not a whole number")
                return int(value)
        elif isinstance(column_type, sqltypes.Numeric):
            if isinstance(value, (str, Decimal, int)) and not isinstance(value, bool):
                return float(value)
        elif isinstance(column_type, sqltypes.String):
            if not isinstance(value, str):
                return str(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise NormalizationError(
            f"Cannot convert {value!r} for column {column.name}",
            context={"field_name": column.name, "column_type": str(column_type)},
            original_exception=e
        )
    return value


class UpsertReconciler:
    """Writes records to the table of an entity definition."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    def bind_record(self, entity: EntityDefinition, record: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate a record against the table and coerce its values.

        Raises:
            SchemaMismatchError: Record has columns the table lacks
            NormalizationError: A value cannot be converted
        """
        columns = entity.table.columns
        unknown = [key for key in record if key not in columns]
        if unknown:
            raise SchemaMismatchError(
                f"{entity.label} record has columns missing from table {entity.table.name}: {', '.join(sorted(unknown))}",
                context={"entity": entity.name, "columns": sorted(unknown)}
            )
        return {key: coerce_value(columns[key], value) for key, value in record.items()}

    def _upsert_statement(self, session: AsyncSession, entity: EntityDefinition, values: Dict[str, Any], now: datetime):
        dialect = session.get_bind().dialect.name
        insert_fn = UPSERT_DIALECTS.get(dialect)
        if insert_fn is None:
            raise ConfigurationError(f"Upsert is not supported on dialect '{dialect}'")

        values = dict(values)
        if values.get("created_at") is None:
            values["created_at"] = now
        values["updated_at"] = now

        stmt = insert_fn(entity.table).values(**values)
        update_columns = {
            key: stmt.excluded[key]
            for key in values
            if key not in entity.natural_key and key not in ("id", "created_at")
        }
        return stmt.on_conflict_do_update(
            index_elements=list(entity.natural_key),
            set_=update_columns,
        )

    async def upsert_many(self, entity: EntityDefinition, records: Sequence[Mapping[str, Any]]) -> int:
        """
        Upsert a batch in one transaction.

        An empty batch is a no-op. On any storage error the whole batch is
        rolled back and UpsertError is raised; the session (and its pooled
        connection) is released on every path.

        Returns:
            Number of records written
        """
        if not records:
            logger.debug(f"No {entity.label} to save")
            return 0

        bound = [self.bind_record(entity, record) for record in records]
        now = utcnow()

        async with self.session_maker() as session:
            try:
                async with session.begin():
                    for values in bound:
                        await session.execute(self._upsert_statement(session, entity, values, now))
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to save {entity.label}: batch of {len(bound)} rolled back "
                    f"({type(e).__name__})"
                )
                raise UpsertError(
                    f"Batch upsert of {entity.label} failed",
                    context={"entity": entity.name, "record_count": len(bound)},
                    original_exception=e
                )

        logger.info(f"Saved {len(bound)} {entity.label}")
        return len(bound)

    async def upsert_batches(
        self,
        entity: EntityDefinition,
        records: Sequence[Mapping[str, Any]],
        batch_size: int = 1000
    ) -> int:
        """Split records into transactions of at most ``batch_size`` rows."""
        total = 0
        for i in range(0, len(records), batch_size):
            total += await self.upsert_many(entity, records[i:i + batch_size])
        return total

    async def upsert_by_lookup(self, entity: EntityDefinition, record: Mapping[str, Any]) -> bool:
        """
        Check-then-branch write of a single record.

        Returns:
            True if an existing row was updated, False if a row was inserted
        """
        values = self.bind_record(entity, record)
        missing = [key for key in entity.natural_key if values.get(key) is None]
        if missing:
            raise SchemaMismatchError(
                f"{entity.label} record lacks natural key columns: {', '.join(missing)}",
                context={"entity": entity.name, "columns": missing}
            )

        table = entity.table
        pk = list(table.primary_key.columns)[0]
        now = utcnow()

        async with self.session_maker() as session:
            try:
                async with session.begin():
                    query = (
                        select(pk)
                        .where(*[table.c[key] == values[key] for key in entity.natural_key])
                        .order_by(pk)
                        .limit(1)
                    )
                    existing_id = (await session.execute(query)).scalar_one_or_none()

                    if existing_id is not None:
                        changes = {
                            key: value for key, value in values.items()
                            if key not in entity.natural_key and key not in (pk.name, "created_at")
                        }
                        changes["updated_at"] = now
                        await session.execute(update(table).where(pk == existing_id).values(**changes))
                        return True

                    new_values = dict(values)
                    if new_values.get("created_at") is None:
                        new_values["created_at"] = now
                    new_values["updated_at"] = now
                    await session.execute(insert(table).values(**new_values))
                    return False
            except SQLAlchemyError as e:
                logger.error(f"Failed to save {entity.label} record ({type(e).__name__})")
                raise UpsertError(
                    f"Lookup upsert of {entity.label} failed",
                    context={"entity": entity.name, "record_count": 1},
                    original_exception=e
                )

