"""
Load parsed records into PostgreSQL in bounded, idempotent batches
"""

import enum
import json
import time
from typing import Any, Dict, List, Optional, Sequence, Type, Union
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert
from core.config import settings
import logging

logger = logging.getLogger(__name__)

Record = Union[Dict[str, Any], BaseModel]

# asyncpg limit on bind parameters per statement
MAX_QUERY_PARAMETERS = 32767


class ConflictPolicy(str, enum.Enum):
    """What to do when a row's natural key already exists"""
    DO_NOTHING = "do_nothing"  # append-only ingestion
    DO_UPDATE = "do_update"    # upsertable derived content


class PostgresLoader:
    """
    Insert records with INSERT ... ON CONFLICT in fixed-size batches.

    Ensures:
    - No duplicate rows on repeated or concurrent runs (natural-key indexes)
    - Only rows actually written are counted (RETURNING)
    - Each batch is committed on its own; a failing batch is rolled back
      and its error re-raised unchanged
    """

    def __init__(self, db_session: AsyncSession, batch_size: Optional[int] = None):
        self.db = db_session
        self.batch_size = batch_size or settings.ETL_BATCH_SIZE

    def _build_statement(
        self,
        model: Type,
        batch: List[Dict[str, Any]],
        conflict: ConflictPolicy,
        key_fields: Optional[Sequence[str]]
    ):
        stmt = insert(model).values(batch)

        if conflict == ConflictPolicy.DO_UPDATE:
            if not key_fields:
                raise ValueError("key_fields are required for DO_UPDATE")
            update_columns = [
                column for column in batch[0].keys()
                if column not in key_fields
            ]
            stmt = stmt.on_conflict_do_update(
                index_elements=list(key_fields),
                set_={column: stmt.excluded[column] for column in update_columns},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(
                index_elements=list(key_fields) if key_fields else None
            )

        return stmt.returning(model.__table__.c.id)

    async def load_batch(
        self,
        model: Type,
        records: Sequence[Record],
        conflict: ConflictPolicy = ConflictPolicy.DO_NOTHING,
        key_fields: Optional[Sequence[str]] = None
    ) -> int:
        """
        Load records in batches of ``batch_size``.

        Args:
            model: ORM model of the target table
            records: Parsed records (dicts or pydantic models)
            conflict: Conflict policy on the natural key
            key_fields: Natural-key columns (conflict target)

        Returns:
            Total number of rows inserted or updated
        """
        if not records:
            return 0

        rows = [
            r.model_dump() if isinstance(r, BaseModel) else dict(r)
            for r in records
        ]
        table_name = model.__tablename__
        batch_size = min(self.batch_size, max(1, MAX_QUERY_PARAMETERS // len(rows[0])))
        total_loaded = 0
        start = time.perf_counter()

        for i in range(0, len(rows), batch_size):
            batch = rows[i:i + batch_size]
            batch_start = time.perf_counter()

            try:
                stmt = self._build_statement(model, batch, conflict, key_fields)
                result = await self.db.execute(stmt)
                count = len(result.fetchall())
                await self.db.commit()
            except Exception as e:
                logger.error(
                    f"Failed to insert batch starting at index {i} into {table_name}: {str(e)[-500:]}"
                )
                logger.error(f"First record in failed batch: {json.dumps(batch[0], default=str)}")
                await self.db.rollback()
                raise

            total_loaded += count
            logger.info(
                f"Batch {i // batch_size + 1}: inserted {count} of {len(batch)} records "
                f"into {table_name} in {int((time.perf_counter() - batch_start) * 1000)}ms. "
                f"Total: {total_loaded}"
            )

        logger.info(
            f"Inserted {total_loaded} record(s) into {table_name} "
            f"in {int((time.perf_counter() - start) * 1000)}ms"
        )
        return total_loaded
