"""
Transactional batch writer for order records.

Each batch is one executemany insert in its own transaction, so a bad row
only costs its batch. Large loads drop the secondary indexes for the
duration of the loop and always rebuild them afterwards.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Iterable, Sequence

from sqlalchemy import Table, delete, insert, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from db.retry import run_in_transaction
from models.orders import ORDER_COLUMNS, Order

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5000
DEFAULT_INDEX_SUSPEND_THRESHOLD = 10000
PROGRESS_EVERY = 10


class DuplicatePolicy(str, Enum):
    ALLOW = "allow"
    SKIP = "skip"


@dataclass
class LoadResult:
    inserted: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.skipped + self.errors


def _secondary_indexes(table: Table) -> list:
    return [ix for ix in table.indexes if not ix.unique]


def _drop_indexes(sync_conn, table: Table) -> list[str]:
    existing = {ix["name"] for ix in inspect(sync_conn).get_indexes(table.name)}
    dropped = []
    for ix in _secondary_indexes(table):
        if ix.name in existing:
            ix.drop(sync_conn)
            dropped.append(ix.name)
    return dropped


def _create_indexes(sync_conn, table: Table, names: Sequence[str]) -> list[str]:
    existing = {ix["name"] for ix in inspect(sync_conn).get_indexes(table.name)}
    created = []
    for ix in _secondary_indexes(table):
        if ix.name in names and ix.name not in existing:
            ix.create(sync_conn)
            created.append(ix.name)
    return created


@asynccontextmanager
async def suspended_indexes(engine: AsyncEngine, table: Table = Order.__table__) -> AsyncIterator[list[str]]:
    """Drop the table's secondary indexes, yield their names, rebuild them on exit."""

    async def _drop(conn: AsyncConnection):
        return await conn.run_sync(_drop_indexes, table)

    dropped = await run_in_transaction(engine, _drop, label="drop indexes")
    logger.warning("Suspended %s indexes on %s for bulk load", len(dropped), table.name)
    try:
        yield dropped
    finally:

        async def _rebuild(conn: AsyncConnection):
            return await conn.run_sync(_create_indexes, table, dropped)

        rebuilt = await run_in_transaction(engine, _rebuild, label="rebuild indexes")
        logger.info("Rebuilt %s indexes on %s", len(rebuilt), table.name)


def _row_for_insert(record: dict[str, Any]) -> dict[str, Any]:
    row = {column: record.get(column) for column in ORDER_COLUMNS}
    if row["quantity"] is None:
        row["quantity"] = 1
    return row


class BatchLoader:
    def __init__(
        self,
        engine: AsyncEngine,
        batch_size: int = DEFAULT_BATCH_SIZE,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.ALLOW,
        index_suspend_threshold: int = DEFAULT_INDEX_SUSPEND_THRESHOLD,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.engine = engine
        self.batch_size = batch_size
        self.duplicate_policy = DuplicatePolicy(duplicate_policy)
        self.index_suspend_threshold = index_suspend_threshold
        self.table = Order.__table__

    async def clear_all(self) -> int:
        async def _work(conn: AsyncConnection) -> int:
            result = await conn.execute(delete(self.table))
            return result.rowcount or 0

        deleted = await run_in_transaction(self.engine, _work, label="clear orders")
        logger.warning("Cleared %s existing orders", deleted)
        return deleted

    async def load(self, records: Sequence[dict[str, Any]], clear_existing: bool = False) -> LoadResult:
        """
        Insert `records` in order, batch by batch.

        Returns counts of inserted, skipped (duplicates under SKIP) and
        errored rows; they always add up to len(records).
        """
        if clear_existing:
            await self.clear_all()

        result = LoadResult()
        if not records:
            return result

        if len(records) > self.index_suspend_threshold:
            async with suspended_indexes(self.engine, self.table):
                await self._load_batches(records, result)
        else:
            await self._load_batches(records, result)

        logger.info(
            "Load finished: inserted=%s skipped=%s errors=%s",
            result.inserted,
            result.skipped,
            result.errors,
        )
        return result

    async def _load_batches(self, records: Sequence[dict[str, Any]], result: LoadResult) -> None:
        seen_ids: set[str] = set()
        total_batches = (len(records) + self.batch_size - 1) // self.batch_size

        for number, start in enumerate(range(0, len(records), self.batch_size), start=1):
            batch = records[start : start + self.batch_size]
            try:
                inserted, skipped, inserted_ids = await run_in_transaction(
                    self.engine,
                    lambda conn: self._write_batch(conn, batch, seen_ids),
                    label=f"batch {number}",
                )
            except (SQLAlchemyError, ConnectionError, TimeoutError) as exc:
                result.errors += len(batch)
                logger.error(
                    "Batch %s/%s failed (%s rows, starting at row %s): %s",
                    number,
                    total_batches,
                    len(batch),
                    start + 1,
                    exc,
                )
            else:
                result.inserted += inserted
                result.skipped += skipped
                seen_ids.update(inserted_ids)

            if number % PROGRESS_EVERY == 0 or number == total_batches:
                logger.info(
                    "Import progress: batch %s/%s, inserted=%s skipped=%s errors=%s",
                    number,
                    total_batches,
                    result.inserted,
                    result.skipped,
                    result.errors,
                )

    async def _write_batch(
        self,
        conn: AsyncConnection,
        batch: Iterable[dict[str, Any]],
        seen_ids: set[str],
    ) -> tuple[int, int, set[str]]:
        rows = [_row_for_insert(record) for record in batch]
        skipped = 0
        batch_ids: set[str] = set()

        if self.duplicate_policy is DuplicatePolicy.SKIP:
            candidate_ids = {row["order_id"] for row in rows if row["order_id"] is not None}
            existing: set[str] = set()
            if candidate_ids:
                found = await conn.execute(
                    select(self.table.c.order_id).where(self.table.c.order_id.in_(candidate_ids))
                )
                existing = {value for (value,) in found}

            kept = []
            for row in rows:
                order_id = row["order_id"]
                if order_id is not None and (order_id in existing or order_id in seen_ids or order_id in batch_ids):
                    skipped += 1
                    continue
                if order_id is not None:
                    batch_ids.add(order_id)
                kept.append(row)
            rows = kept

        if rows:
            await conn.execute(insert(self.table), rows)
        return len(rows), skipped, batch_ids
