from datetime import date

import pytest
from sqlalchemy import inspect, select

from models.orders import Order
from services.ingest import batch_loader
from services.ingest.batch_loader import BatchLoader, DuplicatePolicy, suspended_indexes

from conftest import count_orders, make_record

ALL_INDEXES = {ix.name for ix in Order.__table__.indexes}


async def index_names(engine) -> set[str]:
    async with engine.connect() as conn:
        return await conn.run_sync(lambda c: {ix["name"] for ix in inspect(c).get_indexes("orders")})


async def test_load_inserts_all_records(engine):
    records = [make_record(f"A{i}", order_status="Delivered") for i in range(7)]

    result = await BatchLoader(engine, batch_size=3).load(records)

    assert (result.inserted, result.skipped, result.errors) == (7, 0, 0)
    assert await count_orders(engine) == 7


async def test_only_canonical_columns_are_written(engine):
    record = make_record("A1", seller_gstin="29ABCDE", pincode="560001")

    await BatchLoader(engine).load([record])

    async with engine.connect() as conn:
        row = (await conn.execute(select(Order.pincode, Order.quantity))).one()
    assert row.pincode == "560001"
    assert row.quantity == 1


async def test_failing_batch_is_counted_and_loading_continues(engine):
    records = [make_record(f"A{i}") for i in range(10_000)]
    records[5000]["order_date"] = None  # row 5001

    result = await BatchLoader(engine, batch_size=1000).load(records)

    assert result.inserted == 9000
    assert result.errors == 1000
    assert result.skipped == 0
    assert await count_orders(engine) == 9000


async def test_skip_duplicates_against_store_and_within_load(engine):
    loader = BatchLoader(engine, batch_size=2, duplicate_policy=DuplicatePolicy.SKIP)
    await loader.load([make_record("A1")])

    result = await loader.load(
        [
            make_record("A1"),
            make_record("A2"),
            make_record("A2"),
            make_record(None),
            make_record(None),
        ]
    )

    assert (result.inserted, result.skipped, result.errors) == (3, 2, 0)
    assert await count_orders(engine) == 4


async def test_allow_policy_keeps_duplicates(engine):
    result = await BatchLoader(engine).load([make_record("A1"), make_record("A1")])
    assert result.inserted == 2


async def test_clear_existing_runs_before_insert(engine):
    loader = BatchLoader(engine)
    await loader.load([make_record(f"A{i}") for i in range(3)])

    result = await loader.load([make_record("B1"), make_record("B2")], clear_existing=True)

    assert result.inserted == 2
    assert await count_orders(engine) == 2


async def test_clear_all_returns_deleted_count(engine):
    loader = BatchLoader(engine)
    await loader.load([make_record(f"A{i}") for i in range(4)])

    assert await loader.clear_all() == 4
    assert await count_orders(engine) == 0


async def test_indexes_suspended_once_and_rebuilt_after_failed_batch(engine, monkeypatch):
    calls = []
    original = batch_loader._drop_indexes

    def counting_drop(sync_conn, table):
        calls.append(table.name)
        return original(sync_conn, table)

    monkeypatch.setattr(batch_loader, "_drop_indexes", counting_drop)

    records = [make_record(f"A{i}") for i in range(5)]
    records[2]["order_date"] = None

    result = await BatchLoader(engine, batch_size=2, index_suspend_threshold=3).load(records)

    assert calls == ["orders"]
    assert (result.inserted, result.errors) == (3, 2)
    assert ALL_INDEXES <= await index_names(engine)


async def test_small_loads_leave_indexes_alone(engine, monkeypatch):
    calls = []
    monkeypatch.setattr(batch_loader, "_drop_indexes", lambda *args: calls.append(args) or [])

    await BatchLoader(engine, index_suspend_threshold=10).load([make_record("A1")])

    assert calls == []


async def test_indexes_rebuilt_when_loop_raises(engine, monkeypatch):
    async def boom(self, conn, batch, seen_ids):
        raise RuntimeError("boom")

    monkeypatch.setattr(BatchLoader, "_write_batch", boom)

    with pytest.raises(RuntimeError):
        await BatchLoader(engine, batch_size=1, index_suspend_threshold=1).load(
            [make_record("A1"), make_record("A2")]
        )

    assert ALL_INDEXES <= await index_names(engine)


async def test_suspended_indexes_context_manager(engine):
    async with suspended_indexes(engine) as dropped:
        assert set(dropped) == ALL_INDEXES
        assert not (ALL_INDEXES & await index_names(engine))
    assert ALL_INDEXES <= await index_names(engine)


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        BatchLoader(None, batch_size=0)


async def test_empty_load(engine):
    result = await BatchLoader(engine).load([])
    assert (result.inserted, result.skipped, result.errors) == (0, 0, 0)


async def test_order_date_is_stored_as_date(engine):
    await BatchLoader(engine).load([make_record("A1", order_date=date(2024, 2, 29))])
    async with engine.connect() as conn:
        stored = (await conn.execute(select(Order.order_date))).scalar_one()
    assert stored == date(2024, 2, 29)
