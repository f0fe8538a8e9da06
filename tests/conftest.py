import os

# keep the app's module-level engine off postgres during tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from db.base import Base  # noqa: E402
from models.import_jobs import ImportJob  # noqa: E402,F401
from models.orders import Order  # noqa: E402

SAMPLE_CSV = (
    "Order Id,Order Date,Status,Order Amount,Pincode,Product Name,Fulfilled By,Mode\n"
    "A1,2024-01-05,Delivered,100,560001,Widget,Delhivery,COD\n"
    "A2,05/01/2024,RTO-IT,250,560001,Widget,Delhivery,PPD\n"
    "A3,2024-01-06,Cancelled,80,560002,Widget,XpressBees,COD\n"
).encode()


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def sample_csv() -> bytes:
    return SAMPLE_CSV


def make_record(order_id=None, order_date=date(2024, 1, 1), **fields) -> dict:
    return {"order_id": order_id, "order_date": order_date, **fields}


async def count_orders(engine) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(Order))).scalar_one()
