# services/orders_repository.py

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Sequence

import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from db.retry import fetch_all
from models.import_jobs import ImportJob
from models.orders import Order
from services.ingest.value_coercer import parse_date

logger = logging.getLogger(__name__)

# Columns the analytics engine needs; keeps report queries narrow.
FRAME_COLUMNS: tuple[str, ...] = (
    "id",
    "order_id",
    "order_date",
    "order_status",
    "payment_method",
    "fulfillment_partner",
    "product_name",
    "sku",
    "pincode",
    "city",
    "state",
    "quantity",
    "order_value",
    "total_amount",
    "cod_amount",
)

NUMERIC_COLUMNS = ("order_value", "total_amount", "cod_amount", "product_value", "extra_charges", "weight")

_IGNORED_PINCODES = {"", "all"}


def _split_products(products) -> list[str]:
    if not products:
        return []
    if isinstance(products, str):
        products = products.split(",")
    return [p.strip() for p in products if p and p.strip()]


@dataclass
class OrderFilters:
    start_date: date | None = None
    end_date: date | None = None
    product: str | None = None
    products: list[str] = field(default_factory=list)
    pincode: str | None = None
    status: str | None = None
    order_id: str | None = None

    @classmethod
    def from_params(
        cls,
        start_date=None,
        end_date=None,
        product: str | None = None,
        products=None,
        pincode: str | None = None,
        status: str | None = None,
        order_id: str | None = None,
    ) -> "OrderFilters":
        pincode = (pincode or "").strip()
        return cls(
            start_date=parse_date(start_date),
            end_date=parse_date(end_date),
            product=(product or "").strip() or None,
            products=_split_products(products),
            pincode=None if pincode.lower() in _IGNORED_PINCODES else pincode,
            status=(status or "").strip() or None,
            order_id=(order_id or "").strip() or None,
        )

    def conditions(self) -> list:
        clauses = []
        if self.start_date:
            clauses.append(Order.order_date >= self.start_date)
        if self.end_date:
            # inclusive end date: everything before the next day
            clauses.append(Order.order_date < self.end_date + timedelta(days=1))
        if self.product:
            clauses.append(Order.product_name.ilike(f"%{self.product}%"))
        if self.products:
            clauses.append(Order.product_name.in_(self.products))
        if self.pincode:
            clauses.append(Order.pincode == self.pincode)
        if self.status:
            clauses.append(func.lower(func.trim(Order.order_status)) == self.status.lower())
        if self.order_id:
            clauses.append(Order.order_id == self.order_id)
        return clauses


def _json_value(value: Any):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize_order(row) -> dict:
    return {key: _json_value(value) for key, value in dict(row).items()}


# --------------------------------------------------
# ANALYTICS FRAME
# --------------------------------------------------
async def load_orders_frame(
    engine: AsyncEngine,
    filters: OrderFilters | None = None,
    columns: Sequence[str] = FRAME_COLUMNS,
) -> pd.DataFrame:
    filters = filters or OrderFilters()
    table = Order.__table__
    stmt = select(*(table.c[name] for name in columns)).where(*filters.conditions())

    rows = await fetch_all(engine, stmt)
    df = pd.DataFrame([dict(row) for row in rows], columns=list(columns))

    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = df[col].map(lambda v: float(v) if v is not None else None).astype("float64")

    logger.debug("Loaded %s orders for analytics", len(df))
    return df


# --------------------------------------------------
# ORDER LISTING
# --------------------------------------------------
async def list_orders(
    engine: AsyncEngine,
    filters: OrderFilters,
    limit: int = 100,
    offset: int = 0,
) -> list[dict]:
    stmt = (
        select(Order.__table__)
        .where(*filters.conditions())
        .order_by(Order.order_date.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [serialize_order(row) for row in await fetch_all(engine, stmt)]


async def count_orders(engine: AsyncEngine, filters: OrderFilters) -> int:
    stmt = select(func.count().label("total")).select_from(Order).where(*filters.conditions())
    rows = await fetch_all(engine, stmt)
    return int(rows[0]["total"]) if rows else 0


async def get_order(engine: AsyncEngine, order_pk: int) -> dict | None:
    rows = await fetch_all(engine, select(Order.__table__).where(Order.id == order_pk))
    return serialize_order(rows[0]) if rows else None


# --------------------------------------------------
# IMPORT HISTORY
# --------------------------------------------------
async def list_import_jobs(db: AsyncSession, limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
    total = await db.scalar(select(func.count()).select_from(ImportJob))
    result = await db.execute(
        select(ImportJob).order_by(ImportJob.started_at.desc(), ImportJob.id.desc()).limit(limit).offset(offset)
    )
    return [job.to_dict() for job in result.scalars().all()], int(total or 0)


async def get_import_job(db: AsyncSession, job_id: int) -> dict | None:
    job = await db.get(ImportJob, job_id)
    return job.to_dict() if job else None
