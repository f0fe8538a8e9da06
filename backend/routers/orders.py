# routers/orders.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncEngine

from db.deps import get_engine
from services.ingest.batch_loader import BatchLoader
from services.orders_repository import OrderFilters, count_orders, get_order, list_orders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
async def orders_list(
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    product: str | None = Query(None),
    products: str | None = Query(None),
    pincode: str | None = Query(None),
    status: str | None = Query(None),
    order_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    engine: AsyncEngine = Depends(get_engine),
):
    filters = OrderFilters.from_params(
        start_date=start_date,
        end_date=end_date,
        product=product,
        products=products,
        pincode=pincode,
        status=status,
        order_id=order_id,
    )
    total = await count_orders(engine, filters)
    items = await list_orders(engine, filters, limit=limit, offset=offset)
    return {
        "success": True,
        "data": items,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(items) < total,
        },
    }


@router.get("/{order_pk}")
async def order_detail(order_pk: int, engine: AsyncEngine = Depends(get_engine)):
    order = await get_order(engine, order_pk)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "data": order}


@router.delete("")
async def clear_orders(engine: AsyncEngine = Depends(get_engine)):
    deleted = await BatchLoader(engine).clear_all()
    logger.warning("DELETE /orders removed %s orders", deleted)
    return {"success": True, "message": f"Deleted {deleted} orders", "data": {"deleted": deleted}}
