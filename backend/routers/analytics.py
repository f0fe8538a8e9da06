# routers/analytics.py

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncEngine

from db.deps import get_engine
from services.analytics import DeliveryAnalyticsEngine
from services.orders_repository import OrderFilters

router = APIRouter(prefix="/analytics", tags=["analytics"])

RATIO_DIMENSIONS = ("partner", "pincode", "product", "date")


def analytics_filters(
    start_date: str | None = Query(None, description="YYYY-MM-DD, inclusive"),
    end_date: str | None = Query(None, description="YYYY-MM-DD, inclusive"),
    product: str | None = Query(None, description="Substring match on product name"),
    products: str | None = Query(None, description="Comma separated exact product names"),
    pincode: str | None = Query(None, description="Exact pincode; blank or 'All' means every pincode"),
) -> OrderFilters:
    return OrderFilters.from_params(
        start_date=start_date,
        end_date=end_date,
        product=product,
        products=products,
        pincode=pincode,
    )


def delivery_engine(
    filters: OrderFilters = Depends(analytics_filters),
    engine: AsyncEngine = Depends(get_engine),
) -> DeliveryAnalyticsEngine:
    return DeliveryAnalyticsEngine(engine, filters)


def _ok(data) -> dict:
    return {"success": True, "data": data}


@router.get("/kpis")
async def kpis(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.kpis())


@router.get("/summary")
async def summary(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.run())


@router.get("/order-status")
async def order_status(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.order_status())


@router.get("/payment-methods")
async def payment_methods(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.payment_methods())


@router.get("/fulfillment-partners")
async def fulfillment_partners(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.fulfillment_partners())


@router.get("/top-products")
async def top_products(
    by: str = Query("orders", pattern="^(orders|revenue)$"),
    limit: int = Query(10, ge=1, le=100),
    analytics: DeliveryAnalyticsEngine = Depends(delivery_engine),
):
    return _ok(await analytics.top_products(by=by, limit=limit))


@router.get("/top-cities")
async def top_cities(
    by: str = Query("orders", pattern="^(orders|revenue)$"),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query("desc", pattern="^(asc|desc)$"),
    analytics: DeliveryAnalyticsEngine = Depends(delivery_engine),
):
    return _ok(await analytics.top_cities(by=by, limit=limit, sort=sort))


@router.get("/trends")
async def trends(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.trends())


@router.get("/delivery-ratio")
async def delivery_ratio(
    dimension: str = Query("partner"),
    analytics: DeliveryAnalyticsEngine = Depends(delivery_engine),
):
    if dimension not in RATIO_DIMENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"dimension must be one of: {', '.join(RATIO_DIMENSIONS)}",
        )
    return _ok(await analytics.delivery_ratio(dimension))


@router.get("/good-bad-pincodes")
async def good_bad_pincodes(analytics: DeliveryAnalyticsEngine = Depends(delivery_engine)):
    return _ok(await analytics.good_bad_pincodes())


@router.get("/top-ndr-pincodes")
async def top_ndr_pincodes(
    limit: int = Query(10, ge=1, le=100),
    analytics: DeliveryAnalyticsEngine = Depends(delivery_engine),
):
    return _ok(await analytics.top_ndr_pincodes(limit=limit))
