# services/analytics/delivery_engine.py

import logging

import pandas as pd

from services.analytics.base_engine import BaseAnalyticsEngine
from services.analytics.outlier_filter import classify_pincodes
from services.analytics.ratio_aggregator import (
    classify_frame,
    compute_kpis,
    daily_trends,
    delivery_ratio_by,
    ndr_by_pincode,
    payment_method_distribution,
    status_distribution,
    summarize_by,
)
from services.orders_repository import load_orders_frame

logger = logging.getLogger(__name__)


class DeliveryAnalyticsEngine(BaseAnalyticsEngine):
    """Delivery-performance views over the filtered order set."""

    # --------------------------------------------------
    # LOAD DATA
    # --------------------------------------------------
    async def load_data(self) -> pd.DataFrame:
        df = await load_orders_frame(self.engine, self.filters)
        logger.info("Analytics frame: %s orders (filters=%s)", len(df), self.filters)
        return classify_frame(df)

    # --------------------------------------------------
    # VIEWS
    # --------------------------------------------------
    async def kpis(self) -> dict:
        return compute_kpis(await self.frame())

    async def order_status(self) -> list[dict]:
        return status_distribution(await self.frame())

    async def payment_methods(self) -> list[dict]:
        return payment_method_distribution(await self.frame())

    async def fulfillment_partners(self) -> list[dict]:
        return summarize_by(await self.frame(), "partner", by="orders", limit=None)

    async def top_products(self, by: str = "orders", limit: int = 10) -> list[dict]:
        return summarize_by(await self.frame(), "product", by=by, limit=limit)

    async def top_cities(self, by: str = "orders", limit: int = 10, sort: str = "desc") -> list[dict]:
        return summarize_by(await self.frame(), "city", by=by, limit=limit, ascending=sort == "asc")

    async def trends(self) -> list[dict]:
        return daily_trends(await self.frame())

    async def delivery_ratio(self, dimension: str = "partner") -> list[dict]:
        return delivery_ratio_by(await self.frame(), dimension)

    async def good_bad_pincodes(self) -> dict[str, list[dict]]:
        return classify_pincodes(await self.frame())

    async def top_ndr_pincodes(self, limit: int = 10) -> list[dict]:
        return ndr_by_pincode(await self.frame(), limit)

    # --------------------------------------------------
    # DASHBOARD BUNDLE
    # --------------------------------------------------
    def compute(self, df: pd.DataFrame) -> dict:
        return {
            "kpis": compute_kpis(df),
            "orderStatus": status_distribution(df),
            "paymentMethods": payment_method_distribution(df),
            "fulfillmentPartners": summarize_by(df, "partner", by="orders", limit=None),
            "deliveryRatio": delivery_ratio_by(df, "partner"),
            "trends": daily_trends(df),
        }
