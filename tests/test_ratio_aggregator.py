from datetime import date

import pandas as pd
import pytest

from services.analytics.ratio_aggregator import (
    classify_frame,
    compute_kpis,
    daily_trends,
    delivery_ratio_by,
    ndr_by_pincode,
    payment_method_distribution,
    safe_ratio,
    status_distribution,
    summarize_by,
)
from services.orders_repository import FRAME_COLUMNS


@pytest.fixture
def orders() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"order_status": "Delivered", "order_value": 100.0, "payment_method": "COD",
             "fulfillment_partner": "A", "pincode": "1", "order_date": date(2024, 1, 1), "city": "Pune"},
            {"order_status": "RTO-IT", "order_value": 200.0, "payment_method": "PPD",
             "fulfillment_partner": "A", "pincode": "1", "order_date": date(2024, 1, 1), "city": "Pune"},
            {"order_status": "Cancelled", "order_value": 50.0, "payment_method": "COD",
             "fulfillment_partner": "B", "pincode": "2", "order_date": date(2024, 1, 2), "city": "Goa"},
            {"order_status": "Booked", "order_value": 70.0, "payment_method": "PPD",
             "fulfillment_partner": "B", "pincode": "2", "order_date": date(2024, 1, 2), "city": "Goa"},
            {"order_status": "NDR", "order_value": 30.0, "payment_method": "COD",
             "fulfillment_partner": "A", "pincode": "2", "order_date": date(2024, 1, 2), "city": None},
        ]
    )


@pytest.mark.parametrize(
    "num, den, expected",
    [(1, 3, 33.33), (2, 2, 100.0), (0, 5, 0.0), (1, 0, 0.0), (0, 0, 0.0), (None, None, 0.0)],
)
def test_safe_ratio(num, den, expected):
    assert safe_ratio(num, den) == expected


def test_classify_frame_flags(orders):
    df = classify_frame(orders)
    assert df["is_valid"].tolist() == [True, True, False, False, True]
    assert df["in_ratio_denominator"].tolist() == [True, True, False, True, True]
    assert df["bucket"].tolist() == ["DELIVERED", "RTO", "CANCELLED", "BOOKED", "NDR"]
    assert "is_valid" not in orders.columns


def test_compute_kpis(orders):
    kpis = compute_kpis(orders)

    assert kpis["totalOrders"] == 3
    assert kpis["totalRevenue"] == 100.0
    assert kpis["averageOrderValue"] == 33.33
    assert kpis["deliveredCount"] == 1
    assert kpis["totalRTO"] == 1
    assert kpis["totalRTS"] == 0
    assert kpis["totalNDR"] == 1
    assert kpis["totalCancelled"] == 1
    assert kpis["totalCOD"] == 180.0
    assert kpis["topPincode"] == "1"
    assert kpis["topPincodeDeliveredCount"] == 1
    assert kpis["topPincodeRatio"] == 50.0


def test_compute_kpis_on_empty_frame():
    kpis = compute_kpis(pd.DataFrame(columns=list(FRAME_COLUMNS)))

    assert kpis["totalOrders"] == 0
    assert kpis["totalRevenue"] == 0.0
    assert kpis["averageOrderValue"] == 0.0
    assert kpis["topPincode"] == "N/A"
    assert kpis["topPincodeRatio"] == 0.0


def test_delivery_ratio_by_partner(orders):
    rows = delivery_ratio_by(orders, "partner")
    assert rows == [
        {"partner": "A", "totalOrders": 3, "deliveredCount": 1, "ratio": 33.33},
        {"partner": "B", "totalOrders": 1, "deliveredCount": 0, "ratio": 0.0},
    ]


def test_delivery_ratio_by_date(orders):
    rows = delivery_ratio_by(orders, "date")
    assert [r["date"] for r in rows] == ["2024-01-01", "2024-01-02"]
    assert rows[0]["ratio"] == 50.0


def test_delivery_ratio_unknown_dimension(orders):
    with pytest.raises(ValueError):
        delivery_ratio_by(orders, "colour")


def test_status_distribution(orders):
    rows = status_distribution(orders)
    assert [r["status"] for r in rows] == ["Booked", "Cancelled", "Delivered", "NDR", "RTO-IT"]
    assert all(r["count"] == 1 and r["percentage"] == 20.0 for r in rows)
    assert rows[4]["bucket"] == "RTO"


def test_payment_method_distribution(orders):
    assert payment_method_distribution(orders) == [
        {"method": "COD", "count": 3, "percentage": 60.0},
        {"method": "PPD", "count": 2, "percentage": 40.0},
    ]


def test_summarize_by_partner(orders):
    assert summarize_by(orders, "partner", limit=None) == [
        {"partner": "A", "orders": 3, "revenue": 100.0},
        {"partner": "B", "orders": 2, "revenue": 0.0},
    ]


def test_summarize_by_city_drops_missing_and_sorts_ascending(orders):
    rows = summarize_by(orders, "city", by="orders", ascending=True)
    assert [r["city"] for r in rows] == ["Goa", "Pune"]


def test_summarize_by_rejects_unknown_ranking(orders):
    with pytest.raises(ValueError):
        summarize_by(orders, "city", by="margin")


def test_daily_trends(orders):
    assert daily_trends(orders) == [
        {"date": "2024-01-01", "orders": 2, "revenue": 100.0},
        {"date": "2024-01-02", "orders": 3, "revenue": 0.0},
    ]


def test_ndr_by_pincode(orders):
    assert ndr_by_pincode(orders) == [
        {
            "pincode": "2",
            "totalOrders": 3,
            "cancelledOrders": 1,
            "ndrCount": 1,
            "nonCancelledOrders": 2,
            "ndrRatio": 50.0,
        }
    ]


def test_empty_frame_views():
    empty = pd.DataFrame(columns=list(FRAME_COLUMNS))
    assert status_distribution(empty) == []
    assert payment_method_distribution(empty) == []
    assert delivery_ratio_by(empty, "partner") == []
    assert summarize_by(empty, "product") == []
    assert daily_trends(empty) == []
    assert ndr_by_pincode(empty) == []
