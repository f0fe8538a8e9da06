# services/analytics/ratio_aggregator.py

import pandas as pd

from services.analytics.status_taxonomy import (
    DELIVERY_RATIO_BUCKETS,
    VALID_ORDER_BUCKETS,
    StatusBucket,
    classify_status,
    primary_bucket,
)

DIMENSION_COLUMNS = {
    "partner": "fulfillment_partner",
    "pincode": "pincode",
    "product": "product_name",
    "date": "order_date",
    "city": "city",
    "state": "state",
}

FLAG_COLUMNS = (
    "is_delivered",
    "is_rto",
    "is_rts",
    "is_ndr",
    "is_cancelled",
    "is_valid",
    "in_ratio_denominator",
)


# --------------------------------------------------
# HELPERS
# --------------------------------------------------
def safe_ratio(numerator, denominator) -> float:
    """Percentage rounded to 2 places; 0.0 when there is nothing to divide by."""
    numerator = float(numerator or 0)
    denominator = float(denominator or 0)
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _money(value) -> float:
    if value is None or pd.isna(value):
        return 0.0
    return round(float(value), 2)


def _column(df: pd.DataFrame, name: str) -> pd.Series:
    if name in df.columns:
        return df[name]
    return pd.Series([None] * len(df), index=df.index, dtype=object)


def _present(series: pd.Series) -> pd.Series:
    """Mask of non-null, non-blank values."""
    return series.notna() & (series.astype(str).str.strip() != "")


def _revenue(df: pd.DataFrame) -> float:
    values = pd.to_numeric(_column(df, "order_value"), errors="coerce")
    return _money(values[df["is_delivered"]].sum())


def _dimension_column(dimension: str) -> str:
    try:
        return DIMENSION_COLUMNS[dimension]
    except KeyError:
        raise ValueError(f"Unknown dimension: {dimension}") from None


def _group_key(df: pd.DataFrame, column: str) -> pd.Series:
    series = _column(df, column)
    if column == "order_date":
        return pd.to_datetime(series, errors="coerce").dt.strftime("%Y-%m-%d")
    return series.where(series.isna(), series.astype(str).str.strip())


# --------------------------------------------------
# CLASSIFICATION
# --------------------------------------------------
def classify_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Copy of `df` with a `bucket` column and one boolean column per outcome."""
    out = df.copy()
    statuses = _column(out, "order_status")
    buckets = statuses.map(classify_status)

    def _flag(wanted) -> pd.Series:
        return buckets.map(lambda found: not found.isdisjoint(wanted)).astype(bool)

    out["bucket"] = statuses.map(lambda s: primary_bucket(s).value)
    out["is_delivered"] = _flag({StatusBucket.DELIVERED})
    out["is_rto"] = _flag({StatusBucket.RTO})
    out["is_rts"] = _flag({StatusBucket.RTS})
    out["is_ndr"] = _flag({StatusBucket.NDR})
    out["is_cancelled"] = _flag({StatusBucket.CANCELLED})
    out["is_valid"] = _flag(VALID_ORDER_BUCKETS)
    out["in_ratio_denominator"] = _flag(DELIVERY_RATIO_BUCKETS)
    return out


def ensure_classified(df: pd.DataFrame) -> pd.DataFrame:
    if all(col in df.columns for col in FLAG_COLUMNS):
        return df
    return classify_frame(df)


# --------------------------------------------------
# KPIs
# --------------------------------------------------
def compute_kpis(df: pd.DataFrame) -> dict:
    df = ensure_classified(df)
    valid = df[df["is_valid"]]

    total_orders = int(len(valid))
    revenue = _revenue(df)

    payment = _column(df, "payment_method").astype(str).str.strip().str.upper()
    order_values = pd.to_numeric(_column(df, "order_value"), errors="coerce")
    total_cod = _money(order_values[payment == "COD"].sum())

    top_pincode, top_delivered, top_ratio = "N/A", 0, 0.0
    with_pincode = valid[_present(_column(valid, "pincode"))]
    if not with_pincode.empty:
        per_pin = (
            with_pincode.assign(pin=_group_key(with_pincode, "pincode"))
            .groupby("pin")
            .agg(totalOrders=("is_valid", "size"), deliveredCount=("is_delivered", "sum"))
            .reset_index()
            .sort_values(["deliveredCount", "totalOrders", "pin"], ascending=[False, False, True])
        )
        best = per_pin.iloc[0]
        top_pincode = best["pin"]
        top_delivered = int(best["deliveredCount"])
        top_ratio = safe_ratio(best["deliveredCount"], best["totalOrders"])

    return {
        "totalOrders": total_orders,
        "totalRevenue": revenue,
        "averageOrderValue": round(revenue / total_orders, 2) if total_orders else 0.0,
        "deliveredCount": int(df["is_delivered"].sum()),
        "totalRTO": int(df["is_rto"].sum()),
        "totalRTS": int(df["is_rts"].sum()),
        "totalNDR": int(df["is_ndr"].sum()),
        "totalCancelled": int(df["is_cancelled"].sum()),
        "totalCOD": total_cod,
        "topPincode": top_pincode,
        "topPincodeDeliveredCount": top_delivered,
        "topPincodeRatio": top_ratio,
    }


# --------------------------------------------------
# DISTRIBUTIONS
# --------------------------------------------------
def status_distribution(df: pd.DataFrame) -> list[dict]:
    df = ensure_classified(df)
    statuses = _column(df, "order_status")
    known = df[_present(statuses)].assign(status=statuses.astype(str).str.strip())
    if known.empty:
        return []

    counts = (
        known.groupby(["status", "bucket"])
        .size()
        .reset_index(name="orders")
        .sort_values(["orders", "status"], ascending=[False, True])
    )
    total = int(counts["orders"].sum())
    return [
        {
            "status": row.status,
            "bucket": row.bucket,
            "count": int(row.orders),
            "percentage": safe_ratio(row.orders, total),
        }
        for row in counts.itertuples(index=False)
    ]


def payment_method_distribution(df: pd.DataFrame) -> list[dict]:
    if df.empty:
        return []
    methods = _column(df, "payment_method")
    methods = methods.where(_present(methods), "Unknown").astype(str).str.strip()
    counts = methods.value_counts()
    total = int(counts.sum())
    rows = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        {"method": method, "count": int(count), "percentage": safe_ratio(count, total)}
        for method, count in rows
    ]


# --------------------------------------------------
# GROUPED VIEWS
# --------------------------------------------------
def delivery_ratio_by(df: pd.DataFrame, dimension: str = "partner") -> list[dict]:
    """
    Delivered / delivery-ratio denominator per group. Rows with no value for
    the dimension are dropped; groups with an empty denominator are omitted.
    """
    column = _dimension_column(dimension)
    df = ensure_classified(df)
    keyed = df.assign(key=_group_key(df, column))
    keyed = keyed[_present(keyed["key"]) & keyed["in_ratio_denominator"]]
    if keyed.empty:
        return []

    grouped = (
        keyed.groupby("key")
        .agg(totalOrders=("in_ratio_denominator", "size"), deliveredCount=("is_delivered", "sum"))
        .reset_index()
    )
    if dimension == "date":
        grouped = grouped.sort_values("key")
    else:
        grouped = grouped.sort_values(["totalOrders", "key"], ascending=[False, True])

    return [
        {
            dimension: row.key,
            "totalOrders": int(row.totalOrders),
            "deliveredCount": int(row.deliveredCount),
            "ratio": safe_ratio(row.deliveredCount, row.totalOrders),
        }
        for row in grouped.itertuples(index=False)
    ]


def _orders_and_revenue(df: pd.DataFrame, key: pd.Series) -> pd.DataFrame:
    values = pd.to_numeric(_column(df, "order_value"), errors="coerce").fillna(0.0)
    delivered_value = values.where(df["is_delivered"], 0.0)
    frame = pd.DataFrame({"key": key, "revenue": delivered_value})
    frame = frame[_present(frame["key"])]
    return (
        frame.groupby("key")
        .agg(orders=("revenue", "size"), revenue=("revenue", "sum"))
        .reset_index()
    )


def summarize_by(
    df: pd.DataFrame,
    dimension: str,
    by: str = "orders",
    limit: int | None = 10,
    ascending: bool = False,
) -> list[dict]:
    """Order count and revenue per group, ranked by `by` ("orders" or "revenue")."""
    if by not in {"orders", "revenue"}:
        raise ValueError(f"Unknown ranking: {by}")
    column = _dimension_column(dimension)
    df = ensure_classified(df)
    if df.empty:
        return []

    grouped = _orders_and_revenue(df, _group_key(df, column))
    secondary = "revenue" if by == "orders" else "orders"
    grouped = grouped.sort_values([by, secondary, "key"], ascending=[ascending, ascending, True])
    if limit:
        grouped = grouped.head(limit)

    return [
        {dimension: row.key, "orders": int(row.orders), "revenue": _money(row.revenue)}
        for row in grouped.itertuples(index=False)
    ]


def daily_trends(df: pd.DataFrame) -> list[dict]:
    df = ensure_classified(df)
    if df.empty:
        return []
    grouped = _orders_and_revenue(df, _group_key(df, "order_date")).sort_values("key")
    return [
        {"date": row.key, "orders": int(row.orders), "revenue": _money(row.revenue)}
        for row in grouped.itertuples(index=False)
    ]


def ndr_by_pincode(df: pd.DataFrame, limit: int | None = 10) -> list[dict]:
    """Pincodes with at least one NDR, worst first. ndrRatio is over non-cancelled orders."""
    df = ensure_classified(df)
    keyed = df.assign(key=_group_key(df, "pincode"))
    keyed = keyed[_present(keyed["key"])]
    if keyed.empty:
        return []

    grouped = (
        keyed.groupby("key")
        .agg(
            totalOrders=("is_ndr", "size"),
            cancelledOrders=("is_cancelled", "sum"),
            ndrCount=("is_ndr", "sum"),
        )
        .reset_index()
    )
    grouped = grouped[grouped["ndrCount"] > 0]
    grouped["nonCancelledOrders"] = grouped["totalOrders"] - grouped["cancelledOrders"]
    grouped = grouped.sort_values(["ndrCount", "key"], ascending=[False, True])
    if limit:
        grouped = grouped.head(limit)

    return [
        {
            "pincode": row.key,
            "totalOrders": int(row.totalOrders),
            "cancelledOrders": int(row.cancelledOrders),
            "ndrCount": int(row.ndrCount),
            "nonCancelledOrders": int(row.nonCancelledOrders),
            "ndrRatio": safe_ratio(row.ndrCount, row.nonCancelledOrders),
        }
        for row in grouped.itertuples(index=False)
    ]
