# services/analytics/outlier_filter.py

"""
Good / bad pincode detection per product.

A pincode only counts for a product when its actual (non-cancelled) order
volume is above that product's median, so a single lucky delivery to a
quiet pincode does not show up as "good".
"""

import logging
from typing import Iterable

import numpy as np
import pandas as pd

from services.analytics.ratio_aggregator import ensure_classified, safe_ratio

logger = logging.getLogger(__name__)

GOOD_RATIO = 60.0
BAD_RATIO = 20.0


def _clean_keys(series: pd.Series) -> pd.Series:
    return series.where(series.isna(), series.astype(str).str.strip())


def _usable(series: pd.Series) -> pd.Series:
    text = series.astype(str).str.strip().str.lower()
    return series.notna() & (text != "") & (text != "unknown")


def pincode_groups(df: pd.DataFrame) -> list[dict]:
    """Per (product, pincode) counts with the delivered ratio over actual orders."""
    if df.empty or "product_name" not in df.columns or "pincode" not in df.columns:
        return []

    df = ensure_classified(df)
    keyed = df.assign(product=_clean_keys(df["product_name"]), pin=_clean_keys(df["pincode"]))
    keyed = keyed[_usable(keyed["product"]) & _usable(keyed["pin"])]
    if keyed.empty:
        return []

    grouped = (
        keyed.groupby(["product", "pin"])
        .agg(
            totalOrders=("is_cancelled", "size"),
            cancelledOrders=("is_cancelled", "sum"),
            deliveredCount=("is_delivered", "sum"),
        )
        .reset_index()
    )

    groups = []
    for row in grouped.itertuples(index=False):
        actual = int(row.totalOrders) - int(row.cancelledOrders)
        groups.append(
            {
                "product": row.product,
                "pincode": row.pin,
                "totalOrders": int(row.totalOrders),
                "cancelledOrders": int(row.cancelledOrders),
                "actualOrders": actual,
                "deliveredCount": int(row.deliveredCount),
                "ratio": safe_ratio(row.deliveredCount, actual),
            }
        )
    return groups


def median(values: Iterable[float]) -> float:
    """Median of the positive values; 0 when there are none."""
    positive = [v for v in values if v > 0]
    if not positive:
        return 0
    return float(np.median(positive))


def product_medians(groups: list[dict]) -> dict[str, float]:
    by_product: dict[str, list[int]] = {}
    for item in groups:
        by_product.setdefault(item["product"], []).append(item["actualOrders"])
    return {product: median(counts) for product, counts in by_product.items()}


def is_eligible(actual: int, median_value: float) -> bool:
    if median_value == 0:
        return actual > 0
    return actual > median_value


def classify_pincodes(df: pd.DataFrame) -> dict[str, list[dict]]:
    groups = pincode_groups(df)
    medians = product_medians(groups)

    eligible = []
    for item in groups:
        item_median = medians.get(item["product"], 0)
        if is_eligible(item["actualOrders"], item_median):
            eligible.append({**item, "median": item_median})

    good = sorted(
        (item for item in eligible if item["ratio"] > GOOD_RATIO),
        key=lambda item: (-item["ratio"], item["product"], item["pincode"]),
    )
    bad = sorted(
        (item for item in eligible if item["ratio"] < BAD_RATIO),
        key=lambda item: (item["ratio"], item["product"], item["pincode"]),
    )

    logger.info(
        "Good/bad pincodes: groups=%s eligible=%s good=%s bad=%s",
        len(groups),
        len(eligible),
        len(good),
        len(bad),
    )
    if groups and not eligible:
        logger.warning("Median filter removed all %s product/pincode groups", len(groups))

    return {"good": good, "bad": bad}
