import pandas as pd
import pytest

from services.analytics.outlier_filter import (
    classify_pincodes,
    is_eligible,
    median,
    pincode_groups,
    product_medians,
)


def _orders(product, pincode, statuses):
    return [{"product_name": product, "pincode": pincode, "order_status": s} for s in statuses]


@pytest.fixture
def skewed() -> pd.DataFrame:
    # actual orders per pincode for "Widget": 1, 1, 1, 50, 50
    rows = (
        _orders("Widget", "100001", ["Delivered"])
        + _orders("Widget", "100002", ["Delivered"])
        + _orders("Widget", "100003", ["Delivered"])
        + _orders("Widget", "200001", ["Delivered"] * 50)
        + _orders("Widget", "300001", ["RTO"] * 50 + ["Cancelled"] * 4)
    )
    return pd.DataFrame(rows)


def test_median_filter_keeps_only_high_volume_pincodes(skewed):
    result = classify_pincodes(skewed)

    assert [item["pincode"] for item in result["good"]] == ["200001"]
    assert [item["pincode"] for item in result["bad"]] == ["300001"]

    bad = result["bad"][0]
    assert bad["median"] == 1
    assert bad["totalOrders"] == 54
    assert bad["cancelledOrders"] == 4
    assert bad["actualOrders"] == 50
    assert bad["ratio"] == 0.0

    good = result["good"][0]
    assert good["deliveredCount"] == 50
    assert good["ratio"] == 100.0


def test_single_pincode_product_is_never_eligible():
    # the only group is its own median
    df = pd.DataFrame(_orders("Gadget", "400001", ["Delivered", "Delivered", "Cancelled"]))
    assert classify_pincodes(df) == {"good": [], "bad": []}


def test_unknown_and_blank_keys_are_dropped():
    rows = (
        _orders("Widget", "Unknown", ["Delivered"] * 5)
        + _orders("unknown", "500001", ["Delivered"] * 5)
        + _orders("Widget", "  ", ["Delivered"] * 5)
        + _orders(None, "500002", ["Delivered"] * 5)
    )
    assert pincode_groups(pd.DataFrame(rows)) == []


def test_pincode_groups_counts():
    df = pd.DataFrame(_orders("Widget", "600001", ["Delivered", "NDR", "Cancelled", "Cancel requested"]))
    (group,) = pincode_groups(df)

    assert group["totalOrders"] == 4
    assert group["cancelledOrders"] == 2
    assert group["actualOrders"] == 2
    assert group["deliveredCount"] == 1
    assert group["ratio"] == 50.0


def test_all_cancelled_group_has_zero_ratio():
    df = pd.DataFrame(_orders("Widget", "700001", ["Cancelled", "Cancelled"]))
    (group,) = pincode_groups(df)
    assert group["actualOrders"] == 0
    assert group["ratio"] == 0.0


@pytest.mark.parametrize(
    "values, expected",
    [([1, 1, 1, 50, 50], 1), ([2, 4], 3), ([0, 0], 0), ([], 0), ([0, 5, 7], 6)],
)
def test_median(values, expected):
    assert median(values) == expected


def test_product_medians():
    groups = [
        {"product": "A", "actualOrders": 1},
        {"product": "A", "actualOrders": 3},
        {"product": "B", "actualOrders": 0},
    ]
    assert product_medians(groups) == {"A": 2, "B": 0}


@pytest.mark.parametrize(
    "actual, med, eligible",
    [(5, 0, True), (0, 0, False), (2, 1, True), (1, 1, False), (0, 1, False)],
)
def test_is_eligible(actual, med, eligible):
    assert is_eligible(actual, med) is eligible


def test_empty_frame():
    assert classify_pincodes(pd.DataFrame()) == {"good": [], "bad": []}
