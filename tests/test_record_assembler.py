from datetime import date
from decimal import Decimal
from io import BytesIO

import pandas as pd
import pytest

from services.ingest.field_normalizer import CANONICAL_FIELDS
from services.ingest.record_assembler import (
    SpreadsheetReadError,
    assemble_record,
    assemble_records,
    read_spreadsheet,
)


def test_assemble_record_fills_every_canonical_field():
    record = assemble_record({"Order Id": "A1", "Order Date": "2024-01-05", "Status": "Delivered"})

    assert set(CANONICAL_FIELDS) <= set(record)
    assert record["order_id"] == "A1"
    assert record["order_date"] == date(2024, 1, 5)
    assert record["order_status"] == "Delivered"
    assert record["city"] is None
    assert record["quantity"] == 1


def test_assemble_record_coerces_by_field_type():
    record = assemble_record(
        {
            "Order Amount": "₹1,200.00",
            "Product Qty": "3",
            "Pincode": 560001.0,
            "Added On": "05/01/2024 10:00",
        }
    )
    assert record["order_value"] == Decimal("1200.00")
    assert record["quantity"] == 3
    assert record["pincode"] == "560001"
    assert record["added_on"].hour == 10


def test_unparsable_quantity_defaults_to_one():
    assert assemble_record({"Qty": "lots"})["quantity"] == 1


def test_first_non_null_value_wins():
    record = assemble_record({"Order Id": None, "Order Number": "B7", "OrderID": "C9"})
    assert record["order_id"] == "B7"


def test_unknown_headers_are_kept_as_slugs():
    record = assemble_record({"Seller GSTIN #": "29ABCDE"})
    assert record["seller_gstin"] == "29ABCDE"


def test_missing_order_date_is_not_rejected():
    record = assemble_record({"Order Id": "A1", "Order Date": "not a date"})
    assert record["order_date"] is None


def test_assemble_records_keeps_order():
    rows = [{"Order Id": f"A{i}"} for i in range(5)]
    assert [r["order_id"] for r in assemble_records(rows)] == ["A0", "A1", "A2", "A3", "A4"]


def test_read_csv(sample_csv):
    rows = read_spreadsheet(sample_csv, "orders.csv")
    assert len(rows) == 3
    assert rows[0]["Order Id"] == "A1"
    assert rows[0]["Pincode"] == "560001"


def test_read_csv_drops_blank_rows():
    content = b"Order Id,Status\nA1,Delivered\n,\nA2,RTS\n"
    assert [r["Order Id"] for r in read_spreadsheet(content, "orders.csv")] == ["A1", "A2"]


def test_read_xlsx_first_sheet():
    buf = BytesIO()
    pd.DataFrame(
        {"Order Id": ["X1", "X2"], "Order Date": [pd.Timestamp("2024-03-01"), pd.Timestamp("2024-03-02")]}
    ).to_excel(buf, index=False)

    rows = read_spreadsheet(buf.getvalue(), "orders.xlsx")
    records = assemble_records(rows)

    assert [r["order_id"] for r in records] == ["X1", "X2"]
    assert records[1]["order_date"] == date(2024, 3, 2)


@pytest.mark.parametrize(
    "content, filename",
    [
        (b"", "orders.csv"),
        (b"Order Id,Status\n", "orders.csv"),
        (b"%PDF-1.4", "orders.pdf"),
        (b"this is not a workbook", "orders.xlsx"),
    ],
)
def test_read_spreadsheet_rejects(content, filename):
    with pytest.raises(SpreadsheetReadError):
        read_spreadsheet(content, filename)


def test_product_category_does_not_replace_product_name():
    record = assemble_record(
        {"Product Category": "Electronics", "Product Name": "Widget", "Order Date": "2024-01-01"}
    )
    assert record["product_name"] == "Widget"
    assert record["product_category"] == "Electronics"
