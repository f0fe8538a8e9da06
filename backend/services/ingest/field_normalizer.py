"""
Header -> canonical order field mapping.

Courier and marketplace exports name the same column many ways ("Order Id",
"OrderID", "Client Order No", ...). Exact header matches are tried first,
then keyword rules in priority order. Headers that match nothing come back
as a snake_case slug so the value is kept but never mistaken for a
canonical field.
"""

import re
from functools import lru_cache
from typing import Callable

CANONICAL_FIELDS: tuple[str, ...] = (
    "order_account",
    "order_id",
    "channel_order_number",
    "channel_order_date",
    "waybill_number",
    "pre_generated_waybill",
    "order_date",
    "ref_invoice_number",
    "payment_method",
    "express",
    "pickup_warehouse",
    "consignee_name",
    "consignee_contact",
    "alternate_number",
    "address",
    "city",
    "state",
    "pincode",
    "product_name",
    "quantity",
    "product_value",
    "sku",
    "order_value",
    "extra_charges",
    "total_amount",
    "cod_amount",
    "dimensions",
    "weight",
    "fulfillment_partner",
    "order_status",
    "added_on",
    "delivered_date",
    "rts_date",
    "client_order_id",
)

_CANONICAL_SET = frozenset(CANONICAL_FIELDS)

EXACT_MATCHES: dict[str, str] = {
    # identity
    "order account": "order_account",
    "account": "order_account",
    "order id": "order_id",
    "orderid": "order_id",
    "order no": "order_id",
    "order number": "order_id",
    "client order id": "client_order_id",
    "client order no": "client_order_id",
    "client order number": "client_order_id",
    "channel order number": "channel_order_number",
    "channel order no": "channel_order_number",
    "channel order id": "channel_order_number",
    "waybill number": "waybill_number",
    "waybill": "waybill_number",
    "awb": "waybill_number",
    "awb number": "waybill_number",
    "awb no": "waybill_number",
    "tracking number": "waybill_number",
    "pre generated waybill": "pre_generated_waybill",
    "pre-generated waybill": "pre_generated_waybill",
    "ref invoice number": "ref_invoice_number",
    "ref invoice no": "ref_invoice_number",
    "invoice number": "ref_invoice_number",
    # dates
    "order date": "order_date",
    "orderdate": "order_date",
    "date": "order_date",
    "channel order date": "channel_order_date",
    "added on": "added_on",
    "delivered date": "delivered_date",
    "delivery date": "delivered_date",
    "rts date": "rts_date",
    # classification inputs
    "status": "order_status",
    "order status": "order_status",
    "mode": "payment_method",
    "payment mode": "payment_method",
    "payment method": "payment_method",
    "payment type": "payment_method",
    "fulfilled by": "fulfillment_partner",
    "fulfilledby": "fulfillment_partner",
    "fulfillment partner": "fulfillment_partner",
    "courier": "fulfillment_partner",
    "courier partner": "fulfillment_partner",
    "carrier": "fulfillment_partner",
    "express": "express",
    "service type": "express",
    # commerce
    "product name": "product_name",
    "product": "product_name",
    "item": "product_name",
    "item name": "product_name",
    "product qty": "quantity",
    "product quantity": "quantity",
    "quantity": "quantity",
    "qty": "quantity",
    "product value": "product_value",
    "product price": "product_value",
    "unit price": "product_value",
    "sku": "sku",
    "product sku": "sku",
    "order amount": "order_value",
    "order value": "order_value",
    "amount": "order_value",
    "extra charges": "extra_charges",
    "total amount": "total_amount",
    "total": "total_amount",
    "cod amount": "cod_amount",
    "cod value": "cod_amount",
    "dimensions": "dimensions",
    "dimension": "dimensions",
    "weight": "weight",
    # geography / consignee
    "pickup warehouse": "pickup_warehouse",
    "warehouse": "pickup_warehouse",
    "pickup location": "pickup_warehouse",
    "consignee name": "consignee_name",
    "customer name": "consignee_name",
    "buyer name": "consignee_name",
    "consignee contact": "consignee_contact",
    "customer phone": "consignee_contact",
    "contact number": "consignee_contact",
    "phone": "consignee_contact",
    "mobile": "consignee_contact",
    "alternate number": "alternate_number",
    "alternate contact": "alternate_number",
    "address": "address",
    "shipping address": "address",
    "consignee address": "address",
    "city": "city",
    "state": "state",
    "pincode": "pincode",
    "pin code": "pincode",
    "pin": "pincode",
    "zip": "pincode",
    "zip code": "pincode",
    "zipcode": "pincode",
    "postal code": "pincode",
}


class _Header:
    __slots__ = ("text", "compact", "tokens")

    def __init__(self, text: str):
        self.text = text
        self.compact = re.sub(r"[^a-z0-9]", "", text)
        self.tokens = frozenset(re.findall(r"[a-z0-9]+", text))

    def has(self, *needles: str) -> bool:
        return any(n in self.text for n in needles)

    def word(self, *words: str) -> bool:
        return any(w in self.tokens for w in words)


Rule = tuple[str, Callable[[_Header], bool]]

_CONSIGNEE_WORDS = ("consignee", "customer", "buyer", "recipient")
_CONTACT_WORDS = ("contact", "phone", "mobile")
_PRODUCT_NAME_EXCLUDES = ("quantity", "qty", "amount", "price", "cost", "value")

# Evaluated top to bottom; the first matching rule wins. Narrow rules sit
# above the broad ones that would otherwise swallow them ("Channel Order
# Date" before "date", "Product Value" before "value").
KEYWORD_RULES: list[Rule] = [
    ("client_order_id", lambda h: h.has("client") and h.has("order")),
    ("channel_order_date", lambda h: h.has("channel") and h.has("date")),
    ("channel_order_number", lambda h: h.has("channel") and h.has("order")),
    ("pre_generated_waybill", lambda h: h.has("waybill", "awb") and (h.word("pre") or "pregenerated" in h.compact)),
    ("waybill_number", lambda h: h.has("waybill", "awb", "tracking")),
    ("ref_invoice_number", lambda h: h.has("invoice")),
    (
        "order_id",
        lambda h: (h.has("order") and h.word("id", "no", "number"))
        or "orderid" in h.compact
        or "ordernumber" in h.compact,
    ),
    ("delivered_date", lambda h: h.has("delivered") or (h.has("delivery") and h.has("date"))),
    ("rts_date", lambda h: h.word("rts") and h.has("date")),
    ("added_on", lambda h: h.has("added")),
    ("order_date", lambda h: h.has("date")),
    ("cod_amount", lambda h: h.word("cod") and h.has("amount", "value", "collect")),
    ("extra_charges", lambda h: h.has("extra", "charge")),
    ("total_amount", lambda h: h.has("total")),
    ("product_value", lambda h: h.has("product") and h.has("value", "price", "cost")),
    ("quantity", lambda h: h.has("quantity", "qty")),
    ("order_value", lambda h: h.has("amount", "price", "revenue", "value")),
    ("order_status", lambda h: h.has("status")),
    ("payment_method", lambda h: h.has("payment") or h.word("cod", "ppd", "mode")),
    ("fulfillment_partner", lambda h: h.has("fulfil", "partner", "vendor", "carrier", "courier")),
    ("pincode", lambda h: "pincode" in h.compact or h.word("pin") or h.has("zip", "postal")),
    ("city", lambda h: h.has("city")),
    ("state", lambda h: h.has("state")),
    ("address", lambda h: h.has("address")),
    ("alternate_number", lambda h: h.has("alternate") or h.word("alt")),
    ("consignee_contact", lambda h: h.has(*_CONTACT_WORDS)),
    ("consignee_name", lambda h: h.has(*_CONSIGNEE_WORDS)),
    ("pickup_warehouse", lambda h: h.has("warehouse", "pickup")),
    ("express", lambda h: h.has("express")),
    ("dimensions", lambda h: h.has("dimension")),
    ("weight", lambda h: h.has("weight")),
    ("order_account", lambda h: h.has("account")),
    ("sku", lambda h: h.has("sku")),
    (
        "product_name",
        lambda h: ((h.has("product") and h.has("name")) or "productname" in h.compact)
        and not h.has(*_PRODUCT_NAME_EXCLUDES),
    ),
]


def _lookup_key(header: str) -> str:
    key = header.strip().lower().replace("_", " ")
    return re.sub(r"\s+", " ", key)


def slugify_header(header: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", header.strip().lower()).strip("_")
    return slug or "unnamed"


@lru_cache(maxsize=4096)
def _normalize(header: str) -> str:
    key = _lookup_key(header)
    if not key:
        return "unnamed"

    exact = EXACT_MATCHES.get(key)
    if exact is not None:
        return exact

    parsed = _Header(key)
    for field, matches in KEYWORD_RULES:
        if matches(parsed):
            return field

    return slugify_header(header)


def normalize_column_name(header) -> str:
    """Return the canonical field for a spreadsheet header, or a slug of it."""
    if header is None:
        return "unnamed"
    return _normalize(str(header))


def is_canonical_field(name: str) -> bool:
    return name in _CANONICAL_SET
