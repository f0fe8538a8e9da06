"""
Shipment status -> delivery outcome buckets.

Courier feeds spell statuses freely ("RTO-IT", "rto ii", "NDR Pending",
"In-Transit"), so classification is a table of (bucket, predicate) rules
applied to the lower-cased trimmed string. A status can sit in several
buckets at once; primary_bucket() picks the first match in table order.
"""

from enum import Enum
from functools import lru_cache
from typing import Callable


class StatusBucket(str, Enum):
    DELIVERED = "DELIVERED"
    RTO = "RTO"
    RTS = "RTS"
    NDR = "NDR"
    DISPATCHED = "DISPATCHED"
    LOST = "LOST"
    CANCELLED = "CANCELLED"
    BOOKED = "BOOKED"
    IN_TRANSIT = "IN_TRANSIT"
    MANIFESTED = "MANIFESTED"
    PICKED = "PICKED"
    PICKUP_PENDING = "PICKUP_PENDING"
    OTHER = "OTHER"


# Top-line denominator: orders that actually left the warehouse.
VALID_ORDER_BUCKETS = frozenset(
    {
        StatusBucket.RTS,
        StatusBucket.RTO,
        StatusBucket.DELIVERED,
        StatusBucket.LOST,
        StatusBucket.NDR,
        StatusBucket.DISPATCHED,
    }
)

# Delivery ratio denominator also counts shipments still in the pipeline.
DELIVERY_RATIO_BUCKETS = VALID_ORDER_BUCKETS | frozenset(
    {
        StatusBucket.BOOKED,
        StatusBucket.IN_TRANSIT,
        StatusBucket.MANIFESTED,
        StatusBucket.PICKED,
        StatusBucket.PICKUP_PENDING,
    }
)


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda s: any(n in s for n in needles)


def _equals(*values: str) -> Callable[[str], bool]:
    return lambda s: s in values


def _rto_i(s: str) -> bool:
    # "rto-i" is a prefix of "rto-it" and "rto-ii"; only count the bare stage
    if "rto-it" in s or "rto it" in s:
        return False
    return "rto-i" in s or "rto i" in s


# (variant, predicate); order decides the reported variant.
RTO_RULES: list[tuple[str, Callable[[str], bool]]] = [
    ("RTO", _equals("rto")),
    ("RTO-IT", _contains("rto-it", "rto it")),
    ("RTO-II", _contains("rto-ii", "rto ii")),
    ("RTO-I", _rto_i),
    ("RTO-DISPATCHED", _contains("rto-dispatched", "rto dispatched")),
    ("RTO-PENDING", _contains("rto pending", "rto-pending")),
]


def _is_rto(s: str) -> bool:
    return any(matches(s) for _, matches in RTO_RULES)


STATUS_RULES: list[tuple[StatusBucket, Callable[[str], bool]]] = [
    (StatusBucket.DELIVERED, _equals("delivered")),
    (StatusBucket.RTO, _is_rto),
    (StatusBucket.RTS, _equals("rts")),
    (StatusBucket.NDR, _contains("ndr")),
    (StatusBucket.CANCELLED, _contains("cancel")),
    (StatusBucket.DISPATCHED, _equals("dispatched")),
    (StatusBucket.LOST, _equals("lost")),
    (StatusBucket.BOOKED, _equals("booked")),
    (StatusBucket.IN_TRANSIT, lambda s: "in transit" in s or "in-transit" in s or s == "intransit"),
    (StatusBucket.MANIFESTED, _equals("manifested")),
    (StatusBucket.PICKED, _equals("picked")),
    (
        StatusBucket.PICKUP_PENDING,
        lambda s: "pickup pending" in s or "pickup-pending" in s or s == "pickuppending",
    ),
]

_OTHER_ONLY = frozenset({StatusBucket.OTHER})


def normalize_status(status) -> str:
    if status is None:
        return ""
    if isinstance(status, float) and status != status:
        return ""
    return str(status).strip().lower()


@lru_cache(maxsize=2048)
def _classify(normalized: str) -> frozenset[StatusBucket]:
    if not normalized:
        return _OTHER_ONLY
    buckets = frozenset(bucket for bucket, matches in STATUS_RULES if matches(normalized))
    return buckets or _OTHER_ONLY


def classify_status(status) -> frozenset[StatusBucket]:
    return _classify(normalize_status(status))


def primary_bucket(status) -> StatusBucket:
    normalized = normalize_status(status)
    for bucket, matches in STATUS_RULES:
        if normalized and matches(normalized):
            return bucket
    return StatusBucket.OTHER


def is_in_bucket(status, bucket: StatusBucket) -> bool:
    return bucket in classify_status(status)


def is_valid_order(status) -> bool:
    return not classify_status(status).isdisjoint(VALID_ORDER_BUCKETS)


def in_delivery_ratio_denominator(status) -> bool:
    return not classify_status(status).isdisjoint(DELIVERY_RATIO_BUCKETS)


def rto_variant(status) -> str | None:
    """Which RTO stage a status names ("RTO-IT", "RTO-II", ...), or None."""
    normalized = normalize_status(status)
    if not normalized:
        return None
    for variant, matches in RTO_RULES:
        if matches(normalized):
            return variant
    return None
