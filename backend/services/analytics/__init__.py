# services/analytics/__init__.py

from services.analytics.base_engine import BaseAnalyticsEngine
from services.analytics.delivery_engine import DeliveryAnalyticsEngine
from services.analytics.status_taxonomy import (
    DELIVERY_RATIO_BUCKETS,
    VALID_ORDER_BUCKETS,
    StatusBucket,
    classify_status,
)
