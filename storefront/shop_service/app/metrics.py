"""Prometheus metrics for the storefront."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram


CHECKOUT_TOTAL: Final = Counter(
    "storefront_checkout_total",
    "Checkout attempts by outcome.",
    labelnames=("outcome",),
)

CHECKOUT_SECONDS: Final = Histogram(
    "storefront_checkout_seconds",
    "Latency of the checkout transaction.",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

ORDER_NUMBER_COLLISIONS_TOTAL: Final = Counter(
    "storefront_order_number_collisions_total",
    "Generated order numbers that were already taken.",
)

CART_MERGE_TOTAL: Final = Counter(
    "storefront_cart_merge_total",
    "Guest cart merges at login by outcome.",
    labelnames=("outcome",),
)

ORDER_STATUS_CHANGED_TOTAL: Final = Counter(
    "storefront_order_status_changed_total",
    "Order status transitions recorded in the ledger.",
    labelnames=("status",),
)

BLOB_OPERATIONS_TOTAL: Final = Counter(
    "storefront_blob_operations_total",
    "Blob storage operations.",
    labelnames=("operation",),
)
