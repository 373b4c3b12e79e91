from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_orders_created_total = Counter(
    "ecomm_orders_created_total",
    "Orders materialised from carts",
)

ecomm_order_creation_failures_total = Counter(
    "ecomm_order_creation_failures_total",
    "Order creation attempts rejected before commit",
    ["reason"]  # Labels: 'EMPTY_CART', 'INSUFFICIENT_STOCK', ...
)

ecomm_order_creation_duration_seconds = Histogram(
    "ecomm_order_creation_duration_seconds",
    "Order creation transaction duration in seconds"
)

ecomm_order_transitions_total = Counter(
    "ecomm_order_transitions_total",
    "Order status transitions applied",
    ["from_status", "to_status", "actor"]
)

ecomm_stock_compensation_total = Counter(
    "ecomm_stock_compensation_total",
    "Units of stock restored by order cancellations",
    ["actor"]  # Labels: 'user', 'admin', 'gateway'
)

ecomm_payment_confirmations_total = Counter(
    "ecomm_payment_confirmations_total",
    "Payment confirm attempts",
    ["outcome"]  # Labels: 'success', or the error code
)

ecomm_webhook_events_total = Counter(
    "ecomm_webhook_events_total",
    "Gateway webhook events received",
    ["outcome"]  # Labels: 'applied', 'duplicate', 'ignored'
)
