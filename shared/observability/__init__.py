from .setup import configure_logging, setup_observability
from .metrics import (
    ecomm_orders_created_total,
    ecomm_order_creation_failures_total,
    ecomm_order_creation_duration_seconds,
    ecomm_order_transitions_total,
    ecomm_stock_compensation_total,
    ecomm_payment_confirmations_total,
    ecomm_webhook_events_total,
)
