"""
Status vocabularies and the two mappings the webhook applies:

    gateway status --(GATEWAY_TO_PAYMENT)--> local payment status
    local payment status --(PAYMENT_TO_ORDER)--> order status

Both tables are keyed by every member of their source enum; a gateway status
that maps to None is acknowledged and ignored.
"""
from enum import Enum
from typing import Optional

from services.order_service.lifecycle import OrderStatus


class PaymentStatus(str, Enum):
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class GatewayStatus(str, Enum):
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_FOR_DEPOSIT = "WAITING_FOR_DEPOSIT"
    DONE = "DONE"
    CANCELED = "CANCELED"
    PARTIAL_CANCELED = "PARTIAL_CANCELED"
    ABORTED = "ABORTED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw) -> "GatewayStatus":
        if not isinstance(raw, str):
            return cls.UNKNOWN
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return cls.UNKNOWN


GATEWAY_TO_PAYMENT: dict[GatewayStatus, Optional[PaymentStatus]] = {
    GatewayStatus.READY: None,
    GatewayStatus.IN_PROGRESS: None,
    GatewayStatus.WAITING_FOR_DEPOSIT: None,
    GatewayStatus.DONE: PaymentStatus.DONE,
    GatewayStatus.CANCELED: PaymentStatus.CANCELLED,
    GatewayStatus.PARTIAL_CANCELED: PaymentStatus.CANCELLED,
    GatewayStatus.ABORTED: PaymentStatus.FAILED,
    GatewayStatus.EXPIRED: PaymentStatus.FAILED,
    GatewayStatus.UNKNOWN: None,
}

PAYMENT_TO_ORDER: dict[PaymentStatus, OrderStatus] = {
    PaymentStatus.DONE: OrderStatus.PAID,
    PaymentStatus.CANCELLED: OrderStatus.CANCELLED,
    PaymentStatus.FAILED: OrderStatus.CANCELLED,
}


def payment_status_for(gateway_status: GatewayStatus) -> Optional[PaymentStatus]:
    return GATEWAY_TO_PAYMENT[gateway_status]


def order_status_for(payment_status: PaymentStatus) -> OrderStatus:
    return PAYMENT_TO_ORDER[payment_status]
