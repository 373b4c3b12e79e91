"""
Order status state machine.

    pending -> paid -> shipping -> delivered
       \________\_________\______-> cancelled

`delivered` and `cancelled` are terminal. Every status write in the system
goes through OrderLifecycle.transition, which also runs the cancellation
compensations: stock goes back to the ledger for every order item, and on
the customer's own cancel the items go back into their cart as well.
"""
from enum import Enum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import IllegalTransition
from shared.observability import ecomm_order_transitions_total, ecomm_stock_compensation_total

from services.cart_service.repository import CartRepository
from services.product_service.ledger import InventoryLedger

from .models import Order

logger = structlog.get_logger(__name__)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TransitionActor(str, Enum):
    USER = "user"
    ADMIN = "admin"
    GATEWAY = "gateway"


TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.PAID, OrderStatus.CANCELLED),
    OrderStatus.PAID: (OrderStatus.SHIPPING, OrderStatus.CANCELLED),
    OrderStatus.SHIPPING: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.DELIVERED: (),
    OrderStatus.CANCELLED: (),
}

INITIAL_STATUS = OrderStatus.PENDING
TERMINAL_STATUSES = frozenset(status for status, nexts in TRANSITIONS.items() if not nexts)


def allowed_next(status) -> list[str]:
    return [nxt.value for nxt in TRANSITIONS[OrderStatus(status)]]


def can_transition(current, target) -> bool:
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


def ensure_transition(current, target) -> None:
    if not can_transition(current, target):
        raise IllegalTransition(OrderStatus(current).value, OrderStatus(target).value, allowed_next(current))


class OrderLifecycle:

    @staticmethod
    async def transition(
        db: AsyncSession,
        order: Order,
        target: OrderStatus,
        actor: TransitionActor,
    ) -> OrderStatus:
        """Move a locked order to `target`. Returns the previous status.

        Must run inside the transaction that holds the order's row lock.
        """
        current = OrderStatus(order.status)
        target = OrderStatus(target)
        ensure_transition(current, target)

        if target is OrderStatus.CANCELLED:
            await OrderLifecycle._compensate(db, order, actor)

        order.status = target.value
        await db.flush()

        ecomm_order_transitions_total.labels(
            from_status=current.value, to_status=target.value, actor=actor.value
        ).inc()
        logger.info(
            "order_transitioned",
            order_id=order.id,
            from_status=current.value,
            to_status=target.value,
            actor=actor.value,
        )
        return current

    @staticmethod
    async def _compensate(db: AsyncSession, order: Order, actor: TransitionActor) -> None:
        lines = [(item.product_id, item.quantity) for item in order.items]
        restored = await InventoryLedger.restore_many(db, lines)
        ecomm_stock_compensation_total.labels(actor=actor.value).inc(restored)

        if actor is TransitionActor.USER:
            for product_id, quantity in lines:
                await CartRepository.merge_quantity(db, order.user_id, product_id, quantity)

        logger.info(
            "order_compensated",
            order_id=order.id,
            units_restored=restored,
            cart_restored=actor is TransitionActor.USER,
        )
