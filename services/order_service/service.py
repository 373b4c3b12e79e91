import math
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import Database
from shared.errors import (
    AppError,
    EmptyCart,
    Forbidden,
    InsufficientStock,
    OrderNotFound,
    OrderNotPending,
    ProductInactive,
)
from shared.observability import (
    ecomm_order_creation_duration_seconds,
    ecomm_order_creation_failures_total,
    ecomm_orders_created_total,
)
from shared.security import same_identity

from services.cart_service.repository import CartRepository
from services.payment_service.models import Payment
from services.payment_service.repository import PaymentRepository
from services.product_service.ledger import InventoryLedger
from services.product_service.repository import ProductRepository

from .lifecycle import OrderLifecycle, OrderStatus, TransitionActor
from .models import Order, OrderItem
from .repository import OrderRepository

logger = structlog.get_logger(__name__)

REVENUE_STATUSES = [OrderStatus.PAID.value, OrderStatus.SHIPPING.value, OrderStatus.DELIVERED.value]


class OrderService:
    """Customer-facing order operations."""

    def __init__(self, db: Database):
        self.db = db

    async def create_order(self, user_id: int, shipping_address: Optional[str] = None) -> Order:
        """Turn the caller's cart into a pending order in one transaction.

        The cart+product join is re-read with the product rows locked (ascending
        id) so the checks below and the reservations see the same stock. Any
        failure rolls back everything, including earlier reservations.
        """
        with ecomm_order_creation_duration_seconds.time():
            try:
                async with self.db.transaction() as session:
                    order = await self._materialise(session, user_id, shipping_address)
            except AppError as exc:
                ecomm_order_creation_failures_total.labels(reason=exc.code).inc()
                logger.warning("order_creation_rejected", user_id=user_id, reason=exc.code, details=exc.details)
                raise

        ecomm_orders_created_total.inc()
        logger.info(
            "order_created",
            order_id=order.id,
            user_id=user_id,
            total_amount=order.total_amount,
            lines=len(order.items),
        )
        return order

    async def _materialise(self, session: AsyncSession, user_id: int, shipping_address: Optional[str]) -> Order:
        lines = await CartRepository.lock_lines(session, user_id)

        # 1. Preconditions; nothing has been written yet
        if not lines:
            raise EmptyCart()
        for line in lines:
            if not line.is_active:
                raise ProductInactive(line.product_id, line.name)
            if line.quantity > line.stock:
                raise InsufficientStock(line.product_id, line.stock, line.quantity, name=line.name)

        # 2. Order + frozen item snapshots
        order = Order(
            user_id=user_id,
            total_amount=sum(line.line_total for line in lines),
            status=OrderStatus.PENDING.value,
            shipping_address=shipping_address or None,
            items=[
                OrderItem(product=line.product, quantity=line.quantity, price=line.unit_price)
                for line in lines
            ],
        )
        await OrderRepository.add(session, order)

        # 3. Reserve stock, lines already in ascending product id
        for line in lines:
            await InventoryLedger.reserve(session, line.product_id, line.quantity)

        # 4. The cart is now the order
        await CartRepository.clear_cart(session, user_id)
        return order

    async def list_orders(self, user_id: int) -> list[Order]:
        async with self.db.session() as session:
            return await OrderRepository.list_for_user(session, user_id)

    async def get_order(self, user_id: int, order_id: int) -> Order:
        async with self.db.session() as session:
            order = await OrderRepository.get_order(session, order_id)
        # Someone else's order is reported exactly like a missing one
        if order is None or not same_identity(order.user_id, user_id):
            raise OrderNotFound(order_id)
        return order

    async def cancel_order(self, user_id: int, order_id: int) -> Order:
        """Customer cancel: pending only; stock back to the ledger, items back to the cart."""
        async with self.db.transaction() as session:
            order = await OrderRepository.lock_order(session, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            if not same_identity(order.user_id, user_id):
                raise Forbidden(order_id=order_id)
            if order.status != OrderStatus.PENDING.value:
                raise OrderNotPending(order_id, order.status)

            await OrderLifecycle.transition(session, order, OrderStatus.CANCELLED, TransitionActor.USER)

        logger.info("order_cancelled_by_user", order_id=order_id, user_id=user_id)
        return order


class AdminOrderService:
    """Operator view of all orders plus the admin transition gate."""

    def __init__(self, db: Database):
        self.db = db

    async def change_status(self, order_id: int, status: OrderStatus) -> Order:
        async with self.db.transaction() as session:
            order = await OrderRepository.lock_order(session, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            previous = await OrderLifecycle.transition(session, order, status, TransitionActor.ADMIN)

        logger.info("order_status_changed_by_admin", order_id=order_id, from_status=previous.value, to_status=order.status)
        return order

    async def get_order(self, order_id: int) -> tuple[Order, list[Payment]]:
        async with self.db.session() as session:
            order = await OrderRepository.get_order(session, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            payments = await PaymentRepository.list_for_order(session, order_id)
        return order, payments

    async def list_orders(self, status: Optional[OrderStatus] = None, page: int = 1, limit: int = 20) -> dict:
        page = max(1, page)
        limit = min(100, max(1, limit))
        status_value = status.value if status else None

        async with self.db.session() as session:
            total_count = await OrderRepository.count(session, status_value)
            orders = await OrderRepository.list_all(session, status_value, offset=(page - 1) * limit, limit=limit)

        return {
            "orders": orders,
            "pagination": {
                "page": page,
                "limit": limit,
                "total_count": total_count,
                "total_pages": math.ceil(total_count / limit),
            },
        }

    async def stats(self) -> dict:
        async with self.db.session() as session:
            return {
                "total_orders": await OrderRepository.count(session),
                "total_revenue": await OrderRepository.revenue(session, REVENUE_STATUSES),
                "active_products": await ProductRepository.count_active(session),
                "orders_by_status": await OrderRepository.count_by_status(session),
            }
