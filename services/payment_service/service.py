"""
Payment reconciliation.

Two independent signals land on the same order/payment pair:

* confirm: the customer's browser returns from the gateway and we call the
  gateway's confirm API while holding the order row lock. The Payment row and
  the pending -> paid transition commit together, only after the gateway said
  yes.
* webhook: the gateway tells us asynchronously that a payment changed state.
  Applied through the order lifecycle so it can never take an illegal edge,
  and a no-op when the stored state already matches (safe to replay).

Whichever transaction commits first wins; the other sees the new state.
"""
from typing import Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import Database
from shared.errors import (
    AmountMismatch,
    AppError,
    Forbidden,
    OrderNotFound,
    OrderNotPending,
    PaymentNotFound,
)
from shared.observability import ecomm_payment_confirmations_total, ecomm_webhook_events_total
from shared.security import canonical_id, same_identity

from services.order_service.lifecycle import OrderLifecycle, OrderStatus, TransitionActor, can_transition
from services.order_service.repository import OrderRepository

from .gateway import PaymentGateway
from .models import Payment
from .repository import PaymentRepository
from .schemas import WebhookEvent
from .status import GatewayStatus, PaymentStatus, order_status_for, payment_status_for

logger = structlog.get_logger(__name__)

PAYMENT_STATUS_CHANGED = "PAYMENT_STATUS_CHANGED"

# Webhook outcomes
APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"


class PaymentService:

    def __init__(self, db: Database, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway

    # --- CONFIRM PATH ---

    async def confirm(self, user_id: int, payment_key: str, order_id: Union[int, str], amount: int) -> Payment:
        try:
            payment = await self._confirm(user_id, payment_key, order_id, amount)
        except AppError as exc:
            ecomm_payment_confirmations_total.labels(outcome=exc.code).inc()
            logger.warning("payment_confirm_failed", order_id=order_id, user_id=user_id, reason=exc.code)
            raise

        ecomm_payment_confirmations_total.labels(outcome="success").inc()
        logger.info(
            "payment_confirmed",
            order_id=payment.order_id,
            payment_id=payment.id,
            amount=payment.amount,
            method=payment.method,
        )
        return payment

    async def _confirm(self, user_id: int, payment_key: str, order_id, amount: int) -> Payment:
        order_key = canonical_id(order_id)
        if order_key is None:
            raise OrderNotFound(order_id)

        async with self.db.transaction() as session:
            order = await OrderRepository.lock_order(session, order_key)
            if order is None:
                raise OrderNotFound(order_key)
            if not same_identity(order.user_id, user_id):
                raise Forbidden(order_id=order_key)
            if order.status != OrderStatus.PENDING.value:
                raise OrderNotPending(order_key, order.status)
            if order.total_amount != amount:
                raise AmountMismatch(order_key, order.total_amount, amount)

            # Still holding the order lock: nothing commits unless the gateway accepts.
            confirmation = await self.gateway.confirm(payment_key, order_key, amount)

            payment = Payment(
                order_id=order_key,
                payment_key=payment_key,
                method=confirmation.method,
                amount=amount,
                status=PaymentStatus.DONE.value,
                approved_at=confirmation.approved_at,
            )
            await PaymentRepository.create_payment(session, payment)
            await OrderLifecycle.transition(session, order, OrderStatus.PAID, TransitionActor.USER)
        return payment

    # --- WEBHOOK PATH ---

    async def handle_webhook(self, event: WebhookEvent) -> str:
        """Apply a gateway event. Never raises for unknown or irrelevant events."""
        data = event.data
        if event.event_type != PAYMENT_STATUS_CHANGED or data is None:
            return self._record(IGNORED, event_type=event.event_type)

        gateway_status = GatewayStatus.parse(data.status)
        payment_status = payment_status_for(gateway_status)
        if payment_status is None:
            return self._record(IGNORED, gateway_status=data.status, payment_key=data.payment_key)

        async with self.db.transaction() as session:
            changed = False
            payment = None
            if data.payment_key:
                payment = await PaymentRepository.lock_by_key(session, data.payment_key)
                if payment is not None and payment.status != payment_status.value:
                    payment.status = payment_status.value
                    changed = True

            order_key = self._order_for_event(data.order_id, payment)
            if order_key is not None:
                target = order_status_for(payment_status)
                changed = await self._sync_order(session, order_key, target) or changed

        return self._record(
            APPLIED if changed else DUPLICATE,
            payment_key=data.payment_key,
            gateway_status=gateway_status.value,
            order_id=data.order_id,
        )

    @staticmethod
    def _order_for_event(raw_order_id, payment: Optional[Payment]) -> Optional[int]:
        order_key = canonical_id(raw_order_id)
        if payment is None:
            return order_key
        if order_key is not None and order_key != payment.order_id:
            logger.warning(
                "webhook_order_mismatch",
                payment_key=payment.payment_key,
                event_order_id=raw_order_id,
                payment_order_id=payment.order_id,
            )
            return None
        return payment.order_id

    @staticmethod
    async def _sync_order(session: AsyncSession, order_id: int, target: OrderStatus) -> bool:
        order = await OrderRepository.lock_order(session, order_id)
        if order is None:
            logger.warning("webhook_order_missing", order_id=order_id)
            return False
        if order.status == target.value:
            return False
        if not can_transition(order.status, target):
            logger.warning(
                "webhook_transition_skipped",
                order_id=order_id,
                current=order.status,
                target=target.value,
            )
            return False

        await OrderLifecycle.transition(session, order, target, TransitionActor.GATEWAY)
        return True

    @staticmethod
    def _record(outcome: str, **fields) -> str:
        ecomm_webhook_events_total.labels(outcome=outcome).inc()
        logger.info("webhook_processed", outcome=outcome, **fields)
        return outcome

    # --- QUERIES ---

    async def get_payment(self, user_id: int, order_id: int) -> Payment:
        async with self.db.session() as session:
            order = await OrderRepository.get_order(session, order_id)
            if order is None or not same_identity(order.user_id, user_id):
                raise PaymentNotFound(order_id)
            payments = await PaymentRepository.list_for_order(session, order_id)
        if not payments:
            raise PaymentNotFound(order_id)
        return payments[-1]
