"""Customer-initiated payment confirmation against the gateway stub."""

import asyncio
import base64
import json

import httpx
import pytest

from shared.errors import (
    AmountMismatch,
    Forbidden,
    GatewayNotConfigured,
    GatewayRejected,
    GatewayUnavailable,
    OrderNotFound,
    OrderNotPending,
    PaymentNotFound,
)
from services.order_service.service import OrderService
from services.payment_service.models import Payment
from services.payment_service.schemas import WebhookEvent
from services.payment_service.gateway import TossPaymentsGateway
from services.payment_service.service import PaymentService

USER = 5
OTHER_USER = 6
GATEWAY_URL = "https://gateway.test/v1/payments"


@pytest.fixture
def payments(db, gateway):
    return PaymentService(db, gateway)


@pytest.fixture
def pending_order(db, make_product, put_in_cart):
    async def _place(price=15000, quantity=1):
        product = await make_product(price=price, stock=10)
        await put_in_cart(USER, product, quantity)
        return await OrderService(db).create_order(USER)

    return _place


class TestConfirm:
    async def test_happy_path_records_payment_and_marks_paid(
        self, payments, pending_order, read_order, count_payments, gateway_stub
    ):
        order = await pending_order(price=15000)

        payment = await payments.confirm(USER, "pk_1", order.id, 15000)

        assert payment.order_id == order.id
        assert payment.payment_key == "pk_1"
        assert payment.amount == 15000
        assert payment.status == "done"
        assert payment.method == "card"
        assert payment.approved_at is not None
        assert (await read_order(order.id)).status == "paid"
        assert await count_payments() == 1
        assert len(gateway_stub.requests) == 1

    async def test_wire_format(self, payments, pending_order, gateway_stub):
        order = await pending_order(price=15000)

        await payments.confirm(USER, "pk_wire", order.id, 15000)

        request = gateway_stub.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{GATEWAY_URL}/confirm"
        expected = base64.b64encode(b"test_sk_secret:").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert json.loads(request.content) == {"paymentKey": "pk_wire", "orderId": str(order.id), "amount": 15000}

    async def test_string_order_id_is_accepted(self, payments, pending_order, read_order):
        order = await pending_order()

        await payments.confirm(USER, "pk_str", str(order.id), order.total_amount)

        assert (await read_order(order.id)).status == "paid"

    async def test_second_confirm_is_rejected_with_one_payment(
        self, payments, pending_order, count_payments, gateway_stub
    ):
        order = await pending_order()
        await payments.confirm(USER, "pk_once", order.id, order.total_amount)

        with pytest.raises(OrderNotPending):
            await payments.confirm(USER, "pk_twice", order.id, order.total_amount)

        assert await count_payments() == 1
        assert len(gateway_stub.requests) == 1

    async def test_amount_mismatch_never_reaches_gateway(
        self, payments, pending_order, read_order, count_payments, gateway_stub
    ):
        order = await pending_order(price=15000)

        with pytest.raises(AmountMismatch) as exc_info:
            await payments.confirm(USER, "pk_cheap", order.id, 1000)

        assert exc_info.value.details == {"order_id": order.id, "expected": 15000, "received": 1000}
        assert gateway_stub.requests == []
        assert (await read_order(order.id)).status == "pending"
        assert await count_payments() == 0

    async def test_foreign_order_is_forbidden(self, payments, pending_order, gateway_stub):
        order = await pending_order()

        with pytest.raises(Forbidden):
            await payments.confirm(OTHER_USER, "pk_x", order.id, order.total_amount)

        assert gateway_stub.requests == []

    @pytest.mark.parametrize("order_id", [12345, "12345", "not-a-number", 0, "99999999999999999999", 2**40])
    async def test_unknown_order(self, payments, order_id):
        with pytest.raises(OrderNotFound):
            await payments.confirm(USER, "pk_x", order_id, 100)

    async def test_gateway_rejection_leaves_order_pending(
        self, payments, pending_order, read_order, count_payments, gateway_stub
    ):
        order = await pending_order()
        gateway_stub.reject(400, "ALREADY_PROCESSED_PAYMENT", "already processed")

        with pytest.raises(GatewayRejected) as exc_info:
            await payments.confirm(USER, "pk_rej", order.id, order.total_amount)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"code": "ALREADY_PROCESSED_PAYMENT", "gateway_message": "already processed"}
        assert (await read_order(order.id)).status == "pending"
        assert await count_payments() == 0

    async def test_gateway_timeout_is_unavailable(self, payments, pending_order, read_order, gateway_stub):
        order = await pending_order()
        gateway_stub.error = httpx.ConnectTimeout("timed out")

        with pytest.raises(GatewayUnavailable):
            await payments.confirm(USER, "pk_slow", order.id, order.total_amount)

        assert (await read_order(order.id)).status == "pending"

    async def test_missing_secret_is_not_configured(self, db, pending_order, read_order, gateway_stub):
        order = await pending_order()
        gateway = TossPaymentsGateway(None, GATEWAY_URL, transport=httpx.MockTransport(gateway_stub))
        try:
            with pytest.raises(GatewayNotConfigured):
                await PaymentService(db, gateway).confirm(USER, "pk_x", order.id, order.total_amount)
        finally:
            await gateway.aclose()

        assert gateway_stub.requests == []
        assert (await read_order(order.id)).status == "pending"


class TestConcurrentReconciliation:
    async def test_racing_confirms_succeed_once(self, payments, pending_order, read_order, count_payments):
        order = await pending_order(price=15000)

        results = await asyncio.gather(
            payments.confirm(USER, "pk_first", order.id, 15000),
            payments.confirm(USER, "pk_second", order.id, 15000),
            return_exceptions=True,
        )

        confirmed = [r for r in results if isinstance(r, Payment)]
        rejected = [r for r in results if isinstance(r, OrderNotPending)]
        assert len(confirmed) == 1 and len(rejected) == 1
        assert await count_payments() == 1
        assert (await read_order(order.id)).status == "paid"

    async def test_confirm_racing_cancel_webhook_ends_cancelled(
        self, payments, pending_order, read_order, read_product, count_payments
    ):
        order = await pending_order(price=15000, quantity=2)
        product_id = order.items[0].product_id
        cancelled = WebhookEvent.model_validate(
            {
                "eventType": "PAYMENT_STATUS_CHANGED",
                "data": {"paymentKey": "pk_race", "status": "CANCELED", "orderId": str(order.id)},
            }
        )

        confirm_result, _ = await asyncio.gather(
            payments.confirm(USER, "pk_race", order.id, order.total_amount),
            payments.handle_webhook(cancelled),
            return_exceptions=True,
        )

        # Either order of commits ends cancelled with the reservation returned exactly once
        assert isinstance(confirm_result, (Payment, OrderNotPending))
        assert (await read_order(order.id)).status == "cancelled"
        assert (await read_product(product_id)).stock == 10
        assert await count_payments() == (1 if isinstance(confirm_result, Payment) else 0)


class TestGetPayment:
    async def test_returns_latest_payment(self, payments, pending_order):
        order = await pending_order()
        await payments.confirm(USER, "pk_get", order.id, order.total_amount)

        payment = await payments.get_payment(USER, order.id)

        assert payment.payment_key == "pk_get"

    async def test_no_payment_yet(self, payments, pending_order):
        order = await pending_order()

        with pytest.raises(PaymentNotFound):
            await payments.get_payment(USER, order.id)

    async def test_foreign_order_looks_missing(self, payments, pending_order):
        order = await pending_order()
        await payments.confirm(USER, "pk_mine", order.id, order.total_amount)

        with pytest.raises(PaymentNotFound):
            await payments.get_payment(OTHER_USER, order.id)
