"""Customer cancel, admin status gate and their stock/cart compensations."""

import pytest

from shared.errors import Forbidden, IllegalTransition, OrderNotFound, OrderNotPending
from services.order_service.lifecycle import OrderStatus
from services.order_service.service import AdminOrderService, OrderService

USER = 3
OTHER_USER = 4


@pytest.fixture
def orders(db):
    return OrderService(db)


@pytest.fixture
def admin(db):
    return AdminOrderService(db)


@pytest.fixture
def place_order(orders, make_product, put_in_cart):
    async def _place(user_id=USER, quantity=2, stock=5):
        product = await make_product(stock=stock)
        await put_in_cart(user_id, product, quantity)
        order = await orders.create_order(user_id)
        return order, product

    return _place


class TestCustomerCancel:
    async def test_restores_stock_and_refills_cart(self, orders, place_order, read_product, read_order, read_cart):
        order, product = await place_order(quantity=2, stock=5)
        assert (await read_product(product.id)).stock == 3
        assert await read_cart(USER) == {}

        cancelled = await orders.cancel_order(USER, order.id)

        assert cancelled.status == "cancelled"
        assert (await read_order(order.id)).status == "cancelled"
        assert (await read_product(product.id)).stock == 5
        assert await read_cart(USER) == {product.id: 2}

    async def test_refill_merges_with_existing_cart_line(
        self, orders, place_order, put_in_cart, read_cart
    ):
        order, product = await place_order(quantity=2, stock=10)
        await put_in_cart(USER, product, 1)

        await orders.cancel_order(USER, order.id)

        assert await read_cart(USER) == {product.id: 3}

    async def test_foreign_order_is_forbidden(self, orders, place_order, read_order, read_product):
        order, product = await place_order()

        with pytest.raises(Forbidden):
            await orders.cancel_order(OTHER_USER, order.id)

        assert (await read_order(order.id)).status == "pending"
        assert (await read_product(product.id)).stock == 3

    async def test_missing_order(self, orders):
        with pytest.raises(OrderNotFound):
            await orders.cancel_order(USER, 404)

    async def test_only_pending_orders_can_be_cancelled(self, orders, admin, place_order, read_product):
        order, product = await place_order()
        await admin.change_status(order.id, OrderStatus.PAID)

        with pytest.raises(OrderNotPending) as exc_info:
            await orders.cancel_order(USER, order.id)

        assert exc_info.value.details == {"order_id": order.id, "status": "paid"}
        assert (await read_product(product.id)).stock == 3

    async def test_second_cancel_does_not_restore_twice(self, orders, place_order, read_product, read_cart):
        order, product = await place_order(quantity=2, stock=5)
        await orders.cancel_order(USER, order.id)

        with pytest.raises(OrderNotPending):
            await orders.cancel_order(USER, order.id)

        assert (await read_product(product.id)).stock == 5
        assert await read_cart(USER) == {product.id: 2}


class TestAdminStatusGate:
    async def test_forward_path_to_delivered(self, admin, place_order, read_order):
        order, _ = await place_order()

        for status in (OrderStatus.PAID, OrderStatus.SHIPPING, OrderStatus.DELIVERED):
            updated = await admin.change_status(order.id, status)
            assert updated.status == status.value

        assert (await read_order(order.id)).status == "delivered"

    async def test_delivered_cannot_go_back(self, admin, place_order, read_order):
        order, _ = await place_order()
        for status in (OrderStatus.PAID, OrderStatus.SHIPPING, OrderStatus.DELIVERED):
            await admin.change_status(order.id, status)

        with pytest.raises(IllegalTransition) as exc_info:
            await admin.change_status(order.id, OrderStatus.SHIPPING)

        assert exc_info.value.details == {"current": "delivered", "target": "shipping", "allowed": []}
        assert (await read_order(order.id)).status == "delivered"

    async def test_skipping_a_step_is_illegal(self, admin, place_order):
        order, _ = await place_order()

        with pytest.raises(IllegalTransition) as exc_info:
            await admin.change_status(order.id, OrderStatus.SHIPPING)

        assert exc_info.value.details["allowed"] == ["paid", "cancelled"]

    async def test_admin_cancel_restores_stock_but_not_cart(self, admin, place_order, read_product, read_cart):
        order, product = await place_order(quantity=2, stock=5)
        await admin.change_status(order.id, OrderStatus.PAID)

        await admin.change_status(order.id, OrderStatus.CANCELLED)

        assert (await read_product(product.id)).stock == 5
        assert await read_cart(USER) == {}

    async def test_cancelled_is_terminal(self, admin, place_order, read_product):
        order, product = await place_order(quantity=2, stock=5)
        await admin.change_status(order.id, OrderStatus.CANCELLED)

        for status in OrderStatus:
            with pytest.raises(IllegalTransition):
                await admin.change_status(order.id, status)

        assert (await read_product(product.id)).stock == 5

    async def test_missing_order(self, admin):
        with pytest.raises(OrderNotFound):
            await admin.change_status(999, OrderStatus.PAID)


class TestAdminQueries:
    async def test_stats_count_revenue_from_paid_and_later(self, admin, place_order, make_product):
        paid, _ = await place_order(user_id=1, quantity=1)
        pending, _ = await place_order(user_id=2, quantity=2)
        cancelled, _ = await place_order(user_id=3, quantity=1)
        await make_product(name="Hidden", is_active=False)
        await admin.change_status(paid.id, OrderStatus.PAID)
        await admin.change_status(cancelled.id, OrderStatus.CANCELLED)

        stats = await admin.stats()

        assert stats["total_orders"] == 3
        assert stats["total_revenue"] == paid.total_amount
        assert stats["active_products"] == 3
        assert stats["orders_by_status"] == {"paid": 1, "pending": 1, "cancelled": 1}

    async def test_list_filters_and_paginates(self, admin, place_order):
        created = [(await place_order(user_id=user))[0] for user in range(1, 6)]
        await admin.change_status(created[0].id, OrderStatus.PAID)

        first_page = await admin.list_orders(page=1, limit=2)
        last_page = await admin.list_orders(page=3, limit=2)
        paid_only = await admin.list_orders(status=OrderStatus.PAID)

        assert first_page["pagination"] == {"page": 1, "limit": 2, "total_count": 5, "total_pages": 3}
        assert len(first_page["orders"]) == 2
        assert len(last_page["orders"]) == 1
        assert [o.id for o in paid_only["orders"]] == [created[0].id]

    async def test_limit_is_clamped(self, admin):
        listing = await admin.list_orders(page=0, limit=500)

        assert listing["pagination"]["page"] == 1
        assert listing["pagination"]["limit"] == 100

    async def test_detail_includes_items_and_payments(self, admin, place_order):
        order, product = await place_order(quantity=2)

        detail, payments = await admin.get_order(order.id)

        assert detail.id == order.id
        assert [(i.product_id, i.quantity) for i in detail.items] == [(product.id, 2)]
        assert payments == []
