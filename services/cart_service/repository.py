from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.models import Product

from .models import CartItem


@dataclass
class CartLine:
    """One cart row joined with the live product row."""

    cart_item_id: int
    quantity: int
    product: Product

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def name(self) -> str:
        return self.product.name

    @property
    def stock(self) -> int:
        return self.product.stock

    @property
    def is_active(self) -> bool:
        return self.product.is_active

    @property
    def unit_price(self) -> int:
        return self.product.effective_price

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


def _cart_join(user_id: int):
    return (
        select(CartItem, Product)
        .join(Product, Product.id == CartItem.product_id)
        .where(CartItem.user_id == user_id)
    )


def _to_lines(rows) -> list[CartLine]:
    return [
        CartLine(cart_item_id=item.id, quantity=item.quantity, product=product)
        for item, product in rows
    ]


class CartRepository:

    @staticmethod
    async def snapshot(db: AsyncSession, user_id: int) -> list[CartLine]:
        result = await db.execute(
            _cart_join(user_id).order_by(CartItem.created_at.desc(), CartItem.id.desc())
        )
        return _to_lines(result.all())

    @staticmethod
    async def lock_lines(db: AsyncSession, user_id: int) -> list[CartLine]:
        """Cart join with the product rows locked FOR UPDATE, in ascending product id."""
        result = await db.execute(
            _cart_join(user_id)
            .order_by(Product.id)
            .with_for_update(of=Product)
            .execution_options(populate_existing=True)
        )
        return _to_lines(result.all())

    @staticmethod
    async def get_item(db: AsyncSession, user_id: int, product_id: int) -> Optional[CartItem]:
        result = await db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .where(CartItem.product_id == product_id)
        )
        return result.scalars().first()

    @staticmethod
    async def get_owned_item(db: AsyncSession, user_id: int, cart_item_id: int) -> Optional[CartItem]:
        result = await db.execute(
            select(CartItem).where(CartItem.id == cart_item_id, CartItem.user_id == user_id)
        )
        return result.scalars().first()

    @staticmethod
    async def merge_quantity(db: AsyncSession, user_id: int, product_id: int, quantity: int) -> CartItem:
        existing_item = await CartRepository.get_item(db, user_id, product_id)

        if existing_item:
            existing_item.quantity += quantity
            item = existing_item
        else:
            item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
            db.add(item)

        await db.flush()
        return item

    @staticmethod
    async def remove_item(db: AsyncSession, user_id: int, cart_item_id: int) -> bool:
        result = await db.execute(
            delete(CartItem)
            .where(CartItem.id == cart_item_id, CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: int) -> int:
        """Deletes all items for the user; part of the caller's transaction."""
        result = await db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
