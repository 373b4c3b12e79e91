from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product


class ProductRepository:

    @staticmethod
    async def add(db: AsyncSession, product: Product) -> Product:
        db.add(product)
        await db.flush()
        return product

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def reload(db: AsyncSession, product_id: int) -> Optional[Product]:
        """Re-read the row, overwriting whatever the identity map holds."""
        result = await db.execute(
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_active_product(db: AsyncSession, product_id: int) -> Optional[Product]:
        result = await db.execute(
            select(Product).where(Product.id == product_id, Product.is_active.is_(True))
        )
        return result.scalars().first()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Product]:
        result = await db.execute(select(Product).order_by(Product.created_at.desc(), Product.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def lock_products(db: AsyncSession, product_ids: Sequence[int]) -> list[Product]:
        """SELECT ... FOR UPDATE in ascending id order so concurrent lockers never deadlock."""
        result = await db.execute(
            select(Product)
            .where(Product.id.in_(sorted(set(product_ids))))
            .order_by(Product.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    @staticmethod
    async def decrement_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """Conditional decrement; False when the row is missing, inactive or short."""
        result = await db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.is_active.is_(True),
                Product.stock >= quantity,
            )
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def increment_stock(db: AsyncSession, product_id: int, quantity: int) -> bool:
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def count_active(db: AsyncSession) -> int:
        result = await db.execute(select(func.count(Product.id)).where(Product.is_active.is_(True)))
        return result.scalar_one()
