from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.security.identity import canonical_id

from .models import Order


class OrderRepository:
    @staticmethod
    async def add(db: AsyncSession, order: Order) -> Order:
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
        if canonical_id(order_id) is None:
            return None
        result = await db.execute(select(Order).where(Order.id == order_id))
        return result.scalars().first()

    @staticmethod
    async def lock_order(db: AsyncSession, order_id: int) -> Optional[Order]:
        """SELECT ... FOR UPDATE; racing writers on the same order queue here."""
        if canonical_id(order_id) is None:
            return None
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: int) -> list[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_all(
        db: AsyncSession,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> list[Order]:
        stmt = select(Order)
        if status:
            stmt = stmt.where(Order.status == status)
        result = await db.execute(
            stmt.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def count(db: AsyncSession, status: Optional[str] = None) -> int:
        stmt = select(func.count(Order.id))
        if status:
            stmt = stmt.where(Order.status == status)
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def revenue(db: AsyncSession, statuses: list[str]) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status.in_(statuses))
        )
        return int(result.scalar_one())

    @staticmethod
    async def count_by_status(db: AsyncSession) -> dict[str, int]:
        result = await db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
        return {status: count for status, count in result.all()}
