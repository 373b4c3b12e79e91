import structlog

from shared.config.database import Database
from shared.errors import ProductNotFound

from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductUpdate

logger = structlog.get_logger(__name__)


class ProductService:
    """Catalog collaborator: lookup plus the minimal admin maintenance."""

    def __init__(self, db: Database):
        self.db = db

    async def get_active_product(self, product_id: int) -> Product:
        async with self.db.session() as session:
            product = await ProductRepository.get_active_product(session, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    async def list_products(self) -> list[Product]:
        """Every product, inactive ones included. Newest first."""
        async with self.db.session() as session:
            return await ProductRepository.list_all(session)

    async def create_product(self, data: ProductCreate) -> Product:
        async with self.db.transaction() as session:
            product = Product(
                name=data.name,
                price=data.price,
                sale_price=data.sale_price,
                stock=data.stock,
                is_active=data.is_active,
            )
            await ProductRepository.add(session, product)
        logger.info("product_created", product_id=product.id, stock=product.stock)
        return product

    async def update_product(self, product_id: int, data: ProductUpdate) -> Product:
        # An explicit null only means something for sale_price (clears the sale).
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "sale_price"
        }
        async with self.db.transaction() as session:
            locked = await ProductRepository.lock_products(session, [product_id])
            if not locked:
                raise ProductNotFound(product_id)
            product = locked[0]
            for field, value in changes.items():
                setattr(product, field, value)
        logger.info("product_updated", product_id=product_id, fields=sorted(changes))
        return product

    async def deactivate_product(self, product_id: int) -> Product:
        async with self.db.transaction() as session:
            locked = await ProductRepository.lock_products(session, [product_id])
            if not locked:
                raise ProductNotFound(product_id)
            product = locked[0]
            product.is_active = False
        logger.info("product_deactivated", product_id=product_id)
        return product
