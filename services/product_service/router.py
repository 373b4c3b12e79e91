from fastapi import APIRouter, Depends, Request

from shared.security import require_admin

from .schemas import ProductCreate, ProductResponse, ProductUpdate
from .service import ProductService


def get_product_service(request: Request) -> ProductService:
    return ProductService(request.app.state.db)


router = APIRouter(prefix="/api/products", tags=["Products"])
admin_router = APIRouter(
    prefix="/api/admin/products",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.get_active_product(product_id)


@admin_router.get("", response_model=list[ProductResponse])
async def list_products(service: ProductService = Depends(get_product_service)):
    return await service.list_products()


@admin_router.post("", response_model=ProductResponse, status_code=201)
async def create_product(payload: ProductCreate, service: ProductService = Depends(get_product_service)):
    return await service.create_product(payload)


@admin_router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    service: ProductService = Depends(get_product_service),
):
    return await service.update_product(product_id, payload)


# Soft delete: products referenced by orders are never removed
@admin_router.delete("/{product_id}", response_model=ProductResponse)
async def deactivate_product(product_id: int, service: ProductService = Depends(get_product_service)):
    return await service.deactivate_product(product_id)
