from typing import List, Optional

from pydantic import BaseModel, Field


class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(ge=1)


class CartItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int

    class Config:
        from_attributes = True


class CartLineResponse(BaseModel):
    id: int = Field(validation_alias="cart_item_id")
    product_id: int
    name: str
    quantity: int
    price: int = Field(validation_alias="unit_price")
    stock: int
    is_active: bool

    class Config:
        from_attributes = True
        populate_by_name = True


class CartResponse(BaseModel):
    items: List[CartLineResponse] = []
    total_price: int
    count: int


class ClearCartResponse(BaseModel):
    deleted_count: int
    message: Optional[str] = None
