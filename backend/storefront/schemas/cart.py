from pydantic import BaseModel, Field
from typing import List
from decimal import Decimal

from storefront.schemas.product import ProductSummary


class CartAddRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartUpdateRequest(BaseModel):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    product: ProductSummary

    class Config:
        from_attributes = True


class CartSummary(BaseModel):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    item_count: int


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    summary: CartSummary


class CartMutationResponse(BaseModel):
    message: str
    item: CartItemResponse
