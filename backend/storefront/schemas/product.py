from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from storefront.schemas.common import Pagination, reject_null


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=100)
    stock: int = Field(0, ge=0)
    warranty_months: int = Field(12, ge=0, le=120)
    images: Optional[List[str]] = None

    @field_validator('name', 'category')
    @classmethod
    def strip_text(cls, v):
        return v.strip()


class ProductCreate(ProductBase):
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    stock: Optional[int] = Field(None, ge=0)
    warranty_months: Optional[int] = Field(None, ge=0, le=120)
    images: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator('name', 'price', 'category', 'stock', 'warranty_months', 'is_active')
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)


class ProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    category: str
    stock: int
    warranty_months: int
    images: Optional[List[str]] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductImageCreate(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=500)
    alt_text: Optional[str] = Field(None, max_length=255)
    display_order: int = Field(0, ge=0)
    is_primary: bool = False


class ProductImageResponse(BaseModel):
    id: str
    image_url: str
    alt_text: Optional[str] = None
    display_order: int
    is_primary: bool

    class Config:
        from_attributes = True


class ProductDetailResponse(ProductResponse):
    gallery: List[ProductImageResponse] = []


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    pagination: Pagination


class ProductSummary(BaseModel):
    """Compact product view embedded in cart, order and warranty payloads"""
    id: str
    name: str
    price: Decimal
    category: str
    stock: int
    warranty_months: int
    images: Optional[List[str]] = None

    class Config:
        from_attributes = True


# ============================================
# Categories
# ============================================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Category name is required")
        return v


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('name', 'is_active')
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)


class CategoryResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
