from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from storefront.models.order import OrderStatus, PaymentStatus, PaymentMethod
from storefront.schemas.common import Pagination
from storefront.schemas.product import ProductSummary


class ShippingAddress(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    address: str = Field(..., min_length=10, max_length=500)
    city: str = Field(..., min_length=2, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    pincode: str = Field(..., pattern=r"^[1-9][0-9]{5}$")
    phone: Optional[str] = Field(None, pattern=r"^\+?\d{10,15}$")


class OrderCreate(BaseModel):
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.RAZORPAY


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    price_at_purchase: Decimal
    warranty_months: Optional[int] = None
    product: Optional[ProductSummary] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    user_id: str
    total_price: Decimal
    payment_status: PaymentStatus
    order_status: OrderStatus
    payment_method: Optional[PaymentMethod] = None
    shipping_address: Optional[dict] = None
    tracking_number: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    pagination: Pagination


class OrderStatusUpdate(BaseModel):
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = Field(None, max_length=50)


class ManualOrderItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    warranty_months: Optional[int] = Field(None, ge=0, le=120)


class ManualOrderCreate(BaseModel):
    """In-store sale recorded by staff"""
    user_id: str
    items: List[ManualOrderItem] = Field(..., min_length=1)
    shipping_address: Optional[ShippingAddress] = None
    mark_paid: bool = True


class ManualOrderResponse(BaseModel):
    order: OrderResponse
    warranties_created: int
