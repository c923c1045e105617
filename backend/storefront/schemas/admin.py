from pydantic import BaseModel
from typing import Optional, List
from decimal import Decimal

from storefront.schemas.auth import UserResponse
from storefront.schemas.common import Pagination
from storefront.schemas.order import OrderResponse


class DashboardStats(BaseModel):
    total_users: int
    total_orders: int
    total_sales: Decimal
    active_warranties: int
    pending_claims: int
    total_products: int
    current_month_sales: Decimal
    last_month_sales: Decimal
    sales_growth: float


class MonthlySales(BaseModel):
    month: str
    sales: Decimal
    orders: int


class MonthlySalesResponse(BaseModel):
    year: int
    months: List[MonthlySales]


class TopSellingProduct(BaseModel):
    id: str
    name: str
    price: Decimal
    image_url: Optional[str] = None
    total_quantity: int
    total_revenue: Decimal


class AdminOrderCustomer(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None


class AdminOrderResponse(OrderResponse):
    customer: Optional[AdminOrderCustomer] = None
    warranty_status: str
    warranty_count: int


class AdminOrderListResponse(BaseModel):
    orders: List[AdminOrderResponse]
    pagination: Pagination


class AdminUserListResponse(BaseModel):
    users: List[UserResponse]
    pagination: Pagination
