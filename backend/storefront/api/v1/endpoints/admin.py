"""
Admin dashboard API.

Stats, sales charts, order and user management and CSV exports.
Every route requires an admin token.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.orm import selectinload
from typing import List, Optional
from datetime import date, datetime, timedelta

from storefront.core.database import get_db
from storefront.core.logging_config import logger
from storefront.models import (
    Claim,
    ClaimStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    User,
    UserRole,
    Warranty,
)
from storefront.modules.auth.dependencies import get_current_admin
from storefront.schemas.admin import (
    AdminOrderCustomer,
    AdminOrderListResponse,
    AdminOrderResponse,
    AdminUserListResponse,
    DashboardStats,
    MonthlySales,
    MonthlySalesResponse,
    TopSellingProduct,
)
from storefront.schemas.auth import UserResponse
from storefront.schemas.common import build_pagination
from storefront.schemas.order import OrderResponse, OrderStatusUpdate
from storefront.services import reports
from storefront.services.pricing import money
from storefront.api.v1.endpoints.orders import change_order_status

router = APIRouter()


def warranty_summary(order: Order, today: Optional[date] = None):
    """(label, count) for the warranties registered against an order"""
    today = today or date.today()
    warranties = order.warranties or []
    if not warranties:
        return "Not Registered", 0
    if any(w.expiry_date >= today for w in warranties):
        return "Active", len(warranties)
    return "Expired", len(warranties)


def _admin_order(order: Order) -> AdminOrderResponse:
    label, count = warranty_summary(order)
    customer = None
    if order.user is not None:
        customer = AdminOrderCustomer(
            id=order.user.id,
            name=order.user.name,
            email=order.user.email,
            phone=order.user.phone,
        )
    return AdminOrderResponse(
        **OrderResponse.model_validate(order).model_dump(),
        customer=customer,
        warranty_status=label,
        warranty_count=count,
    )


# ============================================
# Dashboard
# ============================================

@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    today = date.today()

    total_users = await db.scalar(select(func.count(User.id))) or 0
    total_orders = await db.scalar(select(func.count(Order.id))) or 0
    total_sales = await db.scalar(
        select(func.coalesce(func.sum(Order.total_price), 0))
        .where(Order.order_status != OrderStatus.CANCELLED)
    )
    active_warranties = await db.scalar(
        select(func.count(Warranty.id)).where(Warranty.expiry_date >= today)
    ) or 0
    pending_claims = await db.scalar(
        select(func.count(Claim.id)).where(Claim.status == ClaimStatus.PENDING)
    ) or 0
    total_products = await db.scalar(
        select(func.count(Product.id)).where(Product.is_active == True)
    ) or 0

    current_start, current_end = reports.month_bounds(today.year, today.month)
    last_start, last_end = reports.month_bounds(*reports.previous_month(today.year, today.month))
    current_sales, _ = await reports.sales_between(db, current_start, current_end)
    last_sales, _ = await reports.sales_between(db, last_start, last_end)

    return DashboardStats(
        total_users=total_users,
        total_orders=total_orders,
        total_sales=money(total_sales or 0),
        active_warranties=active_warranties,
        pending_claims=pending_claims,
        total_products=total_products,
        current_month_sales=current_sales,
        last_month_sales=last_sales,
        sales_growth=reports.growth_percent(current_sales, last_sales),
    )


@router.get("/sales/monthly", response_model=MonthlySalesResponse)
async def monthly_sales(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    year = year or date.today().year
    rows = await reports.monthly_sales(db, year)
    return MonthlySalesResponse(year=year, months=[MonthlySales(**row) for row in rows])


@router.get("/products/top-selling", response_model=List[TopSellingProduct])
async def top_selling_products(
    limit: int = Query(10, ge=1, le=50),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return [TopSellingProduct(**row) for row in await reports.top_selling_products(db, limit)]


# ============================================
# Orders
# ============================================

@router.get("/orders", response_model=AdminOrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """All orders with customer details and warranty coverage"""
    query = select(Order).join(User, User.id == Order.user_id)
    count_query = select(func.count(Order.id)).join(User, User.id == Order.user_id)

    filters = []
    if status_filter is not None:
        filters.append(Order.order_status == status_filter)
    if payment_status is not None:
        filters.append(Order.payment_status == payment_status)
    if start_date:
        filters.append(Order.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        # Inclusive of the whole end day
        filters.append(Order.created_at < datetime.combine(end_date + timedelta(days=1), datetime.min.time()))
    if search:
        term = f"%{search.strip()}%"
        filters.append(or_(User.name.ilike(term), User.email.ilike(term)))

    total = await db.scalar(count_query.where(*filters)) or 0
    result = await db.execute(
        query
        .options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.user),
            selectinload(Order.warranties),
        )
        .where(*filters)
        .order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )

    return AdminOrderListResponse(
        orders=[_admin_order(o) for o in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    order = await change_order_status(db, order_id, data, background_tasks)
    logger.info(f"[Admin] {admin.email} updated order {order.id}")
    return order


# ============================================
# Users
# ============================================

@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    filters = []
    if search:
        term = f"%{search.strip()}%"
        filters.append(or_(User.name.ilike(term), User.email.ilike(term), User.phone.ilike(term)))
    if role is not None:
        filters.append(User.role == role)

    total = await db.scalar(select(func.count(User.id)).where(*filters)) or 0
    result = await db.execute(
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return AdminUserListResponse(
        users=[UserResponse.model_validate(u) for u in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


# ============================================
# Reports
# ============================================

async def _sales_report(db: AsyncSession, year: int):
    rows = await reports.monthly_sales(db, year)
    return ["Month", "Orders", "Sales"], [(r["month"], r["orders"], r["sales"]) for r in rows]


async def _orders_report(db: AsyncSession, year: int):
    result = await db.execute(
        select(Order).options(selectinload(Order.user)).order_by(Order.created_at.desc())
    )
    rows = [
        (
            o.id, o.user.name if o.user else "", o.user.email if o.user else "",
            o.total_price, o.order_status.value, o.payment_status.value,
            o.payment_method.value if o.payment_method else "",
            o.tracking_number, o.created_at.isoformat() if o.created_at else "",
        )
        for o in result.scalars().all()
    ]
    headers = ["Order ID", "Customer", "Email", "Total", "Order Status", "Payment Status",
               "Payment Method", "Tracking Number", "Created At"]
    return headers, rows


async def _warranties_report(db: AsyncSession, year: int):
    result = await db.execute(
        select(Warranty)
        .options(selectinload(Warranty.user), selectinload(Warranty.product))
        .order_by(Warranty.expiry_date.asc())
    )
    rows = [
        (
            w.id, w.user.name if w.user else "", w.user.email if w.user else "",
            w.product.name if w.product else "", w.serial_number,
            w.purchase_date, w.expiry_date, w.status.value, w.registration_type.value,
        )
        for w in result.scalars().all()
    ]
    headers = ["Warranty ID", "Customer", "Email", "Product", "Serial Number",
               "Purchase Date", "Expiry Date", "Status", "Registration Type"]
    return headers, rows


REPORTS = {
    "sales": _sales_report,
    "orders": _orders_report,
    "warranties": _warranties_report,
}


@router.get("/reports/export")
async def export_report(
    report_type: str = Query(..., alias="type"),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """CSV download of sales, orders or warranties"""
    builder = REPORTS.get(report_type)
    if builder is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid report type. Must be one of: {', '.join(REPORTS)}"
        )

    headers, rows = await builder(db, year or date.today().year)

    filename = f"{report_type}_report_{datetime.utcnow().strftime('%Y%m%d')}.csv"
    logger.info(f"[Admin] {admin.email} exported {report_type} report ({len(rows)} rows)")
    return StreamingResponse(
        iter([reports.rows_to_csv(headers, rows)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
