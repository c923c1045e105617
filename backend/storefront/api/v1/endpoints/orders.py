from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import Optional

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.exceptions import ValidationError
from storefront.core.logging_config import logger
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_admin, get_current_user
from storefront.schemas.common import build_pagination
from storefront.schemas.order import (
    ManualOrderCreate,
    ManualOrderResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from storefront.services import order_service
from storefront.services.notification_service import notification_service

router = APIRouter()


def _alert_low_stock(background_tasks: BackgroundTasks, order: Order):
    low = [
        (item.product.name, item.product.stock)
        for item in order.items
        if item.product is not None and item.product.stock <= settings.LOW_STOCK_THRESHOLD
    ]
    if low:
        notification_service.admin_alert(
            background_tasks,
            "Low stock alert",
            f"Order {order.id} left {len(low)} product(s) at or below the stock threshold.",
            {name: f"{stock} left" for name, stock in low},
        )


async def change_order_status(
    db: AsyncSession,
    order_id: str,
    data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
) -> Order:
    """Admin status change shared by /orders and /admin"""
    if data.order_status is None and data.payment_status is None and not data.tracking_number:
        raise ValidationError("Nothing to update")

    order = await order_service.load_order(db, order_id)
    order, warranties, status_changed = await order_service.update_order_status(
        db,
        order,
        order_status=data.order_status,
        payment_status=data.payment_status,
        tracking_number=data.tracking_number,
    )
    await db.commit()

    if status_changed:
        notification_service.order_status_changed(background_tasks, order)
    if warranties:
        notification_service.warranties_registered(background_tasks, order.user, warranties)
    return order


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Checkout: turn the cart into an order"""
    order = await order_service.create_order_from_cart(
        db,
        current_user,
        shipping_address=data.shipping_address.model_dump(),
        payment_method=data.payment_method,
    )
    await db.commit()

    notification_service.order_placed(background_tasks, current_user, order)
    _alert_low_stock(background_tasks, order)
    return order


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    filters = [Order.user_id == current_user.id]
    if status_filter and status_filter != "all":
        try:
            filters.append(Order.order_status == OrderStatus(status_filter))
        except ValueError:
            raise ValidationError(f"Unknown order status: {status_filter}", field="status")

    total = await db.scalar(select(func.count(Order.id)).where(*filters)) or 0
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .where(*filters)
        .order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await order_service.load_order(db, order_id, user_id=current_user.id)


@router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await order_service.load_order(db, order_id, user_id=current_user.id)
    order = await order_service.cancel_order(db, order)
    await db.commit()
    return order


@router.post("/{order_id}/confirm-payment", response_model=OrderResponse)
async def confirm_payment(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark an order paid after an offline payment (UPI QR, COD)"""
    order = await order_service.load_order(db, order_id, user_id=current_user.id)
    if order.order_status == OrderStatus.CANCELLED:
        raise ValidationError("Cannot confirm payment for a cancelled order")

    order = await order_service.mark_order_paid(db, order)
    await db.commit()

    logger.log_payment_event("payment_confirmed", order.id, amount=str(order.total_price))
    return order


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    order = await change_order_status(db, order_id, data, background_tasks)
    logger.info(f"[Orders] {admin.email} updated order {order.id}")
    return order


@router.post("/admin/manual", response_model=ManualOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_order(
    data: ManualOrderCreate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Record an in-store sale against an existing customer"""
    order, warranties = await order_service.create_manual_order(
        db,
        user_id=data.user_id,
        items=[item.model_dump() for item in data.items],
        shipping_address=data.shipping_address.model_dump() if data.shipping_address else None,
        mark_paid=data.mark_paid,
    )
    await db.commit()

    if warranties:
        notification_service.warranties_registered(background_tasks, order.user, warranties)
    _alert_low_stock(background_tasks, order)

    logger.info(f"[Orders] {admin.email} recorded in-store sale {order.id}")
    return ManualOrderResponse(
        order=OrderResponse.model_validate(order),
        warranties_created=len(warranties),
    )
