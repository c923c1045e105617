"""
Order lifecycle: checkout from cart, cancellation, status changes,
payment confirmation and in-store (manual) sales.

Functions flush but never commit; the caller owns the transaction.
Every check runs before the first write, so a rejected request leaves
the session clean.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Tuple, Dict

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.exceptions import (
    InsufficientStockError,
    ResourceNotFoundError,
    ValidationError,
)
from storefront.core.logging_config import logger
from storefront.models import (
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Product,
    User,
    Warranty,
)
from storefront.services.pricing import money, order_total
from storefront.services.warranty_service import register_order_warranties


async def load_order(db: AsyncSession, order_id: str, user_id: Optional[str] = None) -> Order:
    """Order with items, products and customer. Scoped to user_id when given."""
    query = (
        select(Order)
        .options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.user),
        )
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    if user_id is not None:
        query = query.where(Order.user_id == user_id)

    order = (await db.execute(query)).scalar_one_or_none()
    if not order:
        raise ResourceNotFoundError("Order", order_id)
    return order


def tracking_number_for(order_id: str) -> str:
    return f"TRK{order_id.replace('-', '')[-8:].upper()}"


async def create_order_from_cart(
    db: AsyncSession,
    user: User,
    shipping_address: dict,
    payment_method: PaymentMethod,
) -> Order:
    """Turn the user's cart into an order, reserve stock and empty the cart"""
    result = await db.execute(
        select(CartItem)
        .options(selectinload(CartItem.product))
        .where(CartItem.user_id == user.id)
        .order_by(CartItem.created_at)
    )
    cart_items = result.scalars().all()
    if not cart_items:
        raise ValidationError("Cart is empty")

    # Lock the product rows (no-op on SQLite) and re-read stock
    product_ids = [item.product_id for item in cart_items]
    locked = await db.execute(
        select(Product).where(Product.id.in_(product_ids)).with_for_update()
    )
    products = {p.id: p for p in locked.scalars().all()}

    for item in cart_items:
        product = products.get(item.product_id)
        if not product or not product.is_active:
            raise ResourceNotFoundError("Product", item.product_id)
        if product.stock < item.quantity:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}",
                product_name=product.name,
                available=product.stock,
            )

    total = order_total((products[i.product_id].price, i.quantity) for i in cart_items)

    order = Order(
        user_id=user.id,
        total_price=total,
        payment_status=PaymentStatus.PENDING,
        order_status=OrderStatus.PENDING,
        payment_method=payment_method,
        shipping_address=shipping_address,
    )
    for item in cart_items:
        product = products[item.product_id]
        order.items.append(OrderItem(
            product_id=product.id,
            quantity=item.quantity,
            price_at_purchase=money(product.price),
        ))
        product.stock -= item.quantity

    db.add(order)
    await db.execute(delete(CartItem).where(CartItem.user_id == user.id))
    await db.flush()

    logger.info(f"[Order] Created {order.id} for {user.email}: {len(cart_items)} lines, total {total}")
    return await load_order(db, order.id)


async def cancel_order(db: AsyncSession, order: Order) -> Order:
    """Cancel and put the stock back on the shelf"""
    if order.order_status == OrderStatus.DELIVERED:
        raise ValidationError("Delivered orders cannot be cancelled")
    if order.order_status == OrderStatus.CANCELLED:
        raise ValidationError("Order is already cancelled")

    for item in order.items:
        if item.product is not None:
            item.product.stock += item.quantity

    order.order_status = OrderStatus.CANCELLED
    await db.flush()
    logger.info(f"[Order] Cancelled {order.id}, stock restored")
    return order


async def mark_order_paid(db: AsyncSession, order: Order, payment_id: Optional[str] = None) -> Order:
    order.payment_status = PaymentStatus.PAID
    if order.order_status == OrderStatus.PENDING:
        order.order_status = OrderStatus.CONFIRMED
    if payment_id:
        order.razorpay_payment_id = payment_id
    await db.flush()
    return order


async def update_order_status(
    db: AsyncSession,
    order: Order,
    order_status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    tracking_number: Optional[str] = None,
) -> Tuple[Order, List[Warranty], bool]:
    """
    Apply an admin status change.

    Returns (order, warranties created, whether order_status changed).
    Delivery registers warranties for the order's items.
    A cancelled order stays cancelled.
    """
    status_changed = order_status is not None and order_status != order.order_status
    created: List[Warranty] = []

    if order.order_status == OrderStatus.CANCELLED and status_changed:
        # Stock went back on the shelf when it was cancelled
        raise ValidationError("Cancelled orders cannot be reopened")

    if order_status == OrderStatus.CANCELLED and status_changed:
        await cancel_order(db, order)
    elif order_status is not None:
        order.order_status = order_status

    if payment_status is not None:
        order.payment_status = payment_status
    if tracking_number:
        order.tracking_number = tracking_number
    elif order_status == OrderStatus.SHIPPED and not order.tracking_number:
        order.tracking_number = tracking_number_for(order.id)

    await db.flush()

    if status_changed and order_status == OrderStatus.DELIVERED:
        created = await register_order_warranties(db, order)

    logger.info(
        f"[Order] {order.id} status -> {order.order_status.value}/{order.payment_status.value}"
        + (f", {len(created)} warranties" if created else "")
    )
    return order, created, status_changed


async def create_manual_order(
    db: AsyncSession,
    user_id: str,
    items: List[Dict],
    shipping_address: Optional[dict] = None,
    mark_paid: bool = True,
) -> Tuple[Order, List[Warranty]]:
    """Record a counter sale for an existing customer and register warranties immediately"""
    customer = await db.scalar(select(User).where(User.id == user_id))
    if not customer:
        raise ResourceNotFoundError("User", user_id)

    # Merge repeated products so the stock check sees the full quantity
    merged: Dict[str, Dict] = {}
    for line in items:
        entry = merged.setdefault(line["product_id"], {"quantity": 0, "warranty_months": None})
        entry["quantity"] += line["quantity"]
        if line.get("warranty_months") is not None:
            entry["warranty_months"] = line["warranty_months"]

    locked = await db.execute(
        select(Product).where(Product.id.in_(list(merged))).with_for_update()
    )
    products = {p.id: p for p in locked.scalars().all()}

    for product_id, entry in merged.items():
        product = products.get(product_id)
        if not product:
            raise ResourceNotFoundError("Product", product_id)
        if product.stock < entry["quantity"]:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}",
                product_name=product.name,
                available=product.stock,
            )

    order = Order(
        user_id=customer.id,
        total_price=order_total((products[pid].price, e["quantity"]) for pid, e in merged.items()),
        payment_status=PaymentStatus.PAID if mark_paid else PaymentStatus.PENDING,
        order_status=OrderStatus.CONFIRMED,
        payment_method=PaymentMethod.IN_STORE,
        shipping_address=shipping_address,
    )
    for product_id, entry in merged.items():
        product = products[product_id]
        order.items.append(OrderItem(
            product_id=product.id,
            quantity=entry["quantity"],
            price_at_purchase=money(product.price),
            warranty_months=entry["warranty_months"],
        ))
        product.stock -= entry["quantity"]

    db.add(order)
    await db.flush()

    order = await load_order(db, order.id)
    warranties = await register_order_warranties(db, order)

    logger.info(f"[Order] Manual sale {order.id} for {customer.email}, {len(warranties)} warranties")
    return order, warranties


async def advance_orders(db: AsyncSession, now: Optional[datetime] = None,
                         ship_after_hours: int = 2, deliver_after_days: int = 3) -> Dict[str, int]:
    """
    Move paid orders along the fulfilment pipeline:
    confirmed -> shipped after ship_after_hours, shipped -> delivered after deliver_after_days.
    """
    now = now or datetime.utcnow()
    shipped = delivered = warranties = 0

    result = await db.execute(
        select(Order.id).where(
            Order.order_status == OrderStatus.CONFIRMED,
            Order.payment_status == PaymentStatus.PAID,
            Order.updated_at <= now - timedelta(hours=ship_after_hours),
        )
    )
    for order_id in result.scalars().all():
        order = await load_order(db, order_id)
        await update_order_status(db, order, order_status=OrderStatus.SHIPPED)
        shipped += 1

    result = await db.execute(
        select(Order.id).where(
            Order.order_status == OrderStatus.SHIPPED,
            Order.updated_at <= now - timedelta(days=deliver_after_days),
        )
    )
    for order_id in result.scalars().all():
        order = await load_order(db, order_id)
        _, created, _ = await update_order_status(db, order, order_status=OrderStatus.DELIVERED)
        delivered += 1
        warranties += len(created)

    return {"shipped": shipped, "delivered": delivered, "warranties": warranties}
