"""
Warranty registration.

Warranties come from three places: a customer registering a product by
hand, an order being delivered (or sold in store), and a verified online
payment, which registers one warranty per unit bought.
"""
import calendar
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ConflictError, ResourceNotFoundError
from storefront.core.logging_config import logger
from storefront.models import Order, Product, User, Warranty, RegistrationType


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the last day of the target month"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def auto_serial(order_id: str, product_id: str, unit: int, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    stamp = int(now.timestamp() * 1000)
    return f"AUTO-{order_id[:8]}-{product_id[:8]}-{unit}-{stamp}"


async def _registered_product_ids(db: AsyncSession, order_id: str) -> set:
    result = await db.execute(
        select(Warranty.product_id).where(Warranty.order_id == order_id)
    )
    return set(result.scalars().all())


async def register_order_warranties(
    db: AsyncSession,
    order: Order,
    per_unit: bool = False,
    purchase_date: Optional[date] = None,
) -> List[Warranty]:
    """
    Create warranties for an order whose items (and products) are loaded.

    Lines with zero warranty months are skipped, as are products that
    already have a warranty against this order. With per_unit, each unit
    gets its own warranty and serial number.
    """
    purchase_date = purchase_date or date.today()
    already = await _registered_product_ids(db, order.id)
    created: List[Warranty] = []

    for item in order.items:
        months = item.warranty_months if item.warranty_months is not None else item.product.warranty_months
        if not months or months <= 0 or item.product_id in already:
            continue

        units = item.quantity if per_unit else 1
        for unit in range(1, units + 1):
            warranty = Warranty(
                user_id=order.user_id,
                product_id=item.product_id,
                order_id=order.id,
                purchase_date=purchase_date,
                expiry_date=add_months(purchase_date, months),
                serial_number=auto_serial(order.id, item.product_id, unit) if per_unit else None,
                registration_type=RegistrationType.AUTO,
            )
            warranty.product = item.product
            db.add(warranty)
            created.append(warranty)
        already.add(item.product_id)

    if created:
        await db.flush()
        logger.info(f"[Warranty] Auto-registered {len(created)} warranties for order {order.id}")

    return created


async def register_manual_warranty(
    db: AsyncSession,
    user: User,
    product_id: str,
    purchase_date: date,
    serial_number: Optional[str] = None,
    invoice_url: Optional[str] = None,
) -> Warranty:
    product = await db.scalar(
        select(Product).where(Product.id == product_id, Product.is_active == True)
    )
    if not product:
        raise ResourceNotFoundError("Product", product_id)

    if serial_number:
        taken = await db.scalar(select(Warranty.id).where(Warranty.serial_number == serial_number))
        if taken:
            raise ConflictError("Warranty with this serial number already exists", field="serial_number")

    warranty = Warranty(
        user_id=user.id,
        product_id=product.id,
        purchase_date=purchase_date,
        expiry_date=add_months(purchase_date, product.warranty_months),
        serial_number=serial_number,
        invoice_url=invoice_url,
        registration_type=RegistrationType.MANUAL,
    )
    warranty.product = product
    db.add(warranty)
    await db.flush()

    logger.info(f"[Warranty] Manual registration {warranty.id} for product {product.id} by {user.email}")
    return warranty
