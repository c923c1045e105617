"""
Reporting queries shared by the admin dashboard, CSV exports and the
scheduled report mails. Sales figures always exclude cancelled orders.
"""
import calendar
import csv
import io
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models import Order, OrderItem, OrderStatus, Product, Warranty
from storefront.services.pricing import money


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """[first instant of month, first instant of next month)"""
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def growth_percent(current: Decimal, previous: Decimal) -> float:
    if not previous:
        return 0.0
    return round(float((current - previous) / previous * 100), 2)


async def sales_between(db: AsyncSession, start: datetime, end: datetime) -> Tuple[Decimal, int]:
    """(revenue, order count) for orders created in [start, end)"""
    row = (await db.execute(
        select(func.coalesce(func.sum(Order.total_price), 0), func.count(Order.id)).where(
            Order.order_status != OrderStatus.CANCELLED,
            Order.created_at >= start,
            Order.created_at < end,
        )
    )).one()
    return money(row[0] or 0), int(row[1] or 0)


async def monthly_sales(db: AsyncSession, year: int) -> List[Dict[str, Any]]:
    """Twelve rows, January first; bucketed in Python so it runs on any backend"""
    start, _ = month_bounds(year, 1)
    end, _ = month_bounds(year + 1, 1)
    result = await db.execute(
        select(Order.created_at, Order.total_price).where(
            Order.order_status != OrderStatus.CANCELLED,
            Order.created_at >= start,
            Order.created_at < end,
        )
    )

    sales = [Decimal("0")] * 12
    counts = [0] * 12
    for created_at, total in result.all():
        sales[created_at.month - 1] += total
        counts[created_at.month - 1] += 1

    return [
        {"month": calendar.month_abbr[m + 1], "sales": money(sales[m]), "orders": counts[m]}
        for m in range(12)
    ]


async def top_selling_products(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    total_quantity = func.sum(OrderItem.quantity).label("total_quantity")
    total_revenue = func.sum(OrderItem.quantity * OrderItem.price_at_purchase).label("total_revenue")
    result = await db.execute(
        select(Product, total_quantity, total_revenue)
        .join(OrderItem, OrderItem.product_id == Product.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.order_status != OrderStatus.CANCELLED)
        .group_by(Product.id)
        .order_by(total_quantity.desc())
        .limit(limit)
    )
    return [
        {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "image_url": product.primary_image,
            "total_quantity": int(quantity or 0),
            "total_revenue": money(revenue or 0),
        }
        for product, quantity, revenue in result.all()
    ]


async def weekly_warranty_summary(db: AsyncSession, today: date) -> Dict[str, int]:
    week_ago = today - timedelta(days=7)
    new_this_week = await db.scalar(
        select(func.count(Warranty.id)).where(Warranty.created_at >= datetime.combine(week_ago, datetime.min.time()))
    )
    expiring_soon = await db.scalar(
        select(func.count(Warranty.id)).where(
            Warranty.expiry_date >= today,
            Warranty.expiry_date <= today + timedelta(days=30),
        )
    )
    expired_last_week = await db.scalar(
        select(func.count(Warranty.id)).where(
            Warranty.expiry_date >= week_ago,
            Warranty.expiry_date < today,
        )
    )
    total_active = await db.scalar(
        select(func.count(Warranty.id)).where(Warranty.expiry_date >= today)
    )
    return {
        "New warranties (7 days)": new_this_week or 0,
        "Expiring in 30 days": expiring_soon or 0,
        "Expired last week": expired_last_week or 0,
        "Total active": total_active or 0,
    }


async def low_stock_products(db: AsyncSession, threshold: int) -> List[Product]:
    result = await db.execute(
        select(Product)
        .where(Product.is_active == True, Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
    )
    return list(result.scalars().all())


def rows_to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return output.getvalue()
