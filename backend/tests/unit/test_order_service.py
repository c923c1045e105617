"""
Unit Tests for the Order Lifecycle
Tests for: checkout from cart, cancellation, admin status changes, in-store sales, auto-advance
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select, func

from storefront.core.exceptions import InsufficientStockError, ResourceNotFoundError, ValidationError
from storefront.models import (
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Warranty,
)
from storefront.services.order_service import (
    advance_orders,
    cancel_order,
    create_manual_order,
    create_order_from_cart,
    load_order,
    mark_order_paid,
    tracking_number_for,
    update_order_status,
)
from storefront.services.warranty_service import add_months


async def _fill_cart(db_session, user, *lines):
    for product, quantity in lines:
        db_session.add(CartItem(user_id=user.id, product_id=product.id, quantity=quantity))
    await db_session.flush()


async def _placed_order(db_session, user, product, quantity=1, **fields):
    order = Order(user_id=user.id, total_price=Decimal("549.00"), **fields)
    order.items.append(OrderItem(product_id=product.id, quantity=quantity, price_at_purchase=product.price))
    db_session.add(order)
    await db_session.flush()
    return await load_order(db_session, order.id)


class TestCreateOrderFromCart:

    @pytest.mark.asyncio
    async def test_checkout(self, db_session, test_user, product, shipping_address):
        await _fill_cart(db_session, test_user, (product, 2))

        order = await create_order_from_cart(db_session, test_user, shipping_address, PaymentMethod.RAZORPAY)

        # 2 x 499 + 50 shipping, no tax on orders
        assert order.total_price == Decimal("1048.00")
        assert order.order_status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.items[0].price_at_purchase == Decimal("499.00")
        assert product.stock == 8

        remaining = await db_session.scalar(select(func.count(CartItem.id)).where(CartItem.user_id == test_user.id))
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_empty_cart(self, db_session, test_user, shipping_address):
        with pytest.raises(ValidationError) as exc_info:
            await create_order_from_cart(db_session, test_user, shipping_address, PaymentMethod.COD)

        assert exc_info.value.message == "Cart is empty"

    @pytest.mark.asyncio
    async def test_insufficient_stock_leaves_cart(self, db_session, test_user, product_factory, shipping_address):
        phone = await product_factory(name="Redmi 13C", stock=1)
        await _fill_cart(db_session, test_user, (phone, 3))

        with pytest.raises(InsufficientStockError) as exc_info:
            await create_order_from_cart(db_session, test_user, shipping_address, PaymentMethod.COD)

        assert exc_info.value.details == {"product": "Redmi 13C", "available": 1}
        assert phone.stock == 1
        remaining = await db_session.scalar(select(func.count(CartItem.id)).where(CartItem.user_id == test_user.id))
        assert remaining == 1

    @pytest.mark.asyncio
    async def test_inactive_product(self, db_session, test_user, product_factory, shipping_address):
        retired = await product_factory(name="Old Model", is_active=False)
        await _fill_cart(db_session, test_user, (retired, 1))

        with pytest.raises(ResourceNotFoundError):
            await create_order_from_cart(db_session, test_user, shipping_address, PaymentMethod.COD)


class TestCancelOrder:

    @pytest.mark.asyncio
    async def test_cancel_restores_stock(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, quantity=3)

        await cancel_order(db_session, order)

        assert order.order_status == OrderStatus.CANCELLED
        assert product.stock == 13

    @pytest.mark.asyncio
    async def test_delivered_cannot_cancel(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, order_status=OrderStatus.DELIVERED)

        with pytest.raises(ValidationError):
            await cancel_order(db_session, order)

    @pytest.mark.asyncio
    async def test_cancel_twice(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product)
        await cancel_order(db_session, order)

        with pytest.raises(ValidationError) as exc_info:
            await cancel_order(db_session, order)

        assert exc_info.value.message == "Order is already cancelled"
        assert product.stock == 11


class TestStatusChanges:

    @pytest.mark.asyncio
    async def test_mark_paid_confirms_pending(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product)

        await mark_order_paid(db_session, order, payment_id="pay_123")

        assert order.payment_status == PaymentStatus.PAID
        assert order.order_status == OrderStatus.CONFIRMED
        assert order.razorpay_payment_id == "pay_123"

    @pytest.mark.asyncio
    async def test_shipping_assigns_tracking_number(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, order_status=OrderStatus.CONFIRMED)

        _, created, changed = await update_order_status(db_session, order, order_status=OrderStatus.SHIPPED)

        assert changed is True
        assert created == []
        assert order.tracking_number == tracking_number_for(order.id)
        assert order.tracking_number.startswith("TRK")

    @pytest.mark.asyncio
    async def test_delivery_registers_warranties(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, order_status=OrderStatus.SHIPPED)

        _, created, _ = await update_order_status(db_session, order, order_status=OrderStatus.DELIVERED)

        assert len(created) == 1
        assert created[0].expiry_date == add_months(date.today(), 12)

    @pytest.mark.asyncio
    async def test_admin_cancel_restores_stock(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, quantity=2)

        await update_order_status(db_session, order, order_status=OrderStatus.CANCELLED)

        assert product.stock == 12

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_reopened(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, quantity=2)
        await update_order_status(db_session, order, order_status=OrderStatus.CANCELLED)

        with pytest.raises(ValidationError, match="Cancelled orders cannot be reopened"):
            await update_order_status(db_session, order, order_status=OrderStatus.DELIVERED)

        assert order.order_status == OrderStatus.CANCELLED
        assert product.stock == 12
        count = await db_session.scalar(select(func.count(Warranty.id)).where(Warranty.order_id == order.id))
        assert count == 0

    @pytest.mark.asyncio
    async def test_cancelled_order_can_be_refunded(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, order_status=OrderStatus.CANCELLED)

        _, _, changed = await update_order_status(db_session, order, payment_status=PaymentStatus.REFUNDED)

        assert changed is False
        assert order.payment_status == PaymentStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_same_status_is_not_a_change(self, db_session, test_user, product):
        order = await _placed_order(db_session, test_user, product, order_status=OrderStatus.DELIVERED)

        _, created, changed = await update_order_status(db_session, order, order_status=OrderStatus.DELIVERED)

        assert changed is False
        assert created == []


class TestManualOrder:

    @pytest.mark.asyncio
    async def test_counter_sale(self, db_session, test_user, product):
        order, warranties = await create_manual_order(
            db_session,
            test_user.id,
            [
                {"product_id": product.id, "quantity": 1},
                {"product_id": product.id, "quantity": 1, "warranty_months": 6},
            ],
        )

        assert order.payment_method == PaymentMethod.IN_STORE
        assert order.payment_status == PaymentStatus.PAID
        assert order.order_status == OrderStatus.CONFIRMED
        assert len(order.items) == 1
        assert order.items[0].quantity == 2
        assert product.stock == 8
        assert len(warranties) == 1
        assert warranties[0].expiry_date == add_months(date.today(), 6)

    @pytest.mark.asyncio
    async def test_unknown_customer(self, db_session, product):
        with pytest.raises(ResourceNotFoundError):
            await create_manual_order(db_session, "missing-user", [{"product_id": product.id, "quantity": 1}])

    @pytest.mark.asyncio
    async def test_stock_checked_on_merged_quantity(self, db_session, test_user, product):
        with pytest.raises(InsufficientStockError):
            await create_manual_order(
                db_session,
                test_user.id,
                [{"product_id": product.id, "quantity": 6}, {"product_id": product.id, "quantity": 5}],
            )

        assert product.stock == 10


class TestAdvanceOrders:

    @pytest.mark.asyncio
    async def test_pipeline(self, db_session, test_user, product):
        now = datetime.utcnow()
        to_ship = await _placed_order(
            db_session, test_user, product,
            order_status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
            updated_at=now - timedelta(hours=3),
        )
        unpaid = await _placed_order(
            db_session, test_user, product,
            order_status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.PENDING,
            updated_at=now - timedelta(hours=3),
        )
        to_deliver = await _placed_order(
            db_session, test_user, product,
            order_status=OrderStatus.SHIPPED, payment_status=PaymentStatus.PAID,
            updated_at=now - timedelta(days=4),
        )

        stats = await advance_orders(db_session, now=now)

        assert stats == {"shipped": 1, "delivered": 1, "warranties": 1}
        assert (await load_order(db_session, to_ship.id)).order_status == OrderStatus.SHIPPED
        assert (await load_order(db_session, unpaid.id)).order_status == OrderStatus.CONFIRMED
        assert (await load_order(db_session, to_deliver.id)).order_status == OrderStatus.DELIVERED
        count = await db_session.scalar(select(func.count(Warranty.id)).where(Warranty.order_id == to_deliver.id))
        assert count == 1
