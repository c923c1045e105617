from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, JSON, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from storefront.core.database import Base
from storefront.core.types import GUID, Money, generate_uuid


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    RAZORPAY = "razorpay"
    UPI = "upi"
    NETBANKING = "netbanking"
    COD = "cod"
    IN_STORE = "in_store"


class Order(Base):
    __tablename__ = "orders"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    total_price = Column(Money, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    order_status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=True)
    shipping_address = Column(JSON, nullable=True)
    tracking_number = Column(String(50), nullable=True)

    # Razorpay references
    razorpay_order_id = Column(String(100), nullable=True, index=True)
    razorpay_payment_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    warranties = relationship("Warranty", back_populates="order")

    __table_args__ = (
        Index("ix_orders_status_created", "order_status", "created_at"),
    )

    @property
    def is_cancellable(self) -> bool:
        return self.order_status not in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def __repr__(self):
        return f"<Order {self.id} {self.order_status.value if self.order_status else None}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(GUID, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price_at_purchase = Column(Money, nullable=False)
    # Per-line override used by in-store sales; product.warranty_months otherwise
    warranty_months = Column(Integer, nullable=True)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @property
    def line_total(self):
        return self.price_at_purchase * self.quantity
