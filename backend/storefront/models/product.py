"""
Catalogue models.

`Product.category` is the category *name* (a plain string), matching how
products are filtered on the storefront. `Category` rows are the managed
list admins pick from.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, JSON, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from storefront.core.database import Base
from storefront.core.types import GUID, Money, generate_uuid


class Product(Base):
    __tablename__ = "products"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Money, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    stock = Column(Integer, nullable=False, default=0)
    warranty_months = Column(Integer, nullable=False, default=12)
    images = Column(JSON, nullable=True)  # list of image URLs
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    gallery = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.display_order",
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("warranty_months >= 0 AND warranty_months <= 120", name="ck_products_warranty_range"),
        Index("ix_products_active_created", "is_active", "created_at"),
    )

    @property
    def primary_image(self):
        """First listed image URL, if any"""
        if self.images:
            return self.images[0]
        return None

    def __repr__(self):
        return f"<Product {self.name} stock={self.stock}>"


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    product_id = Column(GUID, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(500), nullable=False)
    alt_text = Column(String(255), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="gallery")


class Category(Base):
    __tablename__ = "categories"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Category {self.name}>"
