"""
Warranty and claim models.

A warranty's status is derived from its expiry date and is never stored,
so it cannot drift out of date.
"""
from sqlalchemy import Column, String, Date, DateTime, Text, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
from datetime import datetime, date
import enum

from storefront.core.database import Base
from storefront.core.types import GUID, generate_uuid


class RegistrationType(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


class WarrantyStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class ClaimStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESOLVED = "resolved"


class Warranty(Base):
    __tablename__ = "warranties"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(GUID, ForeignKey("products.id"), nullable=False, index=True)
    order_id = Column(GUID, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    purchase_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False, index=True)
    serial_number = Column(String(100), unique=True, nullable=True)
    invoice_url = Column(String(500), nullable=True)
    registration_type = Column(SQLEnum(RegistrationType), default=RegistrationType.MANUAL, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="warranties")
    product = relationship("Product")
    order = relationship("Order", back_populates="warranties")
    claims = relationship("Claim", back_populates="warranty", cascade="all, delete-orphan")

    def status_on(self, today: date) -> WarrantyStatus:
        return WarrantyStatus.ACTIVE if self.expiry_date >= today else WarrantyStatus.EXPIRED

    @property
    def status(self) -> WarrantyStatus:
        return self.status_on(date.today())

    @property
    def days_remaining(self) -> int:
        return max((self.expiry_date - date.today()).days, 0)

    def __repr__(self):
        return f"<Warranty {self.id} expires={self.expiry_date}>"


class Claim(Base):
    __tablename__ = "claims"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    warranty_id = Column(GUID, ForeignKey("warranties.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_description = Column(Text, nullable=False)
    image_url = Column(String(500), nullable=True)
    status = Column(SQLEnum(ClaimStatus), default=ClaimStatus.PENDING, nullable=False)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    warranty = relationship("Warranty", back_populates="claims")

    __table_args__ = (
        Index("ix_claims_status_created", "status", "created_at"),
    )
