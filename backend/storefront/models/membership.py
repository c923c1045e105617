from sqlalchemy import Column, Integer, String, Date, DateTime, Enum as SQLEnum
from datetime import datetime, date
import enum

from storefront.core.database import Base
from storefront.core.types import Money


class PaymentMode(str, enum.Enum):
    CASH = "Cash"
    GPAY = "GPay"


class Membership(Base):
    """In-store device protection plan, looked up by IMEI / mobile / MEM id"""
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    dob = Column(Date, nullable=True)
    mobile_primary = Column(String(15), nullable=False, index=True)
    membership_start_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False)
    payment_mode = Column(SQLEnum(PaymentMode), default=PaymentMode.CASH, nullable=False)
    amount = Column(Money, nullable=False, default=0)
    unique_membership_id = Column(String(20), unique=True, nullable=False)
    phone_brand_model = Column(String(255), nullable=True)
    imei_number = Column(String(30), unique=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.expiry_date >= date.today()

    @property
    def status(self) -> str:
        return "Active" if self.is_active else "Expired"

    def __repr__(self):
        return f"<Membership {self.unique_membership_id} {self.imei_number}>"
