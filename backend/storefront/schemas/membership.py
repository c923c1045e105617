from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from storefront.models.membership import PaymentMode
from storefront.schemas.common import Pagination, reject_null


class MembershipCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    dob: Optional[date] = None
    mobile_primary: str = Field(..., min_length=10, max_length=15)
    membership_start_date: Optional[date] = None
    expiry_date: Optional[date] = None
    payment_mode: PaymentMode = PaymentMode.CASH
    amount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    phone_brand_model: Optional[str] = Field(None, max_length=255)
    imei_number: str = Field(..., min_length=10, max_length=30)

    @field_validator('full_name', 'mobile_primary', 'imei_number')
    @classmethod
    def strip_text(cls, v):
        return v.strip()


class MembershipUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    dob: Optional[date] = None
    mobile_primary: Optional[str] = Field(None, min_length=10, max_length=15)
    membership_start_date: Optional[date] = None
    expiry_date: Optional[date] = None
    payment_mode: Optional[PaymentMode] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    phone_brand_model: Optional[str] = Field(None, max_length=255)
    imei_number: Optional[str] = Field(None, min_length=10, max_length=30)

    @field_validator('full_name', 'mobile_primary', 'membership_start_date', 'expiry_date',
                     'payment_mode', 'amount', 'imei_number')
    @classmethod
    def required_columns(cls, v):
        v = reject_null(v)
        return v.strip() if isinstance(v, str) else v


class MembershipResponse(BaseModel):
    id: int
    full_name: str
    dob: Optional[date] = None
    mobile_primary: str
    membership_start_date: date
    expiry_date: date
    payment_mode: PaymentMode
    amount: Decimal
    unique_membership_id: str
    phone_brand_model: Optional[str] = None
    imei_number: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MembershipListResponse(BaseModel):
    memberships: List[MembershipResponse]
    pagination: Pagination
