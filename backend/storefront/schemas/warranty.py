from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime

from storefront.models.warranty import RegistrationType, WarrantyStatus, ClaimStatus
from storefront.schemas.common import Pagination
from storefront.schemas.product import ProductSummary


class WarrantyRegister(BaseModel):
    product_id: str
    purchase_date: date
    serial_number: Optional[str] = Field(None, min_length=1, max_length=100)
    invoice_url: Optional[str] = Field(None, max_length=500)


class AutoRegisterRequest(BaseModel):
    order_id: str


class WarrantyResponse(BaseModel):
    id: str
    user_id: str
    product_id: str
    order_id: Optional[str] = None
    purchase_date: date
    expiry_date: date
    serial_number: Optional[str] = None
    invoice_url: Optional[str] = None
    registration_type: RegistrationType
    status: WarrantyStatus
    days_remaining: int
    created_at: datetime

    class Config:
        from_attributes = True


class WarrantyWithProduct(WarrantyResponse):
    product: Optional[ProductSummary] = None


class WarrantyListResponse(BaseModel):
    warranties: List[WarrantyWithProduct]
    pagination: Optional[Pagination] = None


class ClaimCreate(BaseModel):
    warranty_id: str
    issue_description: str = Field(..., min_length=10, max_length=2000)
    image_url: Optional[str] = Field(None, max_length=500)


class ClaimResponse(BaseModel):
    id: str
    warranty_id: str
    issue_description: str
    image_url: Optional[str] = None
    status: ClaimStatus
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClaimWithWarranty(ClaimResponse):
    warranty: Optional[WarrantyWithProduct] = None


class WarrantyDetailResponse(WarrantyWithProduct):
    claims: List[ClaimResponse] = []


class ClaimListResponse(BaseModel):
    claims: List[ClaimWithWarranty]
    pagination: Optional[Pagination] = None


class ClaimStatusUpdate(BaseModel):
    status: ClaimStatus
    admin_notes: Optional[str] = Field(None, max_length=2000)
