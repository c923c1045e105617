from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional
from datetime import date, datetime
import re

from storefront.core.database import get_db
from storefront.core.logging_config import logger
from storefront.core.rate_limiter import endpoint_limit
from storefront.models.membership import Membership, PaymentMode
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_admin
from storefront.schemas.common import MessageResponse, build_pagination
from storefront.schemas.membership import (
    MembershipCreate,
    MembershipListResponse,
    MembershipResponse,
    MembershipUpdate,
)
from storefront.services.reports import rows_to_csv
from storefront.services.warranty_service import add_months

router = APIRouter()

EXPORT_HEADERS = [
    "ID", "Full Name", "DOB", "Mobile Primary", "Membership Start Date", "Expiry Date",
    "Payment Mode", "Amount", "Unique Membership ID", "Phone Brand & Model", "IMEI Number",
    "Status", "Created At", "Updated At",
]


async def next_membership_id(db: AsyncSession) -> str:
    """MEM001, MEM002, ... following the newest record"""
    last = await db.scalar(
        select(Membership.unique_membership_id).order_by(Membership.id.desc()).limit(1)
    )
    number = 1
    if last:
        match = re.search(r"(\d+)$", last)
        if match:
            number = int(match.group(1)) + 1
    return f"MEM{number:03d}"


async def _get_membership(db: AsyncSession, membership_id: int) -> Membership:
    membership = await db.scalar(select(Membership).where(Membership.id == membership_id))
    if not membership:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Membership not found")
    return membership


async def _ensure_imei_free(db: AsyncSession, imei: str, exclude_id: Optional[int] = None):
    query = select(Membership.id).where(Membership.imei_number == imei)
    if exclude_id is not None:
        query = query.where(Membership.id != exclude_id)
    if await db.scalar(query):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A membership with this IMEI number already exists"
        )


@router.get("/search", response_model=MembershipResponse)
@endpoint_limit("membership_search")
async def search_membership(
    request: Request,
    search: str = Query(""),
    db: AsyncSession = Depends(get_db)
):
    """Public lookup by IMEI, mobile number or membership id (exact match)"""
    term = search.strip()
    if not term:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search term is required")

    membership = await db.scalar(
        select(Membership)
        .where(or_(
            Membership.imei_number == term,
            Membership.mobile_primary == term,
            Membership.unique_membership_id == term.upper(),
        ))
        .order_by(Membership.expiry_date.desc())
        .limit(1)
    )
    if not membership:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No membership record found.")
    return membership


@router.get("/export")
async def export_memberships(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Membership).order_by(Membership.id))
    rows = [
        (
            m.id, m.full_name, m.dob, m.mobile_primary, m.membership_start_date, m.expiry_date,
            m.payment_mode.value, m.amount, m.unique_membership_id, m.phone_brand_model,
            m.imei_number, m.status,
            m.created_at.isoformat() if m.created_at else None,
            m.updated_at.isoformat() if m.updated_at else None,
        )
        for m in result.scalars().all()
    ]

    filename = f"memberships_{datetime.utcnow().strftime('%Y%m%d')}.csv"
    logger.info(f"[Memberships] {admin.email} exported {len(rows)} memberships")
    return StreamingResponse(
        iter([rows_to_csv(EXPORT_HEADERS, rows)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("", response_model=MembershipListResponse)
async def list_memberships(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(active|expired)$"),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    filters = []
    if search:
        term = f"%{search.strip()}%"
        filters.append(or_(
            Membership.full_name.ilike(term),
            Membership.mobile_primary.ilike(term),
            Membership.imei_number.ilike(term),
            Membership.unique_membership_id.ilike(term),
        ))
    if status_filter == "active":
        filters.append(Membership.expiry_date >= date.today())
    elif status_filter == "expired":
        filters.append(Membership.expiry_date < date.today())

    total = await db.scalar(select(func.count(Membership.id)).where(*filters)) or 0
    result = await db.execute(
        select(Membership)
        .where(*filters)
        .order_by(Membership.created_at.desc(), Membership.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return MembershipListResponse(
        memberships=[MembershipResponse.model_validate(m) for m in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/{membership_id}", response_model=MembershipResponse)
async def get_membership(
    membership_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _get_membership(db, membership_id)


@router.post("", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def create_membership(
    data: MembershipCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_imei_free(db, data.imei_number)

    start = data.membership_start_date or date.today()
    expiry = data.expiry_date or add_months(start, 12)
    if expiry < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Expiry date cannot be before the start date"
        )

    membership = Membership(
        full_name=data.full_name,
        dob=data.dob,
        mobile_primary=data.mobile_primary,
        membership_start_date=start,
        expiry_date=expiry,
        payment_mode=data.payment_mode or PaymentMode.CASH,
        amount=data.amount,
        unique_membership_id=await next_membership_id(db),
        phone_brand_model=data.phone_brand_model,
        imei_number=data.imei_number,
    )
    db.add(membership)
    await db.commit()
    await db.refresh(membership)

    logger.info(f"[Memberships] {admin.email} created {membership.unique_membership_id}")
    return membership


@router.put("/{membership_id}", response_model=MembershipResponse)
async def update_membership(
    membership_id: int,
    data: MembershipUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    membership = await _get_membership(db, membership_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("imei_number"):
        changes["imei_number"] = changes["imei_number"].strip()
        await _ensure_imei_free(db, changes["imei_number"], exclude_id=membership.id)

    for field, value in changes.items():
        setattr(membership, field, value)
    await db.commit()
    await db.refresh(membership)
    return membership


@router.delete("/{membership_id}", response_model=MessageResponse)
async def delete_membership(
    membership_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    membership = await _get_membership(db, membership_id)
    await db.delete(membership)
    await db.commit()

    logger.info(f"[Memberships] {admin.email} deleted {membership.unique_membership_id}")
    return MessageResponse(message="Membership deleted successfully")
