from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import List, Optional
from datetime import date

from storefront.core.database import get_db
from storefront.core.logging_config import logger
from storefront.models.order import OrderStatus, PaymentStatus
from storefront.models.user import User
from storefront.models.warranty import Claim, ClaimStatus, Warranty
from storefront.modules.auth.dependencies import ensure_self_or_admin, get_current_admin, get_current_user
from storefront.schemas.common import build_pagination
from storefront.schemas.warranty import (
    AutoRegisterRequest,
    ClaimCreate,
    ClaimListResponse,
    ClaimResponse,
    ClaimStatusUpdate,
    ClaimWithWarranty,
    WarrantyDetailResponse,
    WarrantyListResponse,
    WarrantyRegister,
    WarrantyWithProduct,
)
from storefront.services import order_service
from storefront.services.notification_service import notification_service
from storefront.services.warranty_service import register_manual_warranty, register_order_warranties

router = APIRouter()


def _status_filter(status_value: Optional[str]):
    """SQL condition for an active/expired filter, None for no filter"""
    if not status_value or status_value == "all":
        return None
    today = date.today()
    if status_value == "active":
        return Warranty.expiry_date >= today
    if status_value == "expired":
        return Warranty.expiry_date < today
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Status must be one of: active, expired"
    )


# ============================================
# Registration
# ============================================

@router.post("/register", response_model=WarrantyWithProduct, status_code=status.HTTP_201_CREATED)
async def register_warranty(
    data: WarrantyRegister,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Register a product bought outside the online store"""
    if data.purchase_date > date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Purchase date cannot be in the future"
        )

    warranty = await register_manual_warranty(
        db,
        current_user,
        product_id=data.product_id,
        purchase_date=data.purchase_date,
        serial_number=data.serial_number,
        invoice_url=data.invoice_url,
    )
    await db.commit()

    notification_service.warranties_registered(background_tasks, current_user, [warranty])
    return warranty


@router.post("/auto-register", response_model=List[WarrantyWithProduct], status_code=status.HTTP_201_CREATED)
async def auto_register_warranties(
    data: AutoRegisterRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await order_service.load_order(db, data.order_id, user_id=current_user.id)

    if order.order_status != OrderStatus.DELIVERED and order.payment_status != PaymentStatus.PAID:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Warranties can only be registered for paid or delivered orders"
        )

    warranties = await register_order_warranties(db, order)
    await db.commit()

    if warranties:
        notification_service.warranties_registered(background_tasks, current_user, warranties)
    return warranties


# ============================================
# Claims
# ============================================

@router.post("/claims", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def create_claim(
    data: ClaimCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    warranty = await db.scalar(
        select(Warranty)
        .options(selectinload(Warranty.product))
        .where(Warranty.id == data.warranty_id, Warranty.user_id == current_user.id)
    )
    if not warranty:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warranty not found")

    if warranty.expiry_date < date.today():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Warranty has expired")

    claim = Claim(
        warranty_id=warranty.id,
        issue_description=data.issue_description,
        image_url=data.image_url,
        status=ClaimStatus.PENDING,
    )
    db.add(claim)
    await db.commit()

    logger.info(f"[Claims] {current_user.email} opened claim {claim.id} on warranty {warranty.id}")
    notification_service.claim_created(background_tasks, current_user, claim, warranty.product)
    return claim


@router.get("/claims/all", response_model=ClaimListResponse)
async def list_all_claims(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[ClaimStatus] = Query(None, alias="status"),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    filters = []
    if status_filter is not None:
        filters.append(Claim.status == status_filter)

    total = await db.scalar(select(func.count(Claim.id)).where(*filters)) or 0
    result = await db.execute(
        select(Claim)
        .options(selectinload(Claim.warranty).selectinload(Warranty.product))
        .where(*filters)
        .order_by(Claim.created_at.desc())
        .execution_options(populate_existing=True)
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return ClaimListResponse(
        claims=[ClaimWithWarranty.model_validate(c) for c in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/claims/user/{user_id}", response_model=ClaimListResponse)
async def list_user_claims(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    ensure_self_or_admin(current_user, user_id)

    result = await db.execute(
        select(Claim)
        .join(Warranty, Warranty.id == Claim.warranty_id)
        .options(selectinload(Claim.warranty).selectinload(Warranty.product))
        .where(Warranty.user_id == user_id)
        .order_by(Claim.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return ClaimListResponse(
        claims=[ClaimWithWarranty.model_validate(c) for c in result.scalars().all()]
    )


@router.put("/claims/{claim_id}/status", response_model=ClaimResponse)
async def update_claim_status(
    claim_id: str,
    data: ClaimStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    claim = await db.scalar(
        select(Claim)
        .options(
            selectinload(Claim.warranty).selectinload(Warranty.user),
            selectinload(Claim.warranty).selectinload(Warranty.product),
        )
        .where(Claim.id == claim_id)
    )
    if not claim:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Claim not found")

    claim.status = data.status
    if data.admin_notes is not None:
        claim.admin_notes = data.admin_notes
    await db.commit()

    logger.info(f"[Claims] {admin.email} set claim {claim.id} to {claim.status.value}")
    notification_service.claim_updated(background_tasks, claim.warranty.user, claim, claim.warranty.product)
    return claim


# ============================================
# Lookups
# ============================================

@router.get("/user/{user_id}", response_model=WarrantyListResponse)
async def list_user_warranties(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    ensure_self_or_admin(current_user, user_id)

    filters = [Warranty.user_id == user_id]
    condition = _status_filter(status_filter)
    if condition is not None:
        filters.append(condition)

    total = await db.scalar(select(func.count(Warranty.id)).where(*filters)) or 0
    result = await db.execute(
        select(Warranty)
        .options(selectinload(Warranty.product))
        .where(*filters)
        .order_by(Warranty.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return WarrantyListResponse(
        warranties=[WarrantyWithProduct.model_validate(w) for w in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


@router.get("", response_model=WarrantyListResponse)
async def list_all_warranties(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """All warranties, soonest expiry first"""
    query = (
        select(Warranty)
        .options(selectinload(Warranty.product))
        .order_by(Warranty.expiry_date.asc())
        .limit(limit)
    )
    condition = _status_filter(status_filter)
    if condition is not None:
        query = query.where(condition)

    result = await db.execute(query)
    return WarrantyListResponse(
        warranties=[WarrantyWithProduct.model_validate(w) for w in result.scalars().all()]
    )


@router.get("/{warranty_id}", response_model=WarrantyDetailResponse)
async def get_warranty(
    warranty_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    warranty = await db.scalar(
        select(Warranty)
        .options(selectinload(Warranty.product), selectinload(Warranty.claims))
        .where(Warranty.id == warranty_id)
        .execution_options(populate_existing=True)
    )
    if not warranty:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warranty not found")

    ensure_self_or_admin(current_user, warranty.user_id)
    return warranty
