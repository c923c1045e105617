from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, update
from sqlalchemy.orm import selectinload
from typing import List, Optional
from decimal import Decimal

from storefront.core.database import get_db
from storefront.core.logging_config import logger
from storefront.models.product import Product, ProductImage
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_admin
from storefront.schemas.common import MessageResponse, build_pagination
from storefront.schemas.product import (
    ProductCreate,
    ProductDetailResponse,
    ProductImageCreate,
    ProductImageResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)

router = APIRouter()

SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "created_at": Product.created_at,
    "category": Product.category,
}


async def _get_product(db: AsyncSession, product_id: str, active_only: bool = True) -> Product:
    query = (
        select(Product)
        .options(selectinload(Product.gallery))
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    if active_only:
        query = query.where(Product.is_active == True)
    product = (await db.execute(query)).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    category: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = None,
    sort_by: str = Query("created_at", pattern="^(name|price|created_at|category)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    warranty: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Storefront catalogue with filters, sorting and pagination"""
    filters = [Product.is_active == True]

    if category and category.lower() != "all":
        filters.append(Product.category == category)
    if min_price is not None:
        filters.append(Product.price >= min_price)
    if max_price is not None:
        filters.append(Product.price <= max_price)
    if search:
        term = f"%{search.strip()}%"
        filters.append(or_(Product.name.ilike(term), Product.description.ilike(term)))
    if warranty is not None:
        filters.append(Product.warranty_months >= warranty)

    total = await db.scalar(select(func.count(Product.id)).where(*filters)) or 0

    column = SORT_COLUMNS[sort_by]
    order = column.asc() if sort_order == "asc" else column.desc()
    result = await db.execute(
        select(Product)
        .where(*filters)
        .order_by(order, Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in result.scalars().all()],
        pagination=build_pagination(page, limit, total),
    )


@router.get("/featured", response_model=List[ProductResponse])
async def featured_products(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Product)
        .where(Product.is_active == True)
        .order_by(Product.created_at.desc())
        .limit(8)
    )
    return result.scalars().all()


@router.get("/categories", response_model=List[str])
async def product_categories(db: AsyncSession = Depends(get_db)):
    """Distinct categories that currently have active products"""
    result = await db.execute(
        select(Product.category)
        .where(Product.is_active == True)
        .distinct()
        .order_by(Product.category)
    )
    return result.scalars().all()


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(product_id: str, db: AsyncSession = Depends(get_db)):
    return await _get_product(db, product_id)


# ============================================
# Admin
# ============================================

@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    product = Product(**data.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)

    logger.info(f"[Products] {admin.email} created product {product.id} ({product.name})")
    return product


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    product = await _get_product(db, product_id, active_only=False)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    await db.commit()
    await db.refresh(product)

    logger.info(f"[Products] {admin.email} updated product {product.id}")
    return product


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete: the product disappears from the storefront but order history keeps it"""
    product = await _get_product(db, product_id, active_only=False)
    product.is_active = False
    await db.commit()

    logger.info(f"[Products] {admin.email} deactivated product {product.id}")
    return MessageResponse(message="Product deleted successfully")


@router.post("/{product_id}/images", response_model=ProductImageResponse, status_code=status.HTTP_201_CREATED)
async def add_product_image(
    product_id: str,
    data: ProductImageCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    product = await _get_product(db, product_id, active_only=False)

    if data.is_primary:
        await db.execute(
            update(ProductImage)
            .where(ProductImage.product_id == product.id)
            .values(is_primary=False)
        )

    image = ProductImage(product_id=product.id, **data.model_dump())
    db.add(image)
    await db.commit()
    await db.refresh(image)
    return image


@router.delete("/{product_id}/images/{image_id}", response_model=MessageResponse)
async def delete_product_image(
    product_id: str,
    image_id: str,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    image = await db.scalar(
        select(ProductImage).where(ProductImage.id == image_id, ProductImage.product_id == product_id)
    )
    if not image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")

    await db.delete(image)
    await db.commit()
    return MessageResponse(message="Image deleted successfully")
