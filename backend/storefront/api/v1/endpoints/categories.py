from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import List

from storefront.core.database import get_db
from storefront.core.logging_config import logger
from storefront.models.product import Category, Product
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_admin
from storefront.schemas.common import MessageResponse
from storefront.schemas.product import CategoryCreate, CategoryResponse, CategoryUpdate

router = APIRouter()


async def _get_category(db: AsyncSession, category_id: str) -> Category:
    category = await db.scalar(select(Category).where(Category.id == category_id))
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: str = None):
    query = select(Category.id).where(func.lower(Category.name) == name.lower())
    if exclude_id:
        query = query.where(Category.id != exclude_id)
    if await db.scalar(query):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category with this name already exists"
        )


@router.get("", response_model=List[CategoryResponse])
async def list_categories(active_only: bool = True, db: AsyncSession = Depends(get_db)):
    query = select(Category).order_by(Category.name)
    if active_only:
        query = query.where(Category.is_active == True)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: str, db: AsyncSession = Depends(get_db)):
    return await _get_category(db, category_id)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_name_free(db, data.name)

    category = Category(**data.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)

    logger.info(f"[Categories] {admin.email} created category {category.name}")
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    category = await _get_category(db, category_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        await _ensure_name_free(db, changes["name"], exclude_id=category.id)

    for field, value in changes.items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    return category


@router.delete("/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: str,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Refused while any product still points at the category name"""
    category = await _get_category(db, category_id)

    in_use = await db.scalar(
        select(func.count(Product.id)).where(Product.category == category.name)
    ) or 0
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete category. {in_use} product(s) are using this category"
        )

    await db.delete(category)
    await db.commit()

    logger.info(f"[Categories] {admin.email} deleted category {category.name}")
    return MessageResponse(message="Category deleted successfully")


@router.patch("/{category_id}/toggle-status", response_model=CategoryResponse)
async def toggle_category_status(
    category_id: str,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    category = await _get_category(db, category_id)
    category.is_active = not category.is_active
    await db.commit()
    await db.refresh(category)
    return category
