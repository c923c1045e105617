from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.orm import selectinload

from storefront.core.database import get_db
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.models.user import User
from storefront.modules.auth.dependencies import get_current_user
from storefront.schemas.cart import (
    CartAddRequest,
    CartItemResponse,
    CartMutationResponse,
    CartResponse,
    CartSummary,
    CartUpdateRequest,
)
from storefront.schemas.common import MessageResponse
from storefront.services.pricing import cart_summary

router = APIRouter()


def _check_stock(product: Product, quantity: int):
    if quantity > product.stock:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only {product.stock} items available in stock"
        )


async def _get_owned_item(db: AsyncSession, item_id: str, user: User) -> CartItem:
    item = await db.scalar(
        select(CartItem)
        .options(selectinload(CartItem.product))
        .where(CartItem.id == item_id, CartItem.user_id == user.id)
    )
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")
    return item


@router.post("/add", response_model=CartMutationResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    data: CartAddRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add a product, or top up the quantity when it is already in the cart"""
    product = await db.scalar(
        select(Product).where(Product.id == data.product_id, Product.is_active == True)
    )
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    item = await db.scalar(
        select(CartItem).where(CartItem.user_id == current_user.id, CartItem.product_id == product.id)
    )

    if item:
        _check_stock(product, item.quantity + data.quantity)
        item.quantity += data.quantity
        message = "Cart updated successfully"
        response.status_code = status.HTTP_200_OK
    else:
        _check_stock(product, data.quantity)
        item = CartItem(user_id=current_user.id, product_id=product.id, quantity=data.quantity)
        db.add(item)
        message = "Item added to cart successfully"

    item.product = product
    await db.commit()

    return CartMutationResponse(message=message, item=CartItemResponse.model_validate(item))


@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(CartItem)
        .join(Product, Product.id == CartItem.product_id)
        .options(selectinload(CartItem.product))
        .where(CartItem.user_id == current_user.id, Product.is_active == True)
        .order_by(CartItem.created_at)
    )
    items = result.scalars().all()

    return CartResponse(
        items=[CartItemResponse.model_validate(item) for item in items],
        summary=CartSummary(**cart_summary((item.product.price, item.quantity) for item in items)),
    )


@router.put("/{item_id}", response_model=CartMutationResponse)
async def update_cart_item(
    item_id: str,
    data: CartUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    item = await _get_owned_item(db, item_id, current_user)
    _check_stock(item.product, data.quantity)

    item.quantity = data.quantity
    await db.commit()

    return CartMutationResponse(message="Cart updated successfully", item=CartItemResponse.model_validate(item))


@router.delete("/{item_id}", response_model=MessageResponse)
async def remove_cart_item(
    item_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    item = await _get_owned_item(db, item_id, current_user)
    await db.delete(item)
    await db.commit()
    return MessageResponse(message="Item removed from cart")


@router.delete("", response_model=MessageResponse)
async def clear_cart(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await db.execute(delete(CartItem).where(CartItem.user_id == current_user.id))
    await db.commit()
    return MessageResponse(message="Cart cleared successfully")
