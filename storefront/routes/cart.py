from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.security import CurrentUser, get_current_user
from storefront.dependencies import get_db
from storefront.schemas.cart import CartCount, CartItemAdd, CartItemUpdate, CartView
from storefront.services.cart_service import CartService

router = APIRouter(
    prefix="/cart",
    tags=["cart"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=CartView)
async def get_cart(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's cart with prices, availability and totals."""
    return await CartService(db).get_cart(user.id)


@router.post("/items", response_model=CartView, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    payload: CartItemAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = CartService(db)
    await service.add_item(user.id, payload.product_id, payload.quantity)
    return await service.get_cart(user.id)


@router.put("/items/{item_id}", response_model=CartView)
async def update_cart_item(
    item_id: int,
    payload: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = CartService(db)
    await service.update_item(user.id, item_id, payload.quantity)
    return await service.get_cart(user.id)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cart_item(
    item_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CartService(db).remove_item(user.id, item_id)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CartService(db).clear_cart(user.id)


@router.get("/count", response_model=CartCount)
async def get_cart_count(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await CartService(db).get_item_count(user.id)
    return CartCount(count=count)

