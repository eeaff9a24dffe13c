# numbershop/api/routers/cart.py
from fastapi import APIRouter, Depends, Response

from numbershop.api.dependencies import get_current_user, get_cart_service
from numbershop.data.models.user import UserModel
from numbershop.domain.schemas import CartItem, CartItemUpdate, CartOut, CartSummaryOut
from numbershop.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    return svc.snapshot(user.id)


@router.post("/items", response_model=CartItem, status_code=201)
def add_item(
    payload: CartItem,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    """Dodaje numer do koszyka. SMS podnosi okres do minimum 6 miesiecy."""
    return svc.add(user.id, payload)


@router.patch("/items/{item_id}", response_model=CartItem)
def update_item(
    item_id: str,
    payload: CartItemUpdate,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    return svc.update(user.id, item_id, payload)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: str,
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    svc.remove(user.id, item_id)
    return svc.snapshot(user.id)


@router.delete("", status_code=204)
def clear_cart(
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    svc.clear(user.id)
    return Response(status_code=204)


@router.get("/summary", response_model=CartSummaryOut)
def cart_summary(
    user: UserModel = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    items = svc.items(user.id)
    return {"item_count": len(items), **svc.breakdown(user.id)}
