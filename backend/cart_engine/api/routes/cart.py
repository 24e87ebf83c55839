from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from cart_engine.api.deps import get_cart, get_presenter
from cart_engine.core.exceptions import StorageWriteError
from cart_engine.models.cart import Product
from cart_engine.schemas.cart import (
    AddToCartRequest,
    ApplyCouponRequest,
    CartResponse,
    CouponResponse,
    UpdateCartItemRequest
)
from cart_engine.services.cart_service import CartService
from cart_engine.services.presenter_service import CartPresenter

router = APIRouter()


def _storage_unavailable(error: StorageWriteError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Cart could not be saved: {error.reason}"
    )


@router.get("", response_model=CartResponse)
async def get_cart_summary(presenter: CartPresenter = Depends(get_presenter)):
    """
    Get the cart with its price breakdown.

    Returns:
    - All line items with line totals
    - Subtotal, shipping, discount and total
    - Applied coupon and free-shipping hint
    """
    return presenter.render()


@router.post("/items", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    request: AddToCartRequest,
    cart: CartService = Depends(get_cart),
    presenter: CartPresenter = Depends(get_presenter)
):
    """
    Add a product to the cart.

    If product already in cart, increases quantity. Quantities below 1 are ignored.
    """
    product = Product(
        id=request.id,
        name=request.name,
        price=request.price,
        image=request.image,
        category=request.category
    )

    try:
        await run_in_threadpool(cart.add_item, product, request.quantity)
    except StorageWriteError as e:
        raise _storage_unavailable(e)

    return presenter.render()


@router.put("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: str,
    request: UpdateCartItemRequest,
    cart: CartService = Depends(get_cart),
    presenter: CartPresenter = Depends(get_presenter)
):
    """
    Update the quantity of an item in the cart.

    A quantity of zero or less removes the item.
    """
    try:
        found = await run_in_threadpool(cart.set_quantity, item_id, request.quantity)
    except StorageWriteError as e:
        raise _storage_unavailable(e)

    if not found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found in cart"
        )

    return presenter.render()


@router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_from_cart(
    item_id: str,
    cart: CartService = Depends(get_cart),
    presenter: CartPresenter = Depends(get_presenter)
):
    """
    Remove an item from the cart.
    """
    try:
        removed = await run_in_threadpool(cart.remove_item, item_id)
    except StorageWriteError as e:
        raise _storage_unavailable(e)

    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found in cart"
        )

    return presenter.render()


@router.delete("", response_model=CartResponse)
async def clear_cart(
    cart: CartService = Depends(get_cart),
    presenter: CartPresenter = Depends(get_presenter)
):
    """
    Clear all items and the applied coupon.
    """
    try:
        await run_in_threadpool(cart.clear)
    except StorageWriteError as e:
        raise _storage_unavailable(e)

    return presenter.render()


@router.post("/coupon", response_model=CartResponse)
async def apply_coupon(
    request: ApplyCouponRequest,
    cart: CartService = Depends(get_cart),
    presenter: CartPresenter = Depends(get_presenter)
):
    """
    Apply a coupon code (case-insensitive).

    Fails with 400 when the code is unknown, the minimum order is not met,
    or the coupon is already applied.
    """
    try:
        result = await run_in_threadpool(cart.apply_coupon, request.code)
    except StorageWriteError as e:
        raise _storage_unavailable(e)

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.message
        )

    return presenter.render(notification=CartPresenter.coupon_notification(result))


@router.delete("/coupon", response_model=CartResponse)
async def remove_coupon(
    cart: CartService = Depends(get_cart),
    presenter: CartPresenter = Depends(get_presenter)
):
    """
    Remove the applied coupon, if any.
    """
    try:
        await run_in_threadpool(cart.remove_coupon)
    except StorageWriteError as e:
        raise _storage_unavailable(e)

    return presenter.render()


@router.get("/coupons", response_model=List[CouponResponse])
async def list_coupons(cart: CartService = Depends(get_cart)):
    """
    List the coupons available in the catalog.
    """
    return [
        CouponResponse(
            code=coupon.code,
            type=coupon.kind.value,
            value=coupon.value,
            min_order=coupon.min_order,
            description=coupon.description
        )
        for coupon in cart.catalog
    ]
