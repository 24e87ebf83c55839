from fastapi import Request

from cart_engine.services.cart_service import CartService
from cart_engine.services.presenter_service import CartPresenter


def get_cart(request: Request) -> CartService:
    """Dependency to get the cart instance owned by the application."""
    return request.app.state.cart


def get_presenter(request: Request) -> CartPresenter:
    """Dependency to get the presenter bound to the application's cart."""
    return request.app.state.presenter
