# storefront/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.auth import require_user
from storefront.database import get_session
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartSummary,
    ReconcileRequest,
    ReconcileResult,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, product_repo)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get current user's cart summary (empty if none yet).

    Auth:
      - Only role='user' (customer) can access.
      - Guests keep their cart client-side.
    """
    return service.get_cart(session, current_user.id)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Add product to the current user's cart.

    Adding a product already in the cart increases its quantity; the
    result never exceeds current stock.
    """
    return service.add_item(
        session, current_user.id, payload.product_id, payload.quantity
    )


@router.post("/reconcile", response_model=ReconcileResult)
def reconcile_cart(
    payload: ReconcileRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Merge the guest cart held by the client into this user's cart.

    Call once right after sign-in. On success the client should clear its
    local cart; on a 503 (reason=reconciliation_incomplete) nothing was
    merged and the client keeps its local cart to retry.
    """
    return service.reconcile(
        session,
        current_user.id,
        payload.items,
        merge_token=payload.merge_token,
    )


@router.patch("/{product_id}", response_model=CartSummary)
def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Set the quantity of a product in the cart (<= 0 removes it).
    """
    return service.set_quantity(
        session=session,
        user_id=current_user.id,
        product_id=product_id,
        quantity=payload.quantity,
    )


@router.delete("/{product_id}", response_model=CartSummary)
def remove_cart_item(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Remove a product from the cart.
    """
    return service.remove_item(session, current_user.id, product_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Clear the entire cart.
    """
    return service.clear_cart(session, current_user.id)
