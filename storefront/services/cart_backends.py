# storefront/services/cart_backends.py
import uuid
from abc import ABC, abstractmethod

from sqlmodel import Session

from storefront.schemas.cart import CartProduct, CartSummary
from storefront.services.cart_service import CartService


class CartBackend(ABC):
    """
    The cart operations shared by guest (local) and signed-in (server)
    carts. Callers pick the implementation explicitly; the only bridge
    between the two is CartReconciler.
    """

    @abstractmethod
    def get(self) -> CartSummary: ...

    @abstractmethod
    def add_item(self, product: CartProduct, quantity: int = 1) -> CartSummary: ...

    @abstractmethod
    def set_quantity(self, product_id: uuid.UUID, quantity: int) -> CartSummary: ...

    @abstractmethod
    def remove(self, product_id: uuid.UUID) -> CartSummary: ...

    @abstractmethod
    def clear(self) -> CartSummary: ...


class ServerCart(CartBackend):
    """
    A signed-in user's cart, held in the database.

    Only `product.id` is used on add: stock and price are re-read from the
    catalog at call time.
    """

    def __init__(self, service: CartService, session: Session, user_id: uuid.UUID):
        self.service = service
        self.session = session
        self.user_id = user_id

    def get(self) -> CartSummary:
        return self.service.get_cart(self.session, self.user_id)

    def add_item(self, product: CartProduct, quantity: int = 1) -> CartSummary:
        return self.service.add_item(self.session, self.user_id, product.id, quantity)

    def set_quantity(self, product_id: uuid.UUID, quantity: int) -> CartSummary:
        return self.service.set_quantity(self.session, self.user_id, product_id, quantity)

    def remove(self, product_id: uuid.UUID) -> CartSummary:
        return self.service.remove_item(self.session, self.user_id, product_id)

    def clear(self) -> CartSummary:
        return self.service.clear_cart(self.session, self.user_id)
