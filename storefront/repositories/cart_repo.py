# storefront/repositories/cart_repo.py
import uuid
from datetime import datetime

from sqlalchemy import case, delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from storefront.models.cart import Cart, CartItem
from storefront.models.product import Product


class CartRepository:
    """
    Data access layer for carts and cart_items.

    NOTE:
      - Mutations only flush; the service commits once per operation so
        a failed request persists nothing.
      - Quantity changes are single UPDATE statements so concurrent
        requests against one cart never read-modify-write in Python.
    """

    # ---- Carts ----

    def get_cart(self, session: Session, user_id: uuid.UUID) -> Cart | None:
        stmt = select(Cart).where(Cart.user_id == user_id)
        return session.exec(stmt).first()

    def get_or_create_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        expires_at: datetime,
    ) -> Cart:
        """
        Return the user's cart, creating it on first use.

        Two requests may race to create the first cart; the loser hits the
        UNIQUE(user_id) constraint and reads the winner's row.
        """
        cart = self.get_cart(session, user_id)
        if cart is not None:
            return cart

        cart = Cart(user_id=user_id, expires_at=expires_at)
        session.add(cart)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            cart = self.get_cart(session, user_id)
            if cart is None:
                raise
            return cart
        session.refresh(cart)
        return cart

    def touch(self, session: Session, cart: Cart, now: datetime, expires_at: datetime) -> None:
        cart.updated_at = now
        cart.expires_at = expires_at
        session.add(cart)
        session.flush()

    def delete_cart(self, session: Session, cart: Cart) -> None:
        session.execute(delete(CartItem).where(col(CartItem.cart_id) == cart.id))
        session.delete(cart)
        session.flush()

    def delete_expired(self, session: Session, now: datetime) -> int:
        """Remove every cart (and its items) whose expiry has passed."""
        expired_ids = select(Cart.id).where(col(Cart.expires_at) < now)
        session.execute(
            delete(CartItem)
            .where(col(CartItem.cart_id).in_(expired_ids))
            .execution_options(synchronize_session=False)
        )
        result = session.execute(
            delete(Cart)
            .where(col(Cart.expires_at) < now)
            .execution_options(synchronize_session=False)
        )
        session.flush()
        return result.rowcount or 0

    # ---- Items ----

    def list_items(self, session: Session, cart_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.cart_id == cart_id)
            .order_by(col(CartItem.added_at).asc(), col(CartItem.id).asc())
        )
        return list(session.exec(stmt).all())

    def get_item(
        self, session: Session, cart_id: uuid.UUID, product_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id, CartItem.product_id == product_id
        )
        return session.exec(stmt).first()

    def insert_from_product(
        self,
        session: Session,
        *,
        cart_id: uuid.UUID,
        product: Product,
        quantity: int,
    ) -> CartItem:
        """
        Insert a CartItem snapshotting price, name and hero image.

        Raises IntegrityError if the product is already in the cart.
        """
        item = CartItem(
            cart_id=cart_id,
            product_id=product.id,
            quantity=quantity,
            snapshot_price=product.price,
            product_name=product.name,
            product_hero_image_url=product.hero_image_url,
        )
        session.add(item)
        session.flush()
        return item

    def increment_quantity(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        delta: int,
        cap: int,
    ) -> int:
        """
        quantity := min(quantity + delta, cap), atomically.
        Returns the number of rows touched (0 if the item is absent).
        """
        new_qty = CartItem.quantity + delta
        stmt = (
            update(CartItem)
            .where(
                col(CartItem.cart_id) == cart_id,
                col(CartItem.product_id) == product_id,
            )
            .values(quantity=case((new_qty > cap, cap), else_=new_qty))
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount or 0

    def set_quantity(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
    ) -> int:
        stmt = (
            update(CartItem)
            .where(
                col(CartItem.cart_id) == cart_id,
                col(CartItem.product_id) == product_id,
            )
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount or 0

    def delete_item(
        self, session: Session, cart_id: uuid.UUID, product_id: uuid.UUID
    ) -> int:
        stmt = delete(CartItem).where(
            col(CartItem.cart_id) == cart_id,
            col(CartItem.product_id) == product_id,
        )
        result = session.execute(stmt)
        return result.rowcount or 0

    def clear_items(self, session: Session, cart_id: uuid.UUID) -> None:
        session.execute(delete(CartItem).where(col(CartItem.cart_id) == cart_id))
        session.flush()

    def replace_items(
        self,
        session: Session,
        cart_id: uuid.UUID,
        items: list[CartItem],
    ) -> None:
        """Swap the whole item list of a cart (no commit)."""
        self.clear_items(session, cart_id)
        for item in items:
            item.cart_id = cart_id
            session.add(item)
        session.flush()
