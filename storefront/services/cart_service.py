# storefront/services/cart_service.py
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from storefront.core.config import get_settings
from storefront.core.errors import (
    Conflict,
    NotFound,
    ReconciliationFailed,
    invalid_quantity,
    product_not_found,
)
from storefront.core.timeutil import as_utc, utcnow
from storefront.models.cart import Cart, CartItem
from storefront.models.product import Product
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import (
    CartItemRead,
    CartSummary,
    LocalCartItem,
    ReconcileResult,
)
from storefront.services.reconciliation import collapse_local_items, merge_line

logger = logging.getLogger(__name__)


def summarize_lines(
    lines: Iterable[CartItemRead],
    expires_at: datetime | None = None,
) -> CartSummary:
    """Totals over a list of cart lines (server or local)."""
    items = list(lines)
    return CartSummary(
        items=items,
        item_count=len(items),
        total_quantity=sum(i.quantity for i in items),
        total_price=round(sum(i.line_total for i in items), 2),
        expires_at=expires_at,
    )


class CartService:
    """
    Business logic for server-held carts.

    Responsibilities:
      - lazily create one cart per user; expire abandoned carts
      - validate product existence and active flag
      - clamp every resulting quantity to the product's stock at call time
      - snapshot price / name / image at add time and never refresh them
      - merge a guest cart into the user's cart on sign-in
      - compute line totals and cart totals

    Every public mutation commits once at the end, so a failure leaves the
    cart as it was.
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.clock = clock

    # ---- internal helpers ----

    def _expiry(self, now: datetime) -> datetime:
        return now + timedelta(days=get_settings().CART_RETENTION_DAYS)

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise product_not_found()
        if not product.is_active:
            raise Conflict("product_inactive", "Product is no longer available")
        return product

    def _active_cart(self, session: Session, user_id: uuid.UUID) -> Cart | None:
        """
        The user's cart, or None if there is none or it has expired.
        An expired cart is deleted on sight.
        """
        cart = self.cart_repo.get_cart(session, user_id)
        if cart is None:
            return None
        if as_utc(cart.expires_at) <= self.clock():
            logger.info("Dropping expired cart %s of user %s", cart.id, user_id)
            self.cart_repo.delete_cart(session, cart)
            session.commit()
            return None
        return cart

    def _cart_for_write(self, session: Session, user_id: uuid.UUID, now: datetime) -> Cart:
        cart = self._active_cart(session, user_id)
        if cart is None:
            cart = self.cart_repo.get_or_create_cart(session, user_id, self._expiry(now))
        return cart

    def _summarize(self, session: Session, cart: Cart | None) -> CartSummary:
        if cart is None:
            return CartSummary.empty()
        items = self.cart_repo.list_items(session, cart.id)
        return summarize_lines(
            (
                CartItemRead(
                    product_id=it.product_id,
                    quantity=it.quantity,
                    snapshot_price=it.snapshot_price,
                    product_name=it.product_name,
                    product_hero_image_url=it.product_hero_image_url,
                    line_total=round(it.quantity * it.snapshot_price, 2),
                    added_at=as_utc(it.added_at),
                )
                for it in items
            ),
            expires_at=as_utc(cart.expires_at),
        )

    # ---- public operations ----

    def get_cart(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        """
        Return the user's cart summary. A user without a (live) cart gets
        an empty one, never a 404.
        """
        return self._summarize(session, self._active_cart(session, user_id))

    def add_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
    ) -> CartSummary:
        """
        Add a product to the user's cart.

        Rules:
          - quantity must be >= 1
          - product must exist and be active, with stock left
          - an existing entry is incremented, never duplicated
          - resulting quantity is clamped to current stock
          - snapshot_price is taken from the current product price
        """
        if isinstance(quantity, bool) or quantity < 1:
            raise invalid_quantity()

        product = self._get_valid_product(session, product_id)
        if product.stock <= 0:
            raise Conflict("out_of_stock", "Product is out of stock")

        stock = product.stock
        now = self.clock()
        cart = self._cart_for_write(session, user_id, now)

        try:
            updated = self.cart_repo.increment_quantity(
                session, cart.id, product.id, quantity, stock
            )
            if not updated:
                self.cart_repo.insert_from_product(
                    session,
                    cart_id=cart.id,
                    product=product,
                    quantity=min(quantity, stock),
                )
            self.cart_repo.touch(session, cart, now, self._expiry(now))
            session.commit()
        except IntegrityError:
            # A concurrent request inserted the same product first.
            session.rollback()
            cart = self._cart_for_write(session, user_id, now)
            self.cart_repo.increment_quantity(
                session, cart.id, product_id, quantity, stock
            )
            self.cart_repo.touch(session, cart, now, self._expiry(now))
            session.commit()

        return self._summarize(session, cart)

    def set_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
    ) -> CartSummary:
        """
        Set the quantity of an item already in the cart.

        - quantity <= 0 removes the item
        - otherwise clamped to current stock (no stock left removes it too)
        """
        cart = self._active_cart(session, user_id)
        item = self.cart_repo.get_item(session, cart.id, product_id) if cart else None
        if cart is None or item is None:
            raise NotFound("item_not_in_cart", "Item not in cart")

        if quantity <= 0:
            self.cart_repo.delete_item(session, cart.id, product_id)
        else:
            product = self._get_valid_product(session, product_id)
            clamped = min(quantity, product.stock)
            if clamped <= 0:
                self.cart_repo.delete_item(session, cart.id, product_id)
            else:
                self.cart_repo.set_quantity(session, cart.id, product_id, clamped)

        now = self.clock()
        self.cart_repo.touch(session, cart, now, self._expiry(now))
        session.commit()
        return self._summarize(session, cart)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> CartSummary:
        """
        Remove a product from the cart. Removing an absent product is a
        no-op so clients can safely retry.
        """
        cart = self._active_cart(session, user_id)
        if cart is None:
            return CartSummary.empty()

        if self.cart_repo.delete_item(session, cart.id, product_id):
            now = self.clock()
            self.cart_repo.touch(session, cart, now, self._expiry(now))
        session.commit()
        return self._summarize(session, cart)

    def clear_cart(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        """
        Clear all items from the cart and return the (empty) summary.
        """
        cart = self._active_cart(session, user_id)
        if cart is None:
            return CartSummary.empty()

        self.cart_repo.clear_items(session, cart.id)
        now = self.clock()
        self.cart_repo.touch(session, cart, now, self._expiry(now))
        session.commit()
        return self._summarize(session, cart)

    def purge_expired(self, session: Session) -> int:
        """Delete every abandoned cart. Returns how many were removed."""
        removed = self.cart_repo.delete_expired(session, self.clock())
        session.commit()
        if removed:
            logger.info("Purged %d expired carts", removed)
        return removed

    # ---- sign-in merge ----

    def reconcile(
        self,
        session: Session,
        user_id: uuid.UUID,
        local_items: Iterable[LocalCartItem],
        merge_token: str | None = None,
    ) -> ReconcileResult:
        """
        Merge a guest cart into the user's server cart.

        The merged list replaces the server cart's items in a single
        commit. Any storage failure rolls back and raises
        ReconciliationFailed; the server cart is then exactly as before.

        A merge_token equal to the one of the last applied merge returns
        the current cart untouched (already_applied=True).
        """
        now = self.clock()
        try:
            cart = self._cart_for_write(session, user_id, now)

            if merge_token and cart.last_merge_token == merge_token:
                return ReconcileResult(
                    cart=self._summarize(session, cart),
                    already_applied=True,
                )

            local = collapse_local_items(local_items)
            server = {it.product_id: it for it in self.cart_repo.list_items(session, cart.id)}

            merged: list[CartItem] = []
            result = ReconcileResult(cart=CartSummary.empty())
            # Stable order keeps the merged list reproducible
            for product_id in sorted(set(local) | set(server), key=str):
                product = self.product_repo.get_by_id(session, product_id)
                if product is None or not product.is_active:
                    result.dropped.append(product_id)
                    continue

                line = merge_line(local.get(product_id), server.get(product_id), product.stock)
                if line is None:
                    result.dropped.append(product_id)
                    continue

                if line.discrepancy is not None:
                    logger.warning(
                        "Price discrepancy merging cart of user %s, product %s: "
                        "local=%s server=%s kept=%s",
                        user_id,
                        product_id,
                        line.discrepancy.local_price,
                        line.discrepancy.server_price,
                        line.discrepancy.kept_price,
                    )
                    result.price_flags.append(line.discrepancy)

                merged.append(
                    CartItem(
                        cart_id=cart.id,
                        product_id=line.product_id,
                        quantity=line.quantity,
                        snapshot_price=line.price,
                        product_name=line.name,
                        product_hero_image_url=line.hero_image_url,
                        added_at=line.added_at,
                    )
                )

            self.cart_repo.replace_items(session, cart.id, merged)
            cart.last_merge_token = merge_token
            self.cart_repo.touch(session, cart, now, self._expiry(now))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Cart reconciliation failed for user %s: %s", user_id, exc)
            raise ReconciliationFailed() from exc

        result.cart = self._summarize(session, cart)
        return result
