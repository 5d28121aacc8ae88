# storefront/services/reconciliation.py
"""
Merge rules for folding a guest (local) cart into a signed-in user's
server cart.

Per product present in either cart:
  - in both:     quantity = min(stock, local + server)
  - in one only: that entry, clamped to stock
  - price:       the local entry's price, since it was added during the
                 guest session and so after anything on the server. If
                 the server entry turns out to be newer, the higher of the
                 two prices is kept and the line is flagged.

The functions here are pure; CartService.reconcile applies the result in
one transaction and CartReconciler clears the local cart afterwards.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, TYPE_CHECKING

from storefront.core.timeutil import as_utc
from storefront.models.cart import CartItem
from storefront.schemas.cart import LocalCartItem, PriceDiscrepancy, ReconcileResult

if TYPE_CHECKING:
    from storefront.services.cart_backends import ServerCart
    from storefront.services.cart_service import CartService
    from storefront.services.local_cart import LocalCart

logger = logging.getLogger(__name__)


@dataclass
class MergedLine:
    product_id: uuid.UUID
    quantity: int
    price: float
    name: str | None
    hero_image_url: str | None
    added_at: datetime
    discrepancy: PriceDiscrepancy | None = None


def collapse_local_items(items: Iterable[LocalCartItem]) -> dict[uuid.UUID, LocalCartItem]:
    """
    Fold repeated product ids in a local cart into one entry.

    A well-behaved client never sends duplicates, but a hand-edited or
    partially synced slot might. Quantities add up; price and display
    fields come from the most recently added copy.
    """
    merged: dict[uuid.UUID, LocalCartItem] = {}
    for item in items:
        current = merged.get(item.product_id)
        if current is None:
            merged[item.product_id] = item.model_copy()
            continue
        newer = item if as_utc(item.added_at) >= as_utc(current.added_at) else current
        merged[item.product_id] = newer.model_copy(
            update={"quantity": current.quantity + item.quantity}
        )
    return merged


def merge_line(
    local: LocalCartItem | None,
    server: CartItem | None,
    stock: int,
) -> MergedLine | None:
    """
    Merge one product's local and server entries against current stock.

    Returns None when nothing can be kept (no entries, or no stock).
    """
    if local is None and server is None:
        return None

    if local is not None and server is not None:
        quantity = min(stock, local.quantity + server.quantity)
        local_at = as_utc(local.added_at)
        server_at = as_utc(server.added_at)
        discrepancy = None
        if local_at >= server_at:
            price = local.price
        else:
            price = max(local.price, server.snapshot_price)
            if local.price != server.snapshot_price:
                discrepancy = PriceDiscrepancy(
                    product_id=server.product_id,
                    local_price=local.price,
                    server_price=server.snapshot_price,
                    kept_price=price,
                )
        line = MergedLine(
            product_id=server.product_id,
            quantity=quantity,
            price=price,
            name=local.name or server.product_name,
            hero_image_url=local.hero_image_url or server.product_hero_image_url,
            added_at=min(local_at, server_at),
            discrepancy=discrepancy,
        )
    elif local is not None:
        line = MergedLine(
            product_id=local.product_id,
            quantity=min(stock, local.quantity),
            price=local.price,
            name=local.name,
            hero_image_url=local.hero_image_url,
            added_at=as_utc(local.added_at),
        )
    else:
        line = MergedLine(
            product_id=server.product_id,
            quantity=min(stock, server.quantity),
            price=server.snapshot_price,
            name=server.product_name,
            hero_image_url=server.product_hero_image_url,
            added_at=as_utc(server.added_at),
        )

    if line.quantity <= 0:
        return None
    return line


class CartReconciler:
    """
    The bridge between a LocalCart and a ServerCart on sign-in.

    The server merge commits first; only then is the local cart cleared.
    If the merge fails the local cart is left untouched so the caller can
    retry from it.
    """

    def __init__(self, service: "CartService"):
        self.service = service

    def reconcile(
        self,
        local: "LocalCart",
        server: "ServerCart",
        merge_token: str | None = None,
    ) -> ReconcileResult:
        result = self.service.reconcile(
            server.session,
            server.user_id,
            local.items(),
            merge_token=merge_token,
        )
        local.clear()
        logger.info(
            "Local cart merged into cart of user %s (%d lines)",
            server.user_id,
            result.cart.item_count,
        )
        return result
