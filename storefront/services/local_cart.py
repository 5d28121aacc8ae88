# storefront/services/local_cart.py
"""
Guest cart held on the client side.

The cart lives in a single key of a synchronous key-value slot (browser
localStorage in the web client; a JSON file or a dict here) and never
talks to the network. It stays the source of truth for a guest until
CartReconciler merges it into the server cart.
"""
import logging
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from storefront.core.errors import Conflict, NotFound, invalid_quantity
from storefront.core.timeutil import utcnow
from storefront.schemas.cart import (
    CartItemRead,
    CartProduct,
    CartSummary,
    LocalCartItem,
    LocalCartState,
)
from storefront.services.cart_backends import CartBackend
from storefront.services.cart_service import summarize_lines

logger = logging.getLogger(__name__)

DEFAULT_CART_KEY = "cart"


class KeyValueSlot(ABC):
    """Durable string storage keyed by name."""

    @abstractmethod
    def read(self, key: str) -> str | None: ...

    @abstractmethod
    def write(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


class MemorySlot(KeyValueSlot):
    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileSlot(KeyValueSlot):
    """
    One JSON file per key inside `directory`.

    Writes go to a temp file first and are renamed into place, so a crash
    mid-write leaves the previous contents.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class LocalCart(CartBackend):
    """
    Cart operations over a KeyValueSlot.

    Same rules as the server cart: one entry per product, price captured
    at add time, quantities clamped to stock. Stock is whatever the caller
    saw when adding, since there is no catalog access here.
    """

    def __init__(self, slot: KeyValueSlot, key: str = DEFAULT_CART_KEY):
        self.slot = slot
        self.key = key

    def _load(self) -> list[LocalCartItem]:
        try:
            raw = self.slot.read(self.key)
            if not raw:
                return []
            return LocalCartState.model_validate_json(raw).items
        except (UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable local cart in slot %r: %s", self.key, exc)
            return []

    def _save(self, items: list[LocalCartItem]) -> CartSummary:
        self.slot.write(self.key, LocalCartState(items=items).model_dump_json())
        return self._summarize(items)

    @staticmethod
    def _summarize(items: list[LocalCartItem]) -> CartSummary:
        return summarize_lines(
            CartItemRead(
                product_id=it.product_id,
                quantity=it.quantity,
                snapshot_price=it.price,
                product_name=it.name,
                product_hero_image_url=it.hero_image_url,
                line_total=round(it.quantity * it.price, 2),
                added_at=it.added_at,
            )
            for it in items
        )

    def items(self) -> list[LocalCartItem]:
        return self._load()

    def get(self) -> CartSummary:
        return self._summarize(self._load())

    def add_item(self, product: CartProduct, quantity: int = 1) -> CartSummary:
        if isinstance(quantity, bool) or quantity < 1:
            raise invalid_quantity()
        if product.stock <= 0:
            raise Conflict("out_of_stock", "Product is out of stock")

        items = self._load()
        for idx, it in enumerate(items):
            if it.product_id == product.id:
                items[idx] = it.model_copy(
                    update={
                        "quantity": min(it.quantity + quantity, product.stock),
                        "stock": product.stock,
                    }
                )
                break
        else:
            items.append(
                LocalCartItem(
                    product_id=product.id,
                    quantity=min(quantity, product.stock),
                    price=product.price,
                    name=product.name,
                    hero_image_url=product.hero_image_url,
                    stock=product.stock,
                    added_at=utcnow(),
                )
            )
        return self._save(items)

    def set_quantity(self, product_id: uuid.UUID, quantity: int) -> CartSummary:
        items = self._load()
        idx = next((i for i, it in enumerate(items) if it.product_id == product_id), None)
        if idx is None:
            raise NotFound("item_not_in_cart", "Item not in cart")

        current = items[idx]
        if current.stock is not None:
            quantity = min(quantity, current.stock)
        if quantity <= 0:
            del items[idx]
        else:
            items[idx] = current.model_copy(update={"quantity": quantity})
        return self._save(items)

    def remove(self, product_id: uuid.UUID) -> CartSummary:
        items = [it for it in self._load() if it.product_id != product_id]
        return self._save(items)

    def clear(self) -> CartSummary:
        self.slot.delete(self.key)
        return CartSummary.empty()
