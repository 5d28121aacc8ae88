"""Guest cart over a key-value slot."""
import uuid

import pytest

from storefront.core.errors import Conflict, NotFound, ValidationFailed
from storefront.schemas.cart import CartProduct
from storefront.services.local_cart import FileSlot, LocalCart, MemorySlot


def _product(price=10.0, stock=10, name="Lamp"):
    return CartProduct(id=uuid.uuid4(), name=name, price=price, stock=stock)


@pytest.fixture
def slot():
    return MemorySlot()


def test_empty_slot_is_empty_cart(slot):
    summary = LocalCart(slot).get()

    assert summary.items == []
    assert summary.total_price == 0


def test_add_merges_and_clamps(slot):
    cart = LocalCart(slot)
    lamp = _product(price=4.5, stock=6)

    cart.add_item(lamp, 2)
    cart.add_item(lamp, 3)
    summary = cart.add_item(lamp, 3)

    assert summary.item_count == 1
    assert summary.items[0].quantity == 6
    assert summary.total_price == pytest.approx(27.0)


def test_price_is_kept_from_first_add(slot):
    cart = LocalCart(slot)
    lamp = _product(price=4.5)
    cart.add_item(lamp, 1)

    summary = cart.add_item(lamp.model_copy(update={"price": 9.0}), 1)

    assert summary.items[0].snapshot_price == 4.5


def test_contents_survive_a_new_instance(slot):
    lamp, mug = _product(), _product(name="Mug", price=3.0)
    first = LocalCart(slot)
    first.add_item(lamp, 1)
    first.add_item(mug, 2)

    again = LocalCart(slot).get()

    assert [(i.product_id, i.quantity) for i in again.items] == [(lamp.id, 1), (mug.id, 2)]


def test_file_slot_persists_between_instances(tmp_path):
    lamp = _product()
    LocalCart(FileSlot(tmp_path)).add_item(lamp, 3)

    reopened = LocalCart(FileSlot(tmp_path))

    assert reopened.get().items[0].quantity == 3
    assert (tmp_path / "cart.json").exists()
    assert list(tmp_path.glob("*.tmp")) == []


def test_separate_keys_do_not_share_contents(slot):
    LocalCart(slot, key="cart-a").add_item(_product(), 1)

    assert LocalCart(slot, key="cart-b").get().items == []


def test_set_quantity_zero_removes(slot):
    cart = LocalCart(slot)
    lamp, mug = _product(), _product(name="Mug")
    cart.add_item(lamp, 1)
    cart.add_item(mug, 1)

    summary = cart.set_quantity(lamp.id, 0)

    assert [i.product_id for i in summary.items] == [mug.id]


def test_set_quantity_clamps_to_known_stock(slot):
    cart = LocalCart(slot)
    lamp = _product(stock=4)
    cart.add_item(lamp, 1)

    summary = cart.set_quantity(lamp.id, 40)

    assert summary.items[0].quantity == 4


def test_set_quantity_for_missing_item(slot):
    with pytest.raises(NotFound) as exc:
        LocalCart(slot).set_quantity(uuid.uuid4(), 2)

    assert exc.value.reason == "item_not_in_cart"


def test_remove_and_clear(slot):
    cart = LocalCart(slot)
    lamp, mug = _product(), _product(name="Mug")
    cart.add_item(lamp, 1)
    cart.add_item(mug, 1)

    assert [i.product_id for i in cart.remove(lamp.id).items] == [mug.id]
    assert [i.product_id for i in cart.remove(lamp.id).items] == [mug.id]

    assert cart.clear().items == []
    assert "cart" not in slot.data


@pytest.mark.parametrize("quantity", [0, -1])
def test_add_rejects_non_positive_quantity(slot, quantity):
    with pytest.raises(ValidationFailed) as exc:
        LocalCart(slot).add_item(_product(), quantity)

    assert exc.value.reason == "invalid_quantity"


def test_add_sold_out_product(slot):
    with pytest.raises(Conflict) as exc:
        LocalCart(slot).add_item(_product(stock=0), 1)

    assert exc.value.reason == "out_of_stock"
    assert slot.data == {}


def test_unreadable_slot_reads_as_empty(slot):
    slot.write("cart", "{not json")

    cart = LocalCart(slot)

    assert cart.get().items == []
    summary = cart.add_item(_product(), 1)
    assert summary.item_count == 1


def test_binary_garbage_file_slot_reads_as_empty(tmp_path):
    (tmp_path / "cart.json").write_bytes(b"\xff\xfe garbage")
    cart = LocalCart(FileSlot(tmp_path))

    assert cart.get().items == []
    assert cart.items() == []
    summary = cart.add_item(_product(), 2)
    assert summary.items[0].quantity == 2
    assert LocalCart(FileSlot(tmp_path)).get().item_count == 1
