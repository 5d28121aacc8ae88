"""Folding a guest cart into the signed-in user's cart."""
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from storefront.core.errors import ReconciliationFailed
from storefront.core.timeutil import utcnow
from storefront.schemas.cart import CartProduct, LocalCartItem
from storefront.services.cart_backends import ServerCart
from storefront.services.local_cart import FileSlot, LocalCart, MemorySlot
from storefront.services.reconciliation import (
    CartReconciler,
    collapse_local_items,
    merge_line,
)


def _as_cart_product(product):
    return CartProduct(
        id=product.id, name=product.name, price=product.price, stock=product.stock
    )


def _quantities(summary):
    return {i.product_id: i.quantity for i in summary.items}


@pytest.fixture
def shelf(make_product):
    a = make_product(name="A", stock=10, price=10.0)
    b = make_product(name="B", stock=10, price=5.0)
    c = make_product(name="C", stock=5, price=2.0)
    return a, b, c


def _server_with_a1_c4(session, cart_service, user, a, c):
    """Server cart holding A:1 and C:4, after which C's stock drops to 2."""
    cart_service.add_item(session, user.id, a.id, 1)
    cart_service.add_item(session, user.id, c.id, 4)
    c.stock = 2
    session.add(c)
    session.commit()


def test_merge_sums_and_clamps(session, make_user, cart_service, shelf):
    a, b, c = shelf
    user = make_user()
    _server_with_a1_c4(session, cart_service, user, a, c)
    local = LocalCart(MemorySlot())
    local.add_item(_as_cart_product(a), 2)
    local.add_item(_as_cart_product(b), 1)

    result = CartReconciler(cart_service).reconcile(
        local, ServerCart(cart_service, session, user.id)
    )

    assert _quantities(result.cart) == {a.id: 3, b.id: 1, c.id: 2}
    assert result.dropped == []
    assert result.already_applied is False
    assert local.items() == []
    assert _quantities(cart_service.get_cart(session, user.id)) == {a.id: 3, b.id: 1, c.id: 2}


def test_local_price_wins_when_local_is_newer(session, make_user, cart_service, shelf):
    a, _, _ = shelf
    user = make_user()
    cart_service.add_item(session, user.id, a.id, 1)
    local = [LocalCartItem(product_id=a.id, quantity=1, price=8.0, added_at=utcnow())]

    result = cart_service.reconcile(session, user.id, local)

    line = result.cart.items[0]
    assert line.snapshot_price == 8.0
    assert line.quantity == 2
    assert result.price_flags == []


def test_newer_server_entry_keeps_higher_price_and_flags(session, make_user, cart_service, shelf):
    a, _, _ = shelf
    user = make_user()
    cart_service.add_item(session, user.id, a.id, 1)
    stale = LocalCartItem(
        product_id=a.id, quantity=1, price=8.0, added_at=utcnow() - timedelta(days=1)
    )

    result = cart_service.reconcile(session, user.id, [stale])

    assert result.cart.items[0].snapshot_price == 10.0
    assert len(result.price_flags) == 1
    flag = result.price_flags[0]
    assert (flag.product_id, flag.local_price, flag.server_price, flag.kept_price) == (
        a.id,
        8.0,
        10.0,
        10.0,
    )


def test_unknown_inactive_and_sold_out_are_dropped(session, make_user, make_product, cart_service):
    user = make_user()
    ok = make_product(stock=3)
    inactive = make_product(is_active=False)
    sold_out = make_product(stock=0)
    ghost = uuid.uuid4()
    local = [
        LocalCartItem(product_id=pid, quantity=1, price=1.0)
        for pid in (ok.id, inactive.id, sold_out.id, ghost)
    ]

    result = cart_service.reconcile(session, user.id, local)

    assert _quantities(result.cart) == {ok.id: 1}
    assert set(result.dropped) == {inactive.id, sold_out.id, ghost}


def test_replayed_merge_token_is_not_applied_twice(session, make_user, cart_service, shelf):
    a, _, _ = shelf
    user = make_user()
    local = [LocalCartItem(product_id=a.id, quantity=2, price=10.0)]

    first = cart_service.reconcile(session, user.id, local, merge_token="signin-1")
    again = cart_service.reconcile(session, user.id, local, merge_token="signin-1")
    fresh = cart_service.reconcile(session, user.id, local, merge_token="signin-2")

    assert _quantities(first.cart) == {a.id: 2}
    assert again.already_applied is True
    assert _quantities(again.cart) == {a.id: 2}
    assert _quantities(fresh.cart) == {a.id: 4}


def test_failed_merge_leaves_both_carts_intact(
    session, make_user, cart_service, shelf, monkeypatch
):
    a, b, c = shelf
    user = make_user()
    _server_with_a1_c4(session, cart_service, user, a, c)
    local = LocalCart(MemorySlot())
    local.add_item(_as_cart_product(a), 2)
    local.add_item(_as_cart_product(b), 1)

    def broken_touch(*args, **kwargs):
        raise OperationalError("UPDATE carts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(cart_service.cart_repo, "touch", broken_touch)

    with pytest.raises(ReconciliationFailed) as exc:
        CartReconciler(cart_service).reconcile(
            local, ServerCart(cart_service, session, user.id)
        )

    assert exc.value.status_code == 503
    assert exc.value.reason == "reconciliation_incomplete"
    assert _quantities(cart_service.get_cart(session, user.id)) == {a.id: 1, c.id: 4}
    assert _quantities(local.get()) == {a.id: 2, b.id: 1}


def test_collapse_local_duplicates():
    pid = uuid.uuid4()
    older = LocalCartItem(
        product_id=pid, quantity=1, price=3.0, added_at=utcnow() - timedelta(hours=1)
    )
    newer = LocalCartItem(product_id=pid, quantity=2, price=4.0, added_at=utcnow())

    collapsed = collapse_local_items([newer, older])

    assert list(collapsed) == [pid]
    assert collapsed[pid].quantity == 3
    assert collapsed[pid].price == 4.0


def test_merge_line_without_stock_is_dropped():
    item = LocalCartItem(product_id=uuid.uuid4(), quantity=2, price=1.0)

    assert merge_line(item, None, 0) is None
    assert merge_line(None, None, 5) is None
    assert merge_line(item, None, 1).quantity == 1


def test_unreadable_local_cart_merges_as_empty(session, make_user, cart_service, shelf, tmp_path):
    a, _, _ = shelf
    user = make_user()
    cart_service.add_item(session, user.id, a.id, 2)
    (tmp_path / "cart.json").write_bytes(b"\xff\xfe garbage")
    local = LocalCart(FileSlot(tmp_path))

    result = CartReconciler(cart_service).reconcile(
        local, ServerCart(cart_service, session, user.id)
    )

    assert _quantities(result.cart) == {a.id: 2}
    assert not (tmp_path / "cart.json").exists()
