from decimal import Decimal

import pytest

from storefront.domain.errors import (
    InsufficientStock,
    InvalidQuantity,
    NotFound,
    ProductInactive,
    VariantUnavailable,
)
from storefront.repos.cart_store import CartOwner
from storefront.repos.stock_ledger import StockLedger
from storefront.services.cart_service import (
    INSUFFICIENT_STOCK,
    PRODUCT_INACTIVE,
    VARIANT_INACTIVE,
)


@pytest.fixture(params=["guest", "member"])
def owner(request):
    """Every cart rule holds for both backends."""
    return request.getfixturevalue(request.param)


def test_add_within_stock(cart_service, owner, make_variant):
    variant = make_variant(stock=5)

    line = cart_service.add(owner, variant.id, 2)

    assert line["quantity"] == 2
    assert line["variant_id"] == variant.id
    assert line["is_available"] is True
    assert line["image_url"].startswith("https://cdn.test/")


def test_add_accumulates_quantity(cart_service, owner, make_variant):
    variant = make_variant(stock=5)

    cart_service.add(owner, variant.id, 2)
    line = cart_service.add(owner, variant.id, 3)

    assert line["quantity"] == 5
    assert cart_service.item_count(owner) == 5


def test_add_over_stock_leaves_cart_unchanged(cart_service, owner, make_variant):
    variant = make_variant(stock=5)
    cart_service.add(owner, variant.id, 3)

    with pytest.raises(InsufficientStock) as exc:
        cart_service.add(owner, variant.id, 3)

    assert exc.value.available == 5
    assert exc.value.requested == 6
    assert cart_service.item_count(owner) == 3


def test_add_respects_reserved_stock(cart_service, owner, make_variant):
    variant = make_variant(stock=5, reserved=4)

    with pytest.raises(InsufficientStock) as exc:
        cart_service.add(owner, variant.id, 2)

    assert exc.value.available == 1


def test_add_rejects_non_positive_quantity(cart_service, owner, make_variant):
    variant = make_variant()

    with pytest.raises(InvalidQuantity):
        cart_service.add(owner, variant.id, 0)


def test_add_unknown_variant(cart_service, owner):
    with pytest.raises(NotFound):
        cart_service.add(owner, 4242, 1)


def test_add_inactive_variant(cart_service, owner, make_variant):
    variant = make_variant(active=False)

    with pytest.raises(VariantUnavailable):
        cart_service.add(owner, variant.id, 1)


def test_add_inactive_product(cart_service, owner, make_variant):
    variant = make_variant(product_active=False)

    with pytest.raises(ProductInactive):
        cart_service.add(owner, variant.id, 1)


def test_update_sets_absolute_quantity(cart_service, owner, make_variant):
    variant = make_variant(stock=5)
    line = cart_service.add(owner, variant.id, 3)

    # 4 <= 5 mimo ze 3 + 4 > 5
    updated = cart_service.update_quantity(owner, line["id"], 4)

    assert updated["quantity"] == 4


def test_update_over_stock_keeps_previous_quantity(cart_service, owner, make_variant):
    variant = make_variant(stock=5)
    line = cart_service.add(owner, variant.id, 3)

    with pytest.raises(InsufficientStock):
        cart_service.update_quantity(owner, line["id"], 6)

    assert cart_service.item_count(owner) == 3


def test_update_to_zero_removes_line(cart_service, owner, make_variant):
    variant = make_variant(stock=5)
    line = cart_service.add(owner, variant.id, 3)

    assert cart_service.update_quantity(owner, line["id"], 0) is None
    assert cart_service.get_cart_with_totals(owner)["items"] == []


def test_update_missing_line(cart_service, owner):
    with pytest.raises(NotFound):
        cart_service.update_quantity(owner, 999, 1)


def test_remove_and_clear(cart_service, owner, make_variant):
    first = make_variant()
    second = make_variant()
    line = cart_service.add(owner, first.id, 1)
    cart_service.add(owner, second.id, 2)

    cart_service.remove(owner, line["id"])
    assert cart_service.item_count(owner) == 2

    with pytest.raises(NotFound):
        cart_service.remove(owner, line["id"])

    cart_service.clear(owner)
    assert cart_service.item_count(owner) == 0


def test_totals_use_decimal_prices(cart_service, owner, make_variant):
    tee = make_variant(stock=10, base_price="10.05", additional_price="0.05")
    socks = make_variant(stock=10, base_price="0.10")
    cart_service.add(owner, tee.id, 3)
    cart_service.add(owner, socks.id, 1)

    cart = cart_service.get_cart_with_totals(owner)

    assert cart["subtotal"] == Decimal("30.40")
    assert cart["item_count"] == 4
    by_variant = {item["variant_id"]: item for item in cart["items"]}
    assert by_variant[tee.id]["unit_price"] == Decimal("10.10")
    assert by_variant[tee.id]["line_total"] == Decimal("30.30")


def test_inactive_line_excluded_from_subtotal(db, cart_service, owner, make_variant):
    kept = make_variant(base_price="20.00")
    dropped = make_variant(base_price="50.00")
    cart_service.add(owner, kept.id, 1)
    cart_service.add(owner, dropped.id, 1)

    dropped.is_active = False
    db.commit()

    cart = cart_service.get_cart_with_totals(owner)

    assert cart["subtotal"] == Decimal("20.00")
    assert cart["item_count"] == 2
    flags = {item["variant_id"]: item["is_available"] for item in cart["items"]}
    assert flags == {kept.id: True, dropped.id: False}


def test_validate_clean_cart(cart_service, owner, make_variant):
    variant = make_variant(stock=5)
    cart_service.add(owner, variant.id, 5)

    assert cart_service.validate(owner) == {"is_valid": True, "issues": []}


def test_validate_reports_each_reason(db, cart_service, owner, make_variant):
    short = make_variant(stock=5)
    gone_variant = make_variant()
    gone_product = make_variant()
    for v in (short, gone_variant, gone_product):
        cart_service.add(owner, v.id, 2)

    # ktos inny zaplacil w miedzyczasie
    StockLedger(db).reserve(short.id, 4)
    gone_variant.is_active = False
    gone_product.product.is_active = False
    db.commit()

    result = cart_service.validate(owner)

    assert result["is_valid"] is False
    reasons = {issue["variant_id"]: issue for issue in result["issues"]}
    assert reasons[short.id]["reason"] == INSUFFICIENT_STOCK
    assert reasons[short.id]["available"] == 1
    assert reasons[gone_variant.id]["reason"] == VARIANT_INACTIVE
    assert reasons[gone_product.id]["reason"] == PRODUCT_INACTIVE


def test_two_shoppers_can_hold_the_last_units(cart_service, guest_store, make_variant):
    """Cart quantities are advisory; only payment reserves stock."""
    variant = make_variant(stock=5)
    alice = CartOwner(session_id=guest_store.create_session().session_id)
    bob = CartOwner(session_id=guest_store.create_session().session_id)

    cart_service.add(alice, variant.id, 3)
    cart_service.add(bob, variant.id, 3)

    assert cart_service.validate(alice)["is_valid"] is True
    assert cart_service.validate(bob)["is_valid"] is True


def test_guest_and_user_carts_are_separate(cart_service, guest, member, make_variant):
    variant = make_variant(stock=5)

    cart_service.add(guest, variant.id, 1)
    cart_service.add(member, variant.id, 2)

    assert cart_service.item_count(guest) == 1
    assert cart_service.item_count(member) == 2
