import pytest
from sqlalchemy.exc import SQLAlchemyError

from storefront.domain.errors import TransferFailed
from storefront.repos.cart_repo import CartRepo
from storefront.repos.favorites_repo import FavoritesRepo
from storefront.services.transfer_service import TransferService


@pytest.fixture
def transfer_service(db, guest_store, lock_service):
    return TransferService(db, guest_store, lock_service)


def _user_cart(db, user_id):
    return {line.variant_id: line.quantity for line in CartRepo(db).get_lines(user_id)}


def test_merge_sums_quantities(db, transfer_service, guest_store, guest, user, make_variant):
    v1 = make_variant(stock=10)
    v2 = make_variant(stock=10)
    repo = CartRepo(db)
    repo.add_item(user.id, v1.id, 1)
    repo.add_item(user.id, v2.id, 3)
    repo.commit()
    guest_store.add_cart_item(guest.session_id, v1.id, 2)

    result = transfer_service.transfer(guest.session_id, user.id)

    assert result["transferred"] is True
    assert result["cart_lines_merged"] == 1
    assert result["ephemeral_cleared"] is True
    assert _user_cart(db, user.id) == {v1.id: 3, v2.id: 3}
    assert guest_store.get_session(guest.session_id) is None
    assert guest_store.get_cart(guest.session_id) == []


def test_merge_does_not_clamp_to_stock(db, transfer_service, guest_store, guest, user, make_variant):
    variant = make_variant(stock=2)
    guest_store.add_cart_item(guest.session_id, variant.id, 5)

    transfer_service.transfer(guest.session_id, user.id)

    assert _user_cart(db, user.id) == {variant.id: 5}


def test_favorites_union(db, transfer_service, guest_store, guest, user, make_variant):
    shared = make_variant().product
    guest_only = make_variant().product
    favorites = FavoritesRepo(db)
    favorites.add_if_missing(user.id, shared.id)
    favorites.commit()
    guest_store.add_favorite(guest.session_id, shared.id)
    guest_store.add_favorite(guest.session_id, guest_only.id)

    result = transfer_service.transfer(guest.session_id, user.id)

    assert result["favorites_added"] == 1
    assert {f.product_id for f in favorites.get_favorites(user.id)} == {shared.id, guest_only.id}


def test_empty_guest_session_is_noop(db, transfer_service, guest_store, guest, user):
    result = transfer_service.transfer(guest.session_id, user.id)

    assert result["transferred"] is False
    assert result["cart_lines_merged"] == 0
    assert _user_cart(db, user.id) == {}
    # pusta sesja zostaje
    assert guest_store.get_session(guest.session_id) is not None


def test_unknown_variants_and_products_are_skipped(db, transfer_service, guest_store, guest, user, make_variant):
    variant = make_variant()
    guest_store.add_cart_item(guest.session_id, variant.id, 1)
    guest_store.add_cart_item(guest.session_id, 9999, 1)
    guest_store.add_favorite(guest.session_id, 8888)

    result = transfer_service.transfer(guest.session_id, user.id)

    assert result["transferred"] is True
    assert result["skipped_variants"] == [9999]
    assert result["skipped_products"] == [8888]
    assert _user_cart(db, user.id) == {variant.id: 1}


def test_failure_rolls_back_and_keeps_guest_data(
    db, transfer_service, guest_store, guest, user, make_variant, monkeypatch
):
    v1 = make_variant(stock=10)
    v2 = make_variant(stock=10)
    repo = CartRepo(db)
    repo.add_item(user.id, v1.id, 1)
    repo.commit()
    guest_store.add_cart_item(guest.session_id, v1.id, 2)
    guest_store.add_cart_item(guest.session_id, v2.id, 4)

    original = transfer_service.cart_repo.merge_line
    calls = []

    def flaky_merge(user_id, variant_id, quantity):
        calls.append(variant_id)
        if len(calls) == 2:
            raise SQLAlchemyError("connection lost mid-transfer")
        return original(user_id, variant_id, quantity)

    monkeypatch.setattr(transfer_service.cart_repo, "merge_line", flaky_merge)

    with pytest.raises(TransferFailed):
        transfer_service.transfer(guest.session_id, user.id)

    assert _user_cart(db, user.id) == {v1.id: 1}
    guest_cart = {line.variant_id: line.quantity for line in guest_store.get_cart(guest.session_id)}
    assert guest_cart == {v1.id: 2, v2.id: 4}
    assert guest_store.get_session(guest.session_id) is not None


def test_retry_after_failure_succeeds(db, transfer_service, guest_store, guest, user, make_variant, monkeypatch):
    variant = make_variant(stock=10)
    guest_store.add_cart_item(guest.session_id, variant.id, 2)

    def broken(*args):
        raise SQLAlchemyError("boom")

    monkeypatch.setattr(transfer_service.cart_repo, "merge_line", broken)
    with pytest.raises(TransferFailed):
        transfer_service.transfer(guest.session_id, user.id)

    monkeypatch.undo()
    result = transfer_service.transfer(guest.session_id, user.id)

    assert result["transferred"] is True
    assert _user_cart(db, user.id) == {variant.id: 2}


def test_held_lock_blocks_second_transfer(transfer_service, lock_service, guest_store, guest, user, make_variant):
    variant = make_variant()
    guest_store.add_cart_item(guest.session_id, variant.id, 1)
    token = lock_service.acquire_transfer_lock(guest.session_id)
    assert token is not None

    with pytest.raises(TransferFailed):
        transfer_service.transfer(guest.session_id, user.id)

    # obcy token nie zwalnia locka
    assert lock_service.release_transfer_lock(guest.session_id, "someone-else") is False
    assert lock_service.release_transfer_lock(guest.session_id, token) is True


def test_lock_released_after_transfer(transfer_service, lock_service, redis_client, guest_store, guest, user, make_variant):
    variant = make_variant()
    guest_store.add_cart_item(guest.session_id, variant.id, 1)

    transfer_service.transfer(guest.session_id, user.id)

    assert not redis_client.exists(lock_service.transfer_key(guest.session_id))


def test_guest_changes_during_transfer_are_kept(
    db, transfer_service, guest_store, guest, user, make_variant, monkeypatch
):
    v1 = make_variant(stock=10)
    v2 = make_variant(stock=10)
    late_favorite = make_variant().product_id
    guest_store.add_cart_item(guest.session_id, v1.id, 1)
    original_commit = db.commit

    def commit_with_concurrent_guest_edits():
        # drugi tab goscia zmienia koszyk miedzy odczytem a commitem
        guest_store.add_cart_item(guest.session_id, v2.id, 2)
        guest_store.add_cart_item(guest.session_id, v1.id, 1)
        guest_store.add_favorite(guest.session_id, late_favorite)
        original_commit()

    monkeypatch.setattr(db, "commit", commit_with_concurrent_guest_edits)
    result = transfer_service.transfer(guest.session_id, user.id)
    monkeypatch.undo()

    assert result["transferred"] is True
    assert result["guest_items_remaining"] == 3
    assert _user_cart(db, user.id) == {v1.id: 1}
    guest_cart = {line.variant_id: line.quantity for line in guest_store.get_cart(guest.session_id)}
    assert guest_cart == {v1.id: 1, v2.id: 2}
    assert guest_store.is_favorite(guest.session_id, late_favorite)
    assert guest_store.get_session(guest.session_id) is not None

    # kolejne logowanie przenosi reszte
    second = transfer_service.transfer(guest.session_id, user.id)

    assert second["guest_items_remaining"] == 0
    assert _user_cart(db, user.id) == {v1.id: 2, v2.id: 2}
    assert {f.product_id for f in FavoritesRepo(db).get_favorites(user.id)} == {late_favorite}
    assert guest_store.get_session(guest.session_id) is None


def test_guest_line_lowered_during_transfer_is_removed(
    db, transfer_service, guest_store, guest, user, make_variant, monkeypatch
):
    variant = make_variant(stock=10)
    guest_store.add_cart_item(guest.session_id, variant.id, 3)
    original_commit = db.commit

    def commit_after_guest_lowers_quantity():
        guest_store.set_cart_item_quantity(guest.session_id, variant.id, 1)
        original_commit()

    monkeypatch.setattr(db, "commit", commit_after_guest_lowers_quantity)
    result = transfer_service.transfer(guest.session_id, user.id)

    assert result["guest_items_remaining"] == 0
    assert _user_cart(db, user.id) == {variant.id: 3}
    assert guest_store.get_cart(guest.session_id) == []
