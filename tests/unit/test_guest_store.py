import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from storefront.domain.errors import StoreUnavailable
from storefront.repos.guest_store import GuestSessionStore


@pytest.fixture
def store(redis_client):
    return GuestSessionStore(redis_client, cart_ttl=600, favorites_ttl=300, session_ttl=900)


@pytest.fixture
def sid(store):
    return store.create_session().session_id


def test_create_session(store, redis_client):
    session = store.create_session()

    assert session.session_id.startswith("guest_")
    assert 0 < session.ttl <= 900
    assert redis_client.exists(store.session_key(session.session_id))


def test_get_missing_session(store):
    assert store.get_session("guest_missing") is None


def test_add_cart_item_increments(store, sid):
    assert store.add_cart_item(sid, 7, 2) == 2
    assert store.add_cart_item(sid, 7, 3) == 5

    line = store.get_cart_line(sid, 7)
    assert line.quantity == 5
    assert line.id == 7
    assert line.added_at is not None


def test_mutation_refreshes_ttl(store, sid, redis_client):
    store.add_cart_item(sid, 7, 1)
    redis_client.expire(store.cart_key(sid), 10)
    redis_client.expire(store.session_key(sid), 10)

    store.set_cart_item_quantity(sid, 7, 4)

    assert redis_client.ttl(store.cart_key(sid)) > 10
    assert redis_client.ttl(store.session_key(sid)) > 10


def test_set_quantity_zero_removes_line(store, sid):
    store.add_cart_item(sid, 7, 2)

    store.set_cart_item_quantity(sid, 7, 0)

    assert store.get_cart_line(sid, 7) is None
    assert store.get_cart(sid) == []


def test_remove_cart_item(store, sid):
    store.add_cart_item(sid, 7, 2)

    assert store.remove_cart_item(sid, 7) is True
    assert store.remove_cart_item(sid, 7) is False


def test_get_cart_and_count(store, sid):
    store.add_cart_item(sid, 1, 2)
    store.add_cart_item(sid, 2, 3)

    cart = store.get_cart(sid)

    assert {line.variant_id: line.quantity for line in cart} == {1: 2, 2: 3}
    assert store.cart_count(sid) == 5


def test_clear_cart(store, sid):
    store.add_cart_item(sid, 1, 2)
    store.clear_cart(sid)

    assert store.get_cart(sid) == []
    assert store.cart_count(sid) == 0


def test_favorites_are_idempotent(store, sid):
    assert store.add_favorite(sid, 10) is True
    assert store.add_favorite(sid, 10) is False
    assert store.add_favorite(sid, 3) is True

    assert [f.product_id for f in store.get_favorites(sid)] == [3, 10]
    assert store.favorites_count(sid) == 2
    assert store.is_favorite(sid, 10) is True


def test_remove_favorite(store, sid):
    store.add_favorite(sid, 10)

    assert store.remove_favorite(sid, 10) is True
    assert store.remove_favorite(sid, 10) is False
    assert store.is_favorite(sid, 10) is False


def test_end_session_drops_everything(store, sid, redis_client):
    store.add_cart_item(sid, 1, 1)
    store.add_favorite(sid, 2)

    store.end_session(sid)

    assert store.get_session(sid) is None
    assert store.get_cart(sid) == []
    assert store.get_favorites(sid) == []


def test_unreachable_store_raises_store_unavailable(store, monkeypatch):
    def boom(*args, **kwargs):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr(store.redis, "hget", boom)

    with pytest.raises(StoreUnavailable):
        store.get_cart_line("guest_x", 1)
