# storefront/repos/guest_store.py
import functools
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

import redis
from redis.exceptions import RedisError

from storefront.domain.entities import CartLine, FavoriteEntry, GuestSession, to_entity
from storefront.domain.errors import StoreUnavailable
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry
from storefront.utils.settings import (
    GUEST_CART_TTL_SECONDS,
    GUEST_FAVORITES_TTL_SECONDS,
    GUEST_SESSION_TTL_SECONDS,
)

logger = get_logger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

#LUA: odjecie przeniesionych ilosci, atomowo wzgledem rownoleglych zmian goscia
#KEYS: cart, cart:added, favorites, session
#ARGV: liczba pozycji, pary (variant, qty), potem product id ulubionych
_TAKE_TRANSFERRED_LUA = """
local n = tonumber(ARGV[1])
for i = 0, n - 1 do
    local field = ARGV[2 + i * 2]
    local taken = tonumber(ARGV[3 + i * 2])
    local current = tonumber(redis.call('HGET', KEYS[1], field) or '0')
    if current <= taken then
        redis.call('HDEL', KEYS[1], field)
        redis.call('HDEL', KEYS[2], field)
    else
        redis.call('HSET', KEYS[1], field, tostring(current - taken))
    end
end
for i = 2 + n * 2, #ARGV do
    redis.call('SREM', KEYS[3], ARGV[i])
end
local remaining = redis.call('HLEN', KEYS[1]) + redis.call('SCARD', KEYS[3])
if remaining == 0 then
    redis.call('DEL', KEYS[1], KEYS[2], KEYS[3], KEYS[4])
end
return remaining
"""


def _store_call(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except RedisError as e:
            logger.error(f"Guest store {fn.__name__} failed: {e}")
            raise StoreUnavailable("Guest session store is unavailable") from e

    return wrapper


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GuestSessionStore:
    """
    Koszyk i ulubione goscia w Redis, klucze z TTL (sliding expiration).

    cart:{sid}         hash  variant_id -> quantity
    cart:{sid}:added   hash  variant_id -> ISO timestamp pierwszego dodania
    favorites:{sid}    set   product_id
    session:{sid}      hash  created_at, last_activity

    Kazda mutacja odswieza TTL w tym samym MULTI co zapis.
    HINCRBY nie jest ponawiany (nieidempotentny), reszta tak.
    """

    def __init__(
        self,
        client: redis.Redis,
        cart_ttl: int = GUEST_CART_TTL_SECONDS,
        favorites_ttl: int = GUEST_FAVORITES_TTL_SECONDS,
        session_ttl: int = GUEST_SESSION_TTL_SECONDS,
    ):
        self.redis = client
        self.cart_ttl = cart_ttl
        self.favorites_ttl = favorites_ttl
        self.session_ttl = session_ttl

    @staticmethod
    def cart_key(session_id: str) -> str:
        return f"cart:{session_id}"

    @staticmethod
    def cart_added_key(session_id: str) -> str:
        return f"cart:{session_id}:added"

    @staticmethod
    def favorites_key(session_id: str) -> str:
        return f"favorites:{session_id}"

    @staticmethod
    def session_key(session_id: str) -> str:
        return f"session:{session_id}"

    # session

    @staticmethod
    def generate_session_id() -> str:
        return f"guest_{uuid.uuid4().hex}"

    @_store_call
    def create_session(self) -> GuestSession:
        session_id = self.generate_session_id()
        now = _now_iso()
        pipe = self.redis.pipeline(transaction=True)
        pipe.hset(self.session_key(session_id), mapping={"created_at": now, "last_activity": now})
        pipe.expire(self.session_key(session_id), self.session_ttl)
        pipe.execute()
        logger.info(f"Created guest session {session_id}")
        return self.get_session(session_id)

    @_store_call
    @redis_retry()
    def get_session(self, session_id: str) -> GuestSession | None:
        data = self.redis.hgetall(self.session_key(session_id))
        if not data:
            return None
        ttl = self.redis.ttl(self.session_key(session_id))
        return to_entity(GuestSession, data, session_id=session_id, ttl=max(ttl, 0))

    @_store_call
    @redis_retry()
    def touch_session(self, session_id: str) -> None:
        pipe = self.redis.pipeline(transaction=True)
        self._touch(pipe, session_id)
        pipe.execute()

    @_store_call
    @redis_retry()
    def end_session(self, session_id: str) -> None:
        self.redis.delete(
            self.session_key(session_id),
            self.cart_key(session_id),
            self.cart_added_key(session_id),
            self.favorites_key(session_id),
        )
        logger.info(f"Ended guest session {session_id}")

    def _touch(self, pipe, session_id: str) -> None:
        key = self.session_key(session_id)
        now = _now_iso()
        pipe.hsetnx(key, "created_at", now)
        pipe.hset(key, "last_activity", now)
        pipe.expire(key, self.session_ttl)

    def _expire_cart(self, pipe, session_id: str) -> None:
        pipe.expire(self.cart_key(session_id), self.cart_ttl)
        pipe.expire(self.cart_added_key(session_id), self.cart_ttl)

    # cart

    @_store_call
    def add_cart_item(self, session_id: str, variant_id: int, quantity: int) -> int:
        """Increment (or create) the line and return its new quantity."""
        field = str(variant_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.hincrby(self.cart_key(session_id), field, quantity)
        pipe.hsetnx(self.cart_added_key(session_id), field, _now_iso())
        self._expire_cart(pipe, session_id)
        self._touch(pipe, session_id)
        new_quantity = pipe.execute()[0]
        logger.info(f"Guest {session_id}: variant {variant_id} -> {new_quantity}")
        return int(new_quantity)

    @_store_call
    @redis_retry()
    def set_cart_item_quantity(self, session_id: str, variant_id: int, quantity: int) -> None:
        field = str(variant_id)
        pipe = self.redis.pipeline(transaction=True)
        if quantity <= 0:
            pipe.hdel(self.cart_key(session_id), field)
            pipe.hdel(self.cart_added_key(session_id), field)
        else:
            pipe.hset(self.cart_key(session_id), field, quantity)
            pipe.hsetnx(self.cart_added_key(session_id), field, _now_iso())
        self._expire_cart(pipe, session_id)
        self._touch(pipe, session_id)
        pipe.execute()

    @_store_call
    @redis_retry()
    def remove_cart_item(self, session_id: str, variant_id: int) -> bool:
        field = str(variant_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.hdel(self.cart_key(session_id), field)
        pipe.hdel(self.cart_added_key(session_id), field)
        self._expire_cart(pipe, session_id)
        self._touch(pipe, session_id)
        removed = pipe.execute()[0]
        return bool(removed)

    @_store_call
    @redis_retry()
    def get_cart(self, session_id: str) -> List[CartLine]:
        pipe = self.redis.pipeline(transaction=True)
        pipe.hgetall(self.cart_key(session_id))
        pipe.hgetall(self.cart_added_key(session_id))
        quantities, added = pipe.execute()

        lines = [
            to_entity(
                CartLine,
                {
                    "id": int(variant_id),
                    "owner": session_id,
                    "variant_id": int(variant_id),
                    "quantity": int(qty),
                    "added_at": added.get(variant_id),
                },
            )
            for variant_id, qty in quantities.items()
        ]
        lines.sort(key=lambda line: line.added_at or _EPOCH, reverse=True)
        return lines

    @_store_call
    @redis_retry()
    def get_cart_line(self, session_id: str, variant_id: int) -> CartLine | None:
        field = str(variant_id)
        qty = self.redis.hget(self.cart_key(session_id), field)
        if qty is None:
            return None
        return to_entity(
            CartLine,
            {
                "id": variant_id,
                "owner": session_id,
                "variant_id": variant_id,
                "quantity": int(qty),
                "added_at": self.redis.hget(self.cart_added_key(session_id), field),
            },
        )

    @_store_call
    @redis_retry()
    def clear_cart(self, session_id: str) -> None:
        self.redis.delete(self.cart_key(session_id), self.cart_added_key(session_id))

    @_store_call
    @redis_retry()
    def cart_count(self, session_id: str) -> int:
        values = self.redis.hvals(self.cart_key(session_id))
        return sum(int(v) for v in values)

    # favorites

    @_store_call
    @redis_retry()
    def add_favorite(self, session_id: str, product_id: int) -> bool:
        """SADD jest idempotentny, drugi raz zwraca False."""
        key = self.favorites_key(session_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.sadd(key, str(product_id))
        pipe.expire(key, self.favorites_ttl)
        self._touch(pipe, session_id)
        added = pipe.execute()[0]
        return bool(added)

    @_store_call
    @redis_retry()
    def get_favorites(self, session_id: str) -> List[FavoriteEntry]:
        members = self.redis.smembers(self.favorites_key(session_id))
        return [
            to_entity(FavoriteEntry, {"owner": session_id, "product_id": int(pid)})
            for pid in sorted(members, key=int)
        ]

    @_store_call
    @redis_retry()
    def remove_favorite(self, session_id: str, product_id: int) -> bool:
        key = self.favorites_key(session_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.srem(key, str(product_id))
        pipe.expire(key, self.favorites_ttl)
        self._touch(pipe, session_id)
        removed = pipe.execute()[0]
        return bool(removed)

    @_store_call
    @redis_retry()
    def is_favorite(self, session_id: str, product_id: int) -> bool:
        return bool(self.redis.sismember(self.favorites_key(session_id), str(product_id)))

    @_store_call
    @redis_retry()
    def clear_favorites(self, session_id: str) -> None:
        self.redis.delete(self.favorites_key(session_id))

    @_store_call
    @redis_retry()
    def favorites_count(self, session_id: str) -> int:
        return int(self.redis.scard(self.favorites_key(session_id)))

    # transfer

    @_store_call
    def take_transferred(self, session_id: str, lines: Dict[int, int], product_ids: Iterable[int]) -> int:
        """
        Remove exactly what a transfer read: each variant drops by the taken quantity,
        taken favorites are removed. Whatever the guest added meanwhile stays.
        Ends the session when nothing is left; returns the number of entries left.
        Not retried, the decrement is not idempotent.
        """
        args: List[Any] = [len(lines)]
        for variant_id, quantity in lines.items():
            args.extend([str(variant_id), quantity])
        args.extend(str(pid) for pid in product_ids)

        remaining = self.redis.eval(
            _TAKE_TRANSFERRED_LUA,
            4,
            self.cart_key(session_id),
            self.cart_added_key(session_id),
            self.favorites_key(session_id),
            self.session_key(session_id),
            *args,
        )
        remaining = int(remaining)
        if remaining:
            logger.info(f"Guest {session_id}: {remaining} entr(ies) added during transfer kept")
        else:
            logger.info(f"Ended guest session {session_id} after transfer")
        return remaining
