# storefront/api/deps.py
import redis
from fastapi import Depends, Header, HTTPException, Request

from storefront.domain.errors import StorefrontError
from storefront.repos.cart_store import CartOwner
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.lock_service import LockService


def get_redis(request: Request) -> redis.Redis:
    return request.app.state.redis


def get_guest_store(client: redis.Redis = Depends(get_redis)) -> GuestSessionStore:
    return GuestSessionStore(client)


def get_lock_service(client: redis.Redis = Depends(get_redis)) -> LockService:
    return LockService(client)


def http_error(e: StorefrontError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


def get_optional_session_id(x_session_id: str | None = Header(None)) -> str | None:
    return x_session_id or None


def get_owner(
    x_user_id: int | None = Header(None),
    x_session_id: str | None = Header(None),
    guest_store: GuestSessionStore = Depends(get_guest_store),
) -> CartOwner:
    """
    Tozsamosc podaje warstwa auth przed tym serwisem, tu jej ufamy.
    User id ma pierwszenstwo; session id goscia musi wskazywac zywa sesje.
    """
    if x_user_id is not None:
        return CartOwner(user_id=x_user_id)

    if not x_session_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id or X-Session-Id header")

    try:
        session = guest_store.get_session(x_session_id)
    except StorefrontError as e:
        raise http_error(e)

    if session is None:
        raise HTTPException(status_code=401, detail="Unknown or expired guest session")
    return CartOwner(session_id=x_session_id)
