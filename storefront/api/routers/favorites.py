# storefront/api/routers/favorites.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_guest_store, get_owner, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import (
    FavoriteAddedOut,
    FavoriteIn,
    FavoritesOut,
    IsFavoriteOut,
    RemovedOut,
)
from storefront.repos.cart_store import CartOwner
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.favorites_service import FavoritesService

router = APIRouter(prefix="/favorites", tags=["favorites"])


def get_service(
    db: Session = Depends(get_db),
    guest_store: GuestSessionStore = Depends(get_guest_store),
) -> FavoritesService:
    return FavoritesService(db=db, guest_store=guest_store)


@router.get("/", response_model=FavoritesOut)
def list_favorites(owner: CartOwner = Depends(get_owner), svc: FavoritesService = Depends(get_service)):
    try:
        return svc.list_favorites(owner)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/", response_model=FavoriteAddedOut)
def add_favorite(
    payload: FavoriteIn,
    owner: CartOwner = Depends(get_owner),
    svc: FavoritesService = Depends(get_service),
):
    try:
        return svc.add(owner, payload.product_id)
    except StorefrontError as e:
        raise http_error(e)


@router.get("/{product_id}", response_model=IsFavoriteOut)
def is_favorite(
    product_id: int,
    owner: CartOwner = Depends(get_owner),
    svc: FavoritesService = Depends(get_service),
):
    try:
        return {"product_id": product_id, "is_favorite": svc.is_favorite(owner, product_id)}
    except StorefrontError as e:
        raise http_error(e)


@router.delete("/{product_id}", response_model=RemovedOut)
def remove_favorite(
    product_id: int,
    owner: CartOwner = Depends(get_owner),
    svc: FavoritesService = Depends(get_service),
):
    try:
        svc.remove(owner, product_id)
    except StorefrontError as e:
        raise http_error(e)
    return RemovedOut()
