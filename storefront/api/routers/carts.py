#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_guest_store, get_owner, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import (
    CartLineOut,
    CartOut,
    CartValidationOut,
    ItemIn,
    QuantityIn,
    RemovedOut,
)
from storefront.repos.cart_store import CartOwner
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(
    db: Session = Depends(get_db),
    guest_store: GuestSessionStore = Depends(get_guest_store),
) -> CartService:
    return CartService(db=db, guest_store=guest_store)


@router.get("/", response_model=CartOut)
def get_cart(owner: CartOwner = Depends(get_owner), svc: CartService = Depends(get_service)):
    try:
        return svc.get_cart_with_totals(owner)
    except StorefrontError as e:
        raise http_error(e)


@router.get("/validate", response_model=CartValidationOut)
def validate_cart(owner: CartOwner = Depends(get_owner), svc: CartService = Depends(get_service)):
    try:
        return svc.validate(owner)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/", response_model=CartLineOut, status_code=201)
def add_item(
    payload: ItemIn,
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.add(owner, variant_id=payload.variant_id, quantity=payload.quantity)
    except StorefrontError as e:
        raise http_error(e)


@router.put("/{line_id}", response_model=None)
def update_item(
    line_id: int,
    payload: QuantityIn,
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_service),
):
    try:
        line = svc.update_quantity(owner, line_id, payload.quantity)
    except StorefrontError as e:
        raise http_error(e)
    # 0 lub mniej usuwa pozycje
    return CartLineOut.model_validate(line) if line is not None else RemovedOut()


@router.delete("/{line_id}", response_model=RemovedOut)
def remove_item(
    line_id: int,
    owner: CartOwner = Depends(get_owner),
    svc: CartService = Depends(get_service),
):
    try:
        svc.remove(owner, line_id)
    except StorefrontError as e:
        raise http_error(e)
    return RemovedOut()


@router.delete("/", response_model=RemovedOut)
def clear_cart(owner: CartOwner = Depends(get_owner), svc: CartService = Depends(get_service)):
    try:
        svc.clear(owner)
    except StorefrontError as e:
        raise http_error(e)
    return RemovedOut()
