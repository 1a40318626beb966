# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import get_guest_store, get_owner, http_error
from storefront.data.database import get_db
from storefront.domain.entities import ShippingAddress
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import CheckoutIn, OrderOut
from storefront.repos.cart_store import CartOwner
from storefront.repos.guest_store import GuestSessionStore
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    guest_store: GuestSessionStore = Depends(get_guest_store),
) -> OrderService:
    return OrderService(db, CartService(db, guest_store))


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(
    payload: CheckoutIn,
    owner: CartOwner = Depends(get_owner),
    svc: OrderService = Depends(get_service),
):
    """
    Tworzy zamowienie z biezacego koszyka.
    Koszyk z problemami (validate) -> 409 z lista problemow, zamowienie nie powstaje.
    """
    try:
        return svc.place_order(
            owner,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
            shipping_address=ShippingAddress(**payload.shipping_address.model_dump()),
            payment_method=payload.payment_method,
        )
    except StorefrontError as e:
        raise http_error(e)


@router.get("/", response_model=List[OrderOut])
def list_orders(owner: CartOwner = Depends(get_owner), svc: OrderService = Depends(get_service)):
    return svc.list_orders(owner)


@router.get("/by-number/{order_number}", response_model=OrderOut)
def get_order_by_number(
    order_number: str,
    owner: CartOwner = Depends(get_owner),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order_by_number(order_number, owner)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StorefrontError as e:
        raise http_error(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    owner: CartOwner = Depends(get_owner),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order(order_id, owner)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StorefrontError as e:
        raise http_error(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    owner: CartOwner = Depends(get_owner),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.cancel_order(order_id, owner)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StorefrontError as e:
        raise http_error(e)
