# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, List
from decimal import Decimal
from datetime import datetime


class ItemIn(BaseModel):
    """Schema dla dodawania wariantu do koszyka."""

    variant_id: int = Field(..., gt=0, description="ID wariantu (musi byc > 0)")
    quantity: int = Field(1, gt=0, description="Ilosc (musi byc > 0)")


class QuantityIn(BaseModel):
    """Schema dla zmiany ilosci. 0 lub mniej usuwa pozycje."""

    quantity: int


class CartProductOut(BaseModel):
    id: int
    name: str
    slug: str
    base_price: Decimal
    is_active: bool


class CartVariantOut(BaseModel):
    id: int
    sku: str
    size: str
    color: str | None = None
    additional_price: Decimal
    stock_quantity: int
    is_active: bool


class CartLineOut(BaseModel):
    """Schema dla pozycji koszyka (response)."""

    id: int
    variant_id: int
    quantity: int
    added_at: datetime | None = None
    updated_at: datetime | None = None
    product: CartProductOut | None = None
    variant: CartVariantOut | None = None
    image_url: str | None = None
    unit_price: Decimal
    line_total: Decimal
    is_available: bool


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    items: List[CartLineOut]
    subtotal: Decimal
    item_count: int


class RemovedOut(BaseModel):
    removed: bool = True


class ValidationIssueOut(BaseModel):
    line_id: int
    variant_id: int
    reason: str
    message: str
    available: int | None = None


class CartValidationOut(BaseModel):
    is_valid: bool
    issues: List[ValidationIssueOut]


class FavoriteIn(BaseModel):
    product_id: int = Field(..., gt=0, description="ID produktu (musi byc > 0)")


class FavoriteAddedOut(BaseModel):
    product_id: int
    added: bool


class FavoriteOut(BaseModel):
    product_id: int
    added_at: datetime | None = None
    name: str | None = None
    slug: str | None = None
    base_price: Decimal | None = None
    is_active: bool
    image_url: str | None = None


class FavoritesOut(BaseModel):
    items: List[FavoriteOut]
    count: int


class IsFavoriteOut(BaseModel):
    product_id: int
    is_favorite: bool


class SessionOut(BaseModel):
    session_id: str
    created_at: datetime
    last_activity: datetime
    ttl: int

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    """Schema dla rejestracji uzytkownika."""

    name: str = Field(..., min_length=1, max_length=100, description="Imie uzytkownika")
    email: str | None = Field(None, max_length=255)


class UserRead(BaseModel):
    """Schema dla uzytkownika (response)."""

    id: int
    name: str
    email: str | None = None

    model_config = ConfigDict(from_attributes=True)


class TransferOut(BaseModel):
    transferred: bool
    cart_lines_merged: int = 0
    favorites_added: int = 0
    skipped_variants: List[int] = []
    skipped_products: List[int] = []
    ephemeral_cleared: bool = False
    guest_items_remaining: int = 0
    error: Dict[str, Any] | None = None


class UserSessionOut(BaseModel):
    user: UserRead
    transfer: TransferOut | None = None


class ShippingAddressIn(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=5)
    address_line_1: str = Field(..., min_length=1)
    address_line_2: str | None = None
    landmark: str | None = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=3)
    country: str = "India"


class CheckoutIn(BaseModel):
    """Schema dla zlozenia zamowienia z biezacego koszyka."""

    customer_name: str = Field(..., min_length=1)
    customer_email: str = Field(..., min_length=3)
    customer_phone: str | None = None
    shipping_address: ShippingAddressIn
    payment_method: str | None = None


class OrderLineOut(BaseModel):
    product_id: int
    product_name: str
    variant_id: int
    sku: str
    size: str
    color: str | None = None
    quantity: int
    price: Decimal
    total: Decimal


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: int
    order_number: str
    user_id: int | None = None
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    shipping_address: Dict[str, Any]
    products: List[OrderLineOut]
    subtotal_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    payment_method: str | None = None
    payment_status: str
    gateway_status: str | None = None
    refund_required: bool = False
    fulfillment_status: str
    ordered_at: datetime
    paid_at: datetime | None = None
    fulfilled_at: datetime | None = None
    cancelled_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
