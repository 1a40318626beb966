# storefront/domain/entities.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storefront.domain.errors import CorruptRecord

E = TypeVar("E", bound=BaseModel)


class Entity(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class Product(Entity):
    id: int
    name: str
    slug: str
    base_price: Decimal
    is_active: bool


class Variant(Entity):
    id: int
    product_id: int
    sku: str
    size: str
    color: str | None = None
    additional_price: Decimal
    stock_quantity: int = Field(ge=0)
    reserved_quantity: int = Field(ge=0)
    is_active: bool

    @property
    def available(self) -> int:
        return max(self.stock_quantity - self.reserved_quantity, 0)


class Media(Entity):
    media_url: str
    alt_text: str | None = None


class CartLine(Entity):
    """
    One line of a cart. `owner` is a session id for guests and a user id for
    authenticated shoppers; `id` is the line ref used by update/remove.
    """

    id: int
    owner: str
    variant_id: int
    quantity: int = Field(ge=1)
    added_at: datetime | None = None
    updated_at: datetime | None = None


class FavoriteEntry(Entity):
    owner: str
    product_id: int
    added_at: datetime | None = None


class GuestSession(Entity):
    session_id: str
    created_at: datetime
    last_activity: datetime
    ttl: int


class ShippingAddress(Entity):
    full_name: str
    phone: str
    address_line_1: str
    address_line_2: str | None = None
    landmark: str | None = None
    city: str
    state: str
    postal_code: str
    country: str = "India"


def to_entity(entity_cls: Type[E], row: Any, **extra: Any) -> E:
    """
    Map a storage row (ORM object, mapping, decoded JSON) into a typed entity.
    Missing or malformed required fields raise CorruptRecord.
    """
    try:
        if extra:
            data: Mapping[str, Any]
            if isinstance(row, Mapping):
                data = {**row, **extra}
            else:
                data = {
                    name: getattr(row, name)
                    for name in entity_cls.model_fields
                    if name not in extra and hasattr(row, name)
                }
                data.update(extra)
            return entity_cls.model_validate(data)
        return entity_cls.model_validate(row)
    except ValidationError as e:
        raise CorruptRecord(f"Invalid {entity_cls.__name__} record: {e.error_count()} field error(s)") from e
