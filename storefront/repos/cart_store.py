# storefront/repos/cart_store.py
from dataclasses import dataclass
from typing import List, Protocol

from sqlalchemy.exc import SQLAlchemyError

from storefront.data.models.cart_item import CartItemModel
from storefront.domain.entities import CartLine, to_entity
from storefront.repos.cart_repo import CartRepo
from storefront.repos.guest_store import GuestSessionStore


@dataclass(frozen=True)
class CartOwner:
    """Who the cart belongs to. A user id always wins over a guest session id."""

    user_id: int | None = None
    session_id: str | None = None

    def __post_init__(self):
        if self.user_id is None and not self.session_id:
            raise ValueError("CartOwner needs a user_id or a session_id")

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def key(self) -> str:
        return str(self.user_id) if self.is_authenticated else self.session_id

    def __str__(self) -> str:
        return f"user:{self.user_id}" if self.is_authenticated else f"guest:{self.session_id}"


class CartStore(Protocol):
    def get_lines(self, owner: CartOwner) -> List[CartLine]: ...

    def get_line(self, owner: CartOwner, line_ref: int) -> CartLine | None: ...

    def get_line_by_variant(self, owner: CartOwner, variant_id: int) -> CartLine | None: ...

    def add(self, owner: CartOwner, variant_id: int, quantity: int) -> CartLine: ...

    def set_quantity(self, owner: CartOwner, line_ref: int, quantity: int) -> CartLine | None: ...

    def remove(self, owner: CartOwner, line_ref: int) -> bool: ...

    def clear(self, owner: CartOwner) -> None: ...


class GuestCartStore:
    """Line ref of a guest line is its variant id."""

    def __init__(self, store: GuestSessionStore):
        self.store = store

    def get_lines(self, owner: CartOwner) -> List[CartLine]:
        return self.store.get_cart(owner.session_id)

    def get_line(self, owner: CartOwner, line_ref: int) -> CartLine | None:
        return self.store.get_cart_line(owner.session_id, line_ref)

    def get_line_by_variant(self, owner: CartOwner, variant_id: int) -> CartLine | None:
        return self.store.get_cart_line(owner.session_id, variant_id)

    def add(self, owner: CartOwner, variant_id: int, quantity: int) -> CartLine:
        self.store.add_cart_item(owner.session_id, variant_id, quantity)
        return self.store.get_cart_line(owner.session_id, variant_id)

    def set_quantity(self, owner: CartOwner, line_ref: int, quantity: int) -> CartLine | None:
        if self.store.get_cart_line(owner.session_id, line_ref) is None:
            return None
        self.store.set_cart_item_quantity(owner.session_id, line_ref, quantity)
        return self.store.get_cart_line(owner.session_id, line_ref)

    def remove(self, owner: CartOwner, line_ref: int) -> bool:
        return self.store.remove_cart_item(owner.session_id, line_ref)

    def clear(self, owner: CartOwner) -> None:
        self.store.clear_cart(owner.session_id)


class UserCartStore:
    """Durable cart; every mutation is its own committed transaction."""

    def __init__(self, repo: CartRepo):
        self.repo = repo

    @staticmethod
    def _to_line(owner: CartOwner, row: CartItemModel | None) -> CartLine | None:
        if row is None:
            return None
        return to_entity(CartLine, row, owner=owner.key)

    def get_lines(self, owner: CartOwner) -> List[CartLine]:
        return [self._to_line(owner, row) for row in self.repo.get_lines(owner.user_id)]

    def get_line(self, owner: CartOwner, line_ref: int) -> CartLine | None:
        return self._to_line(owner, self.repo.get_line(owner.user_id, line_ref))

    def get_line_by_variant(self, owner: CartOwner, variant_id: int) -> CartLine | None:
        return self._to_line(owner, self.repo.get_line_by_variant(owner.user_id, variant_id))

    def _write(self, fn, *args):
        try:
            result = fn(*args)
            self.repo.commit()
            return result
        except SQLAlchemyError:
            self.repo.rollback()
            raise

    def add(self, owner: CartOwner, variant_id: int, quantity: int) -> CartLine:
        row = self._write(self.repo.add_item, owner.user_id, variant_id, quantity)
        return self._to_line(owner, row)

    def set_quantity(self, owner: CartOwner, line_ref: int, quantity: int) -> CartLine | None:
        row = self._write(self.repo.update_item, owner.user_id, line_ref, quantity)
        return self._to_line(owner, row)

    def remove(self, owner: CartOwner, line_ref: int) -> bool:
        return self._write(self.repo.remove_item, owner.user_id, line_ref)

    def clear(self, owner: CartOwner) -> None:
        self._write(self.repo.clear, owner.user_id)
