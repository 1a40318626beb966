# storefront/repos/cart_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import InvalidQuantity


class CartRepo:
    """
    Trwaly koszyk zalogowanego uzytkownika.
    Kazde zapytanie filtruje po user_id. Repo robi tylko flush,
    commit/rollback wola serwis.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_lines(self, user_id: int) -> List[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.user_id == user_id)
                .order_by(CartItemModel.added_at.desc(), CartItemModel.id.desc())
            ).scalars()
        )

    def get_line(self, user_id: int, line_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.id == line_id,
                CartItemModel.user_id == user_id,
            )
        ).scalar_one_or_none()

    def get_line_by_variant(self, user_id: int, variant_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.user_id == user_id,
                CartItemModel.variant_id == variant_id,
            )
        ).scalar_one_or_none()

    def add_item(self, user_id: int, variant_id: int, quantity: int) -> CartItemModel:
        existing = self.get_line_by_variant(user_id, variant_id)
        if existing:
            existing.quantity += quantity
            existing.updated_at = datetime.now(timezone.utc)
            self.db.flush()
            return existing

        line = CartItemModel(user_id=user_id, variant_id=variant_id, quantity=quantity)
        self.db.add(line)
        self.db.flush()
        return line

    def update_item(self, user_id: int, line_id: int, quantity: int) -> CartItemModel | None:
        if quantity < 1:
            raise InvalidQuantity("Quantity must be at least 1, remove the line instead")

        line = self.get_line(user_id, line_id)
        if line is None:
            return None
        line.quantity = quantity
        line.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return line

    def remove_item(self, user_id: int, line_id: int) -> bool:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.id == line_id,
                CartItemModel.user_id == user_id,
            )
        )
        return result.rowcount > 0

    def clear(self, user_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(CartItemModel.user_id == user_id)
        )
        return result.rowcount

    def merge_line(self, user_id: int, variant_id: int, quantity: int) -> CartItemModel:
        """Additive merge used by the guest transfer. No stock check, no commit."""
        return self.add_item(user_id, variant_id, quantity)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
