# storefront/repos/favorites_repo.py
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from storefront.data.models.favorite import FavoriteModel


class FavoritesRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_favorites(self, user_id: int) -> List[FavoriteModel]:
        return list(
            self.db.execute(
                select(FavoriteModel)
                .where(FavoriteModel.user_id == user_id)
                .order_by(FavoriteModel.added_at.desc(), FavoriteModel.id.desc())
            ).scalars()
        )

    def is_favorite(self, user_id: int, product_id: int) -> bool:
        return self.db.execute(
            select(FavoriteModel.id).where(
                FavoriteModel.user_id == user_id,
                FavoriteModel.product_id == product_id,
            )
        ).first() is not None

    def add_if_missing(self, user_id: int, product_id: int) -> bool:
        """True if a row was inserted, False if the product was already a favorite."""
        if self.is_favorite(user_id, product_id):
            return False
        self.db.add(FavoriteModel(user_id=user_id, product_id=product_id))
        self.db.flush()
        return True

    def remove(self, user_id: int, product_id: int) -> bool:
        result = self.db.execute(
            delete(FavoriteModel).where(
                FavoriteModel.user_id == user_id,
                FavoriteModel.product_id == product_id,
            )
        )
        return result.rowcount > 0

    def clear(self, user_id: int) -> int:
        result = self.db.execute(delete(FavoriteModel).where(FavoriteModel.user_id == user_id))
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
