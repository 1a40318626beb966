# storefront/services/favorites_service.py
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.domain.errors import NotFound
from storefront.repos.cart_store import CartOwner
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.favorites_repo import FavoritesRepo
from storefront.repos.guest_store import GuestSessionStore
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class FavoritesService:
    def __init__(self, db: Session, guest_store: GuestSessionStore):
        self.repo = FavoritesRepo(db)
        self.catalog = CatalogRepo(db)
        self.guest_store = guest_store

    def add(self, owner: CartOwner, product_id: int) -> Dict[str, Any]:
        """Idempotent: adding an existing favorite is a no-op reported as added=False."""
        product = self.catalog.get_product(product_id)
        if product is None or not product.is_active:
            raise NotFound(f"Product {product_id} not found")

        if owner.is_authenticated:
            try:
                added = self.repo.add_if_missing(owner.user_id, product_id)
                self.repo.commit()
            except SQLAlchemyError:
                self.repo.rollback()
                raise
        else:
            added = self.guest_store.add_favorite(owner.session_id, product_id)

        logger.info(f"Favorites of {owner}: product {product_id} {'added' if added else 'already present'}")
        return {"product_id": product_id, "added": added}

    def remove(self, owner: CartOwner, product_id: int) -> None:
        if owner.is_authenticated:
            try:
                removed = self.repo.remove(owner.user_id, product_id)
                self.repo.commit()
            except SQLAlchemyError:
                self.repo.rollback()
                raise
        else:
            removed = self.guest_store.remove_favorite(owner.session_id, product_id)

        if not removed:
            raise NotFound(f"Product {product_id} is not in favorites")

    def is_favorite(self, owner: CartOwner, product_id: int) -> bool:
        if owner.is_authenticated:
            return self.repo.is_favorite(owner.user_id, product_id)
        return self.guest_store.is_favorite(owner.session_id, product_id)

    def list_favorites(self, owner: CartOwner) -> Dict[str, Any]:
        if owner.is_authenticated:
            entries = [(f.product_id, f.added_at) for f in self.repo.get_favorites(owner.user_id)]
        else:
            entries = [(f.product_id, f.added_at) for f in self.guest_store.get_favorites(owner.session_id)]

        products = self.catalog.get_products(pid for pid, _ in entries)
        media = self.catalog.get_primary_media(products.keys())

        items: List[Dict[str, Any]] = []
        for product_id, added_at in entries:
            product = products.get(product_id)
            items.append(
                {
                    "product_id": product_id,
                    "added_at": added_at,
                    "name": product.name if product else None,
                    "slug": product.slug if product else None,
                    "base_price": product.base_price if product else None,
                    "is_active": bool(product and product.is_active),
                    "image_url": media[product_id].media_url if product_id in media else None,
                }
            )
        return {"items": items, "count": len(items)}

    def clear(self, owner: CartOwner) -> None:
        if owner.is_authenticated:
            try:
                self.repo.clear(owner.user_id)
                self.repo.commit()
            except SQLAlchemyError:
                self.repo.rollback()
                raise
        else:
            self.guest_store.clear_favorites(owner.session_id)
