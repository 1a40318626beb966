# storefront/repos/catalog_repo.py
from typing import Dict, Iterable, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.data.models.product_media import ProductMediaModel
from storefront.data.models.variant import VariantModel
from storefront.domain.entities import Media, Product, Variant, to_entity


class CatalogRepo:
    """Read side of the catalog: stock source and pricing source."""

    def __init__(self, db: Session):
        self.db = db

    def get_variant(self, variant_id: int) -> Variant | None:
        row = self.db.get(VariantModel, variant_id)
        return to_entity(Variant, row) if row else None

    def get_product(self, product_id: int) -> Product | None:
        row = self.db.get(ProductModel, product_id)
        return to_entity(Product, row) if row else None

    def get_variants_with_products(
        self, variant_ids: Iterable[int]
    ) -> Dict[int, Tuple[Variant, Product]]:
        ids = set(variant_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(VariantModel, ProductModel)
            .join(ProductModel, VariantModel.product_id == ProductModel.id)
            .where(VariantModel.id.in_(ids))
        ).all()
        return {
            v.id: (to_entity(Variant, v), to_entity(Product, p))
            for v, p in rows
        }

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductModel).where(ProductModel.id.in_(ids))
        ).scalars().all()
        return {p.id: to_entity(Product, p) for p in rows}

    def get_primary_media(self, product_ids: Iterable[int]) -> Dict[int, Media]:
        """is_primary first, then lowest sort_order."""
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.execute(
            select(ProductMediaModel)
            .where(ProductMediaModel.product_id.in_(ids))
            .order_by(
                ProductMediaModel.product_id,
                ProductMediaModel.is_primary.desc(),
                ProductMediaModel.sort_order,
            )
        ).scalars().all()

        media: Dict[int, Media] = {}
        for m in rows:
            media.setdefault(m.product_id, to_entity(Media, m))
        return media
