# storefront/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple

from sqlalchemy.orm import Session

from storefront.domain.entities import CartLine, Media, Product, Variant
from storefront.domain.errors import (
    InsufficientStock,
    InvalidQuantity,
    NotFound,
    ProductInactive,
    VariantUnavailable,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.cart_store import CartOwner, CartStore, GuestCartStore, UserCartStore
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.guest_store import GuestSessionStore
from storefront.repos.stock_ledger import StockLedger
from storefront.utils.logging import get_logger
from storefront.utils.money import ZERO, to_money

logger = get_logger(__name__)

PRODUCT_INACTIVE = "ProductInactive"
VARIANT_INACTIVE = "VariantInactive"
INSUFFICIENT_STOCK = "InsufficientStock"


class PricedLine(NamedTuple):
    line: CartLine
    variant: Variant | None
    product: Product | None
    media: Media | None

    @property
    def is_available(self) -> bool:
        return (
            self.variant is not None
            and self.product is not None
            and self.variant.is_active
            and self.product.is_active
        )

    @property
    def unit_price(self) -> Decimal:
        if self.variant is None or self.product is None:
            return ZERO
        return self.product.base_price + self.variant.additional_price

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.line.quantity


class CartService:
    """
    Use case'y koszyka, ten sam ksztalt dla goscia i zalogowanego.
    Backend (Redis / Postgres) wybierany po CartOwner.is_authenticated,
    walidacja stanow magazynowych jest jedna dla obu.

    commands (add, update_quantity, remove, clear) modyfikuja stan
    query (get_cart_with_totals, validate, item_count) tylko odczyt
    """

    def __init__(self, db: Session, guest_store: GuestSessionStore):
        self.catalog = CatalogRepo(db)
        self.ledger = StockLedger(db)
        self.guest_carts = GuestCartStore(guest_store)
        self.user_carts = UserCartStore(CartRepo(db))

    def store_for(self, owner: CartOwner) -> CartStore:
        return self.user_carts if owner.is_authenticated else self.guest_carts

    # query

    def priced_lines(self, owner: CartOwner) -> List[PricedLine]:
        lines = self.store_for(owner).get_lines(owner)
        details = self.catalog.get_variants_with_products(line.variant_id for line in lines)
        media = self.catalog.get_primary_media(product.id for _, product in details.values())

        priced = []
        for line in lines:
            variant, product = details.get(line.variant_id, (None, None))
            priced.append(
                PricedLine(
                    line=line,
                    variant=variant,
                    product=product,
                    media=media.get(product.id) if product else None,
                )
            )
        return priced

    def get_cart_with_totals(self, owner: CartOwner) -> Dict[str, Any]:
        priced = self.priced_lines(owner)

        # nieaktywne pozycje zostaja w koszyku (oznaczone), ale nie licza sie do sumy
        subtotal = sum((p.line_total for p in priced if p.is_available), ZERO)

        return {
            "items": [self._line_out(p) for p in priced],
            "subtotal": to_money(subtotal),
            "item_count": sum(p.line.quantity for p in priced),
        }

    def item_count(self, owner: CartOwner) -> int:
        return sum(line.quantity for line in self.store_for(owner).get_lines(owner))

    def validate(self, owner: CartOwner) -> Dict[str, Any]:
        issues: List[Dict[str, Any]] = []

        for p in self.priced_lines(owner):
            line = p.line
            if p.product is None or p.variant is None:
                issues.append(self._issue(line, VARIANT_INACTIVE, "Item is no longer available"))
                continue

            if not p.product.is_active:
                issues.append(
                    self._issue(line, PRODUCT_INACTIVE, f'Product "{p.product.name}" is no longer available')
                )
                continue

            if not p.variant.is_active:
                issues.append(
                    self._issue(
                        line,
                        VARIANT_INACTIVE,
                        f'Size "{p.variant.size}" for "{p.product.name}" is no longer available',
                    )
                )
                continue

            if not self.ledger.is_available(line.variant_id, line.quantity):
                available = self.ledger.available(line.variant_id)
                issue = self._issue(
                    line,
                    INSUFFICIENT_STOCK,
                    f'Only {available} left for "{p.product.name}" (Size: {p.variant.size})',
                )
                issue["available"] = available
                issues.append(issue)

        if issues:
            logger.info(f"Cart of {owner} failed validation with {len(issues)} issue(s)")

        return {"is_valid": not issues, "issues": issues}

    # commands

    def add(self, owner: CartOwner, variant_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidQuantity("Quantity must be greater than 0")

        variant, product = self._purchasable(variant_id)
        store = self.store_for(owner)

        existing = store.get_line_by_variant(owner, variant_id)
        current = existing.quantity if existing else 0
        self._ensure_available(variant_id, current + quantity)

        line = store.add(owner, variant_id, quantity)
        logger.info(f"Cart of {owner}: variant {variant_id} {current} -> {line.quantity}")

        return self._line_out(
            PricedLine(line, variant, product, self.catalog.get_primary_media([product.id]).get(product.id))
        )

    def update_quantity(self, owner: CartOwner, line_ref: int, quantity: int) -> Dict[str, Any] | None:
        """quantity <= 0 removes the line and returns None."""
        store = self.store_for(owner)
        line = store.get_line(owner, line_ref)
        if line is None:
            raise NotFound(f"Cart line {line_ref} not found")

        if quantity <= 0:
            store.remove(owner, line_ref)
            logger.info(f"Cart of {owner}: line {line_ref} removed by zero quantity")
            return None

        variant, product = self._purchasable(line.variant_id)
        # bezwzgledna ilosc, nie delta
        self._ensure_available(line.variant_id, quantity)

        updated = store.set_quantity(owner, line_ref, quantity)
        if updated is None:
            raise NotFound(f"Cart line {line_ref} not found")

        logger.info(f"Cart of {owner}: line {line_ref} {line.quantity} -> {quantity}")
        return self._line_out(
            PricedLine(updated, variant, product, self.catalog.get_primary_media([product.id]).get(product.id))
        )

    def remove(self, owner: CartOwner, line_ref: int) -> None:
        if not self.store_for(owner).remove(owner, line_ref):
            raise NotFound(f"Cart line {line_ref} not found")
        logger.info(f"Cart of {owner}: line {line_ref} removed")

    def clear(self, owner: CartOwner) -> None:
        self.store_for(owner).clear(owner)
        logger.info(f"Cart of {owner} cleared")

    # helpers

    def _purchasable(self, variant_id: int):
        variant = self.catalog.get_variant(variant_id)
        if variant is None:
            raise NotFound(f"Variant {variant_id} not found")
        if not variant.is_active:
            raise VariantUnavailable(f"Variant {variant_id} is not available")

        product = self.catalog.get_product(variant.product_id)
        if product is None:
            raise NotFound(f"Product {variant.product_id} not found")
        if not product.is_active:
            raise ProductInactive(f'Product "{product.name}" is no longer available')
        return variant, product

    def _ensure_available(self, variant_id: int, quantity: int) -> None:
        if not self.ledger.is_available(variant_id, quantity):
            raise InsufficientStock(variant_id, self.ledger.available(variant_id), quantity)

    @staticmethod
    def _issue(line: CartLine, reason: str, message: str) -> Dict[str, Any]:
        return {
            "line_id": line.id,
            "variant_id": line.variant_id,
            "reason": reason,
            "message": message,
        }

    @staticmethod
    def _line_out(p: PricedLine) -> Dict[str, Any]:
        return {
            "id": p.line.id,
            "variant_id": p.line.variant_id,
            "quantity": p.line.quantity,
            "added_at": p.line.added_at,
            "updated_at": p.line.updated_at,
            "product": p.product.model_dump(include={"id", "name", "slug", "base_price", "is_active"})
            if p.product
            else None,
            "variant": p.variant.model_dump(
                include={"id", "sku", "size", "color", "additional_price", "stock_quantity", "is_active"}
            )
            if p.variant
            else None,
            "image_url": p.media.media_url if p.media else None,
            "unit_price": p.unit_price,
            "line_total": p.line_total,
            "is_available": p.is_available,
        }
