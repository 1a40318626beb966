# storefront/repos/stock_ledger.py
from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from storefront.data.models.variant import VariantModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class StockLedger:
    """
    stock_quantity / reserved_quantity dla wariantu.

    Sprawdzenie i rezerwacja to jeden warunkowy UPDATE
    (WHERE stock_quantity - reserved_quantity >= :q), wiec dwa rownolegle
    reserve() nie moga oba przejsc gdy starcza tylko na jeden.
    Ledger nie robi commit, transakcja nalezy do wolajacego.
    """

    def __init__(self, db: Session):
        self.db = db

    def available(self, variant_id: int) -> int:
        row = self.db.execute(
            select(VariantModel.stock_quantity, VariantModel.reserved_quantity)
            .where(VariantModel.id == variant_id)
        ).one_or_none()
        if row is None:
            return 0
        return max(row.stock_quantity - row.reserved_quantity, 0)

    def is_available(self, variant_id: int, quantity: int) -> bool:
        row = self.db.execute(
            select(VariantModel.id).where(
                VariantModel.id == variant_id,
                VariantModel.is_active.is_(True),
                VariantModel.stock_quantity - VariantModel.reserved_quantity >= quantity,
            )
        ).one_or_none()
        return row is not None

    def reserve(self, variant_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(VariantModel)
            .where(
                VariantModel.id == variant_id,
                VariantModel.stock_quantity - VariantModel.reserved_quantity >= quantity,
            )
            .values(reserved_quantity=VariantModel.reserved_quantity + quantity)
        )
        ok = result.rowcount == 1
        logger.info(f"Reserve {quantity} of variant {variant_id}: {'ok' if ok else 'insufficient'}")
        return ok

    def release(self, variant_id: int, quantity: int) -> None:
        self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id)
            .values(
                reserved_quantity=case(
                    (VariantModel.reserved_quantity >= quantity, VariantModel.reserved_quantity - quantity),
                    else_=0,
                )
            )
        )
        logger.info(f"Released {quantity} of variant {variant_id}")

    def consume(self, variant_id: int, quantity: int) -> bool:
        """Turn a reservation into a sale: stock and reserved both drop by quantity."""
        result = self.db.execute(
            update(VariantModel)
            .where(
                VariantModel.id == variant_id,
                VariantModel.reserved_quantity >= quantity,
            )
            .values(
                stock_quantity=VariantModel.stock_quantity - quantity,
                reserved_quantity=VariantModel.reserved_quantity - quantity,
            )
        )
        return result.rowcount == 1
