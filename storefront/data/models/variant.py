from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class VariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    sku = Column(String, nullable=False, unique=True)
    size = Column(String, nullable=False)
    color = Column(String, nullable=True)
    additional_price = Column(Numeric(10, 2), nullable=False, default=0)

    stock_quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("ProductModel", back_populates="variants")

    __table_args__ = (
        CheckConstraint("reserved_quantity >= 0", name="ck_variant_reserved_non_negative"),
        CheckConstraint("reserved_quantity <= stock_quantity", name="ck_variant_reserved_le_stock"),
    )
