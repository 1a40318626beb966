from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String, nullable=False, unique=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_session_id = Column(String, nullable=True, index=True)

    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False)
    customer_phone = Column(String, nullable=True)

    # kopie, nie referencje do katalogu
    shipping_address = Column(JSON, nullable=False)
    products = Column(JSON, nullable=False)

    subtotal_amount = Column(Numeric(10, 2), nullable=False)
    shipping_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String, nullable=True)
    payment_status = Column(String, nullable=False, default="pending")  # pending, paid, failed, cancelled
    fulfillment_status = Column(String, nullable=False, default="unfulfilled")  # unfulfilled, fulfilled, cancelled
    # wynik z bramki platnosci; paid bez rezerwacji -> zwrot do obsluzenia recznie
    gateway_status = Column(String, nullable=True)
    refund_required = Column(Boolean, nullable=False, default=False)

    ordered_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    fulfilled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
