# storefront/services/order_service.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.entities import ShippingAddress
from storefront.domain.errors import (
    CheckoutRejected,
    EmptyCart,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    StoreUnavailable,
)
from storefront.repos.cart_store import CartOwner
from storefront.repos.order_repo import OrderRepo
from storefront.repos.stock_ledger import StockLedger
from storefront.services.cart_service import CartService
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger
from storefront.utils.money import ZERO, to_money
from storefront.utils.settings import FREE_SHIPPING_THRESHOLD, SHIPPING_FLAT_RATE, TAX_RATE

logger = get_logger(__name__)

PAYMENT_TRANSITIONS = {
    "pending": {"paid", "failed", "cancelled"},
    "paid": {"cancelled"},
}

FULFILLMENT_TRANSITIONS = {
    "unfulfilled": {"fulfilled", "cancelled"},
}


def generate_order_number(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien.
    Separacja od CartService: koszyk jest zywy, zamowienie to zamrozona kopia.

    Stany magazynowe nie sa ruszane przy skladaniu zamowienia.
    Rezerwacja dopiero po potwierdzeniu platnosci (confirm_payment),
    zwolnienie przy anulowaniu, zdjecie ze stanu przy realizacji.
    """

    def __init__(self, db: Session, cart_service: CartService, notification_service: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.ledger = StockLedger(db)
        self.cart_service = cart_service
        self.notification_service = notification_service or NotificationService()

    def place_order(
        self,
        owner: CartOwner,
        customer_name: str,
        customer_email: str,
        shipping_address: ShippingAddress,
        customer_phone: str | None = None,
        payment_method: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: checkout.

        1. validate() koszyka, jakikolwiek problem -> CheckoutRejected, brak wiersza
        2. kopia pozycji (nazwa, sku, rozmiar, kolor, cena) do zamowienia
        3. zapis z payment_status=pending, fulfillment_status=unfulfilled
        4. czyszczenie koszyka i powiadomienie (async)
        """
        priced = self.cart_service.priced_lines(owner)
        if not priced:
            raise EmptyCart("Cannot place an order from an empty cart")

        validation = self.cart_service.validate(owner)
        if not validation["is_valid"]:
            logger.info(f"Checkout of {owner} rejected: {len(validation['issues'])} issue(s)")
            raise CheckoutRejected(validation["issues"])

        products: List[Dict[str, Any]] = []
        subtotal = ZERO
        for p in priced:
            subtotal += p.line_total
            products.append(
                {
                    "product_id": p.product.id,
                    "product_name": p.product.name,
                    "variant_id": p.variant.id,
                    "sku": p.variant.sku,
                    "size": p.variant.size,
                    "color": p.variant.color,
                    "quantity": p.line.quantity,
                    "price": str(p.unit_price),
                    "total": str(p.line_total),
                }
            )

        totals = self.compute_totals(subtotal)

        order = OrderModel(
            order_number=generate_order_number(),
            user_id=owner.user_id,
            guest_session_id=None if owner.is_authenticated else owner.session_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            shipping_address=shipping_address.model_dump(),
            products=products,
            payment_method=payment_method,
            payment_status="pending",
            fulfillment_status="unfulfilled",
            **totals,
        )
        created = self.repo.create_order(order)
        logger.info(f"Order {created.order_number} created for {owner}, total {created.total_amount}")

        try:
            self.cart_service.clear(owner)
        except (StoreUnavailable, SQLAlchemyError) as e:
            # zamowienie juz jest, nie cofamy go przez koszyk
            logger.error(f"Order {created.order_number} placed but cart of {owner} not cleared: {e}")

        self.notification_service.send_order_notification(created.id, created.order_number, owner.user_id)

        return self._order_out(created)

    @staticmethod
    def compute_totals(subtotal: Decimal) -> Dict[str, Decimal]:
        if FREE_SHIPPING_THRESHOLD > ZERO and subtotal >= FREE_SHIPPING_THRESHOLD:
            shipping = ZERO
        else:
            shipping = SHIPPING_FLAT_RATE
        tax = subtotal * TAX_RATE
        discount = ZERO

        return {
            "subtotal_amount": to_money(subtotal),
            "shipping_amount": to_money(shipping),
            "tax_amount": to_money(tax),
            "discount_amount": to_money(discount),
            # jedno zaokraglenie na koncu
            "total_amount": to_money(subtotal + shipping + tax - discount),
        }

    # query

    def get_order(self, order_id: int, owner: CartOwner) -> Dict[str, Any]:
        order = self._owned_order(self.repo.get_order(order_id), owner)
        return self._order_out(order)

    def get_order_by_number(self, order_number: str, owner: CartOwner) -> Dict[str, Any]:
        order = self._owned_order(self.repo.get_by_number(order_number), owner)
        return self._order_out(order)

    def list_orders(self, owner: CartOwner) -> List[Dict[str, Any]]:
        if owner.is_authenticated:
            orders = self.repo.list_for_user(owner.user_id)
        else:
            orders = self.repo.list_for_session(owner.session_id)
        return [self._order_out(o) for o in orders]

    # status changes

    def confirm_payment(self, order_id: int, status: str) -> Dict[str, Any]:
        """
        Called by the payment integration once the gateway reports the outcome.
        `paid` reserves every line in one transaction. A shortfall rolls back the
        reservations and leaves the order pending, but keeps the gateway outcome
        with refund_required set, so the taken payment is not lost track of.
        """
        if status not in ("paid", "failed"):
            raise InvalidTransition(f"Unsupported payment outcome {status!r}")

        order = self._get(order_id)
        self._check_transition(PAYMENT_TRANSITIONS, order.payment_status, status, "payment")

        now = datetime.now(timezone.utc)
        if status == "paid":
            for line in order.products:
                quantity = int(line["quantity"])
                if not self.ledger.reserve(line["variant_id"], quantity):
                    available = self.ledger.available(line["variant_id"])
                    self.repo.rollback()
                    self._flag_for_refund(order, now)
                    logger.warning(
                        f"Order {order.order_number} paid but could not reserve variant {line['variant_id']}, "
                        f"flagged for refund"
                    )
                    raise InsufficientStock(line["variant_id"], available, quantity)
            order.paid_at = now
            order.refund_required = False

        order.gateway_status = status
        order.payment_status = status
        order.updated_at = now
        self.repo.commit()
        logger.info(f"Order {order.order_number} payment -> {status}")
        return self._order_out(order)

    def cancel_order(self, order_id: int, owner: CartOwner | None = None) -> Dict[str, Any]:
        order = self._get(order_id)
        if owner is not None:
            self._owned_order(order, owner)

        self._check_transition(PAYMENT_TRANSITIONS, order.payment_status, "cancelled", "payment")
        self._check_transition(FULFILLMENT_TRANSITIONS, order.fulfillment_status, "cancelled", "fulfillment")

        if order.payment_status == "paid":
            for line in order.products:
                self.ledger.release(line["variant_id"], int(line["quantity"]))

        now = datetime.now(timezone.utc)
        order.payment_status = "cancelled"
        order.fulfillment_status = "cancelled"
        order.cancelled_at = now
        order.updated_at = now
        self.repo.commit()
        logger.info(f"Order {order.order_number} cancelled")
        return self._order_out(order)

    def mark_fulfilled(self, order_id: int) -> Dict[str, Any]:
        order = self._get(order_id)
        if order.payment_status != "paid":
            raise InvalidTransition(f"Order {order.order_number} is not paid")
        self._check_transition(FULFILLMENT_TRANSITIONS, order.fulfillment_status, "fulfilled", "fulfillment")

        for line in order.products:
            quantity = int(line["quantity"])
            if not self.ledger.consume(line["variant_id"], quantity):
                self.repo.rollback()
                raise InvalidTransition(
                    f"Order {order.order_number}: reservation for variant {line['variant_id']} is missing"
                )

        now = datetime.now(timezone.utc)
        order.fulfillment_status = "fulfilled"
        order.fulfilled_at = now
        order.updated_at = now
        self.repo.commit()
        logger.info(f"Order {order.order_number} fulfilled")
        return self._order_out(order)

    # helpers

    def _get(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def _flag_for_refund(self, order: OrderModel, now: datetime) -> None:
        """Money was taken but nothing is reserved: record it, payment_status stays pending."""
        order.gateway_status = "paid"
        order.paid_at = now
        order.refund_required = True
        order.updated_at = now
        self.repo.commit()

    @staticmethod
    def _owned_order(order: OrderModel | None, owner: CartOwner) -> OrderModel:
        if order is None:
            raise NotFound("Order not found")
        if owner.is_authenticated:
            allowed = order.user_id == owner.user_id
        else:
            allowed = order.guest_session_id is not None and order.guest_session_id == owner.session_id
        if not allowed:
            raise PermissionError("No access to this order")
        return order

    @staticmethod
    def _check_transition(table: Dict[str, set], current: str, target: str, axis: str) -> None:
        if target not in table.get(current, set()):
            raise InvalidTransition(f"Cannot move {axis} status from {current} to {target}")

    @staticmethod
    def _order_out(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "customer_name": order.customer_name,
            "customer_email": order.customer_email,
            "customer_phone": order.customer_phone,
            "shipping_address": order.shipping_address,
            "products": order.products,
            "subtotal_amount": order.subtotal_amount,
            "shipping_amount": order.shipping_amount,
            "tax_amount": order.tax_amount,
            "discount_amount": order.discount_amount,
            "total_amount": order.total_amount,
            "payment_method": order.payment_method,
            "payment_status": order.payment_status,
            "gateway_status": order.gateway_status,
            "refund_required": bool(order.refund_required),
            "fulfillment_status": order.fulfillment_status,
            "ordered_at": order.ordered_at,
            "paid_at": order.paid_at,
            "fulfilled_at": order.fulfilled_at,
            "cancelled_at": order.cancelled_at,
        }
