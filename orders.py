"""
Order pipeline: checkout validation, order placement and status changes.
"""
import logging
import random
import threading
import uuid
from datetime import date
from typing import Dict, List, Optional, Tuple

from pydantic import EmailStr, TypeAdapter, ValidationError

from accounts import UserDirectory
from cart import CartLedger
from catalog import CatalogStore
from database import PersistenceGateway, ORDERS
from schemas import Address, CartItem, CheckoutRequest, Order, PaymentMethod, ShippingOption

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "pending": ("shipped", "cancelled"),
    "shipped": ("delivered", "cancelled"),
    "delivered": (),
    "cancelled": (),
}

MANUAL_ADDRESS_REQUIRED = ("full_name", "street", "city", "phone")

_email_adapter = TypeAdapter(EmailStr)


def _valid_email(value: str) -> bool:
    try:
        _email_adapter.validate_python(value.strip())
    except ValidationError:
        return False
    return True


class OrderError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CheckoutError(OrderError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class InvalidTransition(OrderError):
    status_code = 409


class OrderNotFound(OrderError):
    status_code = 404


def order_total(items: List[CartItem], shipping_charge: float) -> float:
    return sum(item.final_unit_price * item.quantity for item in items) + shipping_charge


class OrderDesk:
    def __init__(
        self,
        gateway: PersistenceGateway,
        catalog: CatalogStore,
        users: UserDirectory,
        orders: Optional[List[Order]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.gateway = gateway
        self.catalog = catalog
        self.users = users
        self.orders: List[Order] = list(orders or [])
        self.last_order: Optional[Order] = None
        self.rng = rng or random.Random()
        self._lock = threading.Lock()

    def get(self, order_id: str) -> Order:
        for o in self.orders:
            if o.id == order_id:
                return o
        raise OrderNotFound("Order not found")

    def orders_for_user(self, user_id: str) -> List[Order]:
        return [o for o in self.orders if o.user_id == user_id]

    def _new_order_id(self) -> str:
        taken = {o.id for o in self.orders}
        for _ in range(100):
            order_id = f"ORD-{self.rng.randint(1000, 9999)}"
            if order_id not in taken:
                return order_id
        # four digits are running out; keep the prefix at least
        return f"ORD-{uuid.uuid4().hex[:8].upper()}"

    def _resolve_address(self, request: CheckoutRequest) -> Address:
        if request.address_id:
            address = None
            if request.user_id:
                address = self.users.find_address(request.user_id, request.address_id)
            if address is None:
                raise CheckoutError("NO_ADDRESS", "Please select a shipping address.")
            return address

        manual = request.address
        if manual is None:
            raise CheckoutError("NO_ADDRESS", "Please select a shipping address.")
        if any(not getattr(manual, name).strip() for name in MANUAL_ADDRESS_REQUIRED):
            raise CheckoutError("INCOMPLETE_ADDRESS", "Please complete all shipping address fields.")
        return Address(
            id=f"guest-{uuid.uuid4().hex[:8]}",
            label=manual.label or "Shipping Address",
            **manual.model_dump(exclude={"label"}),
        )

    def validate_checkout(
        self, cart: CartLedger, request: CheckoutRequest
    ) -> Tuple[Address, ShippingOption, PaymentMethod]:
        """Check a checkout request, stopping at the first problem."""
        if not len(cart):
            raise CheckoutError("EMPTY_CART", "Your bag is empty.")

        customer = request.customer
        if not customer.name.strip() or not customer.phone.strip() or not _valid_email(customer.email):
            raise CheckoutError("NO_CONTACT", "Please provide contact information.")

        shipping = self.catalog.get_shipping_option(request.shipping_option_id or "")
        payment = self.catalog.get_payment_method(request.payment_method_id or "")
        if shipping is None or payment is None or not payment.is_active:
            raise CheckoutError("NO_SHIPPING_OR_PAYMENT", "Please select shipping and payment methods.")

        return self._resolve_address(request), shipping, payment

    def place_order(self, cart: CartLedger, request: CheckoutRequest) -> Order:
        with self._lock:
            address, shipping, payment = self.validate_checkout(cart, request)

            items = [item.model_copy(deep=True) for item in cart.items()]
            order = Order(
                id=self._new_order_id(),
                user_id=request.user_id,
                date=date.today().isoformat(),
                customer_name=request.customer.name.strip(),
                customer_email=request.customer.email.strip(),
                customer_phone=request.customer.phone.strip(),
                items=items,
                total=cart.total() + shipping.charge,
                shipping_charge=shipping.charge,
                shipping_method_name=shipping.name,
                payment_method_name=payment.name,
                status="pending",
                shipping_address=address,
            )
            if order.total != order_total(order.items, order.shipping_charge):
                raise CheckoutError("TOTAL_MISMATCH", "Order total does not match its items.")

            # a failed write leaves the cart and the order list untouched
            self.gateway.save(order)
            self.orders.insert(0, order)
            self.last_order = order
            cart.clear()
        logger.info("Placed order %s (%d items, total %.2f)", order.id, len(items), order.total)
        return order

    def update_status(self, order_id: str, status: str) -> Order:
        if status not in STATUS_TRANSITIONS:
            raise OrderError(f"Unknown order status {status!r}")
        with self._lock:
            order = self.get(order_id)
            if status == order.status:
                return order
            if status not in STATUS_TRANSITIONS[order.status]:
                raise InvalidTransition(f"Cannot change order {order_id} from {order.status} to {status}")

            self.gateway.patch(ORDERS, order_id, {"status": status})
            updated = order.model_copy(update={"status": status})
            self.orders = [updated if o.id == order_id else o for o in self.orders]
            if self.last_order is not None and self.last_order.id == order_id:
                self.last_order = updated
        return updated

    def dashboard_metrics(self) -> Dict[str, float]:
        return {
            "revenue": sum(o.total for o in self.orders if o.status != "cancelled"),
            "order_count": len(self.orders),
            "inventory_count": sum(p.stock for p in self.catalog.products),
        }
