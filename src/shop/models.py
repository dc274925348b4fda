# domain dataclasses shared by the cart, the order workflow and the backends

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional, Tuple

ZERO = Decimal("0")


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    CANCELED = "Canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.RETURNED, OrderStatus.CANCELED}
)

# (from, to) pairs; anything else is an invalid transition
TRANSITIONS: FrozenSet[Tuple[OrderStatus, OrderStatus]] = frozenset(
    {
        (OrderStatus.PENDING, OrderStatus.CANCELED),
        (OrderStatus.PROCESSING, OrderStatus.CANCELED),
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PROCESSING, OrderStatus.DELIVERED),
        (OrderStatus.PROCESSING, OrderStatus.RETURNED),
    }
)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return (current, target) in TRANSITIONS


class OrderScope(str, Enum):
    ALL = "all"
    MINE = "mine"


@dataclass(frozen=True)
class Product:
    pid: str
    name: str
    price: Decimal
    descr: str = ""
    image_url: str = ""


@dataclass(frozen=True)
class LineItem:
    pid: str
    name: str
    unit_price: Decimal
    quantity: int
    image_url: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    """Point-in-time copy of a cart, detached from later mutations."""

    items: Tuple[LineItem, ...] = ()
    total: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass(frozen=True)
class Order:
    oid: str
    user_ref: str
    items: Tuple[LineItem, ...]
    total_price: Decimal
    status: OrderStatus
    created_at: datetime


@dataclass(frozen=True)
class RoleFlags:
    is_product_admin: bool = False
    is_delivery_admin: bool = False


@dataclass(frozen=True)
class Session:
    """
    Credentials and role flags of the signed-in account.

    The default value is the anonymous session: no token, no roles.
    Login and logout replace the whole value instead of mutating it.
    """

    auth_token: Optional[str] = None
    user_ref: Optional[str] = None
    display_name: str = ""
    role_flags: RoleFlags = field(default_factory=RoleFlags)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.auth_token)

    def owns(self, order: Order) -> bool:
        return self.user_ref is not None and order.user_ref == self.user_ref


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_secret: str
    amount: Decimal


@dataclass(frozen=True)
class CreatedOrder:
    order_id: str
    payment_intent: PaymentIntent


@dataclass(frozen=True)
class CheckoutReceipt:
    order_id: str
    total: Decimal
    payment_intent: PaymentIntent
