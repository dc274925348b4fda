from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional

from shop.models import Order, OrderStatus, Session, can_transition


class Action(str, Enum):
    CANCEL = "cancel"
    PROGRESS = "progress"
    MARK_DELIVERED = "markDelivered"
    MARK_RETURNED = "markReturned"
    VIEW_ALL_ORDERS = "viewAllOrders"
    MANAGE_PRODUCTS = "manageProducts"


# order-changing actions and the status each one moves an order to
ACTION_TARGETS: Dict[Action, OrderStatus] = {
    Action.CANCEL: OrderStatus.CANCELED,
    Action.PROGRESS: OrderStatus.PROCESSING,
    Action.MARK_DELIVERED: OrderStatus.DELIVERED,
    Action.MARK_RETURNED: OrderStatus.RETURNED,
}

DELIVERY_ACTIONS: FrozenSet[Action] = frozenset(
    {Action.PROGRESS, Action.MARK_DELIVERED, Action.MARK_RETURNED}
)


def permitted_actions(
    session: Session, order: Optional[Order] = None
) -> FrozenSet[Action]:
    """
    Actions the session's roles allow, independent of the order's status.

    ``cancel`` is only granted when an order is given and the session owns it.
    An anonymous session is allowed nothing.
    """
    if not session.is_authenticated:
        return frozenset()

    flags = session.role_flags
    actions = set()
    if order is not None and session.owns(order):
        actions.add(Action.CANCEL)
    if flags.is_delivery_admin:
        actions |= DELIVERY_ACTIONS
    if flags.is_delivery_admin or flags.is_product_admin:
        actions.add(Action.VIEW_ALL_ORDERS)
    if flags.is_product_admin:
        actions.add(Action.MANAGE_PRODUCTS)
    return frozenset(actions)


def available_actions(session: Session, order: Order) -> FrozenSet[Action]:
    """Permitted order actions that the order's current status also accepts."""
    return frozenset(
        action
        for action in permitted_actions(session, order)
        if action in ACTION_TARGETS
        and can_transition(order.status, ACTION_TARGETS[action])
    )
