import os
import sys
import unittest
from datetime import datetime, timezone
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from shop.models import (  # noqa: E402
    Order,
    OrderStatus,
    RoleFlags,
    Session,
    can_transition,
)
from shop.roles import Action, available_actions, permitted_actions  # noqa: E402

CUSTOMER = Session(auth_token="t-c", user_ref="u-1", display_name="Cus")
OTHER = Session(auth_token="t-o", user_ref="u-2", display_name="Oth")
DELIVERY = Session(
    auth_token="t-d",
    user_ref="u-9",
    role_flags=RoleFlags(is_delivery_admin=True),
)
CATALOG = Session(
    auth_token="t-p",
    user_ref="u-8",
    role_flags=RoleFlags(is_product_admin=True),
)


def make_order(status: OrderStatus, owner: str = "u-1") -> Order:
    return Order(
        oid="ORD-1",
        user_ref=owner,
        items=(),
        total_price=Decimal("10.00"),
        status=status,
        created_at=datetime.now(timezone.utc),
    )


class TransitionTableTestCase(unittest.TestCase):
    def test_allowed_edges(self):
        allowed = {
            (OrderStatus.PENDING, OrderStatus.CANCELED),
            (OrderStatus.PROCESSING, OrderStatus.CANCELED),
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.DELIVERED),
            (OrderStatus.PROCESSING, OrderStatus.RETURNED),
        }
        for current in OrderStatus:
            for target in OrderStatus:
                self.assertEqual(
                    can_transition(current, target),
                    (current, target) in allowed,
                    f"{current.value} -> {target.value}",
                )

    def test_terminal_statuses_have_no_exit(self):
        for status in OrderStatus:
            if status.is_terminal:
                self.assertFalse(any(can_transition(status, t) for t in OrderStatus))


class PermittedActionsTestCase(unittest.TestCase):
    def test_anonymous_gets_nothing(self):
        self.assertEqual(permitted_actions(Session()), frozenset())
        self.assertEqual(
            permitted_actions(Session(), make_order(OrderStatus.PENDING)), frozenset()
        )

    def test_owner_may_cancel(self):
        order = make_order(OrderStatus.PENDING)
        self.assertIn(Action.CANCEL, permitted_actions(CUSTOMER, order))
        self.assertNotIn(Action.CANCEL, permitted_actions(OTHER, order))
        self.assertNotIn(Action.CANCEL, permitted_actions(CUSTOMER))

    def test_customer_has_no_staff_actions(self):
        actions = permitted_actions(CUSTOMER, make_order(OrderStatus.PENDING))
        self.assertEqual(actions, frozenset({Action.CANCEL}))

    def test_delivery_admin(self):
        actions = permitted_actions(DELIVERY, make_order(OrderStatus.PENDING))
        self.assertTrue(
            {
                Action.PROGRESS,
                Action.MARK_DELIVERED,
                Action.MARK_RETURNED,
                Action.VIEW_ALL_ORDERS,
            }
            <= actions
        )
        self.assertNotIn(Action.CANCEL, actions)
        self.assertNotIn(Action.MANAGE_PRODUCTS, actions)

    def test_product_admin(self):
        actions = permitted_actions(CATALOG)
        self.assertEqual(
            actions, frozenset({Action.VIEW_ALL_ORDERS, Action.MANAGE_PRODUCTS})
        )


class AvailableActionsTestCase(unittest.TestCase):
    def test_owner_pending_and_processing(self):
        for status in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            self.assertEqual(
                available_actions(CUSTOMER, make_order(status)),
                frozenset({Action.CANCEL}),
            )

    def test_terminal_order_offers_nothing(self):
        for status in (
            OrderStatus.DELIVERED,
            OrderStatus.RETURNED,
            OrderStatus.CANCELED,
        ):
            self.assertEqual(available_actions(CUSTOMER, make_order(status)), frozenset())
            self.assertEqual(available_actions(DELIVERY, make_order(status)), frozenset())

    def test_delivery_follows_status(self):
        self.assertEqual(
            available_actions(DELIVERY, make_order(OrderStatus.PENDING)),
            frozenset({Action.PROGRESS}),
        )
        self.assertEqual(
            available_actions(DELIVERY, make_order(OrderStatus.PROCESSING)),
            frozenset({Action.MARK_DELIVERED, Action.MARK_RETURNED}),
        )

    def test_never_includes_non_order_actions(self):
        actions = available_actions(CATALOG, make_order(OrderStatus.PENDING, "u-8"))
        self.assertEqual(actions, frozenset({Action.CANCEL}))


if __name__ == "__main__":
    unittest.main()
