from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Set

from shop.cart import CartStore
from shop.errors import (
    EmptyCart,
    Forbidden,
    InvalidTransition,
    NotAuthenticated,
    NotFound,
    PaymentCanceled,
    StoreError,
    TransitionInProgress,
)
from shop.models import (
    CheckoutReceipt,
    Order,
    OrderScope,
    OrderStatus,
    Session,
    can_transition,
)
from shop.payment import PaymentOutcome, PaymentProvider, PaymentResult
from shop.roles import ACTION_TARGETS, Action, permitted_actions
from utils.logger import get_logger

if TYPE_CHECKING:
    from backend.gateway import BackendGateway

_logger = get_logger(__name__)

# in-flight key for a checkout; order ids never take this form
_CHECKOUT_KEY = "<checkout>"


class OrderWorkflow:
    """
    Cart-to-order submission and role-gated order status changes.

    Keeps a local view of the orders last loaded from the backend. That view
    only changes on backend-confirmed results; while a transition request is
    in flight the order reports ``is_pending_confirmation``.
    """

    def __init__(self, gateway: BackendGateway, payments: PaymentProvider) -> None:
        self._gateway = gateway
        self._payments = payments
        self._orders: Dict[str, Order] = {}
        # scope of the last successful load
        self._scope = OrderScope.MINE
        self._in_flight: Set[str] = set()

    # ---------------------------
    # Local order view
    # ---------------------------

    @property
    def orders(self) -> List[Order]:
        return list(self._orders.values())

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def status_of(self, order_id: str) -> Optional[OrderStatus]:
        order = self._orders.get(order_id)
        return order.status if order else None

    def is_pending_confirmation(self, order_id: str) -> bool:
        return order_id in self._in_flight

    def reset(self) -> None:
        """Forget loaded orders, e.g. after logout."""
        self._orders = {}
        self._scope = OrderScope.MINE

    async def refresh(
        self, session: Session, scope: OrderScope = OrderScope.MINE
    ) -> List[Order]:
        if not session.is_authenticated:
            raise NotAuthenticated()
        if scope is OrderScope.ALL and Action.VIEW_ALL_ORDERS not in permitted_actions(
            session
        ):
            raise Forbidden("Only staff can view all orders.")

        orders = await self._gateway.list_orders(session.auth_token, scope)
        self._orders = {order.oid: order for order in orders}
        self._scope = scope
        return orders

    async def refresh_quietly(
        self, session: Session, scope: OrderScope = OrderScope.MINE
    ) -> None:
        """Best-effort refresh; failures are logged, never raised."""
        try:
            await self.refresh(session, scope)
        except StoreError as e:
            _logger.warning(f"Order refresh failed ({e.kind}): {e}")

    # ---------------------------
    # Checkout
    # ---------------------------

    async def checkout(self, cart: CartStore, session: Session) -> CheckoutReceipt:
        """
        Submit the cart as an order and run the payment handoff.

        The cart is cleared only after the provider reports success. A
        dismissed payment raises PaymentCanceled and leaves the cart as it
        was; the pending order stays with the backend.
        """
        if cart.is_empty:
            raise EmptyCart()
        if not session.is_authenticated:
            raise NotAuthenticated("Please log in to checkout!")

        with self._claim(_CHECKOUT_KEY):
            snapshot = cart.snapshot()
            created = await self._gateway.create_order(
                snapshot.items, snapshot.total, session.auth_token
            )
            _logger.info(
                f"Order {created.order_id} created for {session.user_ref}, "
                f"total {snapshot.total}; awaiting payment"
            )

            outcome = PaymentOutcome(created.payment_intent)
            self._payments.open(created.payment_intent, outcome)
            result = await outcome.wait()

        if result is PaymentResult.DISMISSED:
            _logger.info(f"Payment for order {created.order_id} dismissed")
            raise PaymentCanceled(order_id=created.order_id)

        cart.clear()
        _logger.info(f"Payment for order {created.order_id} confirmed")
        await self.refresh_quietly(session, self._scope)
        return CheckoutReceipt(
            order_id=created.order_id,
            total=snapshot.total,
            payment_intent=created.payment_intent,
        )

    # ---------------------------
    # Status transitions
    # ---------------------------

    async def cancel(self, order_id: str, session: Session) -> Order:
        return await self._transition(order_id, session, Action.CANCEL)

    async def progress(self, order_id: str, session: Session) -> Order:
        return await self._transition(order_id, session, Action.PROGRESS)

    async def mark_delivered(self, order_id: str, session: Session) -> Order:
        return await self._transition(order_id, session, Action.MARK_DELIVERED)

    async def mark_returned(self, order_id: str, session: Session) -> Order:
        return await self._transition(order_id, session, Action.MARK_RETURNED)

    async def _transition(
        self, order_id: str, session: Session, action: Action
    ) -> Order:
        if not session.is_authenticated:
            raise NotAuthenticated()
        order = self._orders.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} is not loaded.", order_id=order_id)
        if action not in permitted_actions(session, order):
            raise Forbidden(order_id=order_id)
        if order_id in self._in_flight:
            raise TransitionInProgress(order_id=order_id)

        target = ACTION_TARGETS[action]
        if not can_transition(order.status, target):
            raise InvalidTransition(
                f"Order {order_id} is {order.status.value}; cannot go to {target.value}.",
                order_id=order_id,
            )

        with self._claim(order_id):
            if action is Action.CANCEL:
                await self._gateway.cancel_order(order_id, session.auth_token)
            else:
                await self._gateway.update_order_status(
                    order_id, target, session.auth_token
                )

        updated = dataclasses.replace(order, status=target)
        # the view may have been reloaded while the request was in flight
        if order_id in self._orders:
            self._orders[order_id] = updated
        _logger.info(f"Order {order_id}: {order.status.value} -> {target.value}")
        return updated

    @contextmanager
    def _claim(self, key: str) -> Iterator[None]:
        if key in self._in_flight:
            raise TransitionInProgress(order_id=None if key == _CHECKOUT_KEY else key)
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)
