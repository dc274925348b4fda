"""
Storefront error kinds.

Raised by the order workflow for local precondition failures and by the
backend gateways for remote ones. The UI catches ``StoreError`` and shows
``user_message``; the ``kind`` string is what travels over the wire.
"""

from __future__ import annotations

from typing import ClassVar, Dict, Optional, Type


class StoreError(Exception):
    kind: ClassVar[str] = "Unknown"
    user_message: ClassVar[str] = "Something went wrong."

    def __init__(self, detail: Optional[str] = None, order_id: Optional[str] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        self.order_id = order_id


class EmptyCart(StoreError):
    kind = "EmptyCart"
    user_message = "Your cart is empty!"


class NotAuthenticated(StoreError):
    kind = "NotAuthenticated"
    user_message = "Please log in to continue."


class Forbidden(StoreError):
    kind = "Forbidden"
    user_message = "You are not allowed to do that."


class InvalidTransition(StoreError):
    kind = "InvalidTransition"
    user_message = "This order can no longer be changed that way."


class NotFound(StoreError):
    kind = "NotFound"
    user_message = "Order not found. Refresh and try again."


class TransitionInProgress(StoreError):
    kind = "TransitionInProgress"
    user_message = "A request for this order is still in progress."


class PaymentCanceled(StoreError):
    kind = "PaymentCanceled"
    user_message = "Payment canceled. Your cart was kept."


class ValidationFailed(StoreError):
    kind = "ValidationFailed"
    user_message = "The request was rejected as invalid."


class Unknown(StoreError):
    """
    The outcome of a call is not known, e.g. a timeout on a status change.
    Callers re-query the backend instead of repeating the request.
    """

    kind = "Unknown"
    user_message = "No answer from the server. Refresh to see the current state."


ERRORS_BY_KIND: Dict[str, Type[StoreError]] = {
    cls.kind: cls
    for cls in (
        EmptyCart,
        NotAuthenticated,
        Forbidden,
        InvalidTransition,
        NotFound,
        TransitionInProgress,
        PaymentCanceled,
        ValidationFailed,
        Unknown,
    )
}


def error_for_kind(
    kind: Optional[str], detail: Optional[str] = None, order_id: Optional[str] = None
) -> StoreError:
    """Rebuild an error from its wire kind; unrecognised kinds become Unknown."""
    cls = ERRORS_BY_KIND.get(kind or "", Unknown)
    return cls(detail, order_id=order_id)
