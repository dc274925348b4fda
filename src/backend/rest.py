"""
REST client for the storefront API.

Implements ``BackendGateway`` over HTTP. The auth token travels in the
``x-auth-token`` header. Requests are never retried: a status change that
times out may or may not have been applied, so it surfaces as ``Unknown``
and the caller re-queries instead.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx

from shop.errors import StoreError, Unknown, error_for_kind
from shop.models import (
    CreatedOrder,
    LineItem,
    Order,
    OrderScope,
    OrderStatus,
    PaymentIntent,
    Product,
    RoleFlags,
    Session,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"

STATUS_KINDS = {
    400: "ValidationFailed",
    401: "NotAuthenticated",
    403: "Forbidden",
    404: "NotFound",
    409: "InvalidTransition",
    422: "ValidationFailed",
}


def _money(val: Any) -> Decimal:
    return Decimal(str(val))


def _ref(data: Any) -> str:
    # references arrive either as plain ids or as populated documents
    if isinstance(data, dict):
        return str(data.get("_id") or data.get("id") or "")
    return str(data or "")


def _product_from_json(data: Dict[str, Any]) -> Product:
    return Product(
        pid=_ref(data),
        name=data.get("name", ""),
        price=_money(data.get("price", 0)),
        descr=data.get("description", ""),
        image_url=data.get("imageUrl", ""),
    )


def _product_to_json(product: Product) -> Dict[str, Any]:
    return {
        "name": product.name,
        "description": product.descr,
        "price": float(product.price),
        "imageUrl": product.image_url,
    }


def _line_from_json(data: Dict[str, Any]) -> LineItem:
    return LineItem(
        pid=_ref(data.get("product")) or _ref(data),
        name=data.get("name", ""),
        unit_price=_money(data.get("price", 0)),
        quantity=int(data.get("quantity", 1)),
        image_url=data.get("imageUrl", ""),
    )


def _line_to_json(item: LineItem) -> Dict[str, Any]:
    return {
        "_id": item.pid,
        "name": item.name,
        "price": float(item.unit_price),
        "quantity": item.quantity,
        "imageUrl": item.image_url,
    }


def _order_from_json(data: Dict[str, Any]) -> Order:
    items = data.get("items") or data.get("cartItems") or []
    return Order(
        oid=_ref(data),
        user_ref=_ref(data.get("user")),
        items=tuple(_line_from_json(item) for item in items),
        total_price=_money(data.get("totalPrice", 0)),
        status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
        created_at=datetime.fromisoformat(data["createdAt"]),
    )


def _session_from_json(data: Dict[str, Any]) -> Session:
    user = data.get("user") or {}
    return Session(
        auth_token=data["token"],
        user_ref=_ref(user) or None,
        display_name=user.get("name", ""),
        role_flags=RoleFlags(
            is_product_admin=bool(user.get("isProductAdmin", False)),
            is_delivery_admin=bool(user.get("isDeliveryAdmin", False)),
        ),
    )


@contextmanager
def _decoding(path: str, order_id: Optional[str] = None) -> Iterator[None]:
    """Turn a body that parsed but does not have the expected shape into Unknown."""
    try:
        yield
    except (KeyError, TypeError, AttributeError, ValueError, ArithmeticError) as e:
        _logger.warning(f"Unexpected body from {path}: {e!r}")
        raise Unknown(f"Malformed response from {path}.", order_id=order_id) from e


def _error_from_response(
    response: httpx.Response, order_id: Optional[str] = None
) -> StoreError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    kind = body.get("kind") or STATUS_KINDS.get(response.status_code, "Unknown")
    detail = body.get("msg") or f"HTTP {response.status_code}"
    return error_for_kind(kind, detail, order_id=order_id)


class RestGateway:
    """BackendGateway over the storefront REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        auth_token: Optional[str] = None,
        json: Optional[Any] = None,
        order_id: Optional[str] = None,
    ) -> Any:
        headers = {"x-auth-token": auth_token} if auth_token else {}
        try:
            response = await self._client.request(
                method, path, headers=headers, json=json
            )
        except httpx.RequestError as e:
            _logger.warning(f"{method} {path} failed without a response: {e!r}")
            raise Unknown(f"Network error: {e}", order_id=order_id) from e

        _logger.debug(f"{method} {path} -> {response.status_code}")
        if response.status_code >= 400:
            error = _error_from_response(response, order_id)
            _logger.warning(f"{method} {path} rejected: {error.kind} - {error}")
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise Unknown(f"Malformed response from {path}.", order_id=order_id) from e

    # ---------------------------
    # Auth
    # ---------------------------

    async def login(self, email: str, password: str) -> Session:
        data = await self._request(
            "POST", "/login", json={"email": email, "password": password}
        )
        with _decoding("/login"):
            return _session_from_json(data)

    async def register(self, name: str, email: str, password: str) -> Session:
        data = await self._request(
            "POST",
            "/register",
            json={"name": name, "email": email, "password": password},
        )
        with _decoding("/register"):
            return _session_from_json(data)

    async def logout(self, auth_token: str) -> None:
        # tokens are stateless on the server; nothing to revoke
        return None

    # ---------------------------
    # Products
    # ---------------------------

    async def list_products(self) -> List[Product]:
        data = await self._request("GET", "/products")
        with _decoding("/products"):
            return [_product_from_json(p) for p in data or []]

    async def save_product(self, product: Product, auth_token: str) -> Product:
        if product.pid:
            data = await self._request(
                "PUT",
                f"/products/{product.pid}",
                auth_token,
                json=_product_to_json(product),
            )
        else:
            data = await self._request(
                "POST", "/products", auth_token, json=_product_to_json(product)
            )
        with _decoding("/products"):
            return _product_from_json(data) if data else product

    async def delete_product(self, pid: str, auth_token: str) -> None:
        await self._request("DELETE", f"/products/{pid}", auth_token)

    # ---------------------------
    # Orders
    # ---------------------------

    async def create_order(
        self, items: Sequence[LineItem], total_price: Decimal, auth_token: str
    ) -> CreatedOrder:
        data = await self._request(
            "POST",
            "/orders",
            auth_token,
            json={
                "cartItems": [_line_to_json(item) for item in items],
                "totalPrice": float(total_price),
            },
        )
        with _decoding("/orders"):
            intent = data["paymentIntent"]
            return CreatedOrder(
                order_id=str(data["orderId"]),
                payment_intent=PaymentIntent(
                    intent_id=intent["id"],
                    client_secret=intent.get("clientSecret", ""),
                    amount=_money(intent.get("amount", total_price)),
                ),
            )

    async def update_order_status(
        self, order_id: str, new_status: OrderStatus, auth_token: str
    ) -> None:
        await self._request(
            "PUT",
            f"/orders/{order_id}/status",
            auth_token,
            json={"status": new_status.value},
            order_id=order_id,
        )

    async def cancel_order(self, order_id: str, auth_token: str) -> None:
        await self._request(
            "PUT", f"/orders/{order_id}/cancel", auth_token, order_id=order_id
        )

    async def list_orders(self, auth_token: str, scope: OrderScope) -> List[Order]:
        path = "/orders/all" if scope is OrderScope.ALL else "/orders"
        data = await self._request("GET", path, auth_token)
        with _decoding(path):
            return [_order_from_json(o) for o in data or []]
