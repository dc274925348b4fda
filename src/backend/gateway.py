from __future__ import annotations

from decimal import Decimal
from typing import List, Protocol, Sequence

from backend import crud
from shop.models import (
    CreatedOrder,
    LineItem,
    Order,
    OrderScope,
    OrderStatus,
    Product,
    Session,
)


class BackendGateway(Protocol):
    """
    The order/product/auth service as seen by the client.

    Failures are raised as ``shop.errors.StoreError`` subclasses carrying
    the backend's own error kind.
    """

    async def login(self, email: str, password: str) -> Session: ...

    async def register(self, name: str, email: str, password: str) -> Session: ...

    async def logout(self, auth_token: str) -> None: ...

    async def list_products(self) -> List[Product]: ...

    async def save_product(self, product: Product, auth_token: str) -> Product: ...

    async def delete_product(self, pid: str, auth_token: str) -> None: ...

    async def create_order(
        self, items: Sequence[LineItem], total_price: Decimal, auth_token: str
    ) -> CreatedOrder: ...

    async def update_order_status(
        self, order_id: str, new_status: OrderStatus, auth_token: str
    ) -> None: ...

    async def cancel_order(self, order_id: str, auth_token: str) -> None: ...

    async def list_orders(self, auth_token: str, scope: OrderScope) -> List[Order]: ...

    async def aclose(self) -> None: ...


class SqliteGateway:
    """BackendGateway served by the local aiosqlite store in ``backend.crud``."""

    async def login(self, email: str, password: str) -> Session:
        return await crud.login(email, password)

    async def register(self, name: str, email: str, password: str) -> Session:
        return await crud.register_user(name, email, password)

    async def logout(self, auth_token: str) -> None:
        await crud.logout(auth_token)

    async def list_products(self) -> List[Product]:
        return await crud.list_products()

    async def save_product(self, product: Product, auth_token: str) -> Product:
        return await crud.save_product(auth_token, product)

    async def delete_product(self, pid: str, auth_token: str) -> None:
        await crud.delete_product(auth_token, pid)

    async def create_order(
        self, items: Sequence[LineItem], total_price: Decimal, auth_token: str
    ) -> CreatedOrder:
        return await crud.create_order(auth_token, items, total_price)

    async def update_order_status(
        self, order_id: str, new_status: OrderStatus, auth_token: str
    ) -> None:
        await crud.update_order_status(auth_token, order_id, new_status)

    async def cancel_order(self, order_id: str, auth_token: str) -> None:
        await crud.cancel_order(auth_token, order_id)

    async def list_orders(self, auth_token: str, scope: OrderScope) -> List[Order]:
        return await crud.list_orders(auth_token, scope)

    async def aclose(self) -> None:
        # connections are opened per call
        return None
