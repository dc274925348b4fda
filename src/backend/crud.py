from __future__ import annotations

import asyncio
import secrets
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

import aiosqlite

from backend import models
from backend.database import connect
from backend.security import get_password_hash, password_too_long, verify_password
from shop.errors import (
    EmptyCart,
    Forbidden,
    InvalidTransition,
    NotAuthenticated,
    NotFound,
    ValidationFailed,
)
from shop.models import (
    ZERO,
    CreatedOrder,
    LineItem,
    Order,
    OrderScope,
    OrderStatus,
    PaymentIntent,
    Product,
    RoleFlags,
    Session,
    can_transition,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

def _to_decimal(val) -> Optional[Decimal]:
    try:
        return Decimal(str(val))
    except (TypeError, ValueError, InvalidOperation):
        return None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------
# Tokens
# ---------------------------


def _user_from_row(row) -> models.User:
    return models.User(
        uid=row["uid"],
        name=row["name"],
        email=row["email"],
        pwd_hash=row["pwd_hash"],
        is_product_admin=bool(row["is_product_admin"]),
        is_delivery_admin=bool(row["is_delivery_admin"]),
    )


def _session_for(user: models.User, token: str) -> Session:
    return Session(
        auth_token=token,
        user_ref=user.uid,
        display_name=user.name,
        role_flags=RoleFlags(
            is_product_admin=user.is_product_admin,
            is_delivery_admin=user.is_delivery_admin,
        ),
    )


async def _issue_token(conn: aiosqlite.Connection, uid: str) -> str:
    token = secrets.token_hex(16)
    await conn.execute(
        "INSERT INTO tokens(token, uid, issued_at) VALUES (?, ?, ?);",
        (token, uid, _now()),
    )
    return token


async def _user_for_token(
    conn: aiosqlite.Connection, token: Optional[str]
) -> Optional[models.User]:
    if not token:
        return None
    cur = await conn.execute(
        """
        SELECT u.uid, u.name, u.email, u.pwd_hash, u.is_product_admin, u.is_delivery_admin
        FROM tokens t JOIN users u ON u.uid = t.uid
        WHERE t.token = ?;
        """,
        (token,),
    )
    row = await cur.fetchone()
    await cur.close()
    return _user_from_row(row) if row else None


async def _require_user(
    conn: aiosqlite.Connection, token: Optional[str]
) -> models.User:
    user = await _user_for_token(conn, token)
    if user is None:
        raise NotAuthenticated("Invalid or expired token.")
    return user


# ---------------------------
# Auth & Registration
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no account already registered with the given email."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE email = ? LIMIT 1;", (email.strip().lower(),)
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def register_user(name: str, email: str, pwd: str) -> Session:
    """
    Create a new customer account and return a signed-in session for it.
    """
    name, email = name.strip(), email.strip().lower()
    if not name or not email or not pwd:
        raise ValidationFailed("Name, email and password are required.")
    if password_too_long(pwd):
        raise ValidationFailed("Password is too long.")
    if not await email_available(email):
        raise ValidationFailed("Email already taken.")

    uid = f"u-{uuid.uuid4().hex[:8]}"
    # hashing runs off the event loop
    pwd_hash = await asyncio.to_thread(get_password_hash, pwd)
    async with connect() as conn:
        await conn.execute(
            "INSERT INTO users(uid, name, email, pwd_hash) VALUES (?, ?, ?, ?);",
            (uid, name, email, pwd_hash),
        )
        token = await _issue_token(conn, uid)
        await conn.commit()
    _logger.info(f"Registered customer {uid}")
    return _session_for(
        models.User(
            uid=uid,
            name=name,
            email=email,
            pwd_hash="",
            is_product_admin=False,
            is_delivery_admin=False,
        ),
        token,
    )


async def login(email: str, pwd: str) -> Session:
    """Return a session if email/pwd match; otherwise raise NotAuthenticated."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT uid, name, email, pwd_hash, is_product_admin, is_delivery_admin "
            "FROM users WHERE email = ?;",
            (email.strip().lower(),),
        )
        row = await cur.fetchone()
        await cur.close()
        if not row or not await asyncio.to_thread(
            verify_password, pwd, row["pwd_hash"]
        ):
            raise NotAuthenticated("Invalid credentials.")
        user = _user_from_row(row)
        token = await _issue_token(conn, user.uid)
        await conn.commit()
    return _session_for(user, token)


async def logout(token: str) -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM tokens WHERE token = ?;", (token,))
        await conn.commit()


# ---------------------------
# Products
# ---------------------------


def _product_from_row(row) -> Product:
    return Product(
        pid=row["pid"],
        name=row["name"],
        price=Decimal(row["price"]),
        descr=row["descr"],
        image_url=row["image_url"],
    )


async def list_products() -> List[Product]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT pid, name, descr, price, image_url FROM products ORDER BY pid;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_product_from_row(row) for row in rows]


async def save_product(token: str, product: Product) -> Product:
    """
    Create or update a catalog entry. A blank pid creates a new product.
    Product admins only.
    """
    price = _to_decimal(product.price)
    if not product.name.strip() or price is None or price < 0:
        raise ValidationFailed("Product needs a name and a non-negative price.")

    async with connect() as conn:
        user = await _require_user(conn, token)
        if not user.is_product_admin:
            raise Forbidden("Only product admins can edit the catalog.")
        pid = product.pid or f"p-{uuid.uuid4().hex[:8]}"
        await conn.execute(
            """
            INSERT INTO products(pid, name, descr, price, image_url)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(pid) DO UPDATE SET
                name = excluded.name,
                descr = excluded.descr,
                price = excluded.price,
                image_url = excluded.image_url;
            """,
            (pid, product.name.strip(), product.descr, str(price), product.image_url),
        )
        await conn.commit()
    return Product(
        pid=pid,
        name=product.name.strip(),
        price=price,
        descr=product.descr,
        image_url=product.image_url,
    )


async def delete_product(token: str, pid: str) -> None:
    async with connect() as conn:
        user = await _require_user(conn, token)
        if not user.is_product_admin:
            raise Forbidden("Only product admins can edit the catalog.")
        res = await conn.execute("DELETE FROM products WHERE pid = ?;", (pid,))
        await conn.commit()
        if res.rowcount == 0:
            raise NotFound(f"Product {pid} not found.")


# ---------------------------
# Checkout & Orders
# ---------------------------


async def create_order(
    token: str, items: Sequence[LineItem], total_price: Decimal
) -> CreatedOrder:
    """
    Record a Pending order from a cart snapshot and issue its payment intent.
    Line items are stored as submitted; the total must match them.
    """
    async with connect() as conn:
        user = await _require_user(conn, token)
        if not items:
            raise EmptyCart()

        seen = set()
        for item in items:
            if item.quantity < 1 or item.unit_price < 0:
                raise ValidationFailed(f"Invalid line item {item.pid}.")
            if item.pid in seen:
                raise ValidationFailed(f"Duplicate line item {item.pid}.")
            seen.add(item.pid)

        placeholders = ", ".join("?" for _ in seen)
        cur = await conn.execute(
            f"SELECT pid FROM products WHERE pid IN ({placeholders});", tuple(seen)
        )
        known = {row["pid"] for row in await cur.fetchall()}
        await cur.close()
        missing = seen - known
        if missing:
            raise ValidationFailed(f"Unknown products: {', '.join(sorted(missing))}.")

        expected = sum((item.line_total for item in items), ZERO)
        if expected != total_price:
            raise ValidationFailed(
                f"Total {total_price} does not match line items ({expected})."
            )

        oid = f"ORD-{uuid.uuid4().hex[:8].upper()}"
        intent = PaymentIntent(
            intent_id=f"pi_{uuid.uuid4().hex}",
            client_secret=secrets.token_urlsafe(24),
            amount=expected,
        )
        await conn.execute(
            """
            INSERT INTO orders(oid, uid, total_price, status, created_at, intent_id, client_secret)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                oid,
                user.uid,
                str(expected),
                OrderStatus.PENDING.value,
                _now(),
                intent.intent_id,
                intent.client_secret,
            ),
        )
        await conn.executemany(
            """
            INSERT INTO orderlines(oid, lineNo, pid, name, uprice, qty, image_url)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (oid, line_no, i.pid, i.name, str(i.unit_price), i.quantity, i.image_url)
                for line_no, i in enumerate(items, start=1)
            ],
        )
        await conn.commit()

    _logger.info(f"Order {oid} recorded for {user.uid} ({expected})")
    return CreatedOrder(order_id=oid, payment_intent=intent)


async def _load_order(conn: aiosqlite.Connection, row) -> Order:
    cur = await conn.execute(
        "SELECT pid, name, uprice, qty, image_url FROM orderlines WHERE oid = ? ORDER BY lineNo;",
        (row["oid"],),
    )
    line_rows = await cur.fetchall()
    await cur.close()
    return Order(
        oid=row["oid"],
        user_ref=row["uid"],
        items=tuple(
            LineItem(
                pid=lr["pid"],
                name=lr["name"],
                unit_price=Decimal(lr["uprice"]),
                quantity=lr["qty"],
                image_url=lr["image_url"],
            )
            for lr in line_rows
        ),
        total_price=Decimal(row["total_price"]),
        status=OrderStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


async def list_orders(token: str, scope: OrderScope) -> List[Order]:
    """
    Orders in reverse chronological order: the caller's own, or every order
    for staff when ``scope`` is ALL.
    """
    async with connect() as conn:
        user = await _require_user(conn, token)
        if scope is OrderScope.ALL:
            if not user.is_staff:
                raise Forbidden("Only staff can view all orders.")
            cur = await conn.execute(
                "SELECT oid, uid, total_price, status, created_at FROM orders "
                "ORDER BY created_at DESC, rowid DESC;"
            )
        else:
            cur = await conn.execute(
                "SELECT oid, uid, total_price, status, created_at FROM orders "
                "WHERE uid = ? ORDER BY created_at DESC, rowid DESC;",
                (user.uid,),
            )
        rows = await cur.fetchall()
        await cur.close()
        return [await _load_order(conn, row) for row in rows]


async def _fetch_status(conn: aiosqlite.Connection, oid: str):
    cur = await conn.execute("SELECT uid, status FROM orders WHERE oid = ?;", (oid,))
    row = await cur.fetchone()
    await cur.close()
    if not row:
        raise NotFound(f"Order {oid} not found.", order_id=oid)
    return row["uid"], OrderStatus(row["status"])


async def _swap_status(
    conn: aiosqlite.Connection, oid: str, current: OrderStatus, target: OrderStatus
) -> None:
    # compare-and-set so a concurrent change turns into InvalidTransition
    res = await conn.execute(
        "UPDATE orders SET status = ? WHERE oid = ? AND status = ?;",
        (target.value, oid, current.value),
    )
    await conn.commit()
    if res.rowcount == 0:
        raise InvalidTransition(f"Order {oid} changed concurrently.", order_id=oid)


async def update_order_status(token: str, oid: str, new_status: OrderStatus) -> None:
    """Delivery progress: Pending -> Processing -> Delivered | Returned."""
    async with connect() as conn:
        user = await _require_user(conn, token)
        if not user.is_delivery_admin or new_status is OrderStatus.CANCELED:
            raise Forbidden("Only delivery admins can progress orders.", order_id=oid)
        _, current = await _fetch_status(conn, oid)
        if not can_transition(current, new_status):
            raise InvalidTransition(
                f"Order {oid} is {current.value}; cannot go to {new_status.value}.",
                order_id=oid,
            )
        await _swap_status(conn, oid, current, new_status)
    _logger.info(f"Order {oid}: {current.value} -> {new_status.value} by {user.uid}")


async def cancel_order(token: str, oid: str) -> None:
    """Cancel a Pending or Processing order on behalf of its owner."""
    async with connect() as conn:
        user = await _require_user(conn, token)
        owner, current = await _fetch_status(conn, oid)
        if owner != user.uid:
            raise Forbidden("Only the customer who placed an order can cancel it.", order_id=oid)
        if not can_transition(current, OrderStatus.CANCELED):
            raise InvalidTransition(
                f"Order {oid} is {current.value} and cannot be canceled.", order_id=oid
            )
        await _swap_status(conn, oid, current, OrderStatus.CANCELED)
    _logger.info(f"Order {oid} canceled by {user.uid}")
