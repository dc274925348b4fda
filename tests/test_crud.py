import os
import sys
import tempfile
import unittest
from decimal import Decimal

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend import crud  # noqa: E402
from backend import database as db_database  # noqa: E402
from backend import security  # noqa: E402
from shop.errors import (  # noqa: E402
    EmptyCart,
    Forbidden,
    InvalidTransition,
    NotAuthenticated,
    NotFound,
    ValidationFailed,
)
from shop.models import LineItem, OrderScope, OrderStatus, Product  # noqa: E402


def line(pid: str, price: str, qty: int = 1, name: str = "Item") -> LineItem:
    return LineItem(pid=pid, name=name, unit_price=Decimal(price), quantity=qty)


async def fetch_product(pid: str):
    async with db_database.connect() as conn:
        cur = await conn.execute(
            "SELECT pid, name, descr, price, image_url FROM products WHERE pid = ?;",
            (pid,),
        )
        row = await cur.fetchone()
        await cur.close()
    return crud._product_from_row(row) if row else None


async def fetch_order(oid: str):
    async with db_database.connect() as conn:
        cur = await conn.execute(
            "SELECT oid, uid, total_price, status, created_at FROM orders WHERE oid = ?;",
            (oid,),
        )
        row = await cur.fetchone()
        await cur.close()
        return await crud._load_order(conn, row) if row else None


class CrudTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False
        # cheap hashes; the seed accounts are hashed on first connect
        self.rounds = security.BCRYPT_ROUNDS
        security.BCRYPT_ROUNDS = 4

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table';"
            )
            await cur.fetchall()
            await cur.close()

        self.ada = await crud.login("ada@example.com", "customer123")
        self.pat = await crud.login("pat@example.com", "catalog123")
        self.dana = await crud.login("dana@example.com", "delivery123")

    def tearDown(self):
        security.BCRYPT_ROUNDS = self.rounds
        self.temp_dir.cleanup()

    async def place_order(self, session=None):
        session = session or self.ada
        items = [line("p-2001", "19.99", 2), line("p-2003", "9.99")]
        return await crud.create_order(session.auth_token, items, Decimal("49.97"))

    # ---------- Auth & registration ----------

    def test_password_hashing(self):
        stored = security.get_password_hash("pw")
        self.assertTrue(stored.startswith("$2b$04$"))
        self.assertTrue(security.verify_password("pw", stored))
        self.assertFalse(security.verify_password("nope", stored))
        self.assertFalse(security.verify_password("pw", "garbage"))
        self.assertFalse(security.verify_password("x" * 73, stored))

    async def test_seeded_roles(self):
        self.assertEqual(self.ada.display_name, "Ada Customer")
        self.assertFalse(self.ada.role_flags.is_product_admin)
        self.assertFalse(self.ada.role_flags.is_delivery_admin)
        self.assertTrue(self.pat.role_flags.is_product_admin)
        self.assertTrue(self.dana.role_flags.is_delivery_admin)

    async def test_register_login_logout(self):
        self.assertFalse(await crud.email_available("ada@example.com"))
        self.assertTrue(await crud.email_available("new@example.com"))

        session = await crud.register_user("Charlie", "New@Example.com", "pw")
        self.assertTrue(session.is_authenticated)
        self.assertTrue(session.user_ref.startswith("u-"))
        self.assertFalse(await crud.email_available("new@example.com"))

        with self.assertRaises(ValidationFailed):
            await crud.register_user("Charlie 2", "new@example.com", "pw")
        with self.assertRaises(ValidationFailed):
            await crud.register_user("", "x@example.com", "pw")
        with self.assertRaises(ValidationFailed):
            await crud.register_user("Long", "long@example.com", "\N{SNOWMAN}" * 25)

        again = await crud.login("new@example.com", "pw")
        self.assertEqual(again.user_ref, session.user_ref)
        with self.assertRaises(NotAuthenticated):
            await crud.login("new@example.com", "wrong")

        self.assertEqual(again.display_name, "Charlie")
        self.assertEqual(await crud.list_orders(again.auth_token, OrderScope.MINE), [])
        await crud.logout(again.auth_token)
        with self.assertRaises(NotAuthenticated):
            await crud.list_orders(again.auth_token, OrderScope.MINE)

    # ---------- Products ----------

    async def test_list_products(self):
        products = await crud.list_products()
        self.assertEqual(len(products), 6)
        self.assertEqual(products[0].pid, "p-2001")
        self.assertEqual(products[1].price, Decimal("89.50"))

        prod = await fetch_product("p-2003")
        self.assertEqual(prod.name, "USB-C Cable")
        self.assertIsNone(await fetch_product("p-0000"))

    async def test_save_and_delete_product(self):
        created = await crud.save_product(
            self.pat.auth_token, Product(pid="", name="Webcam", price=Decimal("59.00"))
        )
        self.assertTrue(created.pid.startswith("p-"))
        self.assertEqual((await fetch_product(created.pid)).price, Decimal("59.00"))

        updated = await crud.save_product(
            self.pat.auth_token,
            Product(pid=created.pid, name="HD Webcam", price=Decimal("64.50")),
        )
        self.assertEqual(updated.pid, created.pid)
        self.assertEqual((await fetch_product(created.pid)).name, "HD Webcam")

        await crud.delete_product(self.pat.auth_token, created.pid)
        self.assertIsNone(await fetch_product(created.pid))
        with self.assertRaises(NotFound):
            await crud.delete_product(self.pat.auth_token, created.pid)

    async def test_product_editing_is_admin_only(self):
        with self.assertRaises(Forbidden):
            await crud.save_product(
                self.ada.auth_token, Product(pid="", name="X", price=Decimal("1"))
            )
        with self.assertRaises(Forbidden):
            await crud.delete_product(self.dana.auth_token, "p-2001")
        with self.assertRaises(NotAuthenticated):
            await crud.delete_product("bogus", "p-2001")
        with self.assertRaises(ValidationFailed):
            await crud.save_product(
                self.pat.auth_token, Product(pid="", name="X", price=Decimal("-1"))
            )

    # ---------- Checkout ----------

    async def test_create_order(self):
        created = await self.place_order()
        self.assertTrue(created.order_id.startswith("ORD-"))
        self.assertTrue(created.payment_intent.intent_id.startswith("pi_"))
        self.assertEqual(created.payment_intent.amount, Decimal("49.97"))

        order = await fetch_order(created.order_id)
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.user_ref, "u-1001")
        self.assertEqual(order.total_price, Decimal("49.97"))
        self.assertEqual([(i.pid, i.quantity) for i in order.items], [("p-2001", 2), ("p-2003", 1)])
        self.assertIsNone(await fetch_order("ORD-NOPE"))

    async def test_create_order_validation(self):
        token = self.ada.auth_token
        with self.assertRaises(EmptyCart):
            await crud.create_order(token, [], Decimal("0"))
        with self.assertRaises(NotAuthenticated):
            await crud.create_order(None, [line("p-2001", "19.99")], Decimal("19.99"))
        with self.assertRaises(ValidationFailed):
            await crud.create_order(token, [line("p-2001", "19.99")], Decimal("20.00"))
        with self.assertRaises(ValidationFailed):
            await crud.create_order(token, [line("p-9999", "1.00")], Decimal("1.00"))
        with self.assertRaises(ValidationFailed):
            await crud.create_order(
                token,
                [line("p-2001", "19.99"), line("p-2001", "19.99")],
                Decimal("39.98"),
            )

    # ---------- Orders ----------

    async def test_list_orders_scopes(self):
        first = await self.place_order()
        second = await self.place_order()
        other = await self.place_order(self.dana)

        mine = await crud.list_orders(self.ada.auth_token, OrderScope.MINE)
        self.assertEqual([o.oid for o in mine], [second.order_id, first.order_id])

        everything = await crud.list_orders(self.pat.auth_token, OrderScope.ALL)
        self.assertEqual(
            {o.oid for o in everything},
            {first.order_id, second.order_id, other.order_id},
        )
        with self.assertRaises(Forbidden):
            await crud.list_orders(self.ada.auth_token, OrderScope.ALL)

    async def test_cancel_order(self):
        created = await self.place_order()
        oid = created.order_id

        with self.assertRaises(Forbidden):
            await crud.cancel_order(self.dana.auth_token, oid)
        await crud.cancel_order(self.ada.auth_token, oid)
        self.assertEqual((await fetch_order(oid)).status, OrderStatus.CANCELED)

        with self.assertRaises(InvalidTransition):
            await crud.cancel_order(self.ada.auth_token, oid)
        with self.assertRaises(NotFound):
            await crud.cancel_order(self.ada.auth_token, "ORD-NOPE")

    async def test_delivery_progression(self):
        oid = (await self.place_order()).order_id
        token = self.dana.auth_token

        with self.assertRaises(Forbidden):
            await crud.update_order_status(self.ada.auth_token, oid, OrderStatus.PROCESSING)
        with self.assertRaises(Forbidden):
            await crud.update_order_status(token, oid, OrderStatus.CANCELED)
        with self.assertRaises(InvalidTransition):
            await crud.update_order_status(token, oid, OrderStatus.DELIVERED)

        await crud.update_order_status(token, oid, OrderStatus.PROCESSING)
        await crud.update_order_status(token, oid, OrderStatus.RETURNED)
        self.assertEqual((await fetch_order(oid)).status, OrderStatus.RETURNED)

        with self.assertRaises(InvalidTransition):
            await crud.cancel_order(self.ada.auth_token, oid)
        with self.assertRaises(NotFound):
            await crud.update_order_status(token, "ORD-NOPE", OrderStatus.PROCESSING)


if __name__ == "__main__":
    unittest.main()
