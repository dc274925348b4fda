# manages connection to the local store db, provides helper methods internal to backend package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row

import aiosqlite

from backend.security import get_password_hash
from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = "data/db.sqlite"

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
DB_INIT_SCRIPTS = [
    os.path.join(_SCRIPT_DIR, "tables.sql"),
    os.path.join(_SCRIPT_DIR, "seed.sql"),
]

# (uid, name, email, password, is_product_admin, is_delivery_admin)
SEED_USERS = [
    ("u-1001", "Ada Customer", "ada@example.com", "customer123", 0, 0),
    ("u-9001", "Pat Catalog", "pat@example.com", "catalog123", 1, 0),
    ("u-9002", "Dana Delivery", "dana@example.com", "delivery123", 0, 1),
]

_initialized = False
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())
    await _seed_users(conn)
    await conn.commit()


async def _seed_users(conn: aiosqlite.Connection) -> None:
    rows = []
    for uid, name, email, pwd, is_product_admin, is_delivery_admin in SEED_USERS:
        pwd_hash = await asyncio.to_thread(get_password_hash, pwd)
        rows.append((uid, name, email, pwd_hash, is_product_admin, is_delivery_admin))
    await conn.executemany(
        """
        INSERT INTO users (uid, name, email, pwd_hash, is_product_admin, is_delivery_admin)
        VALUES (?, ?, ?, ?, ?, ?);
        """,
        rows,
    )
    _logger.info(f"Seeded {len(rows)} user accounts")


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Creates the database file, tables and seed catalog on first use.
    """
    global _initialized
    db_dir = os.path.dirname(DB_PATH)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                if not await _table_exists(conn, "users"):
                    _logger.info(f"Initializing database at {DB_PATH}...")
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()
