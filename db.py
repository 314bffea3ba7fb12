"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts the first admin account, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

import config

logger = logging.getLogger(__name__)

DB_FILE = config.DB_FILE


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'staff' CHECK(role IN ('admin','staff')),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS clients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        phone TEXT NOT NULL,
        email TEXT,
        address TEXT,
        notes TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS services (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        price REAL NOT NULL,
        duration_minutes INTEGER NOT NULL DEFAULT 60
    )
    """,
    # allotments is a JSON object {category_key: session_count}
    """
    CREATE TABLE IF NOT EXISTS membership_plans (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        price REAL NOT NULL,
        allotments TEXT NOT NULL DEFAULT '{}',
        timing TEXT,
        therapy_details TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS staff (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        role TEXT,
        phone TEXT,
        email TEXT,
        active INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bills (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        client_id INTEGER,
        client_name TEXT NOT NULL,
        client_phone TEXT,
        client_address TEXT,
        total REAL NOT NULL,
        discount_percent REAL NOT NULL DEFAULT 0,
        date_from TEXT NOT NULL,
        time_from TEXT,
        time_to TEXT,
        payment_method TEXT NOT NULL DEFAULT 'cash',
        created_at TEXT NOT NULL
    )
    """,
    # allotments here is the plan snapshot taken at purchase time (NULL = no snapshot)
    """
    CREATE TABLE IF NOT EXISTS bill_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        bill_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        item_type TEXT NOT NULL CHECK(item_type IN ('service','membership')),
        service_id INTEGER,
        membership_id INTEGER,
        name TEXT,
        quantity INTEGER NOT NULL DEFAULT 1,
        price REAL NOT NULL,
        discount_percent REAL NOT NULL DEFAULT 0,
        allotments TEXT,
        membership_purchase_id INTEGER,
        membership_used INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY(bill_id) REFERENCES bills(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS service_usages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        membership_purchase_bill_id INTEGER NOT NULL,
        client_id INTEGER,
        membership_plan_id INTEGER,
        service_category TEXT NOT NULL,
        service_label TEXT NOT NULL,
        date TEXT NOT NULL,
        from_time TEXT,
        to_time TEXT,
        notes TEXT,
        created_at TEXT NOT NULL
    )
    """,
    # Small settings table (used to force password change on first login)
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
]


def _create_tables() -> None:
    with get_conn() as conn:
        for ddl in _SCHEMA:
            conn.execute(ddl)


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert the first admin account if no user exists
    - Force password change on first login
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM users LIMIT 1")
    if not admin:
        now = datetime.utcnow().isoformat(timespec="seconds")
        execute(
            "INSERT INTO users(username, password_hash, role, created_at) VALUES(?,?,?,?)",
            ("admin", default_admin_hash, "admin", now),
        )
        _set_setting("force_password_change", "1")
        logger.info("Created default admin account in %s", DB_FILE)
    elif _get_setting("force_password_change") is None:
        _set_setting("force_password_change", "0")


def is_initialized() -> bool:
    row = fetch_one("SELECT name FROM sqlite_master WHERE type='table' AND name='users'")
    return bool(row and fetch_one("SELECT id FROM users LIMIT 1"))


def is_force_password_change() -> bool:
    return _get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")
