"""
db.py
SQLite helpers + initialization (creates DB/tables, generic CRUD helpers, settings store).
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterable

import config
from errors import RepositoryError

logger = logging.getLogger(__name__)

DB_FILE = config.DB_FILE

# Columns callers may read/write/filter on, per table
TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "students": ("id", "full_name", "phone", "email", "status", "enrollment_date", "created_at"),
    "enrollments": (
        "id", "student_id", "license_type", "session_time", "payment_plan",
        "total_amount", "start_date", "end_date", "status", "created_at",
    ),
    "attendance": (
        "id", "student_id", "lesson_date", "lesson_time", "lesson_type",
        "duration_hours", "status", "notes", "created_at",
    ),
    "transactions": (
        "id", "student_id", "amount", "payment_method", "payment_type",
        "status", "kind", "description", "transaction_date",
    ),
    "instructors": (
        "id", "full_name", "phone", "email", "license_number",
        "specialization", "status", "created_at",
    ),
    "app_settings": ("key", "value"),
}


@contextmanager
def get_conn():
    try:
        conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    except sqlite3.Error as exc:
        logger.error("Could not open %s: %s", DB_FILE, exc)
        raise RepositoryError(str(exc)) from exc
    conn.row_factory = sqlite3.Row
    # Cascading deletes are the store's job; SQLite only enforces them when asked
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("Store error: %s", exc)
        raise RepositoryError(str(exc)) from exc
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


# ---------- Generic CRUD (select / insert / update / delete) ----------

def _check(table: str, columns: Iterable[str] = ()) -> None:
    if table not in TABLE_COLUMNS:
        raise ValueError(f"Unknown table: {table}")
    allowed = TABLE_COLUMNS[table]
    for col in columns:
        if col not in allowed:
            raise ValueError(f"Unknown column {col!r} for table {table}")


def _where(eq: dict | None, gte: dict | None, lte: dict | None, in_: dict | None) -> tuple[str, list]:
    clauses: list[str] = []
    params: list[Any] = []
    for col, val in (eq or {}).items():
        if val is None:
            clauses.append(f"{col} IS NULL")
        else:
            clauses.append(f"{col} = ?")
            params.append(val)
    for col, val in (gte or {}).items():
        clauses.append(f"{col} >= ?")
        params.append(val)
    for col, val in (lte or {}).items():
        clauses.append(f"{col} <= ?")
        params.append(val)
    for col, values in (in_ or {}).items():
        values = list(values)
        if not values:
            clauses.append("0")
            continue
        clauses.append(f"{col} IN ({','.join('?' for _ in values)})")
        params.extend(values)
    sql = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    return sql, params


def select(
    table: str,
    *,
    eq: dict | None = None,
    gte: dict | None = None,
    lte: dict | None = None,
    in_: dict | None = None,
    order: str | None = None,
    ascending: bool = True,
    limit: int | None = None,
) -> list[sqlite3.Row]:
    _check(table, [*(eq or {}), *(gte or {}), *(lte or {}), *(in_ or {}), *([order] if order else [])])
    where, params = _where(eq, gte, lte, in_)
    sql = f"SELECT * FROM {table}{where}"
    if order:
        sql += f" ORDER BY {order} {'ASC' if ascending else 'DESC'}, id {'ASC' if ascending else 'DESC'}"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))
    return fetch_all(sql, tuple(params))


def count(
    table: str,
    *,
    eq: dict | None = None,
    gte: dict | None = None,
    lte: dict | None = None,
    in_: dict | None = None,
) -> int:
    _check(table, [*(eq or {}), *(gte or {}), *(lte or {}), *(in_ or {})])
    where, params = _where(eq, gte, lte, in_)
    row = fetch_one(f"SELECT COUNT(*) AS c FROM {table}{where}", tuple(params))
    return int(row["c"])


def get_by_id(table: str, row_id: int):
    _check(table)
    return fetch_one(f"SELECT * FROM {table} WHERE id = ?", (row_id,))


def insert(table: str, rows: list[dict]) -> list[int]:
    """
    Insert one or more rows using a single connection/transaction.
    Either every row is stored or none is. Returns the new ids in order.
    """
    if not rows:
        return []
    for row in rows:
        _check(table, row.keys())
    ids: list[int] = []
    with get_conn() as conn:
        for row in rows:
            cols = list(row.keys())
            sql = f"INSERT INTO {table}({', '.join(cols)}) VALUES({', '.join('?' for _ in cols)})"
            cur = conn.execute(sql, tuple(row[c] for c in cols))
            ids.append(cur.lastrowid)
    return ids


def update(table: str, row_id: int, values: dict) -> int:
    if not values:
        return 0
    _check(table, values.keys())
    assignments = ", ".join(f"{col} = ?" for col in values)
    with get_conn() as conn:
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            (*values.values(), row_id),
        )
        return cur.rowcount


def delete(table: str, *, eq: dict) -> int:
    if not eq:
        raise ValueError("delete() needs at least one filter")
    _check(table, eq.keys())
    where, params = _where(eq, None, None, None)
    with get_conn() as conn:
        cur = conn.execute(f"DELETE FROM {table}{where}", tuple(params))
        return cur.rowcount


# ---------- Schema ----------

def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS students (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            full_name TEXT NOT NULL,
            phone TEXT NOT NULL,
            email TEXT,
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active','completed','dropped')),
            enrollment_date TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now', 'localtime'))
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS enrollments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id INTEGER NOT NULL,
            license_type TEXT NOT NULL CHECK(license_type IN ('bike','car')),
            session_time TEXT NOT NULL,
            payment_plan INTEGER NOT NULL,
            total_amount REAL NOT NULL CHECK(total_amount >= 0),
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active',
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now', 'localtime')),
            FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS attendance (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id INTEGER NOT NULL,
            lesson_date TEXT NOT NULL,
            lesson_time TEXT NOT NULL,
            lesson_type TEXT NOT NULL CHECK(lesson_type IN ('bike','car')),
            duration_hours REAL NOT NULL DEFAULT 1,
            status TEXT NOT NULL DEFAULT 'completed'
                CHECK(status IN ('scheduled','completed','cancelled','no-show')),
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now', 'localtime')),
            FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
        )
        """
    )

    # kind may be NULL only on rows written before the column existed
    execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id INTEGER NOT NULL,
            amount REAL NOT NULL CHECK(amount >= 0),
            payment_method TEXT NOT NULL,
            payment_type TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'completed'
                CHECK(status IN ('completed','pending','cancelled','refunded')),
            kind TEXT CHECK(kind IN ('payment','discount')),
            description TEXT,
            transaction_date TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now', 'localtime')),
            FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS instructors (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            full_name TEXT NOT NULL,
            phone TEXT NOT NULL,
            email TEXT,
            license_number TEXT,
            specialization TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active','inactive')),
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now', 'localtime'))
        )
        """
    )

    # Small key/value store (pricing table JSON lives here)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _migrate_transaction_kind() -> None:
    """
    Older databases have no `kind` column and flag discounts either by
    payment_type = 'discount' or by a 'Discount:' description prefix.
    Add the column and classify those rows once so both conventions survive.
    """
    cols = {r["name"] for r in fetch_all("PRAGMA table_info(transactions)")}
    if "kind" not in cols:
        execute("ALTER TABLE transactions ADD COLUMN kind TEXT CHECK(kind IN ('payment','discount'))")
    with get_conn() as conn:
        cur = conn.execute(
            """
            UPDATE transactions
            SET kind = CASE
                WHEN payment_type = 'discount' OR substr(description, 1, 9) = 'Discount:' THEN 'discount'
                ELSE 'payment'
            END
            WHERE kind IS NULL
            """
        )
        if cur.rowcount:
            logger.info("Classified %d legacy transaction rows", cur.rowcount)


def get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def delete_setting(key: str) -> None:
    execute("DELETE FROM app_settings WHERE key = ?", (key,))


def init_db() -> None:
    """
    Initialize the database.
    - Create tables
    - Backfill the transaction kind flag on legacy rows
    """
    _create_tables()
    _migrate_transaction_kind()
