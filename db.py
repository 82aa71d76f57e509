"""
db.py
Record stores used by the ledger.

Both stores expose the same small contract over three collections
(members, payments, check_ins), exchanging plain dicts:

    all(collection)                                  -> list[dict]
    get(collection, record_id)                       -> dict | None
    insert(collection, record)                       -> id
    update(collection, record_id, changes)           -> None
    delete(collection, record_id)                    -> None
    where(collection, field, value)                  -> list[dict]
    between(collection, field, low, high, include_high=False) -> list[dict]

Results come back in insertion order.
"""

from __future__ import annotations

import copy
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from errors import StoreError
from models import CHECK_INS, MEMBERS, PAYMENTS

logger = logging.getLogger(__name__)

COLUMNS = {
    MEMBERS: (
        "id", "name", "phone", "email", "subscription_type", "subscription_start",
        "subscription_end", "payment_status", "status", "created_at", "updated_at",
    ),
    PAYMENTS: (
        "id", "member_id", "member_name", "amount", "date", "status",
        "subscription_type", "notes",
    ),
    CHECK_INS: (
        "id", "member_id", "member_name", "timestamp", "subscription_type", "member_status",
    ),
}


def _check_fields(collection: str, fields) -> None:
    # Column names are interpolated into SQL, so only known ones get through
    if collection not in COLUMNS:
        raise ValueError(f"Unknown collection: {collection}")
    unknown = [f for f in fields if f not in COLUMNS[collection]]
    if unknown:
        raise ValueError(f"Unknown field(s) for {collection}: {', '.join(unknown)}")


class SQLiteStore:
    """One table per collection, one connection per operation."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._create_tables()

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _run(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            with self.get_conn() as conn:
                cur = conn.execute(sql, params)
                return [dict(r) for r in cur.fetchall()]
        except sqlite3.Error as exc:
            logger.exception("Record store operation failed: %s", sql.split()[0])
            raise StoreError("The record store failed; the change was not saved.") from exc

    def _create_tables(self) -> None:
        self._run(
            """
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                phone TEXT NOT NULL,
                email TEXT,
                subscription_type TEXT NOT NULL CHECK(subscription_type IN ('daily','weekly','monthly')),
                subscription_start TEXT NOT NULL,
                subscription_end TEXT NOT NULL,
                payment_status TEXT NOT NULL CHECK(payment_status IN ('paid','incomplete')),
                status TEXT NOT NULL CHECK(status IN ('active','due','overdue')),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

        # No FOREIGN KEY: payments and check-ins outlive a deleted member
        self._run(
            """
            CREATE TABLE IF NOT EXISTS payments (
                id TEXT PRIMARY KEY,
                member_id TEXT NOT NULL,
                member_name TEXT NOT NULL,
                amount REAL NOT NULL CHECK(amount >= 0),
                date TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('paid','incomplete')),
                subscription_type TEXT NOT NULL,
                notes TEXT
            )
            """
        )

        self._run(
            """
            CREATE TABLE IF NOT EXISTS check_ins (
                id TEXT PRIMARY KEY,
                member_id TEXT NOT NULL,
                member_name TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                subscription_type TEXT NOT NULL,
                member_status TEXT NOT NULL
            )
            """
        )

        self._run("CREATE INDEX IF NOT EXISTS idx_payments_member ON payments(member_id)")
        self._run("CREATE INDEX IF NOT EXISTS idx_payments_date ON payments(date)")
        self._run("CREATE INDEX IF NOT EXISTS idx_check_ins_member ON check_ins(member_id)")
        self._run("CREATE INDEX IF NOT EXISTS idx_check_ins_timestamp ON check_ins(timestamp)")

    def all(self, collection: str) -> list[dict]:
        _check_fields(collection, ())
        return self._run(f"SELECT * FROM {collection} ORDER BY rowid")

    def get(self, collection: str, record_id: str) -> dict | None:
        _check_fields(collection, ())
        rows = self._run(f"SELECT * FROM {collection} WHERE id = ?", (record_id,))
        return rows[0] if rows else None

    def insert(self, collection: str, record: dict) -> str:
        _check_fields(collection, record)
        fields = list(record)
        placeholders = ",".join("?" for _ in fields)
        self._run(
            f"INSERT INTO {collection}({','.join(fields)}) VALUES({placeholders})",
            tuple(record[f] for f in fields),
        )
        return record["id"]

    def update(self, collection: str, record_id: str, changes: dict) -> None:
        if not changes:
            return
        _check_fields(collection, changes)
        assignments = ", ".join(f"{f}=?" for f in changes)
        self._run(
            f"UPDATE {collection} SET {assignments} WHERE id=?",
            tuple(changes.values()) + (record_id,),
        )

    def delete(self, collection: str, record_id: str) -> None:
        _check_fields(collection, ())
        self._run(f"DELETE FROM {collection} WHERE id = ?", (record_id,))

    def where(self, collection: str, field: str, value) -> list[dict]:
        _check_fields(collection, (field,))
        return self._run(f"SELECT * FROM {collection} WHERE {field} = ? ORDER BY rowid", (value,))

    def between(self, collection: str, field: str, low, high, include_high: bool = False) -> list[dict]:
        _check_fields(collection, (field,))
        upper = "<=" if include_high else "<"
        return self._run(
            f"SELECT * FROM {collection} WHERE {field} >= ? AND {field} {upper} ? ORDER BY rowid",
            (low, high),
        )


class MemoryStore:
    """Dict-backed store with the same contract, for tests and scratch sessions."""

    def __init__(self):
        self._data: dict[str, dict[str, dict]] = {name: {} for name in COLUMNS}

    def _table(self, collection: str) -> dict[str, dict]:
        _check_fields(collection, ())
        return self._data[collection]

    def all(self, collection: str) -> list[dict]:
        return [copy.deepcopy(r) for r in self._table(collection).values()]

    def get(self, collection: str, record_id: str) -> dict | None:
        record = self._table(collection).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def insert(self, collection: str, record: dict) -> str:
        _check_fields(collection, record)
        table = self._table(collection)
        if record["id"] in table:
            raise StoreError(f"Duplicate id {record['id']!r} in {collection}.")
        table[record["id"]] = copy.deepcopy(record)
        return record["id"]

    def update(self, collection: str, record_id: str, changes: dict) -> None:
        _check_fields(collection, changes)
        record = self._table(collection).get(record_id)
        if record is not None:
            record.update(copy.deepcopy(changes))

    def delete(self, collection: str, record_id: str) -> None:
        self._table(collection).pop(record_id, None)

    def where(self, collection: str, field: str, value) -> list[dict]:
        _check_fields(collection, (field,))
        return [r for r in self.all(collection) if r.get(field) == value]

    def between(self, collection: str, field: str, low, high, include_high: bool = False) -> list[dict]:
        _check_fields(collection, (field,))
        if include_high:
            return [r for r in self.all(collection) if low <= r[field] <= high]
        return [r for r in self.all(collection) if low <= r[field] < high]
