"""
Table store - the small select/insert/update/delete surface every query goes
through. SQLite is the default backend; the hosted REST backend lives in
rest_store.py and exposes the same methods.

Stores raise DataAccessError. Callers in queries.py decide whether a failure
is reported (reads) or printed and turned into False (writes).
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from finance_buddy.config import get_settings
from finance_buddy.db.schema import init_db
from finance_buddy.errors import DataAccessError

KNOWN_TABLES = (
    "profiles",
    "financial_profiles",
    "monthly_expenses",
    "monthly_savings",
    "detailed_expenses",
    "investments",
    "financial_goals",
    "debt_details",
    "market_data",
    "document_embeddings",
)

# Columns holding JSON documents
JSON_COLUMNS = {
    "monthly_expenses": ("data",),
    "monthly_savings": ("data",),
    "document_embeddings": ("embedding", "metadata"),
}


def check_table(table: str) -> str:
    if table not in KNOWN_TABLES:
        raise DataAccessError(f"Unknown table: {table}", table=table)
    return table


def encode_row(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    encoded = dict(row)
    for col in JSON_COLUMNS.get(table, ()):
        if col in encoded and not isinstance(encoded[col], str) and encoded[col] is not None:
            encoded[col] = json.dumps(encoded[col])
    return encoded


def decode_row(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    decoded = dict(row)
    for col in JSON_COLUMNS.get(table, ()):
        value = decoded.get(col)
        if isinstance(value, str) and value:
            try:
                decoded[col] = json.loads(value)
            except json.JSONDecodeError:
                print(f"[decode_row] {table}.{col} is not valid JSON, keeping raw text")
    return decoded


class SQLiteStore:
    """Local SQLite backend"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = init_db(db_path or get_settings().db_path)
        self._columns: Dict[str, List[str]] = {}

    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # ── schema helpers ───────────────────────────────────────────────

    def columns(self, table: str) -> List[str]:
        check_table(table)
        if table not in self._columns:
            with self.get_connection() as conn:
                cur = conn.execute(f"PRAGMA table_info({table})")
                self._columns[table] = [r["name"] for r in cur.fetchall()]
        return self._columns[table]

    def _check_columns(self, table: str, names: Iterable[str]) -> None:
        known = self.columns(table)
        unknown = [n for n in names if n not in known]
        if unknown:
            raise DataAccessError(
                f"Unknown column(s) for {table}: {', '.join(unknown)}", table=table
            )

    @staticmethod
    def _where(filters: Optional[Dict[str, Any]]):
        if not filters:
            return "", []
        clause = " AND ".join(f"{col} = ?" for col in filters)
        return f" WHERE {clause}", list(filters.values())

    # ── operations ───────────────────────────────────────────────────

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self._check_columns(table, list(filters or {}) + ([order_by] if order_by else []))
        where, params = self._where(filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        try:
            with self.get_connection() as conn:
                cur = conn.execute(sql, params)
                return [decode_row(table, dict(r)) for r in cur.fetchall()]
        except sqlite3.Error as exc:
            raise DataAccessError(f"select from {table} failed: {exc}", table=table) from exc

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        if not row:
            raise DataAccessError(f"Nothing to insert into {table}", table=table)
        self._check_columns(table, row)
        encoded = encode_row(table, row)
        cols = list(encoded)
        sql = f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))})"
        try:
            with self.get_connection() as conn:
                conn.execute(sql, [encoded[c] for c in cols])
                conn.commit()
        except sqlite3.Error as exc:
            raise DataAccessError(f"insert into {table} failed: {exc}", table=table) from exc
        return dict(row)

    def upsert(self, table: str, row: Dict[str, Any], conflict: List[str]) -> Dict[str, Any]:
        self._check_columns(table, list(row) + list(conflict))
        encoded = encode_row(table, row)
        cols = list(encoded)
        updates = [c for c in cols if c not in conflict and c != "id"]
        set_clause = ", ".join(f"{c} = excluded.{c}" for c in updates)
        if "updated_at" in self.columns(table):
            set_clause += (", " if set_clause else "") + "updated_at = CURRENT_TIMESTAMP"
        sql = (
            f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))}) "
            f"ON CONFLICT({', '.join(conflict)}) DO "
            + (f"UPDATE SET {set_clause}" if set_clause else "NOTHING")
        )
        try:
            with self.get_connection() as conn:
                conn.execute(sql, [encoded[c] for c in cols])
                conn.commit()
        except sqlite3.Error as exc:
            raise DataAccessError(f"upsert into {table} failed: {exc}", table=table) from exc
        return dict(row)

    def update(self, table: str, values: Dict[str, Any], filters: Dict[str, Any]) -> int:
        if not filters:
            raise DataAccessError(f"Refusing to update {table} without filters", table=table)
        values = {k: v for k, v in values.items() if k not in filters}
        if not values:
            return 0
        self._check_columns(table, list(values) + list(filters))
        encoded = encode_row(table, values)
        set_clause = ", ".join(f"{c} = ?" for c in encoded)
        where, params = self._where(filters)
        try:
            with self.get_connection() as conn:
                cur = conn.execute(
                    f"UPDATE {table} SET {set_clause}{where}", list(encoded.values()) + params
                )
                conn.commit()
                return cur.rowcount
        except sqlite3.Error as exc:
            raise DataAccessError(f"update of {table} failed: {exc}", table=table) from exc

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        if not filters:
            raise DataAccessError(f"Refusing to delete from {table} without filters", table=table)
        self._check_columns(table, filters)
        where, params = self._where(filters)
        try:
            with self.get_connection() as conn:
                cur = conn.execute(f"DELETE FROM {table}{where}", params)
                conn.commit()
                return cur.rowcount
        except sqlite3.Error as exc:
            raise DataAccessError(f"delete from {table} failed: {exc}", table=table) from exc


# Global store
_store = None


def get_store():
    """Get or create the global store for the configured backend"""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.uses_rest():
            from finance_buddy.db.rest_store import RestStore
            _store = RestStore(settings.supabase_url, settings.supabase_key)
        else:
            _store = SQLiteStore(settings.db_path)
    return _store


def set_store(store) -> None:
    global _store
    _store = store
