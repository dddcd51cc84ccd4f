"""
REST store - the same table surface as SQLiteStore, spoken over a hosted
PostgREST endpoint (Supabase `/rest/v1`).
"""

from typing import Any, Dict, List, Optional

import requests

from finance_buddy.db.store import check_table
from finance_buddy.errors import DataAccessError


class RestStore:
    """Hosted Postgres backend reached through PostgREST"""

    def __init__(self, base_url: Optional[str], api_key: Optional[str],
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        if not base_url or not api_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set for the rest backend")
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.timeout  = timeout
        self.session  = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    @staticmethod
    def _eq(value: Any) -> str:
        if isinstance(value, bool):
            return "eq." + ("true" if value else "false")
        return f"eq.{value}"

    def _params(self, filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        return {col: self._eq(val) for col, val in (filters or {}).items()}

    def _request(self, method: str, table: str, *, params=None, json=None,
                 prefer: Optional[str] = None) -> List[Dict[str, Any]]:
        check_table(table)
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = self.session.request(
                method, f"{self.base_url}/{table}",
                params=params, json=json, headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DataAccessError(f"{method} {table} failed: {exc}", table=table) from exc

        if resp.status_code >= 400:
            raise DataAccessError(
                f"{method} {table} returned {resp.status_code}: {resp.text[:200]}", table=table
            )
        if not resp.content:
            return []
        body = resp.json()
        return body if isinstance(body, list) else [body]

    # ── operations ───────────────────────────────────────────────────

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None,
               order_by: Optional[str] = None, descending: bool = False,
               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"select": "*", **self._params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(int(limit))
        return self._request("GET", table, params=params)

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._request("POST", table, json=row, prefer="return=representation")
        return rows[0] if rows else dict(row)

    def upsert(self, table: str, row: Dict[str, Any], conflict: List[str]) -> Dict[str, Any]:
        rows = self._request(
            "POST", table,
            params={"on_conflict": ",".join(conflict)},
            json=row,
            prefer="resolution=merge-duplicates,return=representation",
        )
        return rows[0] if rows else dict(row)

    def update(self, table: str, values: Dict[str, Any], filters: Dict[str, Any]) -> int:
        if not filters:
            raise DataAccessError(f"Refusing to update {table} without filters", table=table)
        values = {k: v for k, v in values.items() if k not in filters}
        if not values:
            return 0
        rows = self._request("PATCH", table, params=self._params(filters), json=values,
                             prefer="return=representation")
        return len(rows)

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        if not filters:
            raise DataAccessError(f"Refusing to delete from {table} without filters", table=table)
        rows = self._request("DELETE", table, params=self._params(filters),
                             prefer="return=representation")
        return len(rows)
