"""
Database queries for Finance Buddy: the CRUD layer over the configured store.

Read functions return plain Python types (dict, list, models) and let
DataAccessError propagate. Write functions print failures and return False.
Callers should never need to talk to a store directly.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from finance_buddy.db.store import get_store
from finance_buddy.errors import DataAccessError
from finance_buddy.models import (
    DebtDetail,
    ExpenseItem,
    FinancialGoal,
    Investment,
    UserProfile,
    new_id,
)

PROFILE_COLUMNS = ("id", "email", "name", "age")
FINANCIAL_PROFILE_COLUMNS = (
    "monthly_income",
    "risk_profile",
    "has_emergency_fund",
    "emergency_fund_months",
    "has_debts",
)
MONTHLY_TABLES = ("monthly_expenses", "monthly_savings")


# ═══════════════════════════════════════════════════════════════════
# Generic user-scoped writes
# ═══════════════════════════════════════════════════════════════════

def insert_row(table: str, row: Dict[str, Any]) -> bool:
    try:
        get_store().insert(table, row)
        return True
    except DataAccessError as exc:
        print(f"[insert_row] {exc}")
        return False


def update_user_row(table: str, user_id: str, row_id: str, values: Dict[str, Any]) -> bool:
    """Update one row owned by user_id. False if nothing matched."""
    try:
        return get_store().update(table, values, {"user_id": user_id, "id": row_id}) > 0
    except DataAccessError as exc:
        print(f"[update_user_row] {exc}")
        return False


def delete_user_row(table: str, user_id: str, row_id: str) -> bool:
    try:
        return get_store().delete(table, {"user_id": user_id, "id": row_id}) > 0
    except DataAccessError as exc:
        print(f"[delete_user_row] {exc}")
        return False


# ═══════════════════════════════════════════════════════════════════
# User profile
# ═══════════════════════════════════════════════════════════════════

def get_user_profile(user_id: str) -> Optional[UserProfile]:
    """Return profiles joined with financial_profiles, or None if unknown."""
    store = get_store()
    rows = store.select("profiles", {"id": user_id}, limit=1)
    if not rows:
        return None

    result: Dict[str, Any] = {k: rows[0].get(k) for k in PROFILE_COLUMNS}
    fin = store.select("financial_profiles", {"id": user_id}, limit=1)
    if fin:
        result.update({k: fin[0].get(k) for k in FINANCIAL_PROFILE_COLUMNS})
    return UserProfile.model_validate(result)


def save_user_profile(profile: UserProfile) -> bool:
    """Upsert both halves of a profile. Only non-None fields are written."""
    data = profile.model_dump()
    base = {k: data[k] for k in PROFILE_COLUMNS if data.get(k) is not None}
    fin = {k: data[k] for k in FINANCIAL_PROFILE_COLUMNS if data.get(k) is not None}
    try:
        store = get_store()
        store.upsert("profiles", base, ["id"])
        if fin:
            store.upsert("financial_profiles", {"id": profile.id, **fin}, ["id"])
        return True
    except DataAccessError as exc:
        print(f"[save_user_profile] {exc}")
        return False


# ═══════════════════════════════════════════════════════════════════
# Detailed expenses
# ═══════════════════════════════════════════════════════════════════

def get_detailed_expenses(user_id: str, limit: Optional[int] = 10) -> List[Dict]:
    """Most recent expenses first."""
    return get_store().select(
        "detailed_expenses", {"user_id": user_id},
        order_by="date", descending=True, limit=limit,
    )


def get_expenses_for_year(user_id: str, year: int) -> List[Dict]:
    rows = get_store().select("detailed_expenses", {"user_id": user_id}, order_by="date")
    prefix = f"{year:04d}-"
    return [r for r in rows if str(r.get("date", "")).startswith(prefix)]


def add_expense(item: ExpenseItem) -> bool:
    return insert_row("detailed_expenses", item.model_dump())


def delete_expense(user_id: str, expense_id: str) -> bool:
    return delete_user_row("detailed_expenses", user_id, expense_id)


# ═══════════════════════════════════════════════════════════════════
# Monthly expenses / savings
# ═══════════════════════════════════════════════════════════════════

def _check_monthly(table: str) -> None:
    if table not in MONTHLY_TABLES:
        raise ValueError(f"Not a monthly table: {table}")


def get_monthly_record(table: str, user_id: str, year: int) -> Optional[Dict]:
    _check_monthly(table)
    rows = get_store().select(table, {"user_id": user_id, "year": year}, limit=1)
    return rows[0] if rows else None


def get_recent_monthly_records(table: str, user_id: str, limit: int = 3) -> List[Dict]:
    _check_monthly(table)
    return get_store().select(
        table, {"user_id": user_id}, order_by="created_at", descending=True, limit=limit,
    )


def save_monthly_record(table: str, user_id: str, year: int, data: List[Dict]) -> bool:
    """Upsert the 12-bucket document for (user_id, year)."""
    _check_monthly(table)
    try:
        get_store().upsert(
            table,
            {"user_id": user_id, "year": year, "data": data},
            ["user_id", "year"],
        )
        return True
    except DataAccessError as exc:
        print(f"[save_monthly_record] {exc}")
        return False


# ═══════════════════════════════════════════════════════════════════
# Investments
# ═══════════════════════════════════════════════════════════════════

def get_investments(user_id: str) -> List[Dict]:
    return get_store().select("investments", {"user_id": user_id})


def add_investment(investment: Investment) -> bool:
    return insert_row("investments", investment.model_dump())


def update_investment(user_id: str, investment_id: str, **fields) -> bool:
    valid = {k: v for k, v in fields.items() if v is not None}
    if not valid:
        return True
    return update_user_row("investments", user_id, investment_id, valid)


def delete_investment(user_id: str, investment_id: str) -> bool:
    return delete_user_row("investments", user_id, investment_id)


# ═══════════════════════════════════════════════════════════════════
# Goals
# ═══════════════════════════════════════════════════════════════════

def get_financial_goals(user_id: str) -> List[Dict]:
    return get_store().select("financial_goals", {"user_id": user_id})


def add_financial_goal(goal: FinancialGoal) -> bool:
    return insert_row("financial_goals", goal.model_dump())


def update_goal_progress(user_id: str, goal_id: str, current_amount: float) -> bool:
    return update_user_row(
        "financial_goals", user_id, goal_id, {"current_amount": current_amount}
    )


# ═══════════════════════════════════════════════════════════════════
# Debts
# ═══════════════════════════════════════════════════════════════════

def get_debt_details(user_id: str) -> List[Dict]:
    return get_store().select(
        "debt_details", {"user_id": user_id}, order_by="interest_rate", descending=True,
    )


def add_debt(debt: DebtDetail) -> bool:
    return insert_row("debt_details", debt.model_dump())


# ═══════════════════════════════════════════════════════════════════
# Market data
# ═══════════════════════════════════════════════════════════════════

def get_market_data(limit: int = 20) -> List[Dict]:
    return get_store().select(
        "market_data", order_by="last_updated", descending=True, limit=limit,
    )


# ═══════════════════════════════════════════════════════════════════
# Conversation documents
# ═══════════════════════════════════════════════════════════════════

def add_document(user_id: str, content: str, embedding: List[float],
                 metadata: Dict[str, Any]) -> Optional[str]:
    """Insert a document row. Returns its id, or None on failure."""
    doc_id = new_id()
    ok = insert_row("document_embeddings", {
        "id": doc_id,
        "user_id": user_id,
        "content": content,
        "embedding": embedding,
        "metadata": metadata,
    })
    return doc_id if ok else None


def get_documents(user_id: str) -> List[Dict]:
    return get_store().select(
        "document_embeddings", {"user_id": user_id}, order_by="created_at", descending=True,
    )


def update_document(user_id: str, doc_id: str, content: str, embedding: List[float],
                    metadata: Dict[str, Any]) -> bool:
    return update_user_row("document_embeddings", user_id, doc_id, {
        "content": content,
        "embedding": embedding,
        "metadata": metadata,
    })


def delete_document(user_id: str, doc_id: str) -> bool:
    return delete_user_row("document_embeddings", user_id, doc_id)
