"""
Monthly trackers for expenses and savings.

A tracker year is always twelve {month, amount} buckets. Raw stored documents
are normalised into that shape, reads are retried with exponential backoff,
and a read that keeps failing degrades to an empty year flagged as failed.
"""

import time
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field

from finance_buddy.db import queries
from finance_buddy.errors import DataAccessError
from finance_buddy.models import ExpenseItem, MonthlyAmount
from finance_buddy.utils.logger import AgentLogger
from finance_buddy.utils.retry import MAX_ATTEMPTS, RetryExhausted, retry_with_backoff

MONTHS = 12


# ═══════════════════════════════════════════════════════════════════
# Shape helpers
# ═══════════════════════════════════════════════════════════════════

def initialize_empty_data() -> List[MonthlyAmount]:
    return [MonthlyAmount(month=m, amount=0) for m in range(1, MONTHS + 1)]


def _parse_month(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _parse_amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if amount != amount or amount < 0:  # NaN or negative
        print(f"[trackers] Ignoring invalid amount {value!r}")
        return 0.0
    return amount


def _fill(items: Iterable[MonthlyAmount]) -> List[MonthlyAmount]:
    complete = initialize_empty_data()
    for item in items:
        if 1 <= item.month <= MONTHS:
            complete[item.month - 1] = item
    return complete


def convert_to_typed_data(raw: Any) -> List[MonthlyAmount]:
    """Turn a stored JSON document into twelve sorted buckets."""
    if not isinstance(raw, list):
        return initialize_empty_data()

    typed = []
    for item in raw:
        if not isinstance(item, dict):
            print(f"[convert_to_typed_data] Unexpected item: {item!r}")
            continue
        month = _parse_month(item.get("month"))
        if 1 <= month <= MONTHS:
            typed.append(MonthlyAmount(month=month, amount=_parse_amount(item.get("amount"))))
    return _fill(typed)


def ensure_complete_data(data: Optional[List[MonthlyAmount]]) -> List[MonthlyAmount]:
    if not data:
        return initialize_empty_data()
    return _fill(data)


def convert_data_to_json(data: Optional[List[MonthlyAmount]]) -> List[Dict[str, Any]]:
    """Twelve plain {month, amount} dicts ready to store. Empty input stays empty."""
    if not data:
        return []
    return [{"month": m.month, "amount": m.amount} for m in ensure_complete_data(data)]


def _expense_date(item: Union[ExpenseItem, Dict[str, Any]]) -> Optional[date]:
    raw = item.date if isinstance(item, ExpenseItem) else item.get("date")
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        return None


def combine_expenses_data(
    monthly: Optional[List[MonthlyAmount]],
    detailed: List[Union[ExpenseItem, Dict[str, Any]]],
    year: int,
) -> List[MonthlyAmount]:
    """
    Attach detailed expenses of `year` to their month. A month keeps its stored
    amount when positive, otherwise it becomes the sum of its items.
    """
    base = ensure_complete_data(monthly)
    by_month: Dict[int, List[ExpenseItem]] = {}
    for raw in detailed:
        day = _expense_date(raw)
        if day is None or day.year != year:
            continue
        item = raw if isinstance(raw, ExpenseItem) else ExpenseItem.model_validate(raw)
        by_month.setdefault(day.month, []).append(item)

    combined = []
    for bucket in base:
        items = by_month.get(bucket.month, [])
        calculated = sum(i.amount for i in items)
        combined.append(MonthlyAmount(
            month=bucket.month,
            amount=bucket.amount if bucket.amount > 0 else calculated,
            items=items,
        ))
    return combined


# ═══════════════════════════════════════════════════════════════════
# Aggregates
# ═══════════════════════════════════════════════════════════════════

def yearly_total(data: List[MonthlyAmount]) -> float:
    return sum(m.amount for m in data)


def average_of_nonzero(data: List[MonthlyAmount]) -> float:
    """Average over months that have a value, 0 when none do."""
    values = [m.amount for m in data if m.amount > 0]
    return sum(values) / len(values) if values else 0.0


def expense_ratio(yearly_expenses: float, monthly_income: float) -> float:
    """Yearly expenses as a percentage of yearly income."""
    if not monthly_income or monthly_income <= 0:
        return 0.0
    return yearly_expenses / (monthly_income * 12) * 100


def savings_progress(total_saved: float, target: float) -> float:
    """Percentage of target reached, capped at 100."""
    if not target or target <= 0:
        return 0.0
    return min(total_saved / target * 100, 100.0)


# ═══════════════════════════════════════════════════════════════════
# Tracker
# ═══════════════════════════════════════════════════════════════════

class MonthlyData(BaseModel):
    year: int
    data: List[MonthlyAmount] = Field(default_factory=initialize_empty_data)
    failed: bool = False
    error: Optional[str] = None


class MonthlyTracker:
    """Load/save one user's year for monthly_expenses or monthly_savings"""

    def __init__(self, table: str, max_attempts: int = MAX_ATTEMPTS,
                 sleep: Callable[[float], None] = time.sleep,
                 logger: Optional[AgentLogger] = None):
        if table not in queries.MONTHLY_TABLES:
            raise ValueError(f"Not a monthly table: {table}")
        self.table        = table
        self.max_attempts = max_attempts
        self.sleep        = sleep
        self.logger       = logger

    def _on_retry(self, attempt: int, delay_ms: int, error: Exception):
        print(f"[{self.table}] Retrying data fetch in {delay_ms}ms "
              f"(attempt {attempt}/{self.max_attempts}): {error}")
        if self.logger:
            self.logger.log_step("retry", {"table": self.table, "attempt": attempt, "delay_ms": delay_ms})

    def load(self, user_id: str, year: int) -> MonthlyData:
        try:
            record = retry_with_backoff(
                lambda: queries.get_monthly_record(self.table, user_id, year),
                max_attempts=self.max_attempts,
                retry_on=(DataAccessError,),
                sleep=self.sleep,
                on_retry=self._on_retry,
            )
        except RetryExhausted as exc:
            print(f"[{self.table}] Max retry attempts reached, using empty data")
            if self.logger:
                self.logger.log_error(f"{self.table}.load", exc)
            return MonthlyData(year=year, failed=True, error=str(exc.last_error))

        if record is None:
            return MonthlyData(year=year)
        return MonthlyData(year=year, data=convert_to_typed_data(record.get("data")))

    def save(self, user_id: str, year: int, data: List[MonthlyAmount]) -> bool:
        return queries.save_monthly_record(self.table, user_id, year, convert_data_to_json(data))

    def set_month(self, user_id: str, year: int, month: int, amount: float) -> bool:
        """Read-modify-write of a single bucket."""
        loaded = self.load(user_id, year)
        if loaded.failed:
            return False
        data = list(loaded.data)
        data[month - 1] = MonthlyAmount(month=month, amount=amount)
        return self.save(user_id, year, data)

    def summary(self, user_id: str, year: int, monthly_income: Optional[float] = None) -> Dict[str, Any]:
        loaded = self.load(user_id, year)
        total = yearly_total(loaded.data)
        return {
            "year": year,
            "total": total,
            "average": average_of_nonzero(loaded.data),
            "income_ratio": expense_ratio(total, monthly_income or 0),
            "failed": loaded.failed,
            "months": [m.model_dump(exclude_none=True) for m in loaded.data],
        }


class ExpensesTracker(MonthlyTracker):
    def __init__(self, **kwargs):
        super().__init__("monthly_expenses", **kwargs)

    def load_combined(self, user_id: str, year: int) -> MonthlyData:
        """Monthly buckets enriched with that year's detailed expenses."""
        loaded = self.load(user_id, year)
        try:
            detailed = queries.get_expenses_for_year(user_id, year)
        except DataAccessError as exc:
            print(f"[ExpensesTracker.load_combined] {exc}")
            return loaded
        loaded.data = combine_expenses_data(loaded.data, detailed, year)
        return loaded


class SavingsTracker(MonthlyTracker):
    def __init__(self, **kwargs):
        super().__init__("monthly_savings", **kwargs)
