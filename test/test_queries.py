import pytest

from finance_buddy.core.profile import is_profile_complete, missing_profile_fields
from finance_buddy.db import queries
from finance_buddy.errors import DataAccessError
from finance_buddy.models import DebtDetail, ExpenseItem, FinancialGoal, Investment, UserProfile


def test_profile_join(demo_user):
    profile = queries.get_user_profile(demo_user)
    assert profile.name == "Ana Demo"
    assert profile.age == 29
    assert profile.monthly_income == 6500
    assert profile.risk_profile == "moderate"
    assert profile.has_emergency_fund is True
    assert profile.emergency_fund_months == 3


def test_unknown_profile_is_none(store):
    assert queries.get_user_profile("nobody") is None


def test_save_profile_round_trip(store):
    profile = UserProfile(id="u9", email="u9@example.com", name="Caio", age=41,
                          monthly_income=8000, risk_profile="aggressive",
                          has_emergency_fund=False)
    assert queries.save_user_profile(profile) is True

    loaded = queries.get_user_profile("u9")
    assert loaded.risk_profile == "aggressive"
    assert loaded.has_emergency_fund is False

    profile.monthly_income = 9000
    assert queries.save_user_profile(profile) is True
    assert queries.get_user_profile("u9").monthly_income == 9000


def test_profile_completeness():
    assert missing_profile_fields(None) == ["Nome", "Idade", "Renda mensal",
                                            "Perfil de risco", "Reserva de emergência"]
    partial = UserProfile(id="u1", name="Ana", age=0, monthly_income=3000)
    assert missing_profile_fields(partial) == ["Idade", "Perfil de risco", "Reserva de emergência"]
    assert not is_profile_complete(partial)

    full = UserProfile(id="u1", name="Ana", age=30, monthly_income=3000,
                       risk_profile="moderate", has_emergency_fund=False)
    assert is_profile_complete(full)


def test_expenses_crud(store):
    item = ExpenseItem(user_id="u1", date="2025-03-10", amount=42.5, category="Lazer")
    assert queries.add_expense(item) is True
    assert queries.add_expense(ExpenseItem(user_id="u1", date="2024-12-31", amount=1)) is True

    assert [e["amount"] for e in queries.get_expenses_for_year("u1", 2025)] == [42.5]
    assert queries.get_detailed_expenses("u1")[0]["date"] == "2025-03-10"

    assert queries.delete_expense("u1", item.id) is True
    assert queries.delete_expense("u1", item.id) is False


def test_investment_update_ignores_none(store):
    inv = Investment(user_id="u1", name="CDB", type="Renda Fixa", value=1000)
    queries.add_investment(inv)

    assert queries.update_investment("u1", inv.id, value=1500, annual_return=None) is True
    row = queries.get_investments("u1")[0]
    assert row["value"] == 1500
    assert row["annual_return"] == 0

    assert queries.delete_investment("u1", inv.id) is True


def test_add_goal(store):
    goal = FinancialGoal(user_id="u1", name="Viagem", target_amount=5000, priority="high")
    assert queries.add_financial_goal(goal) is True

    row = queries.get_financial_goals("u1")[0]
    assert row["name"] == "Viagem"
    assert row["current_amount"] == 0


def test_goal_progress_update(demo_user):
    goal = queries.get_financial_goals(demo_user)[0]
    assert queries.update_goal_progress(demo_user, goal["id"], 1.0) is True
    assert queries.update_goal_progress("intruder", goal["id"], 2.0) is False


def test_debts_ordered_by_interest(store):
    queries.add_debt(DebtDetail(user_id="u1", name="Financiamento", amount=10000, interest_rate=9))
    queries.add_debt(DebtDetail(user_id="u1", name="Cartão", amount=800, interest_rate=14))
    assert [d["name"] for d in queries.get_debt_details("u1")] == ["Cartão", "Financiamento"]


def test_monthly_record_upsert(store):
    data = [{"month": m, "amount": 0} for m in range(1, 13)]
    assert queries.save_monthly_record("monthly_expenses", "u1", 2025, data) is True
    data[0]["amount"] = 10
    assert queries.save_monthly_record("monthly_expenses", "u1", 2025, data) is True

    record = queries.get_monthly_record("monthly_expenses", "u1", 2025)
    assert record["data"][0] == {"month": 1, "amount": 10}
    assert len(queries.get_recent_monthly_records("monthly_expenses", "u1")) == 1


def test_monthly_tables_only(store):
    with pytest.raises(ValueError):
        queries.get_monthly_record("investments", "u1", 2025)


def test_reads_raise_on_bad_column(store):
    with pytest.raises(DataAccessError):
        store.select("investments", {"nope": 1})


def test_writes_report_false_on_failure(store):
    assert queries.insert_row("investments", {"name": "X", "made_up": 1}) is False
