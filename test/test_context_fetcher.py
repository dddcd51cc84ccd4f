import time

from finance_buddy.agents.context_fetcher import ContextFetcher
from finance_buddy.db import queries
from finance_buddy.errors import DataAccessError
from finance_buddy.models import UserProfile


def test_fetch_reads_everything(demo_user, processor, logger):
    context = ContextFetcher(processor=processor, logger=logger).fetch(demo_user)

    assert context.complete is True
    assert context.profile.name == "Ana Demo"
    assert context.profile.monthly_income == 6500
    assert len(context.recent_expenses) == 4
    assert len(context.recent_savings) == 1
    assert len(context.investments) == 3
    assert len(context.goals) == 2
    assert len(context.debts) == 1
    assert len(context.market_data) == 3

    fetched = [e for e in logger.read_entries() if e.get("step_type") == "context_fetched"]
    assert fetched[0]["content"]["counts"]["investments"] == 3


def test_recent_expenses_newest_first(demo_user, processor):
    context = ContextFetcher(processor=processor).fetch(demo_user)
    dates = [e["date"] for e in context.recent_expenses]
    assert dates == sorted(dates, reverse=True)


def test_unknown_user_keeps_fallback_profile(store, processor):
    fallback = UserProfile(id="ghost", name="Fantasma")
    context = ContextFetcher(processor=processor).fetch("ghost", fallback_profile=fallback)
    assert context.profile == fallback
    assert context.investments == []


def test_storage_error_returns_fallback(store, processor, logger, monkeypatch):
    def broken(user_id):
        raise DataAccessError("connection refused", table="investments")

    monkeypatch.setattr(queries, "get_investments", broken)
    fallback = UserProfile(id="u1", name="Ana")

    context = ContextFetcher(processor=processor, logger=logger).fetch("u1", fallback_profile=fallback)

    assert context.profile == fallback
    assert context.recent_expenses == []
    assert context.complete is False
    assert context.goals == []
    errors = [e for e in logger.read_entries() if e.get("step_type") == "error"]
    assert errors[0]["content"]["where"] == "context_fetch"


def test_slow_read_times_out_to_fallback(demo_user, processor, logger, monkeypatch):
    real = queries.get_investments

    def slow(user_id):
        time.sleep(0.5)
        return real(user_id)

    monkeypatch.setattr(queries, "get_investments", slow)
    fallback = UserProfile(id=demo_user, name="Ana Demo")

    context = ContextFetcher(processor=processor, logger=logger, timeout=0.1).fetch(
        demo_user, fallback_profile=fallback)

    assert context.complete is False
    assert context.profile == fallback
    assert context.goals == []
    errors = [e for e in logger.read_entries() if e.get("step_type") == "error"]
    assert errors[0]["content"]["type"] == "TaskFailed"
