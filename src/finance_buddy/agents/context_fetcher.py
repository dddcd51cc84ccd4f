"""
Context Fetcher - gathers everything the response generator may need for one
user, running the independent reads concurrently and joining on all of them.
"""

from typing import Optional

from finance_buddy.config import get_settings
from finance_buddy.db import queries
from finance_buddy.models import UserDataContext, UserProfile
from finance_buddy.utils.async_processor import AsyncProcessor, get_async_processor
from finance_buddy.utils.logger import AgentLogger


class ContextFetcher:
    """Parallel reader for a user's financial context"""

    def __init__(self, processor: Optional[AsyncProcessor] = None,
                 logger: Optional[AgentLogger] = None,
                 timeout: Optional[float] = None):
        self.processor = processor
        self.logger    = logger
        self.timeout   = timeout if timeout is not None else get_settings().fetch_timeout

    def fetch(self, user_id: str, fallback_profile: Optional[UserProfile] = None) -> UserDataContext:
        """
        Read profile, expenses, savings, investments, goals, debts and market
        data for user_id. On any failure or timeout the fallback profile and
        empty lists are returned instead, with complete=False.
        """
        processor = self.processor or get_async_processor()
        calls = {
            "profile":         lambda: queries.get_user_profile(user_id),
            "recent_expenses": lambda: queries.get_detailed_expenses(user_id, limit=10),
            "recent_savings":  lambda: queries.get_recent_monthly_records("monthly_savings", user_id, limit=3),
            "investments":     lambda: queries.get_investments(user_id),
            "goals":           lambda: queries.get_financial_goals(user_id),
            "debts":           lambda: queries.get_debt_details(user_id),
            "market_data":     lambda: queries.get_market_data(limit=20),
        }

        try:
            results = processor.gather(calls, timeout=self.timeout)
        except Exception as exc:
            print(f"[ContextFetcher.fetch] Error fetching user context: {exc}")
            if self.logger:
                self.logger.log_error("context_fetch", exc)
            return UserDataContext(profile=fallback_profile, complete=False)

        profile = results.pop("profile") or fallback_profile
        context = UserDataContext(profile=profile, **results)
        if self.logger:
            self.logger.log_step("context_fetched", {
                "user_id": user_id,
                "has_profile": profile is not None,
                "counts": {k: len(v) for k, v in results.items()},
            })
        return context
