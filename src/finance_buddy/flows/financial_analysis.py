"""
Financial Analysis Flow

initialize_analysis
  └─ collect_financial_data
       ├─ perform_budget_analysis ─────┐
       ├─ perform_investment_analysis ─┤
       ├─ perform_savings_analysis ────┤
       └─ perform_goal_analysis ───────┴─ determine_analysis_confidence (router)
             high_confidence   → generate_comprehensive_analysis ─┐
             medium_confidence → generate_basic_analysis ─────────┴─ generate_recommendations
             low_confidence    → request_additional_data                └─ finalize_analysis
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from finance_buddy.agents.response_generator import ResponseGenerator
from finance_buddy.core.trackers import ExpensesTracker, SavingsTracker
from finance_buddy.db import queries
from finance_buddy.flows.base import BaseFlow, StepType, listen, or_, router, start
from finance_buddy.models import UserProfile
from finance_buddy.utils.logger import AgentLogger

HIGH_CONFIDENCE = "high_confidence"
MEDIUM_CONFIDENCE = "medium_confidence"
LOW_CONFIDENCE = "low_confidence"

PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
BASIC_SCORE_CAP = 60


def _amount(item: Dict[str, Any], key: str = "amount") -> float:
    return float(item.get(key) or 0)


def _parse_day(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


# ═══════════════════════════════════════════════════════════════════
# Helper formulas
# ═══════════════════════════════════════════════════════════════════

def diversification_score(investments: List[Dict[str, Any]]) -> int:
    return 85 if len(investments) > 5 else 60


def recommended_savings_rate(age: Optional[int]) -> int:
    age = age or 30
    if age < 30:
        return 20
    if age < 50:
        return 15
    return 10


def goal_progress(goal: Dict[str, Any]) -> float:
    target = _amount(goal, "target_amount")
    if target <= 0:
        return 0.0
    return _amount(goal, "current_amount") / target * 100


def expected_goal_progress(goal: Dict[str, Any], today: Optional[date] = None) -> float:
    """Share of the time between creation and target date already elapsed."""
    today = today or date.today()
    created = _parse_day(goal.get("created_at")) or today
    target = _parse_day(goal.get("target_date")) or today
    total = (target - created).days
    if total <= 0:
        return 0.0
    return (today - created).days / total * 100


def overall_score(budget: Optional[Dict], investment: Optional[Dict],
                  savings: Optional[Dict], goals: Optional[Dict]) -> int:
    """25 points for each healthy analysis, 15 otherwise, scaled to 100."""
    score = 0
    factors = 0
    if budget is not None:
        score += 25 if budget["savings_rate"] > 20 else 15
        factors += 1
    if investment is not None:
        score += 25 if investment["diversification_score"] > 70 else 15
        factors += 1
    if savings is not None:
        score += 25 if savings["emergency_fund_ratio"] >= 3 else 15
        factors += 1
    if goals is not None:
        score += 25 if goals["average_progress"] > 50 else 15
        factors += 1
    return round(score / factors * 4) if factors else 0


def _recommendation(rec_id: str, rec_type: str, priority: str, title: str,
                    description: str, rationale: str, action: str,
                    timeline: str, category: str) -> Dict[str, Any]:
    return {
        "id": rec_id,
        "type": rec_type,
        "priority": priority,
        "title": title,
        "description": description,
        "rationale": rationale,
        "action_items": [{"id": "1", "description": action, "completed": False}],
        "timeline": timeline,
        "category": category,
    }


# ═══════════════════════════════════════════════════════════════════
# Flow
# ═══════════════════════════════════════════════════════════════════

class FinancialAnalysisFlow(BaseFlow):
    """
    Analyse one user's finances. Inputs (state keys):
        user_profile      UserProfile (required)
        expenses          detailed expense rows
        monthly_expenses  twelve monthly expense totals
        savings           twelve monthly savings amounts
        investments       investment rows
        goals             goal rows
    """

    def create_initial_state(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        defaults = {
            "requested_analysis_type": "comprehensive",
            "user_profile": None,
            "expenses": [],
            "monthly_expenses": [],
            "savings": [],
            "investments": [],
            "goals": [],
            "raw_financial_data": None,
            "analysis_confidence": 0,
            "requires_user_input": False,
            "analysis": None,
            "recommendations": [],
            "processing_errors": [],
        }
        defaults.update(overrides)
        return super().create_initial_state(defaults)

    # ── helpers on state ─────────────────────────────────────────────

    @property
    def profile(self) -> Optional[UserProfile]:
        return self.state.get("user_profile")

    @property
    def raw(self) -> Dict[str, Any]:
        return self.state.get("raw_financial_data") or {}

    @property
    def results(self) -> Dict[str, Any]:
        return self.state["results"]

    # ── steps ────────────────────────────────────────────────────────

    @start()
    def initialize_analysis(self):
        """Initialize Analysis"""
        profile = self.profile
        if profile is None:
            self.state["requires_user_input"] = True
            raise ValueError("User profile is required for financial analysis")

        self.state["context"]["analysis_type"] = self.state["requested_analysis_type"]
        self.results["initialization_time"] = datetime.now().isoformat()
        print(f"[FinancialAnalysisFlow] Analysing {profile.name or profile.id}, "
              f"income {profile.monthly_income or 0}")
        return "Analysis initialized successfully"

    @listen(initialize_analysis, step_type=StepType.DATA_COLLECTION)
    def collect_financial_data(self):
        """Collect Financial Data"""
        profile = self.profile
        income = profile.monthly_income or 0
        expenses = list(self.state.get("expenses") or [])
        monthly = list(self.state.get("monthly_expenses") or [])
        savings = list(self.state.get("savings") or [])

        monthly_amounts = [_amount(m) for m in monthly]
        positive = [a for a in monthly_amounts if a > 0]
        monthly_expenses = sum(positive) / len(positive) if positive else sum(_amount(e) for e in expenses)
        total_saved = sum(_amount(s) for s in savings)

        self.state["raw_financial_data"] = {
            "income": income,
            "expenses": expenses,
            "monthly_expenses": monthly_expenses,
            "savings": total_saved,
            "investments": list(self.state.get("investments") or []),
            "goals": list(self.state.get("goals") or []),
        }
        self.results["basic_metrics"] = {
            "total_income": income,
            "total_expenses": monthly_expenses,
            "total_savings": total_saved,
            "savings_rate": ResponseGenerator.savings_rate(total_saved, income),
            "total_investments": sum(_amount(i, "value") for i in self.raw["investments"]),
        }
        return "Financial data collected and organized"

    @listen(collect_financial_data, step_type=StepType.AGENT_EXECUTION)
    def perform_budget_analysis(self):
        """Budget Analysis"""
        income = self.raw["income"]
        monthly_expenses = self.raw["monthly_expenses"]

        breakdown: Dict[str, float] = {}
        for expense in self.raw["expenses"]:
            category = expense.get("category") or "Outros"
            breakdown[category] = breakdown.get(category, 0) + _amount(expense)

        analysis = {
            "monthly_income": income,
            "monthly_expenses": monthly_expenses,
            "savings_rate": self.results["basic_metrics"]["savings_rate"],
            "expense_breakdown": breakdown,
            "budget_variance": (income - monthly_expenses) / income * 100 if income > 0 else 0,
        }
        self.results["budget_analysis"] = analysis
        return analysis

    @listen(collect_financial_data, step_type=StepType.AGENT_EXECUTION)
    def perform_investment_analysis(self):
        """Investment Analysis"""
        investments = self.raw["investments"]
        if not investments:
            analysis = {"total_value": 0, "allocation": {}, "expected_annual_return": 0,
                        "diversification_score": 0}
            self.results["investment_analysis"] = analysis
            return analysis

        total = sum(_amount(i, "value") for i in investments)
        allocation: Dict[str, float] = {}
        weighted_return = 0.0
        for inv in investments:
            kind = inv.get("type") or "Outros"
            share = _amount(inv, "value") / total * 100 if total > 0 else 0
            allocation[kind] = allocation.get(kind, 0) + share
            weighted_return += share / 100 * _amount(inv, "annual_return")

        analysis = {
            "total_value": total,
            "allocation": allocation,
            "expected_annual_return": weighted_return,
            "diversification_score": diversification_score(investments),
        }
        self.results["investment_analysis"] = analysis
        return analysis

    @listen(collect_financial_data, step_type=StepType.AGENT_EXECUTION)
    def perform_savings_analysis(self):
        """Savings Analysis"""
        profile = self.profile
        monthly_expenses = self.raw["monthly_expenses"]
        ratio = 0.0
        if monthly_expenses > 0 and profile.has_emergency_fund:
            ratio = float(profile.emergency_fund_months or 3)

        analysis = {
            "current_savings": self.raw["savings"],
            "savings_rate": self.results["basic_metrics"]["savings_rate"],
            "emergency_fund_ratio": ratio,
            "recommended_savings_rate": recommended_savings_rate(profile.age),
        }
        self.results["savings_analysis"] = analysis
        return analysis

    @listen(collect_financial_data, step_type=StepType.AGENT_EXECUTION)
    def perform_goal_analysis(self):
        """Goal Analysis"""
        goals = self.raw["goals"]
        if not goals:
            analysis = {"total_goals": 0, "on_track_goals": 0, "behind_schedule_goals": 0,
                        "average_progress": 0, "projected_completion_dates": {}}
            self.results["goal_analysis"] = analysis
            return analysis

        progress = [goal_progress(g) for g in goals]
        on_track = sum(1 for g, p in zip(goals, progress) if p >= expected_goal_progress(g))

        projections = {}
        for goal, p in zip(goals, progress):
            if 0 < p < 100:
                months_remaining = (100 - p) / p * 12
                projections[goal.get("name", "")] = (
                    date.today() + timedelta(days=round(months_remaining * 30))
                ).isoformat()

        analysis = {
            "total_goals": len(goals),
            "on_track_goals": on_track,
            "behind_schedule_goals": len(goals) - on_track,
            "average_progress": sum(progress) / len(goals),
            "projected_completion_dates": projections,
        }
        self.results["goal_analysis"] = analysis
        return analysis

    @router([perform_budget_analysis, perform_investment_analysis,
             perform_savings_analysis, perform_goal_analysis])
    def determine_analysis_confidence(self):
        """Determine Analysis Confidence"""
        confidence = 0
        factors = []
        if (self.profile.monthly_income or 0) > 0:
            confidence += 25
            factors.append("Income data available")
        if self.raw["expenses"] or self.raw["monthly_expenses"] > 0:
            confidence += 25
            factors.append("Expense data available")
        if self.raw["investments"]:
            confidence += 25
            factors.append("Investment data available")
        if self.raw["goals"]:
            confidence += 25
            factors.append("Goals data available")

        self.state["analysis_confidence"] = confidence
        self.results["confidence_factors"] = factors

        if confidence >= 75:
            return HIGH_CONFIDENCE
        if confidence >= 50:
            return MEDIUM_CONFIDENCE
        return LOW_CONFIDENCE

    @listen(HIGH_CONFIDENCE)
    def generate_comprehensive_analysis(self):
        """Generate Comprehensive Analysis"""
        budget = self.results.get("budget_analysis")
        investment = self.results.get("investment_analysis")
        savings = self.results.get("savings_analysis")
        goals = self.results.get("goal_analysis")

        analysis = {
            "level": "comprehensive",
            "summary": {
                "overall_score": overall_score(budget, investment, savings, goals),
                "strengths": self._strengths(),
                "areas_for_improvement": self._improvements(),
                "key_metrics": {
                    "savings_rate": savings["savings_rate"],
                    "total_investments": investment["total_value"],
                    "emergency_fund_months": savings["emergency_fund_ratio"],
                    "goals_on_track": goals["on_track_goals"],
                },
            },
            "budget_analysis": budget,
            "investment_analysis": investment,
            "savings_analysis": savings,
            "goal_analysis": goals,
        }
        self.state["analysis"] = analysis
        return analysis

    @listen(MEDIUM_CONFIDENCE)
    def generate_basic_analysis(self):
        """Generate Basic Analysis"""
        budget = self.results.get("budget_analysis")
        savings = self.results.get("savings_analysis")
        score = overall_score(budget, self.results.get("investment_analysis"),
                              savings, self.results.get("goal_analysis"))

        analysis = {
            "level": "basic",
            "summary": {
                "overall_score": min(score, BASIC_SCORE_CAP),
                "strengths": ["Basic financial tracking in place"],
                "areas_for_improvement": ["More complete financial data needed for detailed analysis"],
                "key_metrics": {
                    "monthly_income": self.raw["income"],
                    "monthly_expenses": self.raw["monthly_expenses"],
                },
            },
            "budget_analysis": budget,
            "savings_analysis": savings,
        }
        self.state["analysis"] = analysis
        return analysis

    @listen(LOW_CONFIDENCE, step_type=StepType.USER_INTERACTION)
    def request_additional_data(self):
        """Request Additional Data"""
        self.state["requires_user_input"] = True
        missing = []
        if (self.profile.monthly_income or 0) <= 0:
            missing.append("Monthly income information")
        if not self.raw["expenses"] and self.raw["monthly_expenses"] <= 0:
            missing.append("Monthly expense details")
        if not self.raw["investments"]:
            missing.append("Investment portfolio information")
        if not self.raw["goals"]:
            missing.append("Financial goals")
        self.results["missing_data"] = missing
        return f"Additional data needed: {', '.join(missing)}"

    @listen(or_(generate_comprehensive_analysis, generate_basic_analysis))
    def generate_recommendations(self):
        """Generate Recommendations"""
        recommendations = []
        if "budget_analysis" in self.results:
            recommendations.append(_recommendation(
                "budget-1", "budget_adjustment", "medium", "Optimize Monthly Budget",
                "Review and categorize all expenses for better tracking",
                "Better expense tracking leads to improved financial awareness",
                "Categorize all expenses", "2 weeks", "budgeting"))

        investment = self.results.get("investment_analysis")
        if investment is not None:
            priority = "high" if investment["diversification_score"] < 70 else "low"
            recommendations.append(_recommendation(
                "investment-1", "investment_rebalancing", priority, "Improve Portfolio Diversification",
                "Consider adding different asset classes to reduce risk",
                "Diversification helps reduce overall portfolio risk",
                "Research index funds", "1 month", "investing"))

        savings = self.results.get("savings_analysis")
        if savings is not None:
            priority = "critical" if savings["emergency_fund_ratio"] == 0 else "high"
            recommendations.append(_recommendation(
                "savings-1", "savings_increase", priority, "Increase Emergency Fund",
                "Build emergency fund to cover 3-6 months of expenses",
                "Emergency fund provides financial security",
                "Set up automatic transfers", "6 months", "savings"))

        if "goal_analysis" in self.results:
            recommendations.append(_recommendation(
                "goals-1", "goal_modification", "medium", "Review Financial Goals",
                "Update and prioritize financial goals based on current situation",
                "Regular goal review ensures they remain relevant and achievable",
                "List all current goals", "2 weeks", "planning"))

        # stable sort keeps insertion order inside a priority
        recommendations.sort(key=lambda r: PRIORITY_ORDER[r["priority"]], reverse=True)
        self.state["recommendations"] = recommendations
        return recommendations

    @listen(generate_recommendations, step_type=StepType.DATA_STORAGE)
    def finalize_analysis(self):
        """Finalize Analysis"""
        completed_at = datetime.now()
        summary = {
            "analysis_type": self.state["requested_analysis_type"],
            "confidence_level": self.state["analysis_confidence"],
            "recommendations_count": len(self.state["recommendations"]),
            "overall_score": self.state["analysis"]["summary"]["overall_score"],
            "completed_at": completed_at.isoformat(),
            "processing_duration_ms": int((completed_at - self.state["created_at"]).total_seconds() * 1000),
        }
        self.results["summary"] = summary
        return summary

    # ── summaries ────────────────────────────────────────────────────

    def _strengths(self) -> List[str]:
        strengths = []
        savings = self.results.get("savings_analysis") or {}
        investment = self.results.get("investment_analysis") or {}
        goals = self.results.get("goal_analysis") or {}

        if savings.get("savings_rate", 0) > 20:
            strengths.append("Strong savings rate")
        if investment.get("diversification_score", 0) > 70:
            strengths.append("Well-diversified investment portfolio")
        if goals.get("total_goals"):
            if goals["on_track_goals"] / goals["total_goals"] * 100 > 70:
                strengths.append("Good progress on financial goals")
        return strengths

    def _improvements(self) -> List[str]:
        improvements = []
        savings = self.results.get("savings_analysis") or {}
        investment = self.results.get("investment_analysis") or {}

        # zero or missing metrics are treated as untracked, not as weak
        rate = savings.get("savings_rate")
        if rate and rate < 10:
            improvements.append("Increase monthly savings rate")
        ratio = savings.get("emergency_fund_ratio")
        if ratio and ratio < 3:
            improvements.append("Build larger emergency fund")
        diversification = investment.get("diversification_score")
        if diversification and diversification < 50:
            improvements.append("Improve investment diversification")
        return improvements

    def report(self) -> Dict[str, Any]:
        """What callers get back after kickoff."""
        return {
            "status": self.status.value,
            "confidence": self.state["analysis_confidence"],
            "route": self.step_results.get("determine_analysis_confidence"),
            "confidence_factors": self.results.get("confidence_factors", []),
            "analysis": self.state["analysis"],
            "recommendations": self.state["recommendations"],
            "missing_data": self.results.get("missing_data", []),
            "requires_user_input": self.state["requires_user_input"],
            "summary": self.results.get("summary"),
            "steps": list(self.completed_steps),
        }


# ═══════════════════════════════════════════════════════════════════
# Loading inputs from storage
# ═══════════════════════════════════════════════════════════════════

def load_analysis_inputs(user_id: str, year: Optional[int] = None,
                         logger: Optional[AgentLogger] = None) -> Dict[str, Any]:
    """Read everything the flow needs for user_id and year."""
    year = year or date.today().year
    expenses_year = ExpensesTracker(logger=logger).load_combined(user_id, year)
    savings_year = SavingsTracker(logger=logger).load(user_id, year)

    detailed = []
    for month in expenses_year.data:
        detailed.extend(item.model_dump() for item in (month.items or []))

    return {
        "user_profile": queries.get_user_profile(user_id),
        "expenses": detailed,
        "monthly_expenses": [m.model_dump(exclude={"items"}) for m in expenses_year.data],
        "savings": [m.model_dump(exclude={"items"}) for m in savings_year.data],
        "investments": queries.get_investments(user_id),
        "goals": queries.get_financial_goals(user_id),
        "year": year,
    }


def run_financial_analysis(user_id: str, year: Optional[int] = None,
                           logger: Optional[AgentLogger] = None) -> Dict[str, Any]:
    """Load inputs, run the flow and return its report."""
    flow = FinancialAnalysisFlow(logger=logger)
    flow.kickoff(load_analysis_inputs(user_id, year, logger))
    return flow.report()
