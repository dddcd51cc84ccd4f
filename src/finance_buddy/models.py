"""
Finance Buddy data model - pydantic records mirrored from the storage tables
plus the assistant's message/response schemas.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


RiskProfile = Literal["conservative", "moderate", "aggressive"]
Priority = Literal["low", "medium", "high"]

IntentName = Literal[
    "expense_inquiry",
    "savings_inquiry",
    "investment_advice",
    "goal_management",
    "debt_analysis",
    "budget_planning",
    "recommendation",
    "crud_operations",
    "general_inquiry",
]


def new_id() -> str:
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════════
# Table records
# ═══════════════════════════════════════════════════════════════════

class ExpenseItem(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    date: str = Field(description="ISO date, YYYY-MM-DD")
    amount: float = Field(ge=0)
    category: Optional[str] = "Outros"
    description: Optional[str] = ""


class MonthlyAmount(BaseModel):
    month: int = Field(ge=1, le=12)
    amount: float = Field(default=0, ge=0)
    items: Optional[List[ExpenseItem]] = None


class Investment(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    name: str
    type: Optional[str] = "Outros"
    value: float = Field(default=0, ge=0)
    annual_return: float = 0


class FinancialGoal(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    name: str
    target_amount: float = Field(ge=0)
    current_amount: float = Field(default=0, ge=0)
    target_date: Optional[str] = None
    priority: Priority = "medium"

    @property
    def progress(self) -> float:
        """Progress towards the target, in percent."""
        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount * 100


class DebtDetail(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    type: Optional[str] = "Outros"
    name: str
    amount: float = Field(ge=0)
    interest_rate: float = 0


class MarketData(BaseModel):
    id: str = Field(default_factory=new_id)
    symbol: str
    name: Optional[str] = ""
    price: Optional[float] = 0
    change_amount: Optional[float] = 0
    change_percent: Optional[float] = 0
    type: Optional[str] = "stock"
    last_updated: Optional[str] = None


class UserProfile(BaseModel):
    """profiles joined with financial_profiles."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    age: Optional[int] = None
    monthly_income: Optional[float] = None
    risk_profile: Optional[RiskProfile] = None
    has_emergency_fund: Optional[bool] = None
    emergency_fund_months: Optional[int] = None
    has_debts: Optional[bool] = None
    financial_goals: List[FinancialGoal] = Field(default_factory=list)
    debt_details: List[DebtDetail] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════
# Assistant schemas
# ═══════════════════════════════════════════════════════════════════

class IntentResult(BaseModel):
    intent: IntentName = Field(description="Coarse category of the user's message")
    confidence: float = Field(ge=0, le=1, description="min(matches / 3, 1)")


class SuggestedAction(BaseModel):
    type: Literal["create", "update", "delete"]
    table: str
    data: Dict[str, Any] = Field(default_factory=dict)


class AIResponse(BaseModel):
    message: str
    recommendations: List[str] = Field(default_factory=list)
    actions: List[SuggestedAction] = Field(default_factory=list)


class MessageMetadata(BaseModel):
    intent: Optional[str] = None
    confidence: Optional[float] = None
    data_accessed: List[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    metadata: Optional[MessageMetadata] = None
    recommendations: List[str] = Field(default_factory=list)


class UserDataContext(BaseModel):
    """Everything the response generator may read for one turn."""
    # False when the reads failed or timed out and the lists are placeholders
    complete: bool = True
    profile: Optional[UserProfile] = None
    recent_expenses: List[Dict[str, Any]] = Field(default_factory=list)
    recent_savings: List[Dict[str, Any]] = Field(default_factory=list)
    investments: List[Dict[str, Any]] = Field(default_factory=list)
    goals: List[Dict[str, Any]] = Field(default_factory=list)
    debts: List[Dict[str, Any]] = Field(default_factory=list)
    market_data: List[Dict[str, Any]] = Field(default_factory=list)
