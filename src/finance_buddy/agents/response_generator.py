"""
Response Generator - turns an intent plus the user's context into a canned
Portuguese answer with figures computed from the data.

Pure: no I/O, no randomness. Each intent has one handler; intents without a
handler get the greeting.
"""

from collections import OrderedDict
from typing import Any, Callable, Dict, List

from finance_buddy.models import AIResponse, SuggestedAction, UserDataContext
from finance_buddy.utils.formatting import format_brl

DEFAULT_EMERGENCY_INCOME = 5000
EMERGENCY_FUND_MONTHS = 6
HIGH_INTEREST_RATE = 15

ALLOCATION_ADVICE = {
    "conservative": (
        "Para seu perfil conservador, recomendo 70% em renda fixa e 30% em renda variável.",
        [
            "Tesouro Direto IPCA+ para proteção contra inflação",
            "CDBs de bancos grandes com boa liquidez",
            "Fundos de renda fixa conservadores",
        ],
    ),
    "moderate": (
        "Para seu perfil moderado, recomendo 50% em renda fixa e 50% em renda variável.",
        [
            "Diversifique entre ações nacionais e internacionais",
            "ETFs de índices amplos como BOVA11",
            "Fundos imobiliários para diversificação",
        ],
    ),
    "aggressive": (
        "Para seu perfil agressivo, recomendo 30% em renda fixa e 70% em renda variável.",
        [
            "Ações de growth e small caps",
            "ETFs de mercados emergentes",
            "Criptomoedas (máximo 5% da carteira)",
        ],
    ),
}


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class ResponseGenerator:
    """Intent -> template dispatcher"""

    def __init__(self):
        self.handlers: Dict[str, Callable[[str, UserDataContext], AIResponse]] = {
            "expense_inquiry":   self._expenses,
            "savings_inquiry":   self._savings,
            "investment_advice": self._investments,
            "goal_management":   self._goals,
            "debt_analysis":     self._debts,
        }

    def generate(self, query: str, intent: str, context: UserDataContext) -> AIResponse:
        handler = self.handlers.get(intent, self._default)
        return handler(query, context)

    # ── context helpers ──────────────────────────────────────────────

    @staticmethod
    def monthly_income(context: UserDataContext) -> float:
        if context.profile and context.profile.monthly_income:
            return float(context.profile.monthly_income)
        return 0.0

    @staticmethod
    def goals(context: UserDataContext) -> List[Dict[str, Any]]:
        """Fetched goal rows, else the goals embedded in the profile."""
        if context.goals:
            return context.goals
        if context.profile:
            return [g.model_dump() for g in context.profile.financial_goals]
        return []

    @staticmethod
    def debts(context: UserDataContext) -> List[Dict[str, Any]]:
        if context.debts:
            return context.debts
        if context.profile:
            return [d.model_dump() for d in context.profile.debt_details]
        return []

    # ── handlers ─────────────────────────────────────────────────────

    def _expenses(self, query: str, context: UserDataContext) -> AIResponse:
        total = sum(_num(e.get("amount")) for e in context.recent_expenses)
        by_category: Dict[str, float] = OrderedDict()
        for exp in context.recent_expenses:
            category = exp.get("category") or "Outros"
            by_category[category] = by_category.get(category, 0) + _num(exp.get("amount"))

        categories = ", ".join(f"{cat}: {format_brl(val)}" for cat, val in by_category.items())
        return AIResponse(
            message=(
                f"Nos últimos gastos registrados, você gastou um total de {format_brl(total)}. "
                f"As principais categorias foram: {categories}."
            ),
            recommendations=[
                "Considere estabelecer limites mensais para categorias de maior gasto",
                "Analise se há gastos desnecessários que podem ser reduzidos",
                "Use a funcionalidade de orçamento para melhor controle",
            ],
        )

    @staticmethod
    def savings_rate(total_saved: float, monthly_income: float) -> float:
        """Yearly savings as a percentage of yearly income. Not clamped."""
        if monthly_income > 0:
            return total_saved / (monthly_income * 12) * 100
        return 0.0

    def _savings(self, query: str, context: UserDataContext) -> AIResponse:
        current = context.recent_savings[0].get("data") if context.recent_savings else None
        months = current if isinstance(current, list) else []
        total_saved = sum(_num(m.get("amount")) for m in months if isinstance(m, dict))
        rate = self.savings_rate(total_saved, self.monthly_income(context))

        if rate >= 20:
            verdict = "Excelente!"
        elif rate >= 10:
            verdict = "Boa!"
        else:
            verdict = "Pode melhorar!"

        return AIResponse(
            message=(
                f"Sua taxa de Economias atual é de {rate:.1f}%. {verdict} "
                f"Total economizado: {format_brl(total_saved)}."
            ),
            recommendations=[
                "Tente aumentar sua taxa de Economias para 20% da renda"
                if rate < 20 else "Continue mantendo essa excelente taxa de Economias",
                "Configure transferências automáticas para suas metas",
                "Considere investimentos para fazer seu dinheiro crescer",
            ],
        )

    def _investments(self, query: str, context: UserDataContext) -> AIResponse:
        total = sum(_num(inv.get("value")) for inv in context.investments)
        risk = (context.profile.risk_profile if context.profile else None) or "moderate"
        advice, recommendations = ALLOCATION_ADVICE.get(risk, ALLOCATION_ADVICE["aggressive"])

        return AIResponse(
            message=f"{advice} Atualmente você tem {format_brl(total)} investidos.",
            recommendations=list(recommendations),
        )

    def _goals(self, query: str, context: UserDataContext) -> AIResponse:
        goals = self.goals(context)
        if not goals:
            income = self.monthly_income(context) or DEFAULT_EMERGENCY_INCOME
            return AIResponse(
                message="Você ainda não tem metas financeiras definidas. Que tal criar algumas?",
                recommendations=[
                    "Defina uma meta de emergência (6 meses de gastos)",
                    "Estabeleça objetivos de curto, médio e longo prazo",
                    "Use a regra 50/30/20 para organizar seu dinheiro",
                ],
                actions=[SuggestedAction(
                    type="create",
                    table="financial_goals",
                    data={
                        "name": "Reserva de Emergência",
                        "target_amount": income * EMERGENCY_FUND_MONTHS,
                        "current_amount": 0,
                        "priority": "high",
                    },
                )],
            )

        completed = 0
        ratios = []
        for goal in goals:
            current = _num(goal.get("current_amount"))
            target = _num(goal.get("target_amount"))
            if current >= target:
                completed += 1
            # zero target counts as no progress
            ratios.append(current / target if target > 0 else 0.0)
        average = sum(ratios) / len(goals) * 100

        return AIResponse(
            message=(
                f"Você tem {len(goals)} metas, {completed} concluídas. "
                f"Progresso médio: {average:.1f}%."
            ),
            recommendations=[
                "Foque nas metas de alta prioridade primeiro",
                "Revise suas metas trimestralmente",
                "Comemore as conquistas para manter a motivação",
            ],
        )

    def _debts(self, query: str, context: UserDataContext) -> AIResponse:
        debts = self.debts(context)
        if not debts:
            return AIResponse(
                message="Parabéns! Você não possui dívidas registradas. Mantenha-se assim!",
                recommendations=[
                    "Use cartão de crédito com responsabilidade",
                    "Mantenha uma reserva para emergências",
                    "Evite financiamentos desnecessários",
                ],
            )

        total = sum(_num(d.get("amount")) for d in debts)
        high_interest = [d for d in debts if _num(d.get("interest_rate")) > HIGH_INTEREST_RATE]
        note = "Atenção para juros altos!" if high_interest else "Juros sob controle."

        return AIResponse(
            message=f"Você tem {format_brl(total)} em dívidas. {note}",
            recommendations=[
                "Quite primeiro as dívidas com maior taxa de juros",
                "Considere renegociar condições",
                "Evite novas dívidas enquanto não quitar as atuais",
            ],
        )

    def _default(self, query: str, context: UserDataContext) -> AIResponse:
        return AIResponse(
            message=(
                "Olá! Sou seu assistente financeiro pessoal. Posso ajudar com análises de "
                "gastos, investimentos, metas e muito mais. Como posso ajudar hoje?"
            ),
            recommendations=[
                'Pergunte sobre seus gastos: "Quanto gastei este mês?"',
                "Solicite conselhos de investimento baseados no seu perfil",
                "Analise suas metas financeiras",
                "Gerencie suas dívidas e planejamento",
            ],
        )
