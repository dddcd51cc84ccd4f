"""
Intent Classifier - keyword scoring of a chat message into a coarse category.

Each category owns a keyword list. A category scores one point per keyword
found as a substring of the lower-cased message; the highest score wins and
ties go to the category declared first. Nothing matched means
general_inquiry.
"""

from typing import Dict, List, Tuple

from finance_buddy.models import IntentResult

DEFAULT_INTENT = "general_inquiry"

# Declaration order is the tie-break order
INTENT_PATTERNS: Dict[str, List[str]] = {
    "expense_inquiry":   ["gastos", "expenses", "quanto gastei", "spending", "spent"],
    "savings_inquiry":   ["economias", "savings", "quanto economizei", "saved", "economia"],
    "investment_advice": ["investimento", "investment", "aplicar", "invest", "rentabilidade"],
    "goal_management":   ["meta", "goal", "objetivo", "target"],
    "debt_analysis":     ["dívida", "debt", "pagamento", "payment", "empréstimo"],
    "budget_planning":   ["orçamento", "budget", "planejamento", "planning"],
    "recommendation":    ["recomenda", "suggest", "advice", "dica", "sugestão"],
    "crud_operations":   ["adicionar", "add", "criar", "create", "atualizar", "update",
                          "deletar", "delete", "remover", "remove"],
}


class IntentClassifier:
    """Keyword-matching classifier"""

    def __init__(self, patterns: Dict[str, List[str]] = None):
        self.patterns = patterns if patterns is not None else INTENT_PATTERNS

    def scores(self, query: str) -> List[Tuple[str, int]]:
        query_lower = query.lower()
        return [
            (intent, sum(1 for keyword in keywords if keyword in query_lower))
            for intent, keywords in self.patterns.items()
        ]

    def classify(self, query: str) -> IntentResult:
        best_match = DEFAULT_INTENT
        max_score = 0

        for intent, score in self.scores(query):
            if score > max_score:
                max_score = score
                best_match = intent

        return IntentResult(intent=best_match, confidence=min(max_score / 3, 1))
