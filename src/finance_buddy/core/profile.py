"""
Profile completion checks
"""

from typing import List, Optional

from finance_buddy.models import UserProfile

REQUIRED_FIELDS = {
    "name": "Nome",
    "age": "Idade",
    "monthly_income": "Renda mensal",
    "risk_profile": "Perfil de risco",
    "has_emergency_fund": "Reserva de emergência",
}


def missing_profile_fields(profile: Optional[UserProfile]) -> List[str]:
    """Labels of the required fields that are still empty."""
    if profile is None:
        return list(REQUIRED_FIELDS.values())

    checks = {
        "name": bool(profile.name),
        "age": bool(profile.age) and profile.age > 0,
        "monthly_income": bool(profile.monthly_income) and profile.monthly_income > 0,
        "risk_profile": profile.risk_profile is not None,
        "has_emergency_fund": profile.has_emergency_fund is not None,
    }
    return [REQUIRED_FIELDS[field] for field, ok in checks.items() if not ok]


def is_profile_complete(profile: Optional[UserProfile]) -> bool:
    return not missing_profile_fields(profile)
