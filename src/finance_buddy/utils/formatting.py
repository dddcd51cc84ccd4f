"""
pt-BR number and currency formatting
"""


def format_brl(value: float) -> str:
    """1234.5 -> 'R$ 1.234,50'"""
    sign = "-" if value < 0 else ""
    # Format the en-US way, then swap the separators
    text = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"
