"""
Finance Buddy - rule-based personal finance assistant.
"""

__version__ = "0.1.0"
