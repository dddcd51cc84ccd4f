"""
Exceptions shared across Finance Buddy layers
"""

from typing import Optional


class DataAccessError(Exception):
    """A storage backend could not complete a read or write."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table
