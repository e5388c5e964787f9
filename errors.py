"""
Error types for Mileage Tracker
"""
from __future__ import annotations
from typing import Optional


class ValidationError(ValueError):
    """User input incomplete or malformed; the action is rejected"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PersistenceError(RuntimeError):
    """Saving or loading through the storage backend failed"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ParseWarning(UserWarning):
    """Recoverable problem with one row of an imported file"""

    def __init__(self, reason: str, line: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.line = line

    def __str__(self) -> str:
        if self.line is None:
            return self.reason
        return f"line {self.line}: {self.reason}"
