"""
errors.py – exceptions raised to callers.

Everything else (stale cancels, failing timer callbacks, an unmeasurable
container) is handled where it happens and never raised.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid timer bounds or session settings; raised at call time."""


class ApiError(RuntimeError):
    """A request to the LMS API failed."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status  = status

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"
