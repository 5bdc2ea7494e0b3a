"""Exception hierarchy for pipeline construction and execution."""

from typing import Any, Dict, Optional


class AggregationError(Exception):
    """Base exception for all aggregation builder failures."""


class ConfigError(AggregationError):
    """Raised for invalid environment configuration."""


class LogicError(AggregationError):
    """Raised when a builder method is called in a state that does not allow it."""


class StageIndexError(AggregationError, IndexError):
    """Raised when a stage is requested at a position the pipeline does not have."""


class InvalidExpressionError(AggregationError, ValueError):
    """Raised for malformed expression arguments."""


class ResultError(AggregationError):
    """Raised when the database reports a failed aggregate command."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document: Dict[str, Any] = dict(document or {})
        self.message: str = self.document.get("errmsg") or "Unknown error executing command"
        self.code: int = self.document.get("code") or 0
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.message} (code {self.code})"
