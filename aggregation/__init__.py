"""Fluent builder for MongoDB aggregation pipelines."""

from aggregation.builder import Builder
from aggregation.errors import (
    AggregationError,
    ConfigError,
    InvalidExpressionError,
    LogicError,
    ResultError,
    StageIndexError,
)
from aggregation.expr import OPERATORS, Expr
from aggregation.query_expr import QueryExpr

__all__ = [
    "Builder",
    "Expr",
    "QueryExpr",
    "OPERATORS",
    "AggregationError",
    "ConfigError",
    "InvalidExpressionError",
    "LogicError",
    "ResultError",
    "StageIndexError",
]
