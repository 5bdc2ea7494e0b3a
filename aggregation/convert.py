"""Normalization shared by the aggregation and filter expression dialects.

Values written into an expression tree are converted eagerly: nested builder
objects are rendered, containers are rebuilt element by element and scalars
pass through. Rendered output therefore never holds a live builder reference.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping


class ConvertibleExpression(ABC):
    """Anything that renders itself into a plain expression structure."""

    @abstractmethod
    def get_expression(self) -> Any:
        """Return the plain, serializable form of this expression"""


def convert_expression(expression: Any) -> Any:
    """Recursively render builder objects found in ``expression``."""
    if isinstance(expression, ConvertibleExpression):
        return convert_expression(expression.get_expression())
    if isinstance(expression, Mapping):
        return {key: convert_expression(value) for key, value in expression.items()}
    if isinstance(expression, (list, tuple)):
        return [convert_expression(value) for value in expression]
    return expression
