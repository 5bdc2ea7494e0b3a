"""
Stages whose payload is an aggregation expression: $group, $project,
$addFields, $replaceRoot and $redact.

Every ``Expr`` operator is proxied onto ``Operator`` from the shared
``OPERATORS`` table; each proxy writes into the stage's own ``Expr`` and returns
the stage so the chain can continue.
"""

from typing import TYPE_CHECKING, Any, Dict, Iterable

from aggregation.convert import convert_expression
from aggregation.expr import OPERATORS, Expr
from aggregation.stage.base import Stage

if TYPE_CHECKING:
    from aggregation.builder import Builder


def _proxy_method(name: str):
    def method(self, *args):
        getattr(self.expr, name)(*args)
        return self

    method.__name__ = name
    method.__qualname__ = f"Operator.{name}"
    method.__doc__ = getattr(Expr, name).__doc__
    return method


class Operator(Stage):
    """Base for stages built through an embedded ``Expr``"""

    def __init__(self, builder: "Builder"):
        super().__init__(builder)
        self.expr: Expr = builder.expr()

    def field(self, field_name: str):
        self.expr.field(field_name)
        return self

    def expression(self, value: Any):
        self.expr.expression(value)
        return self

    def add_and(self, expression: Any, *expressions: Any):
        self.expr.add_and(expression, *expressions)
        return self

    def add_or(self, expression: Any, *expressions: Any):
        self.expr.add_or(expression, *expressions)
        return self

    def slice(self, array: Any, n: Any, position: Any = None):
        self.expr.slice(array, n, position)
        return self


for _name in OPERATORS:
    setattr(Operator, _name, _proxy_method(_name))


class Group(Operator):
    def render_expression(self) -> Dict[str, Any]:
        return {"$group": self.expr.get_expression()}


class Project(Operator):
    """$project: field inclusion/exclusion flags mixed with computed fields"""

    def include_fields(self, fields: Iterable[str]):
        for field_name in fields:
            self.field(field_name).expression(True)
        return self

    def exclude_fields(self, fields: Iterable[str]):
        for field_name in fields:
            self.field(field_name).expression(False)
        return self

    def exclude_id_field(self, exclude: bool = True):
        return self.field("_id").expression(not exclude)

    def render_expression(self) -> Dict[str, Any]:
        return {"$project": self.expr.get_expression()}


class AddFields(Project):
    def render_expression(self) -> Dict[str, Any]:
        return {"$addFields": self.expr.get_expression()}


class ReplaceRoot(Operator):
    """$replaceRoot: either a fixed expression or one built with field()/operators"""

    def __init__(self, builder: "Builder", expression: Any = None):
        super().__init__(builder)
        self._expression = expression

    def render_expression(self) -> Dict[str, Any]:
        if self._expression is not None:
            new_root = convert_expression(self._expression)
        else:
            new_root = self.expr.get_expression()
        return {"$replaceRoot": {"newRoot": new_root}}


class Redact(Operator):
    def render_expression(self) -> Dict[str, Any]:
        return {"$redact": self.expr.get_expression()}
