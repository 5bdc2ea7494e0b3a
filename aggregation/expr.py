"""
Aggregation expression builder.

An ``Expr`` accumulates a document of field names to operator expressions.
``field()`` moves a cursor; every operator call afterwards writes under that
field, or at the top level while no field is selected.

Operators are described once in ``OPERATORS`` (method name -> tag and argument
shape) and the public methods are generated from that table, so the stage
classes that proxy operators can be generated from the very same table.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from aggregation.convert import ConvertibleExpression, convert_expression
from aggregation.errors import LogicError


# -----------------------------------------
# Operator table
# -----------------------------------------
# SINGLE      one argument, stored as-is                 {"$year": "$date"}
# POSITIONAL  fixed arguments, stored as a list          {"$cmp": [a, b]}
# VARIADIC    two or more arguments, stored as a list    {"$add": [a, b, c]}
# ACCUMULATOR one argument as-is, several as a list      {"$sum": 1} / {"$sum": [a, b]}
# NAMED       fixed arguments, stored as a document      {"$cond": {"if": .., "then": .., "else": ..}}

SINGLE = "single"
POSITIONAL = "positional"
VARIADIC = "variadic"
ACCUMULATOR = "accumulator"
NAMED = "named"


class OperatorSpec(NamedTuple):
    tag: str
    kind: str
    params: Tuple[str, ...] = ("expression",)

OPERATORS: Dict[str, OperatorSpec] = {
    "abs": OperatorSpec("$abs", SINGLE, ("number",)),
    "add": OperatorSpec("$add", VARIADIC),
    "add_to_set": OperatorSpec("$addToSet", SINGLE),
    "all_elements_true": OperatorSpec("$allElementsTrue", SINGLE),
    "any_element_true": OperatorSpec("$anyElementTrue", SINGLE),
    "array_elem_at": OperatorSpec("$arrayElemAt", POSITIONAL, ("array", "index")),
    "avg": OperatorSpec("$avg", ACCUMULATOR),
    "ceil": OperatorSpec("$ceil", SINGLE, ("number",)),
    "cmp": OperatorSpec("$cmp", POSITIONAL, ("expression1", "expression2")),
    "concat": OperatorSpec("$concat", VARIADIC),
    "concat_arrays": OperatorSpec("$concatArrays", VARIADIC),
    "cond": OperatorSpec("$cond", NAMED, ("if", "then", "else")),
    "date_to_string": OperatorSpec("$dateToString", NAMED, ("format", "date")),
    "day_of_month": OperatorSpec("$dayOfMonth", SINGLE),
    "day_of_week": OperatorSpec("$dayOfWeek", SINGLE),
    "day_of_year": OperatorSpec("$dayOfYear", SINGLE),
    "divide": OperatorSpec("$divide", POSITIONAL, ("expression1", "expression2")),
    "eq": OperatorSpec("$eq", POSITIONAL, ("expression1", "expression2")),
    "exp": OperatorSpec("$exp", SINGLE, ("exponent",)),
    "filter": OperatorSpec("$filter", NAMED, ("input", "as", "cond")),
    "first": OperatorSpec("$first", SINGLE),
    "floor": OperatorSpec("$floor", SINGLE, ("number",)),
    "gt": OperatorSpec("$gt", POSITIONAL, ("expression1", "expression2")),
    "gte": OperatorSpec("$gte", POSITIONAL, ("expression1", "expression2")),
    "hour": OperatorSpec("$hour", SINGLE),
    "if_null": OperatorSpec("$ifNull", POSITIONAL, ("expression", "replacement")),
    "is_array": OperatorSpec("$isArray", SINGLE),
    "last": OperatorSpec("$last", SINGLE),
    "let": OperatorSpec("$let", NAMED, ("vars", "in")),
    "literal": OperatorSpec("$literal", SINGLE, ("value",)),
    "ln": OperatorSpec("$ln", SINGLE, ("number",)),
    "log": OperatorSpec("$log", POSITIONAL, ("number", "base")),
    "log10": OperatorSpec("$log10", SINGLE, ("number",)),
    "lt": OperatorSpec("$lt", POSITIONAL, ("expression1", "expression2")),
    "lte": OperatorSpec("$lte", POSITIONAL, ("expression1", "expression2")),
    "map": OperatorSpec("$map", NAMED, ("input", "as", "in")),
    "max": OperatorSpec("$max", ACCUMULATOR),
    "meta": OperatorSpec("$meta", SINGLE, ("keyword",)),
    "millisecond": OperatorSpec("$millisecond", SINGLE),
    "min": OperatorSpec("$min", ACCUMULATOR),
    "minute": OperatorSpec("$minute", SINGLE),
    "mod": OperatorSpec("$mod", POSITIONAL, ("expression1", "expression2")),
    "month": OperatorSpec("$month", SINGLE),
    "multiply": OperatorSpec("$multiply", VARIADIC),
    "ne": OperatorSpec("$ne", POSITIONAL, ("expression1", "expression2")),
    "not_": OperatorSpec("$not", SINGLE),
    "pow": OperatorSpec("$pow", POSITIONAL, ("number", "exponent")),
    "push": OperatorSpec("$push", SINGLE),
    "second": OperatorSpec("$second", SINGLE),
    "set_difference": OperatorSpec("$setDifference", POSITIONAL, ("expression1", "expression2")),
    "set_equals": OperatorSpec("$setEquals", VARIADIC),
    "set_intersection": OperatorSpec("$setIntersection", VARIADIC),
    "set_is_subset": OperatorSpec("$setIsSubset", POSITIONAL, ("expression1", "expression2")),
    "set_union": OperatorSpec("$setUnion", VARIADIC),
    "size": OperatorSpec("$size", SINGLE),
    "sqrt": OperatorSpec("$sqrt", SINGLE, ("number",)),
    "std_dev_pop": OperatorSpec("$stdDevPop", ACCUMULATOR),
    "std_dev_samp": OperatorSpec("$stdDevSamp", ACCUMULATOR),
    "strcasecmp": OperatorSpec("$strcasecmp", POSITIONAL, ("expression1", "expression2")),
    "substr": OperatorSpec("$substr", POSITIONAL, ("string", "start", "length")),
    "subtract": OperatorSpec("$subtract", POSITIONAL, ("expression1", "expression2")),
    "sum": OperatorSpec("$sum", ACCUMULATOR),
    "to_lower": OperatorSpec("$toLower", SINGLE),
    "to_upper": OperatorSpec("$toUpper", SINGLE),
    "trunc": OperatorSpec("$trunc", SINGLE, ("number",)),
    "week": OperatorSpec("$week", SINGLE),
    "year": OperatorSpec("$year", SINGLE),
}


def pack_arguments(name: str, spec: OperatorSpec, args: Sequence[Any]) -> Any:
    """Shape positional operator arguments according to the operator's kind"""
    count = len(args)
    if spec.kind == VARIADIC:
        if count < 2:
            raise TypeError(f"{name}() takes at least 2 arguments ({count} given)")
        return list(args)
    if spec.kind == ACCUMULATOR:
        if count < 1:
            raise TypeError(f"{name}() takes at least 1 argument (0 given)")
        return args[0] if count == 1 else list(args)

    expected = len(spec.params)
    if count != expected:
        raise TypeError(f"{name}() takes {expected} argument{'s' if expected != 1 else ''} ({count} given)")
    if spec.kind == SINGLE:
        return args[0]
    if spec.kind == NAMED:
        return dict(zip(spec.params, args))
    return list(args)


def _operator_method(name: str, spec: OperatorSpec):
    def method(self, *args):
        return self.operator(spec.tag, pack_arguments(name, spec, args))

    method.__name__ = name
    method.__qualname__ = f"Expr.{name}"
    method.__doc__ = f"Write a ``{spec.tag}`` expression ({', '.join(spec.params)})."
    return method


class Expr(ConvertibleExpression):
    """Fluent builder for aggregation expressions"""

    def __init__(self):
        self._expr: Dict[str, Any] = {}
        self._current_field: Optional[str] = None

    def field(self, field_name: str) -> "Expr":
        """Select the field subsequent operator calls attach to"""
        self._current_field = str(field_name)
        return self

    def expression(self, value: Any) -> "Expr":
        """Set the current field's value directly.

        Raises:
            LogicError: if no field was selected with ``field()``.
        """
        self._requires_current_field("expression")
        self._expr[self._current_field] = convert_expression(value)
        return self

    def expr(self) -> "Expr":
        """Return a new, independent expression builder"""
        return type(self)()

    def get_expression(self) -> Dict[str, Any]:
        return self._expr

    def get_current_field(self) -> Optional[str]:
        return self._current_field

    def operator(self, tag: str, expression: Any) -> "Expr":
        """Write ``tag`` with a normalized value at the current scope"""
        value = convert_expression(expression)
        if self._current_field:
            self._field_scope()[tag] = value
        else:
            self._expr[tag] = value
        return self

    def add_and(self, expression: Any, *expressions: Any) -> "Expr":
        """Append expressions to ``$and`` at the current scope"""
        return self._append("$and", (expression,) + expressions)

    def add_or(self, expression: Any, *expressions: Any) -> "Expr":
        """Append expressions to ``$or`` at the current scope"""
        return self._append("$or", (expression,) + expressions)

    def slice(self, array: Any, n: Any, position: Any = None) -> "Expr":
        """Write ``$slice``; with a position the shape is [array, position, n]"""
        if position is None:
            return self.operator("$slice", [array, n])
        return self.operator("$slice", [array, position, n])

    def _append(self, tag: str, expressions: Tuple[Any, ...]) -> "Expr":
        scope = self._field_scope() if self._current_field else self._expr
        items: List[Any] = scope.setdefault(tag, [])
        items.extend(convert_expression(expression) for expression in expressions)
        return self

    def _field_scope(self) -> Dict[str, Any]:
        scope = self._expr.get(self._current_field)
        if not isinstance(scope, dict):
            scope = self._expr[self._current_field] = {}
        return scope

    def _requires_current_field(self, method: Optional[str] = None) -> None:
        if not self._current_field:
            raise LogicError(f"{method or 'This method'}() requires you set a current field using field().")


for _name, _spec in OPERATORS.items():
    setattr(Expr, _name, _operator_method(_name, _spec))
