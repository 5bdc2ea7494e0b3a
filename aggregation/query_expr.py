"""
Filter expression builder used by $match, $geoNear queries and graphLookup's
restrictSearchWithMatch.

The vocabulary is the query-filter one (comparison, set membership, geo and
text predicates, logical combinators), not the aggregation operator one.
Logical combinators are always written at the top level of the filter.
"""

from typing import Any, Dict, List, Optional

from aggregation.constants import BSON_TYPES
from aggregation.convert import ConvertibleExpression, convert_expression
from aggregation.errors import InvalidExpressionError, LogicError


def _geometry(geometry: Any) -> Any:
    """Accept GeoJSON mappings or objects implementing ``__geo_interface__``"""
    if hasattr(geometry, "__geo_interface__"):
        return dict(geometry.__geo_interface__)
    return convert_expression(geometry)


class QueryExpr(ConvertibleExpression):
    """Fluent builder for query filters"""

    def __init__(self):
        self._query: Any = {}
        self._current_field: Optional[str] = None

    # ---- cursor and state

    def field(self, field: str) -> "QueryExpr":
        self._current_field = str(field)
        return self

    def get_current_field(self) -> Optional[str]:
        return self._current_field

    def get_query(self) -> Any:
        return self._query

    def set_query(self, query: Dict[str, Any]) -> None:
        self._query = query

    def get_expression(self) -> Any:
        return self._query

    def expr(self) -> "QueryExpr":
        return type(self)()

    def operator(self, operator: str, value: Any) -> "QueryExpr":
        """Write ``operator`` under the current field, or at the top level"""
        value = convert_expression(value)
        if self._current_field:
            scope = self._query.get(self._current_field)
            if not isinstance(scope, dict):
                scope = self._query[self._current_field] = {}
            scope[operator] = value
        else:
            self._query[operator] = value
        return self

    # ---- logical combinators

    def add_and(self, expression: Any) -> "QueryExpr":
        return self._append("$and", expression)

    def add_or(self, expression: Any) -> "QueryExpr":
        return self._append("$or", expression)

    def add_nor(self, expression: Any) -> "QueryExpr":
        return self._append("$nor", expression)

    def not_(self, expression: Any) -> "QueryExpr":
        return self.operator("$not", expression)

    def _append(self, operator: str, expression: Any) -> "QueryExpr":
        items: List[Any] = self._query.setdefault(operator, [])
        items.append(convert_expression(expression))
        return self

    # ---- comparison

    def equals(self, value: Any) -> "QueryExpr":
        """Match the current field against ``value``; without a field, replace the whole filter"""
        if self._current_field:
            self._query[self._current_field] = convert_expression(value)
        else:
            self._query = convert_expression(value)
        return self

    def not_equal(self, value: Any) -> "QueryExpr":
        return self.operator("$ne", value)

    def gt(self, value: Any) -> "QueryExpr":
        return self.operator("$gt", value)

    def gte(self, value: Any) -> "QueryExpr":
        return self.operator("$gte", value)

    def lt(self, value: Any) -> "QueryExpr":
        return self.operator("$lt", value)

    def lte(self, value: Any) -> "QueryExpr":
        return self.operator("$lte", value)

    def range(self, start: Any, end: Any) -> "QueryExpr":
        """Half-open range: ``$gte`` start and ``$lt`` end"""
        return self.operator("$gte", start).operator("$lt", end)

    def in_(self, values: Any) -> "QueryExpr":
        return self.operator("$in", list(values))

    def not_in(self, values: Any) -> "QueryExpr":
        return self.operator("$nin", list(values))

    def all(self, values: Any) -> "QueryExpr":
        return self.operator("$all", list(values))

    def size(self, size: int) -> "QueryExpr":
        return self.operator("$size", int(size))

    def exists(self, flag: bool) -> "QueryExpr":
        return self.operator("$exists", bool(flag))

    def type(self, type_: Any) -> "QueryExpr":
        """Match a BSON type, by numeric code or alias name (``"objectid"``)"""
        if isinstance(type_, str) and type_ in BSON_TYPES:
            type_ = BSON_TYPES[type_]
        return self.operator("$type", type_)

    def mod(self, divisor: Any, remainder: Any = 0) -> "QueryExpr":
        return self.operator("$mod", [divisor, remainder])

    def elem_match(self, expression: Any) -> "QueryExpr":
        return self.operator("$elemMatch", expression)

    def where(self, javascript: str) -> "QueryExpr":
        return self.field("$where").equals(javascript)

    # ---- text search

    def text(self, search: str) -> "QueryExpr":
        self._query["$text"] = {"$search": search}
        return self

    def language(self, language: str) -> "QueryExpr":
        return self._text_option("$language", language)

    def case_sensitive(self, flag: bool = True) -> "QueryExpr":
        return self._text_option("$caseSensitive", bool(flag))

    def diacritic_sensitive(self, flag: bool = True) -> "QueryExpr":
        return self._text_option("$diacriticSensitive", bool(flag))

    def _text_option(self, option: str, value: Any) -> "QueryExpr":
        if "$text" not in self._query:
            raise LogicError("This method requires a $text operator (call text() first)")
        self._query["$text"][option] = value
        return self

    # ---- geospatial

    def geo_intersects(self, geometry: Any) -> "QueryExpr":
        return self.operator("$geoIntersects", {"$geometry": _geometry(geometry)})

    def geo_within(self, geometry: Any) -> "QueryExpr":
        return self.operator("$geoWithin", {"$geometry": _geometry(geometry)})

    def geo_within_box(self, x1: float, y1: float, x2: float, y2: float) -> "QueryExpr":
        return self.operator("$geoWithin", {"$box": [[x1, y1], [x2, y2]]})

    def geo_within_center(self, x: float, y: float, radius: float) -> "QueryExpr":
        return self.operator("$geoWithin", {"$center": [[x, y], radius]})

    def geo_within_center_sphere(self, x: float, y: float, radius: float) -> "QueryExpr":
        return self.operator("$geoWithin", {"$centerSphere": [[x, y], radius]})

    def geo_within_polygon(self, *points: Any) -> "QueryExpr":
        if len(points) < 3:
            raise InvalidExpressionError("Polygon must be defined by three or more points.")
        return self.operator("$geoWithin", {"$polygon": [list(point) for point in points]})

    def near(self, x: Any, y: Any = None) -> "QueryExpr":
        return self._near("$near", x, y)

    def near_sphere(self, x: Any, y: Any = None) -> "QueryExpr":
        return self._near("$nearSphere", x, y)

    def _near(self, operator: str, x: Any, y: Any) -> "QueryExpr":
        if y is None:
            return self.operator(operator, {"$geometry": _geometry(x)})
        return self.operator(operator, [x, y])

    def max_distance(self, distance: float) -> "QueryExpr":
        return self._distance("$maxDistance", distance)

    def min_distance(self, distance: float) -> "QueryExpr":
        return self._distance("$minDistance", distance)

    def _distance(self, option: str, distance: float) -> "QueryExpr":
        """GeoJSON $near keeps distances inside the operator, legacy pairs beside it"""
        query = self._query.get(self._current_field) if self._current_field else self._query
        if not isinstance(query, dict) or ("$near" not in query and "$nearSphere" not in query):
            raise LogicError("This method requires a $near or $nearSphere operator (call near() or nearSphere() first)")

        for near in ("$near", "$nearSphere"):
            if isinstance(query.get(near), dict) and "$geometry" in query[near]:
                query[near][option] = distance
                return self
        query[option] = distance
        return self
