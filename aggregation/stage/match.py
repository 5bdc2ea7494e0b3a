"""$match stage and the filter used by $graphLookup's restrictSearchWithMatch."""

from typing import TYPE_CHECKING, Any, Dict, Optional

from aggregation.query_expr import QueryExpr
from aggregation.stage.base import Stage

if TYPE_CHECKING:
    from aggregation.builder import Builder
    from aggregation.stage.lookup import GraphLookup

# QueryExpr methods proxied onto filter-bearing stages
QUERY_METHODS = (
    "field",
    "equals",
    "not_equal",
    "gt",
    "gte",
    "lt",
    "lte",
    "range",
    "in_",
    "not_in",
    "all",
    "size",
    "exists",
    "type",
    "mod",
    "elem_match",
    "where",
    "not_",
    "add_and",
    "add_or",
    "add_nor",
    "text",
    "language",
    "case_sensitive",
    "diacritic_sensitive",
    "geo_intersects",
    "geo_within",
    "geo_within_box",
    "geo_within_center",
    "geo_within_center_sphere",
    "geo_within_polygon",
    "near",
    "near_sphere",
    "max_distance",
    "min_distance",
)


def _proxy_method(name: str):
    def method(self, *args):
        getattr(self.query, name)(*args)
        return self

    method.__name__ = name
    method.__doc__ = getattr(QueryExpr, name).__doc__
    return method


class Match(Stage):
    """$match stage, configured through an embedded ``QueryExpr``"""

    def __init__(self, builder: "Builder"):
        super().__init__(builder)
        self.query = QueryExpr()

    def expr(self) -> QueryExpr:
        return QueryExpr()

    def debug(self, name: Optional[str] = None) -> Any:
        """Return the filter built so far, or one of its keys"""
        query = self.query.get_query()
        return query.get(name) if name is not None else query

    def render_expression(self) -> Dict[str, Any]:
        return {"$match": self.query.get_query()}


for _name in QUERY_METHODS:
    setattr(Match, _name, _proxy_method(_name))


class GraphLookupMatch(Match):
    """Filter for restrictSearchWithMatch; graphLookup settings stay chainable from here"""

    def __init__(self, builder: "Builder", graph_lookup: "GraphLookup"):
        super().__init__(builder)
        self._graph_lookup = graph_lookup

    def render_expression(self) -> Dict[str, Any]:
        return self.query.get_query()

    def from_(self, from_: str):
        return self._graph_lookup.from_(from_)

    def start_with(self, expression: Any):
        return self._graph_lookup.start_with(expression)

    def connect_from_field(self, connect_from_field: str):
        return self._graph_lookup.connect_from_field(connect_from_field)

    def connect_to_field(self, connect_to_field: str):
        return self._graph_lookup.connect_to_field(connect_to_field)

    def alias(self, alias: str):
        return self._graph_lookup.alias(alias)

    def max_depth(self, max_depth: int):
        return self._graph_lookup.max_depth(max_depth)

    def depth_field(self, depth_field: str):
        return self._graph_lookup.depth_field(depth_field)
