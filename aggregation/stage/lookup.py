"""$lookup and $graphLookup stages."""

from typing import TYPE_CHECKING, Any, Dict, Optional

from aggregation.convert import convert_expression
from aggregation.stage.base import Stage
from aggregation.stage.match import GraphLookupMatch

if TYPE_CHECKING:
    from aggregation.builder import Builder


class Lookup(Stage):
    """Equality join against another collection"""

    def __init__(self, builder: "Builder", from_: str):
        super().__init__(builder)
        self._from = from_
        self._local_field: Optional[str] = None
        self._foreign_field: Optional[str] = None
        self._as: Optional[str] = None

    def from_(self, from_: str) -> "Lookup":
        self._from = from_
        return self

    def local_field(self, local_field: str) -> "Lookup":
        self._local_field = local_field
        return self

    def foreign_field(self, foreign_field: str) -> "Lookup":
        self._foreign_field = foreign_field
        return self

    def alias(self, alias: str) -> "Lookup":
        self._as = alias
        return self

    def render_expression(self) -> Dict[str, Any]:
        return {
            "$lookup": {
                "from": self._from,
                "localField": self._local_field,
                "foreignField": self._foreign_field,
                "as": self._as,
            }
        }


class GraphLookup(Stage):
    """Recursive search over a collection"""

    def __init__(self, builder: "Builder", from_: str):
        super().__init__(builder)
        self._from = from_
        self._start_with: Any = None
        self._connect_from_field: Optional[str] = None
        self._connect_to_field: Optional[str] = None
        self._as: Optional[str] = None
        self._max_depth: Optional[int] = None
        self._depth_field: Optional[str] = None
        self._restrict_search_with_match = GraphLookupMatch(builder, self)

    def from_(self, from_: str) -> "GraphLookup":
        self._from = from_
        return self

    def start_with(self, expression: Any) -> "GraphLookup":
        self._start_with = expression
        return self

    def connect_from_field(self, connect_from_field: str) -> "GraphLookup":
        self._connect_from_field = connect_from_field
        return self

    def connect_to_field(self, connect_to_field: str) -> "GraphLookup":
        self._connect_to_field = connect_to_field
        return self

    def alias(self, alias: str) -> "GraphLookup":
        self._as = alias
        return self

    def max_depth(self, max_depth: int) -> "GraphLookup":
        self._max_depth = int(max_depth)
        return self

    def depth_field(self, depth_field: str) -> "GraphLookup":
        self._depth_field = depth_field
        return self

    def restrict_search_with_match(self) -> GraphLookupMatch:
        return self._restrict_search_with_match

    def render_expression(self) -> Dict[str, Any]:
        graph_lookup: Dict[str, Any] = {
            "from": self._from,
            "startWith": convert_expression(self._start_with),
            "connectFromField": self._connect_from_field,
            "connectToField": self._connect_to_field,
            "as": self._as,
            "restrictSearchWithMatch": self._restrict_search_with_match.render_expression(),
        }
        if self._max_depth is not None:
            graph_lookup["maxDepth"] = self._max_depth
        if self._depth_field is not None:
            graph_lookup["depthField"] = self._depth_field
        return {"$graphLookup": graph_lookup}
