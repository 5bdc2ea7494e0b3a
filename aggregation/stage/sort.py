from typing import TYPE_CHECKING, Any, Dict, Mapping

from aggregation.constants import SORT_ASC, SORT_DESC, SORT_FALLBACK_ORDER, SORT_META_KEYWORDS
from aggregation.errors import InvalidExpressionError
from aggregation.stage.base import Stage

if TYPE_CHECKING:
    from aggregation.builder import Builder

_META_KEYWORDS = {keyword.lower(): keyword for keyword in SORT_META_KEYWORDS}


def normalize_order(order: Any) -> Any:
    """Map a user-facing sort order onto what $sort expects.

    ``"asc"``/``"desc"`` become 1/-1, meta keywords become ``{"$meta": keyword}``,
    numbers and ready-made documents pass through. Any other string falls back
    to ``SORT_FALLBACK_ORDER``.
    """
    if order is None:
        return SORT_ASC
    if isinstance(order, str):
        lowered = order.lower()
        if lowered == "asc":
            return SORT_ASC
        if lowered == "desc":
            return SORT_DESC
        if lowered in _META_KEYWORDS:
            return {"$meta": _META_KEYWORDS[lowered]}
        return SORT_FALLBACK_ORDER
    if isinstance(order, (int, float)):
        return SORT_ASC if order >= 0 else SORT_DESC
    if isinstance(order, Mapping):
        return dict(order)
    raise InvalidExpressionError(f"Invalid sort order {order!r}: expected 'asc', 'desc', 1, -1 or a meta keyword")


class Sort(Stage):
    """$sort stage. Consecutive sort() calls on a builder merge into one Sort."""

    def __init__(self, builder: "Builder", field_name: Any, order: Any = None):
        super().__init__(builder)
        self._sort: Dict[str, Any] = {}
        self.add(field_name, order)

    def add(self, field_name: Any, order: Any = None) -> "Sort":
        """Add field orders; a field already present keeps its position but takes the new order"""
        if isinstance(field_name, Mapping):
            orders = field_name
        else:
            orders = {field_name: order}
        for name, field_order in orders.items():
            self._sort[str(name)] = normalize_order(field_order)
        return self

    def render_expression(self) -> Dict[str, Any]:
        return {"$sort": self._sort}
