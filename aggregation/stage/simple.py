"""Stages with a scalar or small fixed-shape payload."""

from typing import TYPE_CHECKING, Any, Dict

from aggregation.convert import convert_expression
from aggregation.stage.base import Stage

if TYPE_CHECKING:
    from aggregation.builder import Builder


class Limit(Stage):
    def __init__(self, builder: "Builder", limit: int):
        super().__init__(builder)
        self._limit = int(limit)

    def render_expression(self) -> Dict[str, Any]:
        return {"$limit": self._limit}


class Skip(Stage):
    def __init__(self, builder: "Builder", skip: int):
        super().__init__(builder)
        self._skip = int(skip)

    def render_expression(self) -> Dict[str, Any]:
        return {"$skip": self._skip}


class Sample(Stage):
    def __init__(self, builder: "Builder", size: int):
        super().__init__(builder)
        self._size = int(size)

    def render_expression(self) -> Dict[str, Any]:
        return {"$sample": {"size": self._size}}


class Out(Stage):
    """$out stage; must be the last stage of a pipeline (checked by the server)"""

    def __init__(self, builder: "Builder", collection: str):
        super().__init__(builder)
        self._collection = str(collection)

    def set_collection(self, collection: str) -> "Out":
        """Re-target this stage; Builder.out() calls this when $out is the last stage"""
        self._collection = str(collection)
        return self

    def render_expression(self) -> Dict[str, Any]:
        return {"$out": self._collection}


class Count(Stage):
    def __init__(self, builder: "Builder", field_name: str):
        super().__init__(builder)
        self._field_name = str(field_name)

    def render_expression(self) -> Dict[str, Any]:
        return {"$count": self._field_name}


class SortByCount(Stage):
    def __init__(self, builder: "Builder", expression: Any):
        super().__init__(builder)
        self._expression = expression

    def render_expression(self) -> Dict[str, Any]:
        return {"$sortByCount": convert_expression(self._expression)}


class IndexStats(Stage):
    def render_expression(self) -> Dict[str, Any]:
        return {"$indexStats": {}}


class CollStats(Stage):
    def __init__(self, builder: "Builder"):
        super().__init__(builder)
        self._latency_stats: Any = None
        self._storage_stats = False

    def show_latency_stats(self, histograms: bool = False) -> "CollStats":
        self._latency_stats = {"histograms": bool(histograms)}
        return self

    def show_storage_stats(self) -> "CollStats":
        self._storage_stats = True
        return self

    def render_expression(self) -> Dict[str, Any]:
        coll_stats: Dict[str, Any] = {}
        if self._latency_stats is not None:
            coll_stats["latencyStats"] = self._latency_stats
        if self._storage_stats:
            coll_stats["storageStats"] = {}
        return {"$collStats": coll_stats}
