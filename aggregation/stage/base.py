"""Stage base class and the chaining surface shared by stages and the builder."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from aggregation.builder import Builder


class PipelineContinuation:
    """Builder stage-methods, forwarded to ``self.builder``.

    Mixed into every stage so a chain can keep appending stages without the
    caller holding on to the builder.
    """

    builder: "Builder"

    def add_fields(self):
        return self.builder.add_fields()

    def bucket(self):
        return self.builder.bucket()

    def bucket_auto(self):
        return self.builder.bucket_auto()

    def coll_stats(self):
        return self.builder.coll_stats()

    def count(self, field_name: str):
        return self.builder.count(field_name)

    def geo_near(self, x: Any, y: Any = None):
        return self.builder.geo_near(x, y)

    def graph_lookup(self, from_: str):
        return self.builder.graph_lookup(from_)

    def group(self):
        return self.builder.group()

    def index_stats(self):
        return self.builder.index_stats()

    def limit(self, limit: int):
        return self.builder.limit(limit)

    def lookup(self, from_: str):
        return self.builder.lookup(from_)

    def match(self):
        return self.builder.match()

    def out(self, collection: str):
        return self.builder.out(collection)

    def project(self):
        return self.builder.project()

    def redact(self):
        return self.builder.redact()

    def replace_root(self, expression: Any = None):
        return self.builder.replace_root(expression)

    def sample(self, size: int):
        return self.builder.sample(size)

    def skip(self, skip: int):
        return self.builder.skip(skip)

    def sort(self, field_name: Any, order: Any = None):
        return self.builder.sort(field_name, order)

    def sort_by_count(self, expression: Any):
        return self.builder.sort_by_count(expression)

    def unwind(self, field_name: str):
        return self.builder.unwind(field_name)

    def get_pipeline(self) -> List[Dict[str, Any]]:
        return self.builder.get_pipeline()

    def execute(self, options: Optional[Dict[str, Any]] = None):
        return self.builder.execute(options)


class Stage(PipelineContinuation, ABC):
    """One pipeline stage. Holds a plain back-reference to the builder that owns it."""

    def __init__(self, builder: "Builder"):
        self.builder = builder

    @abstractmethod
    def render_expression(self) -> Dict[str, Any]:
        """Return the single-key stage document, e.g. ``{"$limit": 5}``"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.render_expression()!r})"
