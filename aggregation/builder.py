"""
Fluent aggregation pipeline builder.

    builder = Builder(collection)
    builder.match().field("status").equals("ACTIVE") \
        .group().field("_id").expression("$project").field("count").sum(1) \
        .sort("count", "desc") \
        .limit(10)
    pipeline = builder.get_pipeline()

Every stage-method appends a stage and returns it; stages forward the same
methods back here, so the chain never needs the builder handle again.
"""

import logging
from typing import Any, Dict, List, Optional

from aggregation.convert import convert_expression
from aggregation.errors import LogicError, StageIndexError
from aggregation.expr import Expr
from aggregation.query_expr import QueryExpr
from aggregation.stage import (
    AddFields,
    Bucket,
    BucketAuto,
    CollStats,
    Count,
    GeoNear,
    GraphLookup,
    Group,
    IndexStats,
    Limit,
    Lookup,
    Match,
    Out,
    Project,
    Redact,
    ReplaceRoot,
    Sample,
    Skip,
    Sort,
    SortByCount,
    Stage,
    Unwind,
)

logger = logging.getLogger(__name__)


class Builder:
    """Accumulates pipeline stages in execution order"""

    def __init__(self, collection: Any = None):
        # Anything exposing aggregate(pipeline, options); see aggregation.client
        self.collection = collection
        self._stages: List[Stage] = []

    # ---- expression factories

    def expr(self) -> Expr:
        return Expr()

    def match_expr(self) -> QueryExpr:
        return QueryExpr()

    # ---- stages

    def add_fields(self) -> AddFields:
        return self._add_stage(AddFields(self))

    def bucket(self) -> Bucket:
        return self._add_stage(Bucket(self))

    def bucket_auto(self) -> BucketAuto:
        return self._add_stage(BucketAuto(self))

    def coll_stats(self) -> CollStats:
        return self._add_stage(CollStats(self))

    def count(self, field_name: str) -> Count:
        return self._add_stage(Count(self, field_name))

    def geo_near(self, x: Any, y: Any = None) -> GeoNear:
        """Append $geoNear. The server only accepts it as the first stage."""
        return self._add_stage(GeoNear(self, x, y))

    def graph_lookup(self, from_: str) -> GraphLookup:
        return self._add_stage(GraphLookup(self, from_))

    def group(self) -> Group:
        return self._add_stage(Group(self))

    def index_stats(self) -> IndexStats:
        return self._add_stage(IndexStats(self))

    def limit(self, limit: int) -> Limit:
        return self._add_stage(Limit(self, limit))

    def lookup(self, from_: str) -> Lookup:
        return self._add_stage(Lookup(self, from_))

    def match(self) -> Match:
        return self._add_stage(Match(self))

    def out(self, collection: str) -> Out:
        """Append $out, or re-target the previous stage if it already is $out"""
        previous = self._last_stage()
        if isinstance(previous, Out):
            logger.debug(f"Replacing $out target with '{collection}'")
            return previous.set_collection(collection)
        return self._add_stage(Out(self, collection))

    def project(self) -> Project:
        return self._add_stage(Project(self))

    def redact(self) -> Redact:
        return self._add_stage(Redact(self))

    def replace_root(self, expression: Any = None) -> ReplaceRoot:
        return self._add_stage(ReplaceRoot(self, expression))

    def sample(self, size: int) -> Sample:
        return self._add_stage(Sample(self, size))

    def skip(self, skip: int) -> Skip:
        return self._add_stage(Skip(self, skip))

    def sort(self, field_name: Any, order: Any = None) -> Sort:
        """Append $sort, merging into the previous stage if it is also $sort.

        Accepts ``sort("field", "desc")`` or an ordered mapping
        ``sort({"field": "desc", "other": "asc"})``.
        """
        previous = self._last_stage()
        if isinstance(previous, Sort):
            logger.debug("Merging sort into previous $sort stage")
            return previous.add(field_name, order)
        return self._add_stage(Sort(self, field_name, order))

    def sort_by_count(self, expression: Any) -> SortByCount:
        return self._add_stage(SortByCount(self, expression))

    def unwind(self, field_name: str) -> Unwind:
        return self._add_stage(Unwind(self, field_name))

    # ---- output

    def get_stage(self, index: int) -> Stage:
        if not 0 <= index < len(self._stages):
            raise StageIndexError(f"Could not find stage with index {index}.")
        return self._stages[index]

    def get_pipeline(self) -> List[Dict[str, Any]]:
        return [convert_expression(stage.render_expression()) for stage in self._stages]

    def execute(self, options: Optional[Dict[str, Any]] = None):
        """Run the pipeline through the collection adapter and return its result unchanged"""
        if self.collection is None:
            raise LogicError("execute() requires a collection; pass one to Builder().")
        pipeline = self.get_pipeline()
        logger.debug(f"Executing aggregation pipeline with {len(pipeline)} stages")
        return self.collection.aggregate(pipeline, options or {})

    def _add_stage(self, stage):
        self._stages.append(stage)
        return stage

    def _last_stage(self) -> Optional[Stage]:
        return self._stages[-1] if self._stages else None
