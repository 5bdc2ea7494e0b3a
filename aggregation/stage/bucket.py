"""$bucket and $bucketAuto stages."""

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from aggregation.convert import ConvertibleExpression, convert_expression
from aggregation.errors import InvalidExpressionError
from aggregation.stage.base import Stage
from aggregation.stage.operator import Operator

if TYPE_CHECKING:
    from aggregation.builder import Builder


def _group_by_expression(expression: Any) -> Any:
    if isinstance(expression, str):
        return expression
    if isinstance(expression, (ConvertibleExpression, Mapping, list, tuple)):
        return convert_expression(expression)
    raise InvalidExpressionError("Invalid expression given - must be a string, array or expression object")


class AbstractBucket(Stage):
    """Shared groupBy/output handling for the bucket stages"""

    stage_name = ""

    def __init__(self, builder: "Builder"):
        super().__init__(builder)
        self._group_by: Any = None
        self._output: Optional[BucketOutput] = None

    def group_by(self, expression: Any):
        self._group_by = _group_by_expression(expression)
        return self

    def output(self) -> "BucketOutput":
        """Accumulator fields for each bucket, built with field() + operator calls"""
        if self._output is None:
            self._output = BucketOutput(self.builder, self)
        return self._output

    def render_expression(self) -> Dict[str, Any]:
        bucket: Dict[str, Any] = {"groupBy": self._group_by}
        bucket.update(self._extra_pipeline_fields())
        if self._output is not None:
            bucket["output"] = self._output.get_expression()
        return {self.stage_name: bucket}

    @abstractmethod
    def _extra_pipeline_fields(self) -> Dict[str, Any]:
        pass


class Bucket(AbstractBucket):
    stage_name = "$bucket"

    def __init__(self, builder: "Builder"):
        super().__init__(builder)
        self._boundaries: List[Any] = []
        self._default: Any = None

    def boundaries(self, *boundaries: Any) -> "Bucket":
        self._boundaries = list(boundaries)
        return self

    def default_bucket(self, default: Any) -> "Bucket":
        self._default = default
        return self

    def _extra_pipeline_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"boundaries": self._boundaries}
        if self._default is not None:
            fields["default"] = self._default
        return fields


class BucketAuto(AbstractBucket):
    stage_name = "$bucketAuto"

    def __init__(self, builder: "Builder"):
        super().__init__(builder)
        self._buckets: Optional[int] = None
        self._granularity: Optional[str] = None

    def buckets(self, buckets: int) -> "BucketAuto":
        self._buckets = int(buckets)
        return self

    def granularity(self, granularity: str) -> "BucketAuto":
        self._granularity = granularity
        return self

    def _extra_pipeline_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"buckets": self._buckets}
        if self._granularity is not None:
            fields["granularity"] = self._granularity
        return fields


class BucketOutput(Operator):
    """The ``output`` document of a bucket stage.

    Not a pipeline stage of its own: rendering it yields the bare accumulator
    document, and the owning bucket's settings can still be chained from here.
    """

    def __init__(self, builder: "Builder", bucket: AbstractBucket):
        super().__init__(builder)
        self._bucket = bucket

    def get_expression(self) -> Dict[str, Any]:
        return self.expr.get_expression()

    def render_expression(self) -> Dict[str, Any]:
        return self.get_expression()

    def group_by(self, expression: Any):
        return self._bucket.group_by(expression)

    def boundaries(self, *boundaries: Any):
        return self._bucket.boundaries(*boundaries)

    def default_bucket(self, default: Any):
        return self._bucket.default_bucket(default)

    def buckets(self, buckets: int):
        return self._bucket.buckets(buckets)

    def granularity(self, granularity: str):
        return self._bucket.granularity(granularity)
