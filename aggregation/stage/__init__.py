from aggregation.stage.base import PipelineContinuation, Stage
from aggregation.stage.bucket import AbstractBucket, Bucket, BucketAuto, BucketOutput
from aggregation.stage.geo_near import GeoNear
from aggregation.stage.lookup import GraphLookup, Lookup
from aggregation.stage.match import GraphLookupMatch, Match
from aggregation.stage.operator import AddFields, Group, Operator, Project, Redact, ReplaceRoot
from aggregation.stage.simple import CollStats, Count, IndexStats, Limit, Out, Sample, Skip, SortByCount
from aggregation.stage.sort import Sort
from aggregation.stage.unwind import Unwind

__all__ = [
    "PipelineContinuation",
    "Stage",
    "AbstractBucket",
    "Bucket",
    "BucketAuto",
    "BucketOutput",
    "GeoNear",
    "GraphLookup",
    "Lookup",
    "GraphLookupMatch",
    "Match",
    "AddFields",
    "Group",
    "Operator",
    "Project",
    "Redact",
    "ReplaceRoot",
    "CollStats",
    "Count",
    "IndexStats",
    "Limit",
    "Out",
    "Sample",
    "Skip",
    "SortByCount",
    "Sort",
    "Unwind",
]
