import os
import sys
from unittest.mock import Mock

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from aggregation import Builder, Expr, QueryExpr
from aggregation.errors import LogicError, StageIndexError
from aggregation.stage import GeoNear, Limit, Match, Out, Unwind


def test_full_pipeline():
    point = {"type": "Point", "coordinates": [0, 0]}
    builder = Builder(Mock())
    (
        builder
        .geo_near(point)
            .distance_field("distance")
            .limit(10)
            .field("hasCoordinates").exists(True)
            .field("username").equals("foo")
        .match()
            .field("group").in_(["a", "b"])
            .add_or(builder.match_expr().field("username").equals("admin"))
            .add_or(builder.match_expr().field("username").equals("administrator"))
        .unwind("a")
        .unwind("b")
        .redact()
            .cond(builder.expr().lte("$accessLevel", 3), "$$KEEP", "$$REDACT")
        .project()
            .exclude_id_field()
            .include_fields(["user", "amount", "invoiceAddress"])
            .field("deliveryAddress")
            .cond(
                builder.expr()
                .add_and(builder.expr().eq("$useAlternateDeliveryAddress", True))
                .add_and(builder.expr().ne("$deliveryAddress", None)),
                "$deliveryAddress",
                "$invoiceAddress",
            )
        .group()
            .field("_id").expression("$user")
            .field("numOrders").sum(1)
            .field("amount").expression(
                builder.expr().field("total").sum("$amount").field("avg").avg("$amount")
            )
        .sort("totalAmount")
        .sort({"numOrders": "desc", "avgAmount": "asc"})
        .limit(5)
        .skip(2)
        .out("collectionName")
    )

    assert builder.get_pipeline() == [
        {
            "$geoNear": {
                "near": point,
                "spherical": True,
                "distanceField": "distance",
                "query": {"hasCoordinates": {"$exists": True}, "username": "foo"},
                "num": 10,
            }
        },
        {
            "$match": {
                "group": {"$in": ["a", "b"]},
                "$or": [{"username": "admin"}, {"username": "administrator"}],
            }
        },
        {"$unwind": "a"},
        {"$unwind": "b"},
        {
            "$redact": {
                "$cond": {
                    "if": {"$lte": ["$accessLevel", 3]},
                    "then": "$$KEEP",
                    "else": "$$REDACT",
                }
            }
        },
        {
            "$project": {
                "_id": False,
                "user": True,
                "amount": True,
                "invoiceAddress": True,
                "deliveryAddress": {
                    "$cond": {
                        "if": {
                            "$and": [
                                {"$eq": ["$useAlternateDeliveryAddress", True]},
                                {"$ne": ["$deliveryAddress", None]},
                            ]
                        },
                        "then": "$deliveryAddress",
                        "else": "$invoiceAddress",
                    }
                },
            }
        },
        {
            "$group": {
                "_id": "$user",
                "numOrders": {"$sum": 1},
                "amount": {"total": {"$sum": "$amount"}, "avg": {"$avg": "$amount"}},
            }
        },
        {"$sort": {"totalAmount": 1, "numOrders": -1, "avgAmount": 1}},
        {"$limit": 5},
        {"$skip": 2},
        {"$out": "collectionName"},
    ]


class TestStageChaining:
    """Stage methods on a stage append to the owning builder"""

    def test_each_call_returns_the_new_stage(self):
        builder = Builder()
        match = builder.match()
        limit = match.limit(3)
        assert isinstance(match, Match)
        assert isinstance(limit, Limit)
        assert builder.get_stage(0) is match
        assert builder.get_stage(1) is limit

    def test_chain_works_without_holding_builder(self):
        pipeline = Builder().match().field("a").equals(1).skip(1).limit(2).get_pipeline()
        assert pipeline == [{"$match": {"a": 1}}, {"$skip": 1}, {"$limit": 2}]

    def test_stage_keeps_builder_reference(self):
        builder = Builder()
        assert builder.group().builder is builder

    def test_builder_expression_factories(self):
        builder = Builder()
        assert isinstance(builder.expr(), Expr)
        assert isinstance(builder.match_expr(), QueryExpr)
        assert builder.expr() is not builder.expr()


class TestSortMerging:
    def test_consecutive_sorts_merge_in_call_order(self):
        builder = Builder()
        first = builder.sort("a", "asc")
        second = builder.sort("b", "desc")
        assert first is second
        pipeline = builder.get_pipeline()
        assert len(pipeline) == 1
        assert list(pipeline[0]["$sort"].items()) == [("a", 1), ("b", -1)]

    def test_sort_after_other_stage_is_a_new_stage(self):
        builder = Builder()
        builder.sort("a").limit(1).sort("b")
        assert builder.get_pipeline() == [{"$sort": {"a": 1}}, {"$limit": 1}, {"$sort": {"b": 1}}]

    def test_repeated_field_takes_new_order(self):
        builder = Builder()
        builder.sort("a", "asc").sort("b", "asc").sort("a", "desc")
        assert list(builder.get_pipeline()[0]["$sort"].items()) == [("a", -1), ("b", 1)]


class TestOutReplacement:
    def test_consecutive_out_retargets(self):
        builder = Builder()
        first = builder.out("a")
        second = builder.out("b")
        assert first is second
        assert isinstance(second, Out)
        assert builder.get_pipeline() == [{"$out": "b"}]

    def test_out_chained_from_out_stage(self):
        assert Builder().limit(1).out("a").out("b").get_pipeline() == [{"$limit": 1}, {"$out": "b"}]

    def test_out_from_earlier_out_handle_appends(self):
        builder = Builder()
        first = builder.out("a")
        builder.limit(1)
        second = first.out("b")
        assert second is not first
        assert builder.get_pipeline() == [{"$out": "a"}, {"$limit": 1}, {"$out": "b"}]


def test_consecutive_unwinds_stay_separate():
    builder = Builder()
    builder.unwind("a").unwind("b")
    assert isinstance(builder.get_stage(1), Unwind)
    assert builder.get_pipeline() == [{"$unwind": "a"}, {"$unwind": "b"}]


def test_limit_on_geo_near_folds_into_num():
    builder = Builder()
    stage = builder.geo_near(0, 0).limit(5)
    assert isinstance(stage, GeoNear)
    assert builder.get_pipeline() == [
        {"$geoNear": {"near": [0, 0], "spherical": False, "distanceField": None, "query": {}, "num": 5}}
    ]


def test_limit_after_geo_near_query_still_folds():
    builder = Builder()
    builder.geo_near(0, 0).field("a").equals(1).limit(5)
    assert len(builder.get_pipeline()) == 1


class TestGetStage:
    def test_out_of_range_raises(self):
        builder = Builder()
        builder.match()
        with pytest.raises(StageIndexError, match="Could not find stage with index 1."):
            builder.get_stage(1)

    def test_stage_index_error_is_an_index_error(self):
        with pytest.raises(IndexError):
            Builder().get_stage(0)

    def test_negative_index_raises(self):
        builder = Builder()
        builder.match()
        with pytest.raises(StageIndexError):
            builder.get_stage(-1)


def test_empty_builder_renders_empty_pipeline():
    assert Builder().get_pipeline() == []


def test_get_pipeline_is_idempotent_and_fresh():
    builder = Builder()
    builder.match().field("a").equals(1).sort("b", "desc")
    first = builder.get_pipeline()
    assert builder.get_pipeline() == first
    first[0]["$match"]["a"] = 2
    assert builder.get_pipeline() == [{"$match": {"a": 1}}, {"$sort": {"b": -1}}]


class TestExecute:
    def test_execute_passes_pipeline_and_options(self):
        collection = Mock()
        collection.aggregate.return_value = "cursor"
        builder = Builder(collection)
        result = builder.match().field("a").equals(1).limit(1).execute({"allowDiskUse": True})
        assert result == "cursor"
        collection.aggregate.assert_called_once_with(
            [{"$match": {"a": 1}}, {"$limit": 1}], {"allowDiskUse": True}
        )

    def test_execute_defaults_to_empty_options(self):
        collection = Mock()
        Builder(collection).execute()
        collection.aggregate.assert_called_once_with([], {})

    def test_execute_without_collection_raises(self):
        with pytest.raises(LogicError):
            Builder().match().execute()
