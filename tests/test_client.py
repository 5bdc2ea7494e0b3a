#!/usr/bin/env python3
"""
Execution adapter tests

Covers option merging, server error translation for PyMongo and Motor cursors,
the Motor-backed DirectMongoClient, and a functional run against mongomock.
"""

import pytest
import mongomock
from pymongo.errors import OperationFailure
from unittest.mock import Mock, AsyncMock, MagicMock, patch
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aggregation import Builder
from aggregation.client import AggregationCollection, DirectMongoClient, ResultCursor
from aggregation.errors import ResultError


def failure(message="pipeline failed", code=16):
    return OperationFailure(message, code=code, details={"ok": 0, "errmsg": message, "code": code})


def failing_cursor(documents, error):
    """Synchronous cursor that yields documents, then raises"""
    for document in documents:
        yield document
    raise error


class FakeMotorCursor:
    """Async cursor that yields documents, then raises or stops"""

    def __init__(self, documents, error=None):
        self._documents = list(documents)
        self._error = error

    async def __anext__(self):
        if self._documents:
            return self._documents.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration


class TestAggregationCollection:
    """aggregate() on the adapter"""

    def test_passes_pipeline_and_options_as_keywords(self):
        collection = Mock()
        collection.aggregate.return_value = iter([])
        with patch("aggregation.client.default_aggregate_options", return_value={}):
            AggregationCollection(collection).aggregate([{"$limit": 1}], {"batchSize": 5})
        collection.aggregate.assert_called_once_with([{"$limit": 1}], batchSize=5)

    def test_caller_options_override_defaults(self):
        collection = Mock()
        collection.aggregate.return_value = iter([])
        defaults = {"allowDiskUse": True, "batchSize": 100}
        with patch("aggregation.client.default_aggregate_options", return_value=defaults):
            AggregationCollection(collection).aggregate([], {"batchSize": 5})
        collection.aggregate.assert_called_once_with([], allowDiskUse=True, batchSize=5)

    def test_operation_failure_at_call_becomes_result_error(self):
        collection = Mock()
        collection.aggregate.side_effect = failure("bad stage", 40324)
        with pytest.raises(ResultError) as excinfo:
            AggregationCollection(collection).aggregate([{"$bogus": {}}])
        assert excinfo.value.code == 40324
        assert excinfo.value.message == "bad stage"
        assert isinstance(excinfo.value.__cause__, OperationFailure)

    def test_returns_result_cursor(self):
        collection = Mock()
        collection.aggregate.return_value = iter([{"a": 1}])
        cursor = AggregationCollection(collection).aggregate([])
        assert isinstance(cursor, ResultCursor)
        assert list(cursor) == [{"a": 1}]

    def test_builder_execute_goes_through_adapter(self):
        collection = Mock()
        collection.aggregate.return_value = iter([{"count": 3}])
        builder = AggregationCollection(collection).create_aggregation_builder()
        with patch("aggregation.client.default_aggregate_options", return_value={}):
            results = list(builder.match().field("a").equals(1).count("count").execute())
        assert results == [{"count": 3}]
        collection.aggregate.assert_called_once_with([{"$match": {"a": 1}}, {"$count": "count"}])


class TestResultCursor:
    """Error translation while iterating"""

    def test_sync_iteration_translates_failure(self):
        cursor = ResultCursor(failing_cursor([{"a": 1}], failure()), "orders")
        assert next(cursor) == {"a": 1}
        with pytest.raises(ResultError) as excinfo:
            next(cursor)
        assert excinfo.value.code == 16

    @pytest.mark.asyncio
    async def test_async_iteration(self):
        cursor = ResultCursor(FakeMotorCursor([{"a": 1}, {"a": 2}]))
        results = [document async for document in cursor]
        assert results == [{"a": 1}, {"a": 2}]

    @pytest.mark.asyncio
    async def test_async_iteration_translates_failure(self):
        cursor = ResultCursor(FakeMotorCursor([], failure("cursor killed", 43)))
        with pytest.raises(ResultError, match="cursor killed"):
            async for _ in cursor:
                pass

    @pytest.mark.asyncio
    async def test_to_list_translates_failure(self):
        motor_cursor = Mock()
        motor_cursor.to_list = AsyncMock(side_effect=failure())
        with pytest.raises(ResultError):
            await ResultCursor(motor_cursor).to_list()

    def test_close_delegates(self):
        motor_cursor = Mock()
        ResultCursor(motor_cursor).close()
        motor_cursor.close.assert_called_once()


class TestDirectMongoClient:
    """Motor-backed client"""

    @pytest.mark.asyncio
    async def test_connect_pings_once(self):
        with patch("aggregation.client.AsyncIOMotorClient") as motor_cls:
            motor = motor_cls.return_value
            motor.admin.command = AsyncMock(return_value={"ok": 1})
            client = DirectMongoClient("mongodb://example:27017", "shop")
            await client.connect()
            await client.connect()
        motor_cls.assert_called_once_with("mongodb://example:27017")
        motor.admin.command.assert_awaited_once_with("ping")
        assert client.connected

    @pytest.mark.asyncio
    async def test_connect_failure_propagates(self):
        with patch("aggregation.client.AsyncIOMotorClient") as motor_cls:
            motor_cls.return_value.admin.command = AsyncMock(side_effect=RuntimeError("unreachable"))
            client = DirectMongoClient("mongodb://example:27017", "shop")
            with pytest.raises(RuntimeError):
                await client.connect()
        assert not client.connected

    def test_collection_requires_connect(self):
        with pytest.raises(RuntimeError):
            DirectMongoClient().create_aggregation_builder("orders")

    @pytest.mark.asyncio
    async def test_aggregate_returns_documents(self):
        motor_cursor = Mock()
        motor_cursor.to_list = AsyncMock(return_value=[{"_id": "x", "total": 3}])
        motor_collection = Mock()
        motor_collection.aggregate.return_value = motor_cursor

        client = DirectMongoClient("mongodb://example:27017", "shop")
        client.client = MagicMock()
        client.client.__getitem__.return_value.__getitem__.return_value = motor_collection

        with patch("aggregation.client.default_aggregate_options", return_value={}):
            results = await client.aggregate("orders", [{"$limit": 1}])

        assert results == [{"_id": "x", "total": 3}]
        motor_collection.aggregate.assert_called_once_with([{"$limit": 1}])
        client.client.__getitem__.assert_called_once_with("shop")

    @pytest.mark.asyncio
    async def test_disconnect(self):
        client = DirectMongoClient("mongodb://example:27017", "shop")
        motor = MagicMock()
        client.client = motor
        client.connected = True
        await client.disconnect()
        motor.close.assert_called_once()
        assert client.client is None
        assert not client.connected

    def test_create_aggregation_builder(self):
        client = DirectMongoClient("mongodb://example:27017", "shop")
        client.client = MagicMock()
        builder = client.create_aggregation_builder("orders", database="archive")
        assert isinstance(builder, Builder)
        assert isinstance(builder.collection, AggregationCollection)
        client.client.__getitem__.assert_called_once_with("archive")


class TestMongomockExecution:
    """End-to-end runs against an in-memory collection"""

    @pytest.fixture
    def orders(self):
        collection = mongomock.MongoClient().shop.orders
        collection.insert_many([
            {"user": "ann", "status": "A", "amount": 10, "tags": ["x", "y"]},
            {"user": "ann", "status": "A", "amount": 15, "tags": ["x"]},
            {"user": "bob", "status": "A", "amount": 7, "tags": []},
            {"user": "cid", "status": "A", "amount": 30, "tags": ["y"]},
            {"user": "dan", "status": "D", "amount": 99, "tags": ["x"]},
        ])
        return collection

    def test_match_group_sort_limit(self, orders):
        builder = AggregationCollection(orders).create_aggregation_builder()
        (
            builder.match()
                .field("status").equals("A")
            .group()
                .field("_id").expression("$user")
                .field("total").sum("$amount")
            .sort("total", "desc")
            .limit(2)
        )
        with patch("aggregation.client.default_aggregate_options", return_value={}):
            results = list(builder.execute())
        assert results == [{"_id": "cid", "total": 30}, {"_id": "ann", "total": 25}]

    def test_unwind_and_group(self, orders):
        builder = AggregationCollection(orders).create_aggregation_builder()
        (
            builder.unwind("$tags")
            .group()
                .field("_id").expression("$tags")
                .field("count").sum(1)
            .sort("_id", "asc")
        )
        with patch("aggregation.client.default_aggregate_options", return_value={}):
            results = list(builder.execute())
        assert results == [{"_id": "x", "count": 3}, {"_id": "y", "count": 2}]
