#!/usr/bin/env python3
"""Execution adapter: hands built pipelines to PyMongo/Motor collections"""

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import OperationFailure
from typing import Dict, Any, List, Optional
import asyncio
import logging

from aggregation.builder import Builder
from aggregation.constants import DATABASE_NAME, MONGODB_CONNECTION_STRING, default_aggregate_options
from aggregation.errors import ResultError

# Configure logging
logger = logging.getLogger(__name__)


def _result_error(error: OperationFailure) -> ResultError:
    """Build a ResultError from the server's error document"""
    document: Dict[str, Any] = dict(error.details or {})
    document.setdefault("errmsg", str(error))
    if error.code is not None:
        document.setdefault("code", error.code)
    return ResultError(document)


class ResultCursor:
    """Forward-only iterator over aggregate results.

    Wraps either a PyMongo ``CommandCursor`` (iterate with ``for``) or a Motor
    command cursor (iterate with ``async for`` / ``await to_list()``). Server
    errors surface as ``ResultError``.
    """

    def __init__(self, cursor: Any, collection_name: str = ""):
        self._cursor = cursor
        self._collection_name = collection_name

    def __iter__(self):
        return self

    def __next__(self) -> Dict[str, Any]:
        try:
            return next(self._cursor)
        except OperationFailure as e:
            logger.error(f"Aggregation on '{self._collection_name}' failed: {e}")
            raise _result_error(e) from e

    def __aiter__(self):
        return self

    async def __anext__(self) -> Dict[str, Any]:
        try:
            return await self._cursor.__anext__()
        except OperationFailure as e:
            logger.error(f"Aggregation on '{self._collection_name}' failed: {e}")
            raise _result_error(e) from e

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        """Drain a Motor cursor into a list"""
        try:
            return await self._cursor.to_list(length=length)
        except OperationFailure as e:
            logger.error(f"Aggregation on '{self._collection_name}' failed: {e}")
            raise _result_error(e) from e

    def close(self):
        """Close the server cursor; returns an awaitable for Motor cursors"""
        return self._cursor.close()


class AggregationCollection:
    """Collection adapter consumed by ``Builder.execute()``"""

    def __init__(self, collection: Any):
        self.collection = collection

    @property
    def name(self) -> str:
        return getattr(self.collection, "name", "")

    def aggregate(self, pipeline: List[Dict[str, Any]], options: Optional[Dict[str, Any]] = None) -> ResultCursor:
        """Run ``pipeline``; caller options override the configured defaults key by key"""
        effective_options = default_aggregate_options()
        effective_options.update(options or {})
        logger.debug(f"aggregate on '{self.name}': {len(pipeline)} stages, options={effective_options}")

        try:
            # PyMongo runs the command here; Motor defers it to the first iteration
            cursor = self.collection.aggregate(pipeline, **effective_options)
        except OperationFailure as e:
            logger.error(f"Aggregation on '{self.name}' failed: {e}")
            raise _result_error(e) from e
        return ResultCursor(cursor, self.name)

    def create_aggregation_builder(self) -> Builder:
        return Builder(self)


class DirectMongoClient:
    """MongoDB client using Motor (async PyMongo) that hands out aggregation builders"""

    def __init__(self, connection_string: str = MONGODB_CONNECTION_STRING, database: str = DATABASE_NAME):
        self.connection_string = connection_string
        self.database = database
        self.client: AsyncIOMotorClient | None = None
        self.connected = False
        self._connect_lock = asyncio.Lock()

    async def connect(self):
        """Initialize the MongoDB connection (idempotent)"""
        try:
            async with self._connect_lock:
                if self.connected and self.client:
                    return

                self.client = AsyncIOMotorClient(self.connection_string)

                # Test connection
                await self.client.admin.command('ping')

                self.connected = True
                logger.info(f"Connected to MongoDB database '{self.database}'")

        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client:
            self.client.close()
        self.connected = False
        self.client = None

    def collection(self, collection: str, database: Optional[str] = None) -> AggregationCollection:
        if not self.client:
            raise RuntimeError("MongoDB client not initialized. Call connect() first.")
        return AggregationCollection(self.client[database or self.database][collection])

    def create_aggregation_builder(self, collection: str, database: Optional[str] = None) -> Builder:
        """Return a Builder whose execute() runs against ``collection``"""
        return self.collection(collection, database).create_aggregation_builder()

    async def aggregate(
        self,
        collection: str,
        pipeline: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None,
        database: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Execute an aggregation pipeline and return all result documents"""
        cursor = self.collection(collection, database).aggregate(pipeline, options)
        return await cursor.to_list(length=None)


# Global direct client instance
direct_mongo_client = DirectMongoClient()
