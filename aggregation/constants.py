import os
import logging
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from aggregation.errors import ConfigError

# Load environment variables from .env file
load_dotenv()

# Configure logging
logger = logging.getLogger(__name__)

_DEFAULT_MONGODB_URI = "mongodb://localhost:27017"


def _resolve_mongo_uri() -> str:
    """Resolve the MongoDB connection string with sane fallbacks."""
    candidates = [
        os.getenv("MONGODB_URI"),
        os.getenv("MONGODB_CONNECTION_STRING"),
    ]

    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()

    if any(candidate == "" for candidate in candidates):
        logger.warning("MONGODB connection string env var was empty; falling back to default URI.")

    return _DEFAULT_MONGODB_URI


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name} value: expected integer, got '{raw}'") from e


# Database configuration
MONGODB_CONNECTION_STRING = _resolve_mongo_uri()
DATABASE_NAME = os.getenv("MONGODB_DATABASE", "test")

# Aggregation execution defaults
AGGREGATION_ALLOW_DISK_USE: bool = _flag("AGGREGATION_ALLOW_DISK_USE")
AGGREGATION_BATCH_SIZE: Optional[int] = _optional_int("AGGREGATION_BATCH_SIZE")


def default_aggregate_options() -> Dict[str, Any]:
    """Execution options applied to every aggregate call unless overridden"""
    options: Dict[str, Any] = {}
    if AGGREGATION_ALLOW_DISK_USE:
        options["allowDiskUse"] = True
    if AGGREGATION_BATCH_SIZE is not None:
        options["batchSize"] = AGGREGATION_BATCH_SIZE
    return options


# ---- Sort orders
SORT_ASC = 1
SORT_DESC = -1

# $meta keywords accepted as a sort "order"
SORT_META_KEYWORDS = {"textScore"}

# Order used when a string order is neither asc/desc nor a known meta keyword
SORT_FALLBACK_ORDER = SORT_DESC

# ---- BSON type aliases accepted by QueryExpr.type()
BSON_TYPES: Dict[str, int] = {
    "double": 1,
    "string": 2,
    "object": 3,
    "array": 4,
    "binary": 5,
    "undefined": 6,
    "objectid": 7,
    "boolean": 8,
    "date": 9,
    "null": 10,
    "regex": 11,
    "jscode": 13,
    "symbol": 14,
    "jscodewithscope": 15,
    "integer32": 16,
    "timestamp": 17,
    "integer64": 18,
    "minkey": 255,
    "maxkey": 127,
}
