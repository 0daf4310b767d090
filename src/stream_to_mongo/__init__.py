"""Stream-to-Mongo.

Streams parsed JSON records into a MongoDB collection in batches, with
insert, update and delete operation modes.
"""

from stream_to_mongo.errors import (
    ConfigError,
    DatabaseConnectionError,
    FlushError,
    MissingIndexFieldError,
    RecordSourceError,
    StreamToMongoError,
    WriterClosedError,
)
from stream_to_mongo.models import OperationType, WriterConfig, WriterMetrics, WriterStatus
from stream_to_mongo.persistence import MongoStreamWriter, RecordSink
from stream_to_mongo.sources import iter_json_records
from stream_to_mongo.stream import pipe_records, stream_to_mongo

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "DatabaseConnectionError",
    "FlushError",
    "MissingIndexFieldError",
    "MongoStreamWriter",
    "OperationType",
    "RecordSink",
    "RecordSourceError",
    "StreamToMongoError",
    "WriterClosedError",
    "WriterConfig",
    "WriterMetrics",
    "WriterStatus",
    "iter_json_records",
    "pipe_records",
    "stream_to_mongo",
]
