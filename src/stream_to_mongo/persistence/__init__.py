"""Persistence and data storage module."""

from stream_to_mongo.persistence.base import RecordSink
from stream_to_mongo.persistence.mongo import MongoStreamWriter

__all__ = [
    "MongoStreamWriter",
    "RecordSink",
]
