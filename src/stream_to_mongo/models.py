"""Domain models for the stream-to-mongo batch writer.

This module defines the configuration and result structures shared by the
writer, the operation dispatch and the command line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any

from stream_to_mongo.errors import ConfigError

ENV_PREFIX = "STREAM_TO_MONGO_"


class OperationType(str, Enum):
    """What a flush does to the target collection.

    Attributes:
        INSERT: Every record becomes a new document.
        UPDATE: The document matching the record's index field is merged
            with the record's fields.
        DELETE: The document matching the record's index field is removed.
    """

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class WriterStatus(str, Enum):
    """Lifecycle state of a writer.

    Attributes:
        PENDING: No connection opened yet.
        OPEN: Connection open, accepting records.
        CLOSED: Completed successfully.
        FAILED: Stopped after a connection or write error.
    """

    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class WriterConfig:
    """Configuration for MongoStreamWriter.

    Attributes:
        db_url: Connection string, ``mongodb://host:port/databaseName``.
        collection: Name of the target collection.
        batch_size: Number of records per bulk write.
        operation_type: Insert, update or delete.
        index_name: Field used as match key for update and delete.
        database: Database name, overrides the one in ``db_url``.
        ordered: Whether bulk writes stop at the first failing request.
        server_selection_timeout_ms: Driver server selection timeout.
    """

    db_url: str
    collection: str
    batch_size: int = 1
    operation_type: OperationType = OperationType.INSERT
    index_name: str | None = None
    database: str | None = None
    ordered: bool = False
    server_selection_timeout_ms: int = 30_000

    def __post_init__(self) -> None:
        if not self.db_url:
            raise ConfigError("WriterConfig requires 'db_url'")
        if not self.collection:
            raise ConfigError("WriterConfig requires 'collection'")
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.server_selection_timeout_ms <= 0:
            raise ConfigError("server_selection_timeout_ms must be positive")

        operation_type = self.operation_type
        if isinstance(operation_type, str):
            operation_type = operation_type.strip().lower()
        try:
            self.operation_type = OperationType(operation_type)
        except ValueError:
            valid = ", ".join(op.value for op in OperationType)
            raise ConfigError(
                f"Unknown operation type: '{self.operation_type}'. Valid: {valid}"
            ) from None

        if self.operation_type is not OperationType.INSERT and not self.index_name:
            raise ConfigError(
                f"operation type '{self.operation_type.value}' requires 'index_name'"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> WriterConfig:
        """Build a config from ``STREAM_TO_MONGO_*`` environment variables.

        Keyword arguments that are not None take precedence over the
        environment.

        Args:
            **overrides: Explicit values for any WriterConfig field.

        Returns:
            A validated WriterConfig.

        Raises:
            ConfigError: If a value is missing or invalid.
        """
        values: dict[str, Any] = {
            key: value for key, value in overrides.items() if value is not None
        }

        def env(name: str) -> str | None:
            return os.getenv(f"{ENV_PREFIX}{name.upper()}")

        for name in ("db_url", "collection", "index_name", "database", "operation_type"):
            if name not in values and env(name) is not None:
                values[name] = env(name)

        for name in ("batch_size", "server_selection_timeout_ms"):
            if name not in values and env(name) is not None:
                raw = env(name)
                try:
                    values[name] = int(raw)
                except ValueError:
                    raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be an integer") from None

        if "ordered" not in values and env("ordered") is not None:
            values["ordered"] = env("ordered").strip().lower() in ("1", "true", "yes", "on")

        values.setdefault("db_url", "")
        values.setdefault("collection", "")
        return cls(**values)


@dataclass(frozen=True, slots=True)
class WriterMetrics:
    """Counters describing a writer run.

    This dataclass is immutable (frozen=True) and uses slots for memory efficiency.

    Attributes:
        records_accepted: Records handed to ``accept``.
        records_written: Records included in a successful bulk write.
        flush_count: Number of bulk writes issued successfully.
        inserted_count: Documents inserted, as reported by the server.
        matched_count: Documents matched by updates.
        modified_count: Documents modified by updates.
        deleted_count: Documents deleted.
        elapsed_ms: Total time spent inside bulk writes.
    """

    records_accepted: int = 0
    records_written: int = 0
    flush_count: int = 0
    inserted_count: int = 0
    matched_count: int = 0
    modified_count: int = 0
    deleted_count: int = 0
    elapsed_ms: float = 0.0

    @property
    def avg_batch_size(self) -> float:
        """Average number of records per bulk write."""
        if self.flush_count == 0:
            return 0.0
        return self.records_written / self.flush_count

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "records_accepted": self.records_accepted,
            "records_written": self.records_written,
            "flush_count": self.flush_count,
            "avg_batch_size": self.avg_batch_size,
            "inserted_count": self.inserted_count,
            "matched_count": self.matched_count,
            "modified_count": self.modified_count,
            "deleted_count": self.deleted_count,
            "elapsed_ms": self.elapsed_ms,
        }
