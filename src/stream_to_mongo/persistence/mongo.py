"""MongoDB writer with buffered async bulk writes using pymongo's async client."""

import asyncio
import dataclasses
import json
import logging
import re
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Self

from pymongo import AsyncMongoClient

from stream_to_mongo.errors import (
    DatabaseConnectionError,
    FlushError,
    StreamToMongoError,
    WriterClosedError,
)
from stream_to_mongo.models import WriterConfig, WriterMetrics, WriterStatus
from stream_to_mongo.operations import build_operations
from stream_to_mongo.persistence.base import RecordSink

logger = logging.getLogger(__name__)

_CREDENTIALS = re.compile(r"://[^@/]+@")


def redact_url(url: str) -> str:
    """Hide the user info part of a connection string."""
    return _CREDENTIALS.sub("://***@", url)


class MongoStreamWriter(RecordSink):
    """Batch writer that streams records into a MongoDB collection.

    Buffers records in memory and issues one ``bulk_write`` per batch when the
    buffer reaches ``batch_size`` records, and once more for the remainder on
    ``end()``. ``accept`` does not return until a triggered flush settles, so a
    producer awaiting it is paused while the database works.

    The client is opened on the first accepted record and closed exactly once,
    after the final flush or after the first error. Errors are fatal: the
    buffered records are discarded, ``on_error`` fires once and later records
    are refused.

    Args:
        config: Writer configuration.
        on_close: Called with the final metrics after a successful ``end()``.
        on_error: Called with the error that stopped the writer.
        client_factory: Builds the client from the connection string.

    Example:
        ```python
        config = WriterConfig("mongodb://localhost:27017/shop", "orders", batch_size=500)
        async with MongoStreamWriter(config) as writer:
            async for record in iter_json_records("orders.json"):
                await writer.accept(record)
        ```
    """

    def __init__(
        self,
        config: WriterConfig,
        *,
        on_close: Callable[[WriterMetrics], None] | None = None,
        on_error: Callable[[StreamToMongoError], None] | None = None,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ) -> None:
        self._config = config
        self._on_close = on_close
        self._on_error = on_error
        self._client_factory = client_factory

        self._buffer: list[Any] = []
        self._client: Any = None
        self._collection: Any = None
        self._status = WriterStatus.PENDING
        self._error: StreamToMongoError | None = None
        self._lock = asyncio.Lock()
        self._done = asyncio.Event()

        # Metrics
        self._records_accepted = 0
        self._records_written = 0
        self._flush_count = 0
        self._inserted_count = 0
        self._matched_count = 0
        self._modified_count = 0
        self._deleted_count = 0
        self._elapsed_ms = 0.0

    async def __aenter__(self) -> Self:
        """Enter async context manager.

        The connection is opened lazily by the first ``accept``.

        Returns:
            Self for context manager protocol.
        """
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """End the stream on a clean exit, discard it when the block raised.

        Args:
            exc_type: Exception type if an error occurred.
            exc_val: Exception value if an error occurred.
            exc_tb: Exception traceback if an error occurred.
        """
        if exc_type is None:
            await self.end()
        else:
            await self.close()

    @property
    def config(self) -> WriterConfig:
        """Writer configuration."""
        return self._config

    @property
    def status(self) -> WriterStatus:
        """Current lifecycle state."""
        return self._status

    @property
    def pending(self) -> int:
        """Number of records buffered since the last flush."""
        return len(self._buffer)

    @property
    def error(self) -> StreamToMongoError | None:
        """The error that stopped the writer, if any."""
        return self._error

    @property
    def metrics(self) -> WriterMetrics:
        """Snapshot of the writer counters."""
        return WriterMetrics(
            records_accepted=self._records_accepted,
            records_written=self._records_written,
            flush_count=self._flush_count,
            inserted_count=self._inserted_count,
            matched_count=self._matched_count,
            modified_count=self._modified_count,
            deleted_count=self._deleted_count,
            elapsed_ms=self._elapsed_ms,
        )

    async def accept(self, record: dict[str, Any]) -> None:
        """Add a record to the current batch.

        Opens the connection on first use. Flushes when the batch reaches
        ``batch_size`` and returns only after that flush succeeded.

        Args:
            record: Document to write. Mappings are copied, so the driver's
                generated ``_id`` never lands in the caller's dict. Dataclass
                instances are converted with ``dataclasses.asdict``.

        Raises:
            WriterClosedError: If the writer already closed or failed.
            DatabaseConnectionError: If the connection could not be opened.
            FlushError: If the triggered bulk write failed.
        """
        if dataclasses.is_dataclass(record) and not isinstance(record, type):
            document = dataclasses.asdict(record)
        elif isinstance(record, Mapping):
            document = dict(record)
        else:
            document = record

        async with self._lock:
            self._ensure_accepting()

            if self._client is None:
                await self._open()

            self._buffer.append(document)
            self._records_accepted += 1

            if len(self._buffer) >= self._config.batch_size:
                await self._flush_locked()

    async def accept_many(self, records: Iterable[dict[str, Any]]) -> int:
        """Accept records one at a time.

        Args:
            records: Documents to write.

        Returns:
            Number of records accepted.
        """
        count = 0
        for record in records:
            await self.accept(record)
            count += 1
        return count

    async def end(self) -> None:
        """Flush the partial batch, close the connection and signal completion.

        Does nothing when the writer already closed or failed.

        Raises:
            FlushError: If the final bulk write failed.
            DatabaseConnectionError: If the connection could not be closed.
        """
        async with self._lock:
            if self._status in (WriterStatus.CLOSED, WriterStatus.FAILED):
                return

            await self._flush_locked()

            try:
                await self._release()
            except Exception as exc:
                error = DatabaseConnectionError(f"Failed to close connection: {exc}", exc)
                await self._fail(error)
                raise error from exc

            self._status = WriterStatus.CLOSED
            metrics = self.metrics
            self._log_event("writer_closed", logging.INFO, metrics=metrics.to_dict())
            self._done.set()

        if self._on_close:
            self._on_close(metrics)

    async def close(self) -> None:
        """Release the connection without flushing.

        Buffered records are discarded and ``wait_closed()`` raises
        WriterClosedError. Does nothing when the writer already closed or failed.
        """
        async with self._lock:
            if self._status in (WriterStatus.CLOSED, WriterStatus.FAILED):
                return

            dropped = len(self._buffer)
            self._buffer = []
            self._status = WriterStatus.CLOSED
            self._error = WriterClosedError("Writer closed before the end of the stream")

            try:
                await self._release()
            finally:
                self._log_event("writer_discarded", logging.WARNING, dropped_records=dropped)
                self._done.set()

    async def wait_closed(self) -> WriterMetrics:
        """Wait until the writer closes or fails.

        Returns:
            The final metrics.

        Raises:
            StreamToMongoError: The error that stopped the writer.
        """
        await self._done.wait()
        if self._error is not None:
            raise self._error
        return self.metrics

    def _ensure_accepting(self) -> None:
        if self._status in (WriterStatus.CLOSED, WriterStatus.FAILED):
            raise WriterClosedError(f"Cannot accept records: writer is {self._status.value}")

    async def _open(self) -> None:
        """Open the client, resolve the collection and check the server answers."""
        config = self._config
        try:
            self._client = self._client_factory(
                config.db_url,
                serverSelectionTimeoutMS=config.server_selection_timeout_ms,
            )
            if config.database:
                database = self._client[config.database]
            else:
                database = self._client.get_default_database()
            await self._client.admin.command("ping")
            self._collection = database[config.collection]
        except Exception as exc:
            error = DatabaseConnectionError(
                f"Could not connect to {redact_url(config.db_url)}: {exc}", exc
            )
            await self._fail(error)
            raise error from exc

        self._status = WriterStatus.OPEN
        self._log_event(
            "writer_opened",
            logging.INFO,
            url=redact_url(config.db_url),
            database=database.name,
        )

    async def _flush_locked(self) -> None:
        """Issue one bulk write for the buffered batch. Called with lock held."""
        if not self._buffer:
            return

        batch = self._buffer
        operation_type = self._config.operation_type
        start_time = time.perf_counter()

        try:
            requests = build_operations(batch, operation_type, self._config.index_name)
            result = await self._collection.bulk_write(requests, ordered=self._config.ordered)
        except FlushError as exc:
            await self._fail(exc)
            raise
        except Exception as exc:
            error = FlushError(
                f"Bulk {operation_type.value} of {len(batch)} records failed: {exc}",
                operation_type=operation_type.value,
                batch_size=len(batch),
                original_error=exc,
            )
            await self._fail(error)
            raise error from exc

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._buffer = []

        self._flush_count += 1
        self._records_written += len(batch)
        self._elapsed_ms += elapsed_ms
        if result.acknowledged:
            self._inserted_count += result.inserted_count
            self._matched_count += result.matched_count
            self._modified_count += result.modified_count
            self._deleted_count += result.deleted_count

        self._log_event(
            "batch_flushed",
            logging.DEBUG,
            batch_size=len(batch),
            flush_number=self._flush_count,
            latency_ms=round(elapsed_ms, 3),
        )

    async def _fail(self, error: StreamToMongoError) -> None:
        """Stop the writer after an error. Called with lock held."""
        dropped = len(self._buffer)
        self._buffer = []
        self._status = WriterStatus.FAILED
        self._error = error

        try:
            await self._release()
        except Exception as exc:
            logger.warning(f"Error closing connection after failure: {exc}")

        self._log_event(
            "writer_failed",
            logging.ERROR,
            error_type=type(error).__name__,
            error=str(error),
            dropped_records=dropped,
        )
        self._done.set()

        if self._on_error:
            self._on_error(error)

    async def _release(self) -> None:
        """Close the client if one is open."""
        client = self._client
        self._client = None
        self._collection = None
        if client is not None:
            await client.close()

    def _log_event(self, event: str, level: int, **fields: Any) -> None:
        """Log a lifecycle event with structured JSON."""
        if not logger.isEnabledFor(level):
            return
        log_entry = {
            "event": event,
            "collection": self._config.collection,
            "operation_type": self._config.operation_type.value,
            "status": self._status.value,
            "timestamp": datetime.now(UTC).isoformat(),
            **fields,
        }
        logger.log(level, json.dumps(log_entry, default=str))
