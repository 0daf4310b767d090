"""Exceptions raised by stream-to-mongo."""

from __future__ import annotations


class StreamToMongoError(Exception):
    """Base exception for all stream-to-mongo errors."""

    pass


class ConfigError(StreamToMongoError):
    """Invalid writer configuration."""

    pass


class DatabaseConnectionError(StreamToMongoError):
    """The database could not be reached or authenticated against."""

    def __init__(self, message: str, original_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class FlushError(StreamToMongoError):
    """A bulk write failed."""

    def __init__(
        self,
        message: str,
        operation_type: str,
        batch_size: int,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.operation_type = operation_type
        self.batch_size = batch_size
        self.original_error = original_error


class MissingIndexFieldError(FlushError):
    """An update or delete record lacks the index field."""

    def __init__(
        self, index_name: str, operation_type: str, position: int, batch_size: int
    ) -> None:
        super().__init__(
            f"Record {position} has no '{index_name}' field required for {operation_type}",
            operation_type=operation_type,
            batch_size=batch_size,
        )
        self.index_name = index_name
        self.position = position


class WriterClosedError(StreamToMongoError):
    """Records were sent to a writer that is closed or failed."""

    pass


class RecordSourceError(StreamToMongoError):
    """Input could not be decoded as JSON records."""

    pass
