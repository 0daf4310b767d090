"""Compose a record producer with a sink."""

from collections.abc import AsyncIterable, Iterable
from typing import Any

from stream_to_mongo.models import WriterConfig, WriterMetrics
from stream_to_mongo.persistence.base import RecordSink
from stream_to_mongo.persistence.mongo import MongoStreamWriter


async def pipe_records(
    source: Iterable[Any] | AsyncIterable[Any],
    sink: RecordSink,
) -> int:
    """Feed every record of ``source`` into ``sink``, then end it.

    Each record is awaited into the sink before the next one is pulled, so a
    slow sink pauses the producer. If the source raises, the sink is closed
    without flushing and the error propagates. Errors from the sink propagate
    unchanged.

    Args:
        source: Sync or async iterable of records.
        sink: Destination for the records.

    Returns:
        Number of records piped.
    """
    count = 0
    try:
        if isinstance(source, AsyncIterable):
            async for record in source:
                await sink.accept(record)
                count += 1
        else:
            for record in source:
                await sink.accept(record)
                count += 1
    except BaseException:
        await sink.close()
        raise

    await sink.end()
    return count


async def stream_to_mongo(
    source: Iterable[Any] | AsyncIterable[Any],
    config: WriterConfig,
    **writer_kwargs: Any,
) -> WriterMetrics:
    """Write every record of ``source`` to MongoDB.

    Args:
        source: Sync or async iterable of records.
        config: Writer configuration.
        **writer_kwargs: Extra keyword arguments for MongoStreamWriter.

    Returns:
        Metrics of the completed run.

    Raises:
        StreamToMongoError: The error that stopped the writer.
    """
    writer = MongoStreamWriter(config, **writer_kwargs)
    await pipe_records(source, writer)
    return await writer.wait_closed()
